from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./rentledger.db"
    api_version: str = "2025-10-01.v1"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Currency ----
    base_currency: str = "MVR"

    # ---- Invoicing ----
    invoice_due_day: int = 1  # day-of-month rent falls due
    overpayment_tolerance: Decimal = Decimal("0")
    late_fee_per_day: Decimal = Decimal("0")
    auto_generate_invoices: bool = True  # gates the scheduled monthly run only

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    overdue_recheck_hour: int = 1  # UTC

    def model_post_init(self, __context) -> None:
        object.__setattr__(self, "base_currency", (self.base_currency or "MVR").strip().upper())

        # Every month has a 28th; later days would need per-month clamping in config.
        if not 1 <= int(self.invoice_due_day) <= 28:
            raise ValueError("invoice_due_day must be between 1 and 28")
        if self.overpayment_tolerance < 0:
            raise ValueError("overpayment_tolerance must be >= 0")
        if self.late_fee_per_day < 0:
            raise ValueError("late_fee_per_day must be >= 0")

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
