from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi.testclient import TestClient

from rentledger.config import settings
from rentledger.db import SessionLocal
from rentledger.main import app
from rentledger.models import Currency, RentalUnit, Tenancy, Tenant


def _seed(*, base_rate="1", rent="1000", currency="MVR") -> int:
    db = SessionLocal()
    try:
        db.add_all(
            [
                Currency(code="MVR", name="Maldivian Rufiyaa", symbol="MVR", exchange_rate=Decimal(base_rate), is_base=True),
                Currency(code="USD", name="US Dollar", symbol="$", exchange_rate=Decimal("15.42")),
            ]
        )
        u = RentalUnit(property_name="Lagoon Court", unit_number="7")
        t = Tenant(full_name="A. Tenant")
        db.add_all([u, t]); db.commit()
        db.refresh(u); db.refresh(t)

        row = Tenancy(
            rental_unit_id=u.id,
            tenant_id=t.id,
            monthly_rent=Decimal(rent),
            currency_code=currency,
            lease_start=date(2024, 1, 1),
        )
        db.add(row); db.commit(); db.refresh(row)
        return row.id
    finally:
        db.close()


def _generate(c: TestClient) -> dict:
    r = c.post("/api/rent-invoices/generate-monthly", json={"year": 2024, "month": 6})
    assert r.status_code == 200, r.text
    return r.json()


def test_health():
    c = TestClient(app)
    r = c.get("/api/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("X-Request-ID")


def test_generate_monthly_endpoint_is_idempotent():
    tid = _seed()
    c = TestClient(app)

    body = _generate(c)
    assert body["period"] == "2024-06"
    assert [i["tenancy_id"] for i in body["created"]] == [tid]
    assert body["created"][0]["status"] == "PENDING"
    assert Decimal(body["created"][0]["due_amount"]) == Decimal("1000")

    again = _generate(c)
    assert again["created"] == []
    assert again["skipped"] == [tid]

    listed = c.get("/api/rent-invoices", params={"year": 2024, "month": 6})
    assert listed.status_code == 200
    assert len(listed.json()) == 1


def test_payment_flow_and_error_codes():
    _seed()
    c = TestClient(app)
    inv_id = _generate(c)["created"][0]["id"]

    r = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "400", "currency": "MVR", "posted_at": "2024-05-30T10:00:00"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "PARTIALLY_PAID"
    assert Decimal(r.json()["outstanding"]) == Decimal("600")

    over = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "700", "currency": "MVR"})
    assert over.status_code == 422
    assert over.json()["error"]["code"] == "Overpayment"

    zero = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "0", "currency": "MVR"})
    assert zero.status_code == 422
    assert zero.json()["error"]["code"] == "InvalidAmount"

    foreign = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "10", "currency": "USD"})
    assert foreign.status_code == 422
    assert foreign.json()["error"]["code"] == "CurrencyMismatch"

    unknown = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "10", "currency": "GBP", "convert": True})
    assert unknown.status_code == 422
    assert unknown.json()["error"]["code"] == "UnknownCurrency"

    history = c.get(f"/api/rent-invoices/{inv_id}/payments")
    assert history.status_code == 200
    assert len(history.json()) == 1

    missing = c.post("/api/rent-invoices/nope/payments", json={"amount": "1", "currency": "MVR"})
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NotFound"


def test_mark_paid_endpoint():
    _seed()
    c = TestClient(app)
    inv_id = _generate(c)["created"][0]["id"]

    r = c.patch(f"/api/rent-invoices/{inv_id}/mark-paid", json={"paid_at": "2024-06-02T08:00:00", "notes": "cash at office"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "PAID"
    assert r.json()["paid_at"].startswith("2024-06-02T08:00:00")

    # no body is fine, and the first settlement time is kept
    again = c.patch(f"/api/rent-invoices/{inv_id}/mark-paid")
    assert again.status_code == 200
    assert again.json()["paid_at"].startswith("2024-06-02T08:00:00")

    detail = c.get(f"/api/rent-invoices/{inv_id}")
    assert detail.status_code == 200
    assert detail.json()["days_overdue"] == 0
    assert Decimal(detail.json()["accrued_late_fee"]) == Decimal("0")

    assert c.patch("/api/rent-invoices/nope/mark-paid").status_code == 404


def test_statistics_endpoint():
    _seed(rent="100", currency="USD")
    c = TestClient(app)
    _generate(c)

    r = c.get("/api/rent-invoices/statistics", params={"start": "2024-06", "end": "2024-06"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["base_currency"] == "MVR"
    assert Decimal(body["total_due_base"]) == Decimal("1542.00")
    assert body["count_by_status"]["PENDING"] == 1
    assert body["count_by_currency"] == {"USD": 1}

    assert c.get("/api/rent-invoices/statistics", params={"start": "2024-07", "end": "2024-06"}).status_code == 422
    assert c.get("/api/rent-invoices/statistics", params={"start": "June"}).status_code == 422


def test_currency_convert_endpoint():
    _seed()
    c = TestClient(app)

    r = c.post("/api/currencies/convert", json={"amount": "100", "from_currency": "usd", "to_currency": "MVR"})
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["converted_amount"]) == Decimal("1542.00")
    assert r.json()["from_currency"] == "USD"

    base = c.get("/api/currencies/base")
    assert base.status_code == 200
    assert base.json()["code"] == "MVR"

    codes = [x["code"] for x in c.get("/api/currencies").json()]
    assert codes == ["MVR", "USD"]


def test_corrupt_base_rate_is_an_internal_error():
    _seed(base_rate="2")
    c = TestClient(app)

    r = c.post("/api/currencies/convert", json={"amount": "1", "from_currency": "USD", "to_currency": "MVR"})
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "InvariantViolation"


def test_payment_finer_than_currency_precision_is_rejected_and_not_stored():
    _seed()
    c = TestClient(app)
    inv_id = _generate(c)["created"][0]["id"]

    r = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "0.00004", "currency": "MVR"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "InvalidAmount"

    stored = c.get(f"/api/rent-invoices/{inv_id}").json()
    assert Decimal(stored["amount_paid"]) == Decimal("0")
    assert stored["status"] == "PENDING"
    assert c.get(f"/api/rent-invoices/{inv_id}/payments").json() == []

    ok = c.post(f"/api/rent-invoices/{inv_id}/payments", json={"amount": "10.50", "currency": "MVR"})
    assert ok.status_code == 200, ok.text
    stored = c.get(f"/api/rent-invoices/{inv_id}").json()
    assert Decimal(stored["amount_paid"]) == Decimal(ok.json()["amount_paid"]) == Decimal("10.50")


def test_partial_payment_after_due_date_reads_partially_paid():
    _seed()
    c = TestClient(app)
    inv_id = _generate(c)["created"][0]["id"]

    r = c.post(
        f"/api/rent-invoices/{inv_id}/payments",
        json={"amount": "400", "currency": "MVR", "posted_at": "2024-06-05T10:00:00"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "PARTIALLY_PAID"


def test_scheduler_status_reports_jobs_and_last_run(monkeypatch):
    _seed()
    c = TestClient(app)

    jobs = {j["name"]: j for j in c.get("/api/scheduler/status").json()}
    assert set(jobs) == {"recheck-overdue-daily", "generate-monthly-invoices"}
    assert jobs["generate-monthly-invoices"]["schedule"] == {"day_of_month": 1, "hour": 0, "minute": 15}
    assert jobs["generate-monthly-invoices"]["last_run"] is None

    _generate(c)
    c.post("/api/rent-invoices/recheck-overdue")
    monkeypatch.setattr(settings, "auto_generate_invoices", False)

    jobs = {j["name"]: j for j in c.get("/api/scheduler/status").json()}
    assert jobs["generate-monthly-invoices"]["last_run"] is not None
    assert jobs["generate-monthly-invoices"]["enabled"] is False
    assert jobs["recheck-overdue-daily"]["last_run"] is not None
    assert jobs["recheck-overdue-daily"]["enabled"] is True


def test_unsafe_request_id_is_replaced():
    c = TestClient(app)
    assert c.get("/api/health", headers={"X-Request-ID": "trace-42"}).headers["X-Request-ID"] == "trace-42"

    r = c.get("/api/health", headers={"X-Request-ID": "bad id with spaces"})
    assert r.headers["X-Request-ID"] != "bad id with spaces"
    assert len(r.headers["X-Request-ID"]) == 36
