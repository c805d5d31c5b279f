from __future__ import annotations

import os
import tempfile

# Must happen before rentledger.config builds its settings singleton.
_DB_DIR = tempfile.mkdtemp(prefix="rentledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["BASE_CURRENCY"] = "MVR"
os.environ["INVOICE_DUE_DAY"] = "1"
os.environ["OVERPAYMENT_TOLERANCE"] = "0"
os.environ["LATE_FEE_PER_DAY"] = "10"

import pytest

from rentledger import models  # noqa: F401,E402
from rentledger.db import Base, engine  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
