# tests/conftest.py
"""
Shared fixtures:
- client: FastAPI TestClient
- store: monkeypatch qc_api.db.query_df with an in-memory quality table
  that understands the SQL templates in sql_texts.py
- settings: SETTINGS pinned to the SQL backend with dummy credentials
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence
import pandas as pd
import pytest
from fastapi.testclient import TestClient

from qc_api.config import SETTINGS
from qc_api.utils import normalize_article


ROWS = [
    dict(LotID="L1", ArticleNumber="AB 100", ShiftStartTime=datetime(2025, 9, 1, 6, 0, 0),
         DefectRate=0.5, Weight=Decimal("1.25")),
    dict(LotID="L1", ArticleNumber="ab100", ShiftStartTime=datetime(2025, 9, 1, 22, 0, 0),
         DefectRate=float("nan"), Weight=Decimal("1.30")),
    dict(LotID="L2", ArticleNumber="XAB-7", ShiftStartTime=datetime(2025, 9, 2, 23, 59, 59),
         DefectRate=1.0, Weight=Decimal("0.90")),
    dict(LotID="L3", ArticleNumber=None, ShiftStartTime=datetime(2025, 9, 3, 0, 0, 0),
         DefectRate=0.0, Weight=Decimal("2.00")),
    dict(LotID="L4", ArticleNumber="CD 900", ShiftStartTime=datetime(2025, 8, 31, 23, 59, 59),
         DefectRate=2.5, Weight=Decimal("1.00")),
]


class FakeStore:
    """Answers the four SQL shapes the service issues; records every call."""

    def __init__(self, rows):
        self.rows = rows
        self.calls: list[tuple[str, list]] = []
        self.fail = False

    def query_df(self, sql: str, params: Sequence[Any]):
        self.calls.append((sql, list(params)))
        if self.fail:
            from qc_api.db import StoreError
            raise StoreError("Database query failed")

        sql_norm = " ".join(sql.split()).lower()
        if "lotid in" in sql_norm:
            hit = [r for r in self.rows if r["LotID"] in params]
        elif "shiftstarttime between" in sql_norm:
            lo = datetime.strptime(params[0], "%Y-%m-%d %H:%M:%S")
            hi = datetime.strptime(params[1], "%Y-%m-%d %H:%M:%S")
            hit = [r for r in self.rows if lo <= r["ShiftStartTime"] <= hi]
        elif "select distinct articlenumber" in sql_norm:
            needle = params[0].strip("%").replace("\\", "")
            hit = [
                {"ArticleNumber": r["ArticleNumber"]} for r in self.rows
                if r["ArticleNumber"] is not None and needle in normalize_article(r["ArticleNumber"])
            ][: int(params[1])]
            return pd.DataFrame(hit, columns=["ArticleNumber"])
        elif ") in (" in sql_norm:
            hit = [r for r in self.rows if normalize_article(r["ArticleNumber"]) in params]
        else:
            raise AssertionError(f"unexpected SQL: {sql}")
        return pd.DataFrame(hit, columns=list(self.rows[0].keys()))


@pytest.fixture(scope="session")
def client() -> TestClient:
    from qc_api.api import app  # the real app
    return TestClient(app)


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    monkeypatch.setattr(SETTINGS, "BACKEND", "sql")
    monkeypatch.setattr(SETTINGS, "TABLE", "uqe_data")
    monkeypatch.setattr(SETTINGS, "DB_HOST", "db.test")
    monkeypatch.setattr(SETTINGS, "DB_USER", "qc")
    monkeypatch.setattr(SETTINGS, "DB_NAME", "quality")
    monkeypatch.setattr(SETTINGS, "AUTOCOMPLETE_LIMIT", 200)
    monkeypatch.setattr(SETTINGS, "TIMEZONE", "UTC")
    return SETTINGS


@pytest.fixture(autouse=True)
def fresh_cache():
    from qc_api.queries import ARTICLE_CACHE
    ARTICLE_CACHE.clear()
    yield
    ARTICLE_CACHE.clear()


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore([dict(r) for r in ROWS])
    monkeypatch.setattr("qc_api.db.query_df", fake.query_df)
    return fake
