"""
db.query_df + the real SQL templates against an in-memory SQLite table.
SQLite understands LOWER/REPLACE/LIKE/BETWEEN the same way for these shapes.
"""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from qc_api import db, queries
from qc_api.db import StoreError, _to_named_binds


@pytest.fixture
def sqlite_engine(monkeypatch):
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with eng.begin() as conn:
        conn.execute(text(
            "CREATE TABLE uqe_data (LotID TEXT, ArticleNumber TEXT, ShiftStartTime TEXT, Defects INTEGER)"
        ))
        conn.execute(
            text("INSERT INTO uqe_data VALUES (:lot, :art, :ts, :d)"),
            [
                {"lot": "L1", "art": "AB 100", "ts": "2025-09-01 00:00:00", "d": 1},
                {"lot": "L1", "art": "ab100", "ts": "2025-09-01 23:59:59", "d": 0},
                {"lot": "L2", "art": "XAB-7", "ts": "2025-09-02 12:00:00", "d": 4},
                {"lot": "L3", "art": None, "ts": "2025-09-03 00:00:00", "d": 2},
            ],
        )
    monkeypatch.setattr(db, "_engine", eng)
    yield eng
    eng.dispose()


def test_to_named_binds():
    sql, binds = _to_named_binds("SELECT * FROM t WHERE a IN (?, ?) AND b = ?", ["x", "y", 3])
    assert sql == "SELECT * FROM t WHERE a IN (:p0, :p1) AND b = :p2"
    assert binds == {"p0": "x", "p1": "y", "p2": 3}


def test_to_named_binds_count_mismatch():
    with pytest.raises(StoreError):
        _to_named_binds("SELECT ?", [])


def test_query_df_positional(sqlite_engine):
    df = db.query_df("SELECT LotID FROM uqe_data WHERE Defects >= ?", [2])
    assert sorted(df["LotID"]) == ["L2", "L3"]


def test_query_df_wraps_sql_errors(sqlite_engine):
    with pytest.raises(StoreError):
        db.query_df("SELECT * FROM missing_table")


def test_records_by_lots_sql(sqlite_engine):
    rows = queries.fetch_records(lot_id="L1,L3")
    assert sorted(r["LotID"] for r in rows) == ["L1", "L1", "L3"]


def test_records_by_shift_range_sql(sqlite_engine):
    rows = queries.fetch_records(start_date="2025-09-01", end_date="2025-09-01")
    assert sorted(r["ShiftStartTime"] for r in rows) == ["2025-09-01 00:00:00", "2025-09-01 23:59:59"]


def test_unique_article_numbers_sql(sqlite_engine):
    values = queries.unique_article_numbers("Ab")
    assert len(values) == 2
    assert {v.replace(" ", "").lower() for v in values} == {"ab100", "xab-7"}


def test_records_by_articles_sql(sqlite_engine):
    rows = queries.records_by_articles("AB100")
    assert sorted(r["ArticleNumber"] for r in rows) == ["AB 100", "ab100"]


def test_missing_table_is_500_json(client, monkeypatch):
    empty = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    monkeypatch.setattr(db, "_engine", empty)
    r = client.get("/api/data", params={"lotId": "L1"})
    assert r.status_code == 500
    assert r.json() == {"error": "Database query failed"}
    empty.dispose()


def test_article_key_strips_every_whitespace_kind(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(
            text("INSERT INTO uqe_data VALUES (:lot, :art, :ts, :d)"),
            [
                {"lot": "L4", "art": "EF\t200", "ts": "2025-09-04 00:00:00", "d": 0},
                {"lot": "L5", "art": "ef 200\r\n", "ts": "2025-09-05 00:00:00", "d": 0},
            ],
        )
    rows = queries.records_by_articles("EF200")
    assert sorted(r["LotID"] for r in rows) == ["L4", "L5"]
    assert queries.unique_article_numbers("f2") == ["EF\t200"]
