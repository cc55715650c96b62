# db.py
"""
DB access via SQLAlchemy Engine (MySQL-compatible / TiDB Cloud + PyMySQL).
- query_df(sql: str, params: Optional[Sequence|dict])
- Accepts positional "?" placeholders and converts them to named binds (:p0, :p1, ...)
- Returns pandas.DataFrame
- Any driver/SQL failure surfaces as StoreError
"""
from __future__ import annotations
from typing import Sequence, Optional, Tuple
import re
import logging
import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError
from qc_api.config import SETTINGS

logger = logging.getLogger("qc.db")


class StoreError(RuntimeError):
    """Record store (SQL or hosted) failed to answer a query."""


# ---------- Engine ----------
_engine: Optional[Engine] = None

def _database_url():
    if SETTINGS.DATABASE_URL:
        return SETTINGS.DATABASE_URL
    return URL.create(
        "mysql+pymysql",
        username=SETTINGS.DB_USER or None,
        password=SETTINGS.DB_PASS or None,
        host=SETTINGS.DB_HOST or None,
        port=SETTINGS.DB_PORT,
        database=SETTINGS.DB_NAME or None,
        query={"charset": "utf8mb4"},
    )

def _connect_args() -> dict:
    # TiDB Cloud refuses plain connections; verify the server certificate
    if not SETTINGS.DB_SSL:
        return {}
    args = {"ssl_verify_cert": True, "ssl_verify_identity": True}
    if SETTINGS.DB_SSL_CA:
        args["ssl_ca"] = SETTINGS.DB_SSL_CA
    return args

def engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine(
            _database_url(),
            connect_args=_connect_args(),
            pool_pre_ping=True,
            pool_recycle=1800,   # recycle stale conns
            pool_size=10,
            max_overflow=20,
            isolation_level="AUTOCOMMIT",
        )
        logger.info("Engine created for %s", _engine.url.render_as_string(hide_password=True))
    return _engine

def dispose() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None

# ---------- Helpers ----------
_QUESTION_MARK = re.compile(r"\?")

def _to_named_binds(sql: str, params: Sequence) -> Tuple[str, dict]:
    """
    Convert positional '?' placeholders to named binds :p0, :p1, ...
    Only used when 'params' is a sequence (list/tuple).
    """
    bind_names = []
    def repl(_):
        idx = len(bind_names)
        name = f"p{idx}"
        bind_names.append(name)
        return f":{name}"

    sql_named = _QUESTION_MARK.sub(repl, sql)
    if len(bind_names) != len(params):
        raise StoreError(f"SQL expects {len(bind_names)} binds, got {len(params)}")
    bind_dict = {name: params[i] for i, name in enumerate(bind_names)}
    return sql_named, bind_dict

# ---------- Public API ----------
def query_df(sql: str, params: Optional[Sequence|dict] = None) -> pd.DataFrame:
    """
    Execute a SELECT and return DataFrame.
    - If params is list/tuple → treat SQL as using '?' and convert to named.
    - If params is dict → use as-is (SQL should contain :named binds).
    """
    try:
        with engine().connect() as conn:
            if params is None:
                logger.debug("SQL(no params): %s", sql)
                df = pd.read_sql_query(text(sql), conn)
            elif isinstance(params, (list, tuple)):
                sql_named, bind_dict = _to_named_binds(sql, params)
                logger.debug("SQL(positional): %s | binds=%s", sql_named, bind_dict)
                df = pd.read_sql_query(text(sql_named), conn, params=bind_dict)
            else:
                # dict
                logger.debug("SQL(named): %s | binds=%s", sql, params)
                df = pd.read_sql_query(text(sql), conn, params=params)
    except (SQLAlchemyError, pd.errors.DatabaseError) as e:
        # pandas >= 2.2 re-raises driver errors as its own DatabaseError
        logger.exception("DB error")
        raise StoreError("Database query failed") from e
    return df
