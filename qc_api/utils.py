# =============================
# ========= utils.py ==========
# =============================
"""Utilities: time helpers, input parsing/normalization, JSON sanitation, DF conversions, TTL cache.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Tuple, Optional
from datetime import datetime, date
from decimal import Decimal
import math
import re
import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo
from qc_api.config import SETTINGS
import time, threading


# ---------------- Time helpers ----------------

def tz() -> ZoneInfo:
    return ZoneInfo(SETTINGS.TIMEZONE)

def now_local() -> datetime:
    return datetime.now(tz())

def to_local_str(dt: datetime) -> str:
    """
    Format 'YYYY-MM-DD HH:MM:SS' in local time, WITHOUT offset.
    - pandas.Timestamp -> datetime
    - naive -> taken as local (DB values are stored naive)
    - aware -> converted to local
    """
    if dt is None:
        return None
    if isinstance(dt, pd.Timestamp):
        dt = dt.to_pydatetime()
    if dt.tzinfo is None:
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    return dt.astimezone(tz()).strftime("%Y-%m-%d %H:%M:%S")


def parse_day(s: Optional[str]) -> Optional[date]:
    """'YYYY-MM-DD' -> date; anything else -> None."""
    if not s:
        return None
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def day_bounds(start: date, end: date) -> Tuple[str, str]:
    """Inclusive shift window: start 00:00:00 .. end 23:59:59."""
    return f"{start:%Y-%m-%d} 00:00:00", f"{end:%Y-%m-%d} 23:59:59"


_ISO_TS = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.\d+)?(Z|[+-]\d{2}:?\d{2})?$")

def parse_iso_ts(s: str) -> Optional[datetime]:
    """
    ISO 8601 timestamp as returned by PostgREST ('T' separator, optional
    fraction and offset) -> datetime; other strings -> None.
    """
    m = _ISO_TS.match(s)
    if not m:
        return None
    day, clock, off = m.groups()
    if off == "Z":
        off = "+00:00"
    elif off and ":" not in off:
        off = f"{off[:3]}:{off[3:]}"
    try:
        return datetime.fromisoformat(f"{day}T{clock}{off or ''}")
    except ValueError:
        return None


# ---------------- Input parsing ----------------

# Whitespace ignored in article numbers; sql_texts strips the same set in SQL
ARTICLE_SPACES = (" ", "\t", "\n", "\r", "\x0b", "\x0c", "\u00a0")
_STRIP_SPACES = {ord(c): None for c in ARTICLE_SPACES}

def normalize_article(s: Optional[str]) -> str:
    """Canonical article-number key: lowercase, ARTICLE_SPACES removed."""
    if s is None:
        return ""
    return str(s).translate(_STRIP_SPACES).lower()


def parse_csv(s: str | None, normalize: Callable[[str], str] = str.strip) -> list[str]:
    """Split a comma list, normalize each token, drop empties, de-dup keeping order."""
    if not s:
        return []
    seen, out = set(), []
    for tok in str(s).split(","):
        tok = normalize(tok)
        if not tok or tok in seen:
            continue
        seen.add(tok)
        out.append(tok)
    return out


def escape_like(s: str) -> str:
    """Escape LIKE wildcards with the default backslash escape."""
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def dedupe_articles(values, limit: int) -> list[str]:
    """
    Distinct article numbers by normalized key, first-seen spelling wins.
    Nulls and blank values are skipped; at most `limit` values are returned.
    """
    seen, out = set(), []
    for v in values:
        if v is None or (isinstance(v, float) and math.isnan(v)):
            continue
        key = normalize_article(v)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(str(v))
        if len(out) >= limit:
            break
    return out


# ---------------- DataFrame helpers ----------------

def df_to_records(df: pd.DataFrame) -> list[dict]:
    """Convert DataFrame to list[dict] and coerce NaN/Inf to None."""
    if df is None or df.empty:
        return []
    # Ensure plain Python types (avoid numpy types leaking to JSON)
    df = df.astype(object).replace({np.nan: None, np.inf: None, -np.inf: None})
    return df.to_dict(orient="records")


# ---------------- JSON sanitizer ----------------

def sanitize_json_deep(obj: Any) -> Any:
    """Recursively sanitize an object for JSON encoding.
    - Convert NaN/Inf to None
    - Convert numpy scalars to Python scalars
    - Convert Decimal to float
    - Format datetimes (and ISO 'T' timestamp strings) to local 'YYYY-MM-DD HH:MM:SS'
    """
    if obj is None:
        return None
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    if isinstance(obj, (np.floating,)):
        v = float(obj)
        return None if (math.isnan(v) or math.isinf(v)) else v
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, Decimal):
        return float(obj)
    if obj is pd.NaT:
        return None
    if isinstance(obj, (datetime, pd.Timestamp)):
        return to_local_str(obj)
    if isinstance(obj, date):
        # same shape as datetimes
        return f"{obj.strftime('%Y-%m-%d')} 00:00:00"
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, str):
        ts = parse_iso_ts(obj)
        return to_local_str(ts) if ts else obj
    if isinstance(obj, list):
        return [sanitize_json_deep(x) for x in obj]
    if isinstance(obj, dict):
        return {k: sanitize_json_deep(v) for k, v in obj.items()}
    return obj


# ==== Simple in-process TTL Cache ============================================
class TTLCache:
    """Stores (expire_ts, value) per hashable key, bounded by maxsize. Thread-safe."""
    def __init__(self, ttl_sec: float = 5, maxsize: int = 1024, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = float(ttl_sec)
        self.maxsize = int(maxsize)
        self._clock = clock
        self._store: Dict[Any, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: Any) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            exp, val = item
            if exp <= now:
                self._store.pop(key, None)
                return None
            return val

    def set(self, key: Any, value: Any) -> None:
        if self.ttl_sec <= 0:
            return
        now = self._clock()
        exp = now + self.ttl_sec
        with self._lock:
            if key not in self._store and len(self._store) >= self.maxsize:
                # drop expired entries first; still full -> evict the oldest insert
                for k, (e, _) in list(self._store.items()):
                    if e <= now:
                        self._store.pop(k, None)
                if len(self._store) >= self.maxsize:
                    self._store.pop(next(iter(self._store)), None)
            self._store[key] = (exp, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
