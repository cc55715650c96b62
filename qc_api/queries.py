# =============================
# ======== queries.py =========
# =============================
"""
Query orchestration:
- Parses/normalizes request inputs (lot list, day range, article keys)
- Chooses the record store (SQL via db.query_df, or the hosted REST API)
- Applies parameterized filters; IN-lists are always bound, never inlined
- Autocomplete results are cached per normalized query (TTLCache)
- Returns JSON-ready lists
"""
from typing import Optional, List
import logging

from qc_api.config import SETTINGS
from qc_api import db, hosted
from qc_api.utils import (
    df_to_records,
    sanitize_json_deep,
    parse_csv,
    parse_day,
    day_bounds,
    normalize_article,
    escape_like,
    dedupe_articles,
    TTLCache,
)
from qc_api import sql_texts as SQL

logger = logging.getLogger("qc.queries")

CACHE_HIT   = 0
CACHE_MISS  = 0

ARTICLE_CACHE = TTLCache(ttl_sec=SETTINGS.CACHE_TTL_SEC, maxsize=SETTINGS.CACHE_MAX_KEYS)


def _use_hosted() -> bool:
    return SETTINGS.BACKEND == "supabase"

def _sql(template: str, n: int = 0) -> str:
    return template.format(table=SETTINGS.TABLE, placeholders=SQL.placeholders(n))

def _rows(sql: str, params: list) -> List[dict]:
    return df_to_records(db.query_df(sql, params))


# ---------------- /api/data ----------------

def fetch_records(
    lot_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[dict]:
    """
    Lot filter wins over the date range. No usable filter -> [] without a query.
    """
    lots = parse_csv(lot_id)
    if lots:
        logger.info("records by lots | n=%s", len(lots))
        if _use_hosted():
            rows = hosted.records_by_lots(lots)
        else:
            rows = _rows(_sql(SQL.RECORDS_BY_LOTS, len(lots)), lots)
        return sanitize_json_deep(rows)

    start, end = parse_day(start_date), parse_day(end_date)
    if start and end:
        lo, hi = day_bounds(start, end)
        logger.info("records by shift range | %s .. %s", lo, hi)
        if _use_hosted():
            rows = hosted.records_by_shift_range(lo, hi)
        else:
            rows = _rows(_sql(SQL.RECORDS_BY_SHIFT_RANGE), [lo, hi])
        return sanitize_json_deep(rows)

    if lot_id or start_date or end_date:
        logger.info("records: unusable filter lotId=%r startDate=%r endDate=%r -> []",
                    lot_id, start_date, end_date)
    return []


# ---------------- /api/unique-article-numbers ----------------

def unique_article_numbers(q: Optional[str]) -> List[str]:
    """
    Distinct article numbers whose normalized key contains normalized `q`.
    First-seen spelling is kept; at most AUTOCOMPLETE_LIMIT values.
    """
    global CACHE_HIT, CACHE_MISS
    key = normalize_article(q)
    if not key:
        return []

    cached = ARTICLE_CACHE.get(key)
    if cached is not None:
        CACHE_HIT += 1
        logger.debug("CACHE HIT=%s key=%s", CACHE_HIT, key)
        return list(cached)
    CACHE_MISS += 1

    limit = SETTINGS.AUTOCOMPLETE_LIMIT
    if _use_hosted():
        candidates = hosted.article_candidates(key, limit)
    else:
        df = db.query_df(_sql(SQL.ARTICLE_CANDIDATES), [f"%{escape_like(key)}%", limit])
        candidates = df["ArticleNumber"].tolist() if "ArticleNumber" in df.columns else []

    out = dedupe_articles(candidates, limit)
    ARTICLE_CACHE.set(key, tuple(out))
    logger.info("CACHE SET key=%s size=%s", key, len(out))
    return out


# ---------------- /api/data-by-article ----------------

def records_by_articles(articles: Optional[str]) -> List[dict]:
    keys = parse_csv(articles, normalize=normalize_article)
    if not keys:
        return []
    logger.info("records by articles | n=%s", len(keys))
    if _use_hosted():
        rows = hosted.records_by_articles(keys)
    else:
        rows = _rows(_sql(SQL.RECORDS_BY_ARTICLES, len(keys)), keys)
    return sanitize_json_deep(rows)
