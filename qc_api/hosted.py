"""
Supabase (PostgREST) record store.

Used endpoints:
- GET /rest/v1/{table}?select=*&<filters>   -> [{...row...}, ...]

Filters are expressed as PostgREST operators (in., gte., lte., ilike., or=()).
Article numbers are matched with a spaced ilike pattern, then re-checked on
the canonical key (utils.normalize_article).
Rows are fetched page by page since the hosted API caps a single response.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

import httpx

from qc_api.config import SETTINGS
from qc_api.db import StoreError
from qc_api.utils import normalize_article

logger = logging.getLogger("qc.hosted")

PAGE_SIZE = 1000


def _client() -> httpx.Client:
    return httpx.Client(
        base_url=f"{SETTINGS.SUPABASE_URL}/rest/v1",
        timeout=SETTINGS.RESTART_TIMEOUT_SEC,
        headers={
            "apikey": SETTINGS.SUPABASE_SERVICE_ROLE_KEY,
            "Authorization": f"Bearer {SETTINGS.SUPABASE_SERVICE_ROLE_KEY}",
            "Accept": "application/json",
        },
    )


def quote(value: str) -> str:
    """Quote a value for use inside in.(...) / or=(...) lists."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _pages(params: list[tuple[str, str]], page_size: int) -> Iterator[list[dict[str, Any]]]:
    """Yield result pages of a filtered select against SETTINGS.TABLE until a short page."""
    path = f"/{SETTINGS.TABLE}"
    offset = 0
    try:
        with _client() as client:
            while True:
                query = list(params) + [("limit", str(page_size)), ("offset", str(offset))]
                logger.debug("REST GET %s | %s", path, query)
                resp = client.get(path, params=query)
                if resp.status_code // 100 != 2:
                    # keep the log line short; PostgREST errors are small JSON docs
                    logger.error("REST error %s: %s", resp.status_code, resp.text[:500])
                    raise StoreError(f"Hosted query failed: {resp.status_code}")
                data = resp.json()
                if not isinstance(data, list):
                    raise StoreError("Hosted query returned a non-list payload")
                yield data
                if len(data) < page_size:
                    return
                offset += len(data)
    except httpx.HTTPError as e:
        logger.exception("REST transport error")
        raise StoreError("Hosted query failed") from e
    except ValueError as e:
        # invalid JSON body
        raise StoreError("Hosted query returned invalid JSON") from e


def select(params: list[tuple[str, str]]) -> list[dict[str, Any]]:
    """Run a filtered select; `params` are PostgREST query pairs."""
    rows: list[dict[str, Any]] = []
    for page in _pages(params, PAGE_SIZE):
        rows.extend(page)
    return rows


def spaced_pattern(key: str) -> str:
    """
    ilike pattern matching `key` with any run of characters between its
    characters and around it, so stored spacing never hides a row.
    Callers re-check the canonical key; the pattern only has to over-match.
    LIKE wildcards in the key are escaped; '*' (PostgREST's wildcard) becomes
    the single-character wildcard '_'.
    """
    def esc(ch: str) -> str:
        if ch in ("\\", "%", "_"):
            return "\\" + ch
        if ch == "*":
            return "_"
        return ch

    return "*" + "*".join(esc(ch) for ch in key) + "*"


# ---------------- Filters ----------------

def records_by_lots(lots: Iterable[str]) -> list[dict]:
    lots_expr = ",".join(quote(lot) for lot in lots)
    return select([("select", "*"), ("LotID", f"in.({lots_expr})")])


def records_by_shift_range(start: str, end: str) -> list[dict]:
    return select([
        ("select", "*"),
        ("ShiftStartTime", f"gte.{start}"),
        ("ShiftStartTime", f"lte.{end}"),
    ])


def article_candidates(key: str, limit: int) -> list[str]:
    """
    Article numbers whose canonical key contains `key`, distinct by key,
    first-seen spelling kept, at most `limit`.
    """
    params = [
        ("select", "ArticleNumber"),
        ("ArticleNumber", "not.is.null"),
        ("ArticleNumber", f"ilike.{spaced_pattern(key)}"),
    ]
    seen, out = set(), []
    for page in _pages(params, PAGE_SIZE):
        for row in page:
            value = row.get("ArticleNumber")
            norm = normalize_article(value)
            if key not in norm or norm in seen:
                continue
            seen.add(norm)
            out.append(value)
            if len(out) >= limit:
                return out
    return out


def records_by_articles(keys: Iterable[str]) -> list[dict]:
    """Rows whose canonical ArticleNumber key is one of `keys`."""
    keys = list(keys)
    wanted = set(keys)
    alternatives = ",".join(f"ArticleNumber.ilike.{quote(spaced_pattern(k))}" for k in keys)
    return [
        r for r in select([("select", "*"), ("or", f"({alternatives})")])
        if normalize_article(r.get("ArticleNumber")) in wanted
    ]
