# =============================
# ======== sql_texts.py =======
# =============================
"""
Centralized SQL templates for the quality-record table.
Conventions:
- Positional placeholders '?' (converted to named binds in db.query_df).
- {table} is substituted from SETTINGS.TABLE, validated as a plain identifier at startup.
- {placeholders} is a "?, ?, ..." list sized to the IN-list; values are always bound.
- Shift range uses BETWEEN ? AND ? with the end inclusive to ':59'.

Table expected (only these columns are referenced, rows are passed through as-is):
- uqe_data(LotID, ArticleNumber, ShiftStartTime, ...)
"""

from qc_api.utils import ARTICLE_SPACES


def _article_key_expr() -> str:
    """
    Same key as utils.normalize_article: every ARTICLE_SPACES char removed, lowercased.
    The characters are embedded raw in the literals (no backslash escapes), which
    MySQL/TiDB and SQLite read the same way.
    """
    expr = "ArticleNumber"
    for ch in ARTICLE_SPACES:
        expr = f"REPLACE({expr}, '{ch}', '')"
    return f"LOWER({expr})"

ARTICLE_KEY_EXPR = _article_key_expr()

RECORDS_BY_LOTS = """
SELECT *
FROM {table}
WHERE LotID IN ({placeholders})
""".strip()

RECORDS_BY_SHIFT_RANGE = """
SELECT *
FROM {table}
WHERE ShiftStartTime BETWEEN ? AND ?
""".strip()

ARTICLE_CANDIDATES = f"""
SELECT DISTINCT ArticleNumber
FROM {{table}}
WHERE ArticleNumber IS NOT NULL
  AND {ARTICLE_KEY_EXPR} LIKE ?
LIMIT ?
""".strip()

RECORDS_BY_ARTICLES = f"""
SELECT *
FROM {{table}}
WHERE {ARTICLE_KEY_EXPR} IN ({{placeholders}})
""".strip()


def placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))
