# config.py
import os
import re
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(RuntimeError):
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _known_zone(name: str) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


@dataclass
class _Settings:
    CORS_ALLOW_ORIGINS: list = None

    # "sql" (MySQL-compatible / TiDB) or "supabase" (hosted PostgREST)
    BACKEND: str = "sql"
    TABLE: str = "uqe_data"

    # --- relational ---
    DATABASE_URL: str = ""
    DB_HOST: str = ""
    DB_PORT: int = 4000
    DB_USER: str = ""
    DB_PASS: str = ""
    DB_NAME: str = ""
    DB_SSL: bool = True
    DB_SSL_CA: str = ""

    # --- hosted backend ---
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # --- restart proxy ---
    RENDER_API_BASE: str = "https://api.render.com/v1"
    RENDER_SERVICE_ID: str = ""
    RENDER_API_KEY: str = ""
    RESTART_TIMEOUT_SEC: float = 10.0

    AUTOCOMPLETE_LIMIT: int = 200
    CACHE_TTL_SEC: int = 5
    CACHE_MAX_KEYS: int = 1024

    PORT: int = 9000
    TIMEZONE: str = "UTC"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    def __post_init__(self):
        if self.CORS_ALLOW_ORIGINS is None:
            allow_all = os.getenv("CORS_ALLOW_ALL", "1") == "1"
            if allow_all:
                self.CORS_ALLOW_ORIGINS = ["*"]
            else:
                origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
                self.CORS_ALLOW_ORIGINS = [o.strip() for o in origins.split(",") if o.strip()]

        self.BACKEND = os.getenv("QC_BACKEND", self.BACKEND).strip().lower()
        self.TABLE = os.getenv("QC_TABLE", self.TABLE).strip()

        # full DSN wins over the DB_* parts
        self.DATABASE_URL = os.getenv("DATABASE_URL", "")
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = _env_int("DB_PORT", self.DB_PORT)
        self.DB_USER = os.getenv("DB_USER", "")
        # both spellings are in use across deployments
        self.DB_PASS = os.getenv("DB_PASS", os.getenv("DB_PASSWORD", ""))
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_SSL = os.getenv("DB_SSL", "1") == "1"
        self.DB_SSL_CA = os.getenv("DB_SSL_CA", "")

        self.SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
        self.SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

        self.RENDER_API_BASE = os.getenv("RENDER_API_BASE", self.RENDER_API_BASE).rstrip("/")
        self.RENDER_SERVICE_ID = os.getenv("RENDER_SERVICE_ID", "")
        self.RENDER_API_KEY = os.getenv("RENDER_API_KEY", "")
        self.RESTART_TIMEOUT_SEC = float(os.getenv("RESTART_TIMEOUT_SEC", "") or self.RESTART_TIMEOUT_SEC)

        self.AUTOCOMPLETE_LIMIT = _env_int("AUTOCOMPLETE_LIMIT", self.AUTOCOMPLETE_LIMIT)
        self.CACHE_TTL_SEC = _env_int("CACHE_TTL_SEC", self.CACHE_TTL_SEC)
        self.CACHE_MAX_KEYS = _env_int("CACHE_MAX_KEYS", self.CACHE_MAX_KEYS)

        self.PORT = _env_int("PORT", self.PORT)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL).upper()
        self.LOG_FILE = os.getenv("LOG_FILE", "")
        # QC_TIMEZONE wins; TZ is only taken when it names an IANA zone (not e.g. ":/etc/localtime")
        tz_name = os.getenv("QC_TIMEZONE", "").strip()
        if not tz_name and _known_zone(os.getenv("TZ", "").strip()):
            tz_name = os.getenv("TZ").strip()
        self.TIMEZONE = tz_name or self.TIMEZONE

    @property
    def restart_configured(self) -> bool:
        return bool(self.RENDER_SERVICE_ID and self.RENDER_API_KEY)

    def validate(self) -> "_Settings":
        """
        Fail fast on a configuration the selected backend cannot run with.
        Collects every problem so one restart fixes them all.
        """
        problems = []
        if self.BACKEND not in ("sql", "supabase"):
            problems.append(f"QC_BACKEND must be 'sql' or 'supabase', got {self.BACKEND!r}")
        if not _IDENT.match(self.TABLE or ""):
            problems.append(f"QC_TABLE is not a plain identifier: {self.TABLE!r}")

        if self.BACKEND == "sql" and not self.DATABASE_URL:
            for name in ("DB_HOST", "DB_USER", "DB_NAME"):
                if not getattr(self, name):
                    problems.append(f"{name} is required when QC_BACKEND=sql")
        if self.BACKEND == "supabase":
            for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
                if not getattr(self, name):
                    problems.append(f"{name} is required when QC_BACKEND=supabase")

        if not _known_zone(self.TIMEZONE):
            problems.append(f"QC_TIMEZONE is not a known time zone: {self.TIMEZONE!r}")
        if self.AUTOCOMPLETE_LIMIT <= 0:
            problems.append("AUTOCOMPLETE_LIMIT must be > 0")
        if self.CACHE_TTL_SEC < 0 or self.CACHE_MAX_KEYS <= 0:
            problems.append("CACHE_TTL_SEC must be >= 0 and CACHE_MAX_KEYS > 0")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))
        return self


SETTINGS = _Settings()
