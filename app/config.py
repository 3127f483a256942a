import os

from dotenv import load_dotenv

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


def _int_env(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///./loyalty.db"

# Upper bound for a single award; larger grants must be split or adjusted.
MAX_AWARD_POINTS = _int_env("MAX_AWARD_POINTS", 10000)

# PostgreSQL only; aborts the whole transaction when exceeded.
DB_STATEMENT_TIMEOUT_MS = _int_env("DB_STATEMENT_TIMEOUT_MS", None)

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in (os.getenv("CORS_ORIGINS") or "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]
