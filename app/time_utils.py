from datetime import datetime, timezone


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match the DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)
