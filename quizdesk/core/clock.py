from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
