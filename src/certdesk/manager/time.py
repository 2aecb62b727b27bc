from datetime import datetime, timezone


def utc_now() -> datetime:
    """Returns the current tz aware (UTC) datetime"""
    return datetime.now(tz=timezone.utc)
