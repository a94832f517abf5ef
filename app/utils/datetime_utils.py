from datetime import datetime, timezone


def naive_utc_now() -> datetime:
    """
    Current UTC datetime without tzinfo.

    SQLite DateTime columns drop timezone info, so stored timestamps are naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
