"""Time helpers shared by the workflow and the ORM defaults."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    The schema stores TIMESTAMP WITHOUT TIME ZONE columns, so the tzinfo is
    dropped after reading the aware clock.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def note_stamp() -> str:
    """Timestamp format used inside appended admin notes."""
    return utc_now().strftime("%Y-%m-%d %H:%M:%S")
