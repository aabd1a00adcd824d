"""Date helpers for task timestamps and due dates."""

from datetime import date, datetime, timedelta, timezone

from .config import DATE_DISPLAY_FORMAT

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLISECOND = timedelta(milliseconds=1)


def now() -> datetime:
    """Current UTC time, truncated to the millisecond precision the store keeps."""
    current = datetime.now(timezone.utc)
    return current.replace(microsecond=current.microsecond // 1000 * 1000)


def to_epoch_millis(value: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are interpreted as local time.

    Args:
        value: Datetime to convert

    Returns:
        Milliseconds since the Unix epoch
    """
    return (value.astimezone(timezone.utc) - EPOCH) // _ONE_MILLISECOND


def from_epoch_millis(millis: int) -> datetime:
    """Convert epoch milliseconds to a UTC-aware datetime."""
    return EPOCH + timedelta(milliseconds=millis)


def format_date(value: datetime) -> str:
    """Format a timestamp for display in local time, e.g. "Jan 05, 2026"."""
    return value.astimezone().strftime(DATE_DISPLAY_FORMAT)


def is_overdue(due_date: datetime, today: date | None = None) -> bool:
    """
    Check whether a due date falls before today.

    Only the local calendar day is compared; time of day is ignored, so a
    task due earlier today is not overdue.

    Args:
        due_date: Due date of the task
        today: Reference day (defaults to the current local date)

    Returns:
        True if the due day is strictly before the reference day
    """
    reference = today or date.today()
    return due_date.astimezone().date() < reference


def is_today(value: datetime, today: date | None = None) -> bool:
    """Check whether a timestamp falls on the current local day."""
    reference = today or date.today()
    return value.astimezone().date() == reference
