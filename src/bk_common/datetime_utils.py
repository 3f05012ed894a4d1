"""UTC datetime utilities."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)


def to_iso(value: datetime | None) -> str | None:
    """Serialise an aware datetime for API payloads; None passes through."""
    return value.isoformat() if value is not None else None
