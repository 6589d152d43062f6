"""Timestamp parsing shared by reservation and campaign inputs."""

from __future__ import annotations

from datetime import datetime, timezone

from smartcharge.domain.errors import ValidationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_client_datetime(value: str, field_name: str = "date") -> datetime:
    """Accept an RFC-3339 timestamp or a plain YYYY-MM-DD calendar date."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text, "%Y-%m-%d")
        except ValueError as exc:
            raise ValidationError(f"Invalid {field_name} format") from exc
    return ensure_utc(parsed)


def from_storage(value: str | None) -> datetime | None:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))
