"""Identifier and timestamp helpers."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime

from core.errors import ValidationError

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def new_id() -> str:
    """Return an 8-character lowercase hex id from 4 random bytes."""
    return secrets.token_hex(4)


def now() -> str:
    """Return the current UTC time with second precision and a Z suffix."""
    return datetime.now(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp produced by `now`. Any other format is rejected."""
    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"invalid timestamp: {value!r}") from exc
    return parsed.replace(tzinfo=UTC)
