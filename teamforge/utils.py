"""Utility functions for the application."""

from __future__ import annotations

import datetime
from typing import Any


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def clean_str(value: Any) -> str:
    """Return ``value`` stripped if it is a string, else an empty string."""
    return value.strip() if isinstance(value, str) else ""


def snapshot_to_dict(snapshot: Any) -> dict[str, Any] | None:
    """Convert a document snapshot into a dict carrying its ``id``."""
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def creation_order(item: dict[str, Any]) -> tuple[datetime.datetime, int]:
    """Sort key: ``createdAt``, then the ``order`` within one batch."""
    return (item.get("createdAt") or _EPOCH, int(item.get("order", 0)))
