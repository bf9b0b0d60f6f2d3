"""Helpers for the ``{success, ..., timestamp}`` response envelope."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def epoch_to_iso(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def success(**fields: Any) -> dict:
    return {"success": True, **fields, "timestamp": utc_timestamp()}


def failure(message: str, error: str) -> dict:
    return {
        "success": False,
        "message": message,
        "error": error,
        "timestamp": utc_timestamp(),
    }


__all__ = ["epoch_to_iso", "failure", "success", "utc_timestamp"]
