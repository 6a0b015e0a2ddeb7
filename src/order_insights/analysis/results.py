"""Status markers shared by every analysis entry point."""

from __future__ import annotations

STATUS_OK = "ok"
STATUS_INSUFFICIENT_DATA = "insufficient_data"


def ok(**payload) -> dict:
    """Build a successful result mapping."""
    return {"status": STATUS_OK, **payload}


def insufficient_data(message: str) -> dict:
    """Build a result flagging that the input was too small to analyze."""
    return {"status": STATUS_INSUFFICIENT_DATA, "error": message}


def is_insufficient(result) -> bool:
    return isinstance(result, dict) and result.get("status") == STATUS_INSUFFICIENT_DATA
