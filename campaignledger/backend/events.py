"""Log entry factory for the campaign's append-only history."""

from __future__ import annotations

from enum import Enum
from typing import Any

from campaignledger.backend.state import utc_now_iso


class LogKind(str, Enum):
    CAMPAIGN_CREATED = "CAMPAIGN_CREATED"
    PLAYER_ADDED = "PLAYER_ADDED"
    MAP_CONFIGURED = "MAP_CONFIGURED"
    HEX_CONTROL_CHANGED = "HEX_CONTROL_CHANGED"
    TOKEN_PLACED = "TOKEN_PLACED"
    TOKEN_REMOVED = "TOKEN_REMOVED"
    RP_GAINED = "RP_GAINED"


def build_log_entry(
    kind: LogKind | str,
    payload: dict[str, Any] | None = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    """Return a new log record; the payload is copied so later edits by the caller do not leak in."""
    return {
        "kind": LogKind(kind).value,
        "timestamp": timestamp if timestamp is not None else utc_now_iso(),
        "payload": dict(payload) if payload else {},
    }


def append_log_entry(
    log_sink: list[dict[str, Any]],
    kind: LogKind | str,
    payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    entry = build_log_entry(kind, payload)
    log_sink.append(entry)
    return entry


def entries_of_kind(log: list[dict[str, Any]], kind: LogKind | str) -> list[dict[str, Any]]:
    wanted = LogKind(kind).value
    return [entry for entry in log if isinstance(entry, dict) and entry.get("kind") == wanted]
