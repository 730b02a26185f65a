"""State builders for the campaign document and hex coordinates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
import uuid

from campaignledger.backend.config import DEFAULT_MAX_TOKENS_PER_HEX, DEFAULT_STARTING_RP

DOCUMENT_VERSION = 1

AXIAL_DIRECTIONS: tuple[tuple[int, int], ...] = ((1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def coord_to_key(q: int, r: int) -> str:
    return f"{q},{r}"


def key_to_coord(key: Any) -> tuple[int, int] | None:
    """Parse a "q,r" hex key, returning None for anything malformed."""
    if not isinstance(key, str):
        return None
    parts = key.split(",")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def hex_neighbors(q: int, r: int) -> list[tuple[int, int]]:
    return [(q + dq, r + dr) for dq, dr in AXIAL_DIRECTIONS]


def build_default_rules(
    max_tokens_per_hex: int = DEFAULT_MAX_TOKENS_PER_HEX,
    starting_rp: int = DEFAULT_STARTING_RP,
) -> dict[str, Any]:
    return {
        "maxTokensPerHex": max_tokens_per_hex,
        "startingRP": starting_rp,
    }


def build_initial_campaign(campaign_id: str, name: str, rules: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return an empty campaign document with no map configured yet."""
    merged_rules = build_default_rules()
    if rules:
        merged_rules.update(rules)
    return {
        "id": campaign_id,
        "name": name,
        "version": DOCUMENT_VERSION,
        "createdAt": utc_now_iso(),
        "players": {},
        "mapConfig": None,
        "rules": merged_rules,
        "log": [],
    }


def build_player(
    player_id: str,
    name: str,
    color: str = "",
    faction: str = "",
    requisition_points: int = DEFAULT_STARTING_RP,
) -> dict[str, Any]:
    return {
        "id": player_id,
        "name": name,
        "color": color,
        "faction": faction,
        "requisitionPoints": max(0, int(requisition_points)),
        "joinedAt": utc_now_iso(),
    }


def build_hex(q: int, r: int, name: str | None = None) -> dict[str, Any]:
    return {
        "id": new_id(),
        "coordinate": {"q": q, "r": r},
        "name": name if name else f"Hex {q},{r}",
        "active": False,
        "controllerId": None,
        "tokens": [],
        "notes": "",
    }


def build_map_config(width: int, height: int) -> dict[str, Any]:
    """Build a rectangular axial map of width * height hexes.

    Rows are offset so the grid stays rectangular on screen: row r starts at
    q = -(r // 2).
    """
    hexes: dict[str, dict[str, Any]] = {}
    for r in range(height):
        q_offset = -(r // 2)
        for col in range(width):
            q = col + q_offset
            hexes[coord_to_key(q, r)] = build_hex(q, r)
    return {
        "dimensions": {"width": width, "height": height},
        "hexes": hexes,
    }
