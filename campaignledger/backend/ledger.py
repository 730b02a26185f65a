"""Territory and token ledger: gate and apply token mutations on a campaign document.

Every function takes the campaign document explicitly and mutates it in place.
Failures never raise; they come back as ``None``, ``False``, an empty list or
a negative :class:`PlacementCheck`, with a diagnostic on the module logger.

``place_token`` deliberately does not re-run the control and capacity checks
of ``can_place_token``. Callers that want the rules enforced go through
``place_token_checked``.
"""

from __future__ import annotations

import logging
from typing import Any

from campaignledger.backend.config import DEFAULT_MAX_TOKENS_PER_HEX
from campaignledger.backend.events import LogKind, append_log_entry
from campaignledger.backend.models import (
    PlacementCheck,
    PlacementOutcome,
    PlayerToken,
    TokenType,
    coerce_token_type,
    token_type_name,
)
from campaignledger.backend.state import new_id, utc_now_iso

logger = logging.getLogger(__name__)

REASON_OK = "OK"
REASON_NO_MAP = "no map configured"
REASON_HEX_NOT_CLAIMED = "hex not claimed"
REASON_CONTROLLED = "hex controlled by another player"
REASON_HEX_FULL = "maximum tokens on hex reached"
REASON_UNKNOWN_TYPE = "unknown token type"


def _hexes(campaign: dict[str, Any] | None) -> dict[str, Any] | None:
    if not campaign:
        return None
    map_config = campaign.get("mapConfig")
    if not isinstance(map_config, dict):
        return None
    hexes = map_config.get("hexes")
    if not isinstance(hexes, dict):
        return None
    return hexes


def max_tokens_per_hex(campaign: dict[str, Any]) -> int:
    rules = campaign.get("rules") or {}
    limit = rules.get("maxTokensPerHex")
    if isinstance(limit, bool) or not isinstance(limit, int):
        return DEFAULT_MAX_TOKENS_PER_HEX
    return limit


def player_display_name(campaign: dict[str, Any], player_id: str) -> str:
    player = (campaign.get("players") or {}).get(player_id)
    if isinstance(player, dict) and player.get("name"):
        return str(player["name"])
    return player_id


def can_place_token(campaign: dict[str, Any] | None, hex_key: str, player_id: str, token_type: Any) -> PlacementCheck:
    """Check whether ``player_id`` may place a token of ``token_type`` on ``hex_key``."""
    hexes = _hexes(campaign)
    if hexes is None:
        return PlacementCheck(False, REASON_NO_MAP)

    hex_ = hexes.get(hex_key)
    if not isinstance(hex_, dict):
        return PlacementCheck(False, REASON_HEX_NOT_CLAIMED)

    controller_id = hex_.get("controllerId")
    if controller_id and controller_id != player_id:
        return PlacementCheck(False, REASON_CONTROLLED)

    current_tokens = len(hex_.get("tokens") or [])
    if current_tokens >= max_tokens_per_hex(campaign):
        return PlacementCheck(False, REASON_HEX_FULL)

    if coerce_token_type(token_type) is None:
        return PlacementCheck(False, REASON_UNKNOWN_TYPE)

    return PlacementCheck(True, REASON_OK)


def place_token(
    campaign: dict[str, Any] | None,
    hex_key: str,
    player_id: str,
    token_type: Any,
    data: dict[str, Any] | None,
    log_sink: list[dict[str, Any]],
) -> dict[str, Any] | None:
    """Create a token on a hex and record TOKEN_PLACED.

    Only a missing map or an unknown hex (or token type) stops the placement.
    """
    hexes = _hexes(campaign)
    if hexes is None:
        logger.error("Cannot place token: no map configured")
        return None

    hex_ = hexes.get(hex_key)
    if not isinstance(hex_, dict):
        logger.error(f"Cannot place token: hex not found - {hex_key}")
        return None

    resolved_type = coerce_token_type(token_type)
    if resolved_type is None:
        logger.error(f"Cannot place token: unknown token type {token_type!r}")
        return None

    if not isinstance(hex_.get("tokens"), list):
        hex_["tokens"] = []

    token = {
        "id": new_id(),
        "playerId": player_id,
        "type": resolved_type.value,
        "placedDate": utc_now_iso(),
        "data": dict(data) if data else {},
    }
    hex_["tokens"].append(token)

    player_name = player_display_name(campaign, player_id)
    append_log_entry(
        log_sink,
        LogKind.TOKEN_PLACED,
        {
            "player": player_name,
            "playerId": player_id,
            "tokenType": token_type_name(resolved_type),
            "tokenId": token["id"],
            "hex": hex_key,
        },
    )
    logger.info(f"Token placed: {token_type_name(resolved_type)} by {player_name} at {hex_key}")
    return token


def place_token_checked(
    campaign: dict[str, Any] | None,
    hex_key: str,
    player_id: str,
    token_type: Any,
    data: dict[str, Any] | None,
    log_sink: list[dict[str, Any]],
) -> PlacementOutcome:
    check = can_place_token(campaign, hex_key, player_id, token_type)
    if not check.allowed:
        logger.debug(f"Token placement rejected at {hex_key} for {player_id}: {check.reason}")
        return PlacementOutcome(token=None, check=check)
    token = place_token(campaign, hex_key, player_id, token_type, data, log_sink)
    return PlacementOutcome(token=token, check=check)


def remove_token(campaign: dict[str, Any] | None, hex_key: str, token_id: str, log_sink: list[dict[str, Any]]) -> bool:
    hexes = _hexes(campaign)
    if hexes is None:
        return False

    hex_ = hexes.get(hex_key)
    if not isinstance(hex_, dict) or not isinstance(hex_.get("tokens"), list):
        return False

    tokens = hex_["tokens"]
    for index, token in enumerate(tokens):
        if isinstance(token, dict) and token.get("id") == token_id:
            del tokens[index]
            append_log_entry(
                log_sink,
                LogKind.TOKEN_REMOVED,
                {
                    "tokenType": token_type_name(token.get("type")),
                    "tokenId": token_id,
                    "playerId": token.get("playerId"),
                    "hex": hex_key,
                },
            )
            logger.info(f"Token removed: {token_type_name(token.get('type'))} from {hex_key}")
            return True

    logger.debug(f"Token {token_id} not found on {hex_key}")
    return False


def get_player_tokens(campaign: dict[str, Any] | None, player_id: str) -> list[PlayerToken]:
    """Collect every token owned by ``player_id``, in map iteration order."""
    hexes = _hexes(campaign)
    if hexes is None:
        return []

    found: list[PlayerToken] = []
    for hex_key, hex_ in hexes.items():
        if not isinstance(hex_, dict):
            continue
        for token in hex_.get("tokens") or []:
            if isinstance(token, dict) and token.get("playerId") == player_id:
                found.append(PlayerToken(token=token, hex_key=hex_key, hex=hex_))
    return found


def get_hex_tokens(campaign: dict[str, Any] | None, hex_key: str) -> list[dict[str, Any]]:
    hexes = _hexes(campaign)
    if hexes is None:
        return []
    hex_ = hexes.get(hex_key)
    if not isinstance(hex_, dict) or not isinstance(hex_.get("tokens"), list):
        return []
    return hex_["tokens"]


def get_token_count(campaign: dict[str, Any] | None, player_id: str, token_type: TokenType | str | None = None) -> int:
    entries = get_player_tokens(campaign, player_id)
    if token_type is None:
        return len(entries)
    wanted = coerce_token_type(token_type)
    if wanted is None:
        return 0
    return sum(1 for entry in entries if coerce_token_type(entry.token.get("type")) is wanted)
