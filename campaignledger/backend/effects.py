"""Effect resolution: turn a player's standing tokens into RP and bonuses."""

from __future__ import annotations

import logging
from typing import Any

from campaignledger.backend.events import LogKind, append_log_entry
from campaignledger.backend.ledger import get_player_tokens
from campaignledger.backend.models import (
    EffectBonus,
    EffectSummary,
    ResourceNodeData,
    TokenType,
    coerce_token_type,
    token_data_variant,
)

logger = logging.getLogger(__name__)

RP_SOURCE = "Faction Tokens"


def apply_token_effects(
    campaign: dict[str, Any] | None,
    player_id: str,
    log_sink: list[dict[str, Any]],
) -> EffectSummary:
    """Apply one resolution cycle of token effects for ``player_id``.

    Not guarded against repeats: a second call in the same cycle grants the
    RP again.
    """
    summary = EffectSummary()

    for entry in get_player_tokens(campaign, player_id):
        token_type = coerce_token_type(entry.token.get("type"))
        if token_type is TokenType.RESOURCE:
            variant = token_data_variant(token_type, entry.token.get("data"))
            if isinstance(variant, ResourceNodeData):
                summary.rp_gained += variant.rp_per_turn
        elif token_type is TokenType.FORTIFICATION:
            summary.bonuses.append(EffectBonus(type="Defensive", description=f"Fortification at {entry.hex_key}"))
        elif token_type is TokenType.SHRINE:
            summary.bonuses.append(EffectBonus(type="Morale", description=f"Sacred Shrine at {entry.hex_key}"))

    if summary.rp_gained <= 0:
        return summary

    player = ((campaign or {}).get("players") or {}).get(player_id)
    if not isinstance(player, dict):
        logger.warning(f"Token effects for unknown player {player_id}: {summary.rp_gained} RP not credited")
        return summary

    player["requisitionPoints"] = int(player.get("requisitionPoints") or 0) + summary.rp_gained
    append_log_entry(
        log_sink,
        LogKind.RP_GAINED,
        {
            "player": player.get("name", player_id),
            "playerId": player_id,
            "amount": summary.rp_gained,
            "source": RP_SOURCE,
        },
    )
    logger.info(f"{player.get('name', player_id)} gained {summary.rp_gained} RP from faction tokens")
    return summary
