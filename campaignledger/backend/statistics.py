"""Read-only token statistics for reporting."""

from __future__ import annotations

from typing import Any

from campaignledger.backend.ledger import get_token_count
from campaignledger.backend.models import TOKEN_TYPE_NAMES


def get_token_statistics(campaign: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Per-player token totals, broken down by every token type (zeros included)."""
    stats: dict[str, dict[str, Any]] = {}
    if not campaign:
        return stats

    for player_id, player in (campaign.get("players") or {}).items():
        by_type: dict[str, int] = {}
        total = 0
        for token_type, type_name in TOKEN_TYPE_NAMES.items():
            count = get_token_count(campaign, player_id, token_type)
            by_type[type_name] = count
            total += count
        stats[player_id] = {
            "playerName": player.get("name") if isinstance(player, dict) else None,
            "totalTokens": total,
            "byType": by_type,
        }
    return stats
