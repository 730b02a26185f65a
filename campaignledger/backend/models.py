"""Domain models for the token ledger, effect resolution and API results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    OBJECTIVE = "strategic_objective"
    FORTIFICATION = "fortification"
    RESOURCE = "resource_node"
    RELIC = "ancient_relic"
    SHRINE = "sacred_shrine"
    OUTPOST = "forward_outpost"
    CUSTOM = "custom_marker"


TOKEN_TYPE_NAMES: dict[TokenType, str] = {
    TokenType.OBJECTIVE: "Strategic Objective",
    TokenType.FORTIFICATION: "Fortification",
    TokenType.RESOURCE: "Resource Node",
    TokenType.RELIC: "Ancient Relic",
    TokenType.SHRINE: "Sacred Shrine",
    TokenType.OUTPOST: "Forward Outpost",
    TokenType.CUSTOM: "Custom Marker",
}

_TOKEN_TYPES_BY_NAME = {name.lower(): token_type for token_type, name in TOKEN_TYPE_NAMES.items()}


def coerce_token_type(value: Any) -> TokenType | None:
    """Resolve an enum member, identifier or display name to a TokenType.

    Older saves stored the display name ("Resource Node") on each token, so
    both spellings are accepted.
    """
    if isinstance(value, TokenType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return TokenType(value)
    except ValueError:
        return _TOKEN_TYPES_BY_NAME.get(value.strip().lower())


def token_type_name(value: Any) -> str:
    token_type = coerce_token_type(value)
    if token_type is None:
        return str(value)
    return TOKEN_TYPE_NAMES[token_type]


@dataclass(frozen=True)
class ResourceNodeData:
    rp_per_turn: int = 1


@dataclass(frozen=True)
class OpaqueTokenData:
    payload: dict[str, Any] = field(default_factory=dict)


TokenData = ResourceNodeData | OpaqueTokenData


def parse_rp_per_turn(value: Any) -> int | None:
    """Read a whole-number RP rate from an int, an integral float or a numeric string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        try:
            return int(value)
        except ValueError:
            pass
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def token_data_variant(token_type: Any, data: Any) -> TokenData:
    """Return the typed view of a token payload that effect logic reads."""
    payload = data if isinstance(data, dict) else {}
    if coerce_token_type(token_type) is TokenType.RESOURCE:
        raw = payload.get("rpPerTurn")
        if raw is None:
            return ResourceNodeData()
        rp_per_turn = parse_rp_per_turn(raw)
        if rp_per_turn is None:
            logger.warning(f"Resource Node has unreadable rpPerTurn {raw!r}; crediting the default of 1")
            return ResourceNodeData()
        return ResourceNodeData(rp_per_turn=rp_per_turn)
    return OpaqueTokenData(payload=dict(payload))


class PlacementCheck(NamedTuple):
    allowed: bool
    reason: str


@dataclass(frozen=True)
class PlacementOutcome:
    token: dict[str, Any] | None
    check: PlacementCheck


@dataclass(frozen=True)
class PlayerToken:
    token: dict[str, Any]
    hex_key: str
    hex: dict[str, Any]


@dataclass(frozen=True)
class EffectBonus:
    type: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "description": self.description}


@dataclass
class EffectSummary:
    rp_gained: int = 0
    resources_gained: dict[str, int] = field(default_factory=dict)
    bonuses: list[EffectBonus] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rpGained": self.rp_gained,
            "resourcesGained": dict(self.resources_gained),
            "bonuses": [bonus.to_dict() for bonus in self.bonuses],
        }
