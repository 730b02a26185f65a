"""Backend package for the campaign ledger."""

from .config import BackendSettings, load_settings
from .effects import apply_token_effects
from .events import LogKind, build_log_entry
from .ledger import (
    can_place_token,
    get_hex_tokens,
    get_player_tokens,
    get_token_count,
    place_token,
    place_token_checked,
    remove_token,
)
from .models import TOKEN_TYPE_NAMES, TokenType
from .state import build_initial_campaign, build_map_config, build_player
from .statistics import get_token_statistics
from .store import CampaignStore, InMemoryCampaignStore, create_store

__all__ = [
    "apply_token_effects",
    "BackendSettings",
    "build_initial_campaign",
    "build_log_entry",
    "build_map_config",
    "build_player",
    "CampaignStore",
    "can_place_token",
    "create_store",
    "get_hex_tokens",
    "get_player_tokens",
    "get_token_count",
    "get_token_statistics",
    "InMemoryCampaignStore",
    "load_settings",
    "LogKind",
    "place_token",
    "place_token_checked",
    "remove_token",
    "TOKEN_TYPE_NAMES",
    "TokenType",
]
