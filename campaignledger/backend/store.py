"""Session store for campaign documents, with JSON snapshot save/load."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import copy
from dataclasses import dataclass, replace
import json
import logging
import threading
from typing import Any, Protocol

from campaignledger.backend.config import BackendSettings, load_settings
from campaignledger.backend.effects import apply_token_effects
from campaignledger.backend.events import LogKind, append_log_entry
from campaignledger.backend.ledger import place_token_checked, player_display_name, remove_token
from campaignledger.backend.models import EffectSummary, PlacementOutcome
from campaignledger.backend.state import (
    DOCUMENT_VERSION,
    build_initial_campaign,
    build_map_config,
    build_player,
    new_id,
)
from campaignledger.backend.statistics import get_token_statistics

logger = logging.getLogger(__name__)


class CampaignStore(Protocol):
    def create_campaign(self, name: str) -> dict[str, Any]:
        """Create a campaign document and return a copy of it."""

    def get_campaign(self, campaign_id: str) -> dict[str, Any] | None:
        """Return a copy of the campaign document, or None when unknown."""

    def add_player(self, campaign_id: str, name: str, color: str = "", faction: str = "") -> dict[str, Any] | None:
        """Add a player with the campaign's starting RP."""

    def configure_map(self, campaign_id: str, width: int, height: int) -> dict[str, Any] | None:
        """Replace the campaign map with a fresh width x height grid."""

    def set_hex_controller(self, campaign_id: str, hex_key: str, player_id: str | None) -> dict[str, Any] | None:
        """Set or clear the controller of a hex."""

    def place_token(
        self,
        campaign_id: str,
        hex_key: str,
        player_id: str,
        token_type: str,
        data: dict[str, Any] | None = None,
    ) -> PlacementOutcome | None:
        """Place a token after the placement gate accepts it."""

    def remove_token(self, campaign_id: str, hex_key: str, token_id: str) -> bool | None:
        """Remove a token; None when the campaign is unknown."""

    def apply_token_effects(self, campaign_id: str, player_id: str) -> EffectSummary | None:
        """Run one resolution cycle of token effects for a player."""

    def token_statistics(self, campaign_id: str) -> dict[str, dict[str, Any]] | None:
        """Return per-player token statistics."""

    def export_snapshot(self, campaign_id: str) -> str | None:
        """Serialize the campaign document to JSON."""

    def load_snapshot(self, snapshot: str) -> str:
        """Restore a campaign from JSON and return its id."""


def validate_snapshot(document: Any) -> dict[str, Any]:
    """Check the shape of a restored document.

    Snapshots written by a newer schema are refused; older ones load with a
    warning.
    """
    if not isinstance(document, dict):
        raise ValueError("Campaign snapshot must be a JSON object")
    version = document.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError("Campaign snapshot is missing an integer version")
    if version > DOCUMENT_VERSION:
        raise ValueError(f"Campaign snapshot version {version} is newer than supported version {DOCUMENT_VERSION}")
    if version != DOCUMENT_VERSION:
        logger.warning(f"Loading campaign snapshot version {version}; current version is {DOCUMENT_VERSION}")
    if not isinstance(document.get("id"), str) or not document["id"]:
        raise ValueError("Campaign snapshot is missing an id")
    if not isinstance(document.get("players"), dict):
        raise ValueError("Campaign snapshot players must be an object")
    if not isinstance(document.get("log"), list):
        raise ValueError("Campaign snapshot log must be a list")
    map_config = document.get("mapConfig")
    if map_config is not None and not isinstance(map_config, dict):
        raise ValueError("Campaign snapshot mapConfig must be an object or null")
    rules = document.get("rules")
    if rules is not None and not isinstance(rules, dict):
        raise ValueError("Campaign snapshot rules must be an object")
    return document


@dataclass
class InMemoryCampaignStore:
    settings: BackendSettings

    def __post_init__(self) -> None:
        self._campaigns: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _register(self, campaign: dict[str, Any]) -> None:
        with self._registry_lock:
            lock = self._locks.setdefault(campaign["id"], threading.Lock())
        with lock:
            with self._registry_lock:
                self._campaigns[campaign["id"]] = campaign

    @contextmanager
    def _locked(self, campaign_id: str) -> Iterator[dict[str, Any] | None]:
        with self._registry_lock:
            campaign = self._campaigns.get(campaign_id)
            lock = self._locks.get(campaign_id)
        if campaign is None or lock is None:
            yield None
            return
        with lock:
            yield campaign

    def create_campaign(self, name: str) -> dict[str, Any]:
        campaign = build_initial_campaign(
            campaign_id=new_id(),
            name=name,
            rules={
                "maxTokensPerHex": self.settings.max_tokens_per_hex,
                "startingRP": self.settings.starting_rp,
            },
        )
        append_log_entry(campaign["log"], LogKind.CAMPAIGN_CREATED, {"name": name})
        self._register(campaign)
        logger.info(f"Campaign created: {name} ({campaign['id']})")
        return copy.deepcopy(campaign)

    def get_campaign(self, campaign_id: str) -> dict[str, Any] | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            return copy.deepcopy(campaign)

    def add_player(self, campaign_id: str, name: str, color: str = "", faction: str = "") -> dict[str, Any] | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            starting_rp = int((campaign.get("rules") or {}).get("startingRP", self.settings.starting_rp))
            player = build_player(
                player_id=new_id(),
                name=name,
                color=color,
                faction=faction,
                requisition_points=starting_rp,
            )
            campaign["players"][player["id"]] = player
            append_log_entry(campaign["log"], LogKind.PLAYER_ADDED, {"player": name, "playerId": player["id"]})
            logger.info(f"Player added: {name}")
            return copy.deepcopy(player)

    def configure_map(self, campaign_id: str, width: int, height: int) -> dict[str, Any] | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            map_config = build_map_config(width=width, height=height)
            campaign["mapConfig"] = map_config
            append_log_entry(
                campaign["log"],
                LogKind.MAP_CONFIGURED,
                {"width": width, "height": height, "hexCount": len(map_config["hexes"])},
            )
            logger.info(f"Map configured: {width}x{height}")
            return copy.deepcopy(map_config)

    def set_hex_controller(self, campaign_id: str, hex_key: str, player_id: str | None) -> dict[str, Any] | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            hexes = (campaign.get("mapConfig") or {}).get("hexes") or {}
            hex_ = hexes.get(hex_key)
            if not isinstance(hex_, dict):
                logger.error(f"Cannot set controller: hex not found - {hex_key}")
                return None
            if player_id is not None and player_id not in campaign["players"]:
                logger.error(f"Cannot set controller: unknown player {player_id}")
                return None

            previous = hex_.get("controllerId")
            hex_["controllerId"] = player_id
            append_log_entry(
                campaign["log"],
                LogKind.HEX_CONTROL_CHANGED,
                {
                    "hex": hex_key,
                    "previousControllerId": previous,
                    "controllerId": player_id,
                    "player": player_display_name(campaign, player_id) if player_id else None,
                },
            )
            return copy.deepcopy(hex_)

    def place_token(
        self,
        campaign_id: str,
        hex_key: str,
        player_id: str,
        token_type: str,
        data: dict[str, Any] | None = None,
    ) -> PlacementOutcome | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            outcome = place_token_checked(campaign, hex_key, player_id, token_type, data, campaign["log"])
            return replace(outcome, token=copy.deepcopy(outcome.token))

    def remove_token(self, campaign_id: str, hex_key: str, token_id: str) -> bool | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            return remove_token(campaign, hex_key, token_id, campaign["log"])

    def apply_token_effects(self, campaign_id: str, player_id: str) -> EffectSummary | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            return apply_token_effects(campaign, player_id, campaign["log"])

    def token_statistics(self, campaign_id: str) -> dict[str, dict[str, Any]] | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            return get_token_statistics(campaign)

    def export_snapshot(self, campaign_id: str) -> str | None:
        with self._locked(campaign_id) as campaign:
            if campaign is None:
                return None
            return json.dumps(campaign)

    def load_snapshot(self, snapshot: str) -> str:
        try:
            document = json.loads(snapshot)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Campaign snapshot is not valid JSON: {exc}") from exc
        campaign = validate_snapshot(document)
        self._register(campaign)
        logger.info(f"Campaign loaded: {campaign.get('name', '')} ({campaign['id']})")
        return campaign["id"]


def create_store(settings: BackendSettings | None = None) -> CampaignStore:
    return InMemoryCampaignStore(settings=settings if settings is not None else load_settings())
