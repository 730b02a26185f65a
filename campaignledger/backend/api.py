"""FastAPI endpoints for campaign ledger mutations, queries and websocket sync."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field, model_validator

from campaignledger.backend.ledger import get_hex_tokens
from campaignledger.backend.models import TOKEN_TYPE_NAMES, TokenType, coerce_token_type, parse_rp_per_turn
from campaignledger.backend.store import CampaignStore, create_store

EVENT_CAMPAIGN_FULL = "campaign.full"
EVENT_PLAYER_ADDED = "player.added"
EVENT_MAP_CONFIGURED = "map.configured"
EVENT_HEX_CONTROL_CHANGED = "hex.control_changed"
EVENT_TOKEN_PLACED = "token.placed"
EVENT_TOKEN_REMOVED = "token.removed"
EVENT_EFFECTS_APPLIED = "effects.applied"


class CreateCampaignRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class CampaignStateResponse(BaseModel):
    state: dict[str, Any]


class AddPlayerRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    color: str = ""
    faction: str = ""


class ConfigureMapRequest(BaseModel):
    width: int = Field(ge=1, le=100)
    height: int = Field(ge=1, le=100)


class HexControllerRequest(BaseModel):
    player_id: str | None = None


class PlaceTokenRequest(BaseModel):
    player_id: str = Field(min_length=1)
    token_type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_resource_rate(self) -> PlaceTokenRequest:
        if coerce_token_type(self.token_type) is not TokenType.RESOURCE:
            return self
        raw = self.data.get("rpPerTurn")
        if raw is not None and parse_rp_per_turn(raw) is None:
            raise ValueError(f"rpPerTurn must be a whole number, got {raw!r}")
        return self


class PlaceTokenResponse(BaseModel):
    token: dict[str, Any]


class TokenListResponse(BaseModel):
    tokens: list[dict[str, Any]]


class EffectsResponse(BaseModel):
    rpGained: int
    resourcesGained: dict[str, int]
    bonuses: list[dict[str, str]]


class StatisticsResponse(BaseModel):
    statistics: dict[str, dict[str, Any]]


class SnapshotRequest(BaseModel):
    snapshot: str = Field(min_length=2)


class SnapshotResponse(BaseModel):
    campaign_id: str
    snapshot: str


class CampaignWebSocketHub:
    """Fan campaign changes out to map clients.

    Subscribers get the full document once on connect. After that each
    mutation is pushed as a typed event carrying the log entries written since
    the previous push, alongside the refreshed document.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._log_cursors: dict[str, int] = {}

    async def subscribe(self, campaign_id: str, websocket: WebSocket, state: dict[str, Any]) -> None:
        await websocket.accept()
        self._connections[campaign_id].add(websocket)
        self._log_cursors.setdefault(campaign_id, len(state.get("log", [])))
        await websocket.send_json({"type": EVENT_CAMPAIGN_FULL, "campaignId": campaign_id, "state": state})

    def unsubscribe(self, campaign_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(campaign_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(campaign_id, None)
            self._log_cursors.pop(campaign_id, None)

    async def publish(self, campaign_id: str, event_type: str, state: dict[str, Any]) -> None:
        connections = list(self._connections.get(campaign_id, set()))
        if not connections:
            return
        log = state.get("log", [])
        cursor = self._log_cursors.get(campaign_id, len(log))
        self._log_cursors[campaign_id] = len(log)
        message = {
            "type": event_type,
            "campaignId": campaign_id,
            "entries": log[cursor:],
            "state": state,
        }
        for websocket in connections:
            try:
                await websocket.send_json(message)
            except RuntimeError:
                self.unsubscribe(campaign_id=campaign_id, websocket=websocket)


def create_app(store: CampaignStore | None = None) -> FastAPI:
    app = FastAPI(title="Campaign Ledger API", version="0.1.0")
    campaign_store = store if store is not None else create_store()
    websocket_hub = CampaignWebSocketHub()
    app.state.websocket_hub = websocket_hub

    async def publish(campaign_id: str, event_type: str) -> None:
        state = await run_in_threadpool(campaign_store.get_campaign, campaign_id)
        if state is not None:
            await websocket_hub.publish(campaign_id=campaign_id, event_type=event_type, state=state)

    app.state.publish = publish

    def get_store() -> CampaignStore:
        return campaign_store

    def require_campaign(campaign_id: str, local_store: CampaignStore) -> dict[str, Any]:
        state = local_store.get_campaign(campaign_id)
        if state is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return state

    @app.get("/api/token-types")
    def list_token_types() -> dict[str, str]:
        return {token_type.value: TOKEN_TYPE_NAMES[token_type] for token_type in TokenType}

    @app.post("/api/campaigns", response_model=CampaignStateResponse)
    def create_campaign(
        payload: CreateCampaignRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> CampaignStateResponse:
        return CampaignStateResponse(state=local_store.create_campaign(name=payload.name))

    @app.get("/api/campaigns/{campaign_id}", response_model=CampaignStateResponse)
    def get_campaign(
        campaign_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> CampaignStateResponse:
        return CampaignStateResponse(state=require_campaign(campaign_id, local_store))

    @app.post("/api/campaigns/{campaign_id}/players")
    async def add_player(
        campaign_id: str,
        payload: AddPlayerRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> dict[str, Any]:
        player = await run_in_threadpool(
            local_store.add_player,
            campaign_id=campaign_id,
            name=payload.name,
            color=payload.color,
            faction=payload.faction,
        )
        if player is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        await publish(campaign_id, EVENT_PLAYER_ADDED)
        return player

    @app.post("/api/campaigns/{campaign_id}/map")
    async def configure_map(
        campaign_id: str,
        payload: ConfigureMapRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> dict[str, Any]:
        map_config = await run_in_threadpool(
            local_store.configure_map,
            campaign_id=campaign_id,
            width=payload.width,
            height=payload.height,
        )
        if map_config is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        await publish(campaign_id, EVENT_MAP_CONFIGURED)
        return {"dimensions": map_config["dimensions"], "hexKeys": list(map_config["hexes"])}

    @app.put("/api/campaigns/{campaign_id}/hexes/{hex_key}/controller")
    async def set_hex_controller(
        campaign_id: str,
        hex_key: str,
        payload: HexControllerRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> dict[str, Any]:
        hex_ = await run_in_threadpool(
            local_store.set_hex_controller,
            campaign_id=campaign_id,
            hex_key=hex_key,
            player_id=payload.player_id,
        )
        if hex_ is None:
            raise HTTPException(status_code=404, detail="Campaign, hex or player not found")
        await publish(campaign_id, EVENT_HEX_CONTROL_CHANGED)
        return hex_

    @app.get("/api/campaigns/{campaign_id}/hexes/{hex_key}/tokens", response_model=TokenListResponse)
    def list_hex_tokens(
        campaign_id: str,
        hex_key: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> TokenListResponse:
        state = require_campaign(campaign_id, local_store)
        return TokenListResponse(tokens=list(get_hex_tokens(state, hex_key)))

    @app.post("/api/campaigns/{campaign_id}/hexes/{hex_key}/tokens", response_model=PlaceTokenResponse)
    async def place_token(
        campaign_id: str,
        hex_key: str,
        payload: PlaceTokenRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> PlaceTokenResponse:
        outcome = await run_in_threadpool(
            local_store.place_token,
            campaign_id=campaign_id,
            hex_key=hex_key,
            player_id=payload.player_id,
            token_type=payload.token_type,
            data=payload.data,
        )
        if outcome is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        if outcome.token is None:
            raise HTTPException(status_code=409, detail=outcome.check.reason)
        await publish(campaign_id, EVENT_TOKEN_PLACED)
        return PlaceTokenResponse(token=outcome.token)

    @app.delete("/api/campaigns/{campaign_id}/hexes/{hex_key}/tokens/{token_id}")
    async def remove_token(
        campaign_id: str,
        hex_key: str,
        token_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> dict[str, bool]:
        removed = await run_in_threadpool(
            local_store.remove_token,
            campaign_id=campaign_id,
            hex_key=hex_key,
            token_id=token_id,
        )
        if not removed:
            raise HTTPException(status_code=404, detail="Campaign or token not found")
        await publish(campaign_id, EVENT_TOKEN_REMOVED)
        return {"removed": True}

    @app.post("/api/campaigns/{campaign_id}/players/{player_id}/effects", response_model=EffectsResponse)
    async def apply_effects(
        campaign_id: str,
        player_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> EffectsResponse:
        summary = await run_in_threadpool(local_store.apply_token_effects, campaign_id=campaign_id, player_id=player_id)
        if summary is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        await publish(campaign_id, EVENT_EFFECTS_APPLIED)
        return EffectsResponse(**summary.to_dict())

    @app.get("/api/campaigns/{campaign_id}/statistics", response_model=StatisticsResponse)
    def get_statistics(
        campaign_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> StatisticsResponse:
        statistics = local_store.token_statistics(campaign_id)
        if statistics is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return StatisticsResponse(statistics=statistics)

    @app.get("/api/campaigns/{campaign_id}/snapshot", response_model=SnapshotResponse)
    def export_snapshot(
        campaign_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> SnapshotResponse:
        snapshot = local_store.export_snapshot(campaign_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return SnapshotResponse(campaign_id=campaign_id, snapshot=snapshot)

    @app.post("/api/campaigns/import", response_model=CampaignStateResponse)
    def import_snapshot(
        payload: SnapshotRequest,
        local_store: CampaignStore = Depends(get_store),
    ) -> CampaignStateResponse:
        try:
            campaign_id = local_store.load_snapshot(payload.snapshot)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return CampaignStateResponse(state=require_campaign(campaign_id, local_store))

    @app.websocket("/ws/campaigns/{campaign_id}")
    async def campaign_ws(
        websocket: WebSocket,
        campaign_id: str,
        local_store: CampaignStore = Depends(get_store),
    ) -> None:
        state = await run_in_threadpool(local_store.get_campaign, campaign_id)
        if state is None:
            await websocket.close(code=1008)
            return

        await websocket_hub.subscribe(campaign_id=campaign_id, websocket=websocket, state=state)

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.unsubscribe(campaign_id=campaign_id, websocket=websocket)

    return app


app = create_app()
