import json
import threading

import pytest

from campaignledger.backend.config import BackendSettings
from campaignledger.backend.store import InMemoryCampaignStore, create_store


def _settings(max_tokens_per_hex: int = 3, starting_rp: int = 5) -> BackendSettings:
    return BackendSettings(
        host="127.0.0.1",
        port=8000,
        log_level="INFO",
        max_tokens_per_hex=max_tokens_per_hex,
        starting_rp=starting_rp,
    )


def test_create_store_returns_in_memory_store() -> None:
    store = create_store(settings=_settings())

    assert isinstance(store, InMemoryCampaignStore)


def test_create_campaign_applies_settings_and_logs_creation() -> None:
    store = InMemoryCampaignStore(settings=_settings(max_tokens_per_hex=2, starting_rp=7))

    campaign = store.create_campaign(name="Nachmund")

    assert store.get_campaign(campaign["id"]) == campaign
    assert campaign["rules"] == {"maxTokensPerHex": 2, "startingRP": 7}
    assert campaign["log"][0]["kind"] == "CAMPAIGN_CREATED"


def test_add_player_uses_campaign_starting_rp() -> None:
    store = InMemoryCampaignStore(settings=_settings(starting_rp=7))
    campaign = store.create_campaign(name="Nachmund")

    player = store.add_player(campaign["id"], name="Alice", faction="Necrons")

    assert player is not None
    assert player["requisitionPoints"] == 7
    stored = store.get_campaign(campaign["id"])
    assert stored["players"][player["id"]] == player
    assert stored["log"][-1]["kind"] == "PLAYER_ADDED"


def test_unknown_campaign_returns_none_everywhere() -> None:
    store = InMemoryCampaignStore(settings=_settings())

    assert store.get_campaign("missing") is None
    assert store.add_player("missing", name="Alice") is None
    assert store.configure_map("missing", width=2, height=2) is None
    assert store.set_hex_controller("missing", "0,0", None) is None
    assert store.place_token("missing", "0,0", "p1", "Resource Node") is None
    assert store.remove_token("missing", "0,0", "t1") is None
    assert store.apply_token_effects("missing", "p1") is None
    assert store.token_statistics("missing") is None
    assert store.export_snapshot("missing") is None


def test_place_token_is_gated_by_control_and_capacity() -> None:
    store = InMemoryCampaignStore(settings=_settings(max_tokens_per_hex=1))
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    bob = store.add_player(campaign["id"], name="Bob")
    store.configure_map(campaign["id"], width=2, height=1)
    store.set_hex_controller(campaign["id"], "1,0", bob["id"])

    placed = store.place_token(campaign["id"], "0,0", alice["id"], "Resource Node", {"rpPerTurn": 2})
    full = store.place_token(campaign["id"], "0,0", alice["id"], "Resource Node")
    foreign = store.place_token(campaign["id"], "1,0", alice["id"], "Fortification")

    assert placed is not None and placed.token is not None
    assert full is not None and full.token is None
    assert full.check.reason == "maximum tokens on hex reached"
    assert foreign is not None and foreign.token is None
    assert foreign.check.reason == "hex controlled by another player"


def test_set_hex_controller_rejects_unknown_hex_or_player_and_logs_changes() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    store.configure_map(campaign["id"], width=1, height=1)

    assert store.set_hex_controller(campaign["id"], "5,5", alice["id"]) is None
    assert store.set_hex_controller(campaign["id"], "0,0", "nobody") is None

    hex_ = store.set_hex_controller(campaign["id"], "0,0", alice["id"])

    assert hex_ is not None
    assert hex_["controllerId"] == alice["id"]
    log = store.get_campaign(campaign["id"])["log"]
    assert log[-1]["kind"] == "HEX_CONTROL_CHANGED"
    assert log[-1]["payload"]["player"] == "Alice"

    cleared = store.set_hex_controller(campaign["id"], "0,0", None)
    assert cleared["controllerId"] is None


def test_effects_and_statistics_run_against_stored_campaign() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    store.configure_map(campaign["id"], width=2, height=1)
    store.place_token(campaign["id"], "0,0", alice["id"], "Resource Node", {"rpPerTurn": 3})
    store.place_token(campaign["id"], "1,0", alice["id"], "Sacred Shrine")

    summary = store.apply_token_effects(campaign["id"], alice["id"])
    stats = store.token_statistics(campaign["id"])

    assert summary is not None
    assert summary.rp_gained == 3
    assert store.get_campaign(campaign["id"])["players"][alice["id"]]["requisitionPoints"] == 8
    assert stats[alice["id"]]["totalTokens"] == 2


def test_log_order_matches_acceptance_order() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    store.configure_map(campaign["id"], width=1, height=1)
    placed = store.place_token(campaign["id"], "0,0", alice["id"], "Resource Node")
    store.apply_token_effects(campaign["id"], alice["id"])
    store.remove_token(campaign["id"], "0,0", placed.token["id"])

    assert [entry["kind"] for entry in store.get_campaign(campaign["id"])["log"]] == [
        "CAMPAIGN_CREATED",
        "PLAYER_ADDED",
        "MAP_CONFIGURED",
        "TOKEN_PLACED",
        "RP_GAINED",
        "TOKEN_REMOVED",
    ]


def test_snapshot_round_trip_is_lossless() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    store.configure_map(campaign["id"], width=2, height=2)
    store.place_token(
        campaign["id"],
        "0,0",
        alice["id"],
        "Custom Marker",
        {"label": "Crash site", "nested": {"layers": [1, 2, {"deep": None}]}, "flag": True},
    )
    snapshot = store.export_snapshot(campaign["id"])
    before = store.get_campaign(campaign["id"])

    restored_store = InMemoryCampaignStore(settings=_settings())
    campaign_id = restored_store.load_snapshot(snapshot)

    assert campaign_id == campaign["id"]
    assert restored_store.get_campaign(campaign_id) == before


def test_load_snapshot_rejects_malformed_documents() -> None:
    store = InMemoryCampaignStore(settings=_settings())

    with pytest.raises(ValueError):
        store.load_snapshot("not json")
    with pytest.raises(ValueError):
        store.load_snapshot("[]")
    with pytest.raises(ValueError):
        store.load_snapshot(json.dumps({"id": "c-1", "version": 1, "players": [], "log": []}))
    with pytest.raises(ValueError):
        store.load_snapshot(json.dumps({"id": "c-1", "version": 1, "players": {}, "log": [], "mapConfig": "grid"}))
    with pytest.raises(ValueError):
        store.load_snapshot(json.dumps({"id": "c-1", "players": {}, "log": []}))
    with pytest.raises(ValueError):
        store.load_snapshot(json.dumps({"id": "c-1", "version": "1", "players": {}, "log": []}))
    with pytest.raises(ValueError):
        store.load_snapshot(json.dumps({"id": "c-1", "version": 99, "players": {}, "log": []}))

    assert store.get_campaign("c-1") is None


def test_load_snapshot_accepts_older_version() -> None:
    store = InMemoryCampaignStore(settings=_settings())

    campaign_id = store.load_snapshot(json.dumps({"id": "c-0", "version": 0, "players": {}, "log": []}))

    assert campaign_id == "c-0"
    assert store.get_campaign("c-0")["version"] == 0


def test_returned_documents_are_detached_from_the_store() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")
    alice = store.add_player(campaign["id"], name="Alice")
    store.configure_map(campaign["id"], width=1, height=1)
    earlier = store.get_campaign(campaign["id"])

    alice["requisitionPoints"] = 1000
    placed = store.place_token(campaign["id"], "0,0", alice["id"], "Resource Node")
    placed.token["playerId"] = "someone-else"
    earlier["players"].clear()

    current = store.get_campaign(campaign["id"])
    assert current["players"][alice["id"]]["requisitionPoints"] == 5
    assert current["mapConfig"]["hexes"]["0,0"]["tokens"][0]["playerId"] == alice["id"]
    assert len(earlier["log"]) == 3
    assert earlier["mapConfig"]["hexes"]["0,0"]["tokens"] == []


def test_concurrent_player_additions_are_all_logged() -> None:
    store = InMemoryCampaignStore(settings=_settings())
    campaign = store.create_campaign(name="Nachmund")

    threads = [
        threading.Thread(target=store.add_player, args=(campaign["id"], f"Player {index}")) for index in range(20)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = store.get_campaign(campaign["id"])
    assert len(stored["players"]) == 20
    assert len(stored["log"]) == 21
