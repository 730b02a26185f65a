from campaignledger.backend.models import (
    OpaqueTokenData,
    PlacementCheck,
    ResourceNodeData,
    TokenType,
    coerce_token_type,
    parse_rp_per_turn,
    token_data_variant,
    token_type_name,
)


def test_coerce_token_type_accepts_identifier_display_name_and_member() -> None:
    assert coerce_token_type("resource_node") is TokenType.RESOURCE
    assert coerce_token_type("Resource Node") is TokenType.RESOURCE
    assert coerce_token_type("sacred shrine") is TokenType.SHRINE
    assert coerce_token_type(TokenType.OUTPOST) is TokenType.OUTPOST
    assert coerce_token_type("Orbital Strike") is None
    assert coerce_token_type(7) is None


def test_token_type_name_falls_back_to_raw_value() -> None:
    assert token_type_name("fortification") == "Fortification"
    assert token_type_name("Orbital Strike") == "Orbital Strike"


def test_token_data_variant_reads_rp_per_turn_for_resource_nodes() -> None:
    assert token_data_variant("Resource Node", {"rpPerTurn": 4}) == ResourceNodeData(rp_per_turn=4)
    assert token_data_variant(TokenType.RESOURCE, {}) == ResourceNodeData(rp_per_turn=1)
    assert token_data_variant(TokenType.RESOURCE, {"rpPerTurn": "lots"}) == ResourceNodeData(rp_per_turn=1)


def test_parse_rp_per_turn_accepts_whole_numbers_only() -> None:
    assert parse_rp_per_turn(3) == 3
    assert parse_rp_per_turn(2.0) == 2
    assert parse_rp_per_turn(" 4 ") == 4
    assert parse_rp_per_turn("5.0") == 5
    assert parse_rp_per_turn(2.5) is None
    assert parse_rp_per_turn("lots") is None
    assert parse_rp_per_turn(True) is None
    assert parse_rp_per_turn(None) is None


def test_token_data_variant_keeps_other_payloads_opaque() -> None:
    variant = token_data_variant(TokenType.CUSTOM, {"label": "Crashed Ship", "nested": {"a": [1, 2]}})

    assert isinstance(variant, OpaqueTokenData)
    assert variant.payload == {"label": "Crashed Ship", "nested": {"a": [1, 2]}}


def test_placement_check_unpacks_as_pair() -> None:
    allowed, reason = PlacementCheck(True, "OK")

    assert allowed is True
    assert reason == "OK"
