"""Unit tests for the wire codec: load, save, sanitize, validate."""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import strategy_codec
from strategy_codec import (
    StrategyFormatError,
    condition_from_wire,
    sanitize_payload,
    strip_group_ids,
    tree_from_wire,
)
from strategy_model import (
    Condition,
    ConditionRef,
    ConditionType,
    CustomPayload,
    EditableState,
    LogicGroup,
    LogicOperator,
    StrategyStatus,
    WalletFlowPayload,
    payload_from_wire,
)
from strategy_tree import iter_groups, normalize_tree


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _wire_strategy(**overrides):
    data = {
        "id": "s-1",
        "name": "RSI dip",
        "description": "Buy the dip",
        "schedule": "5m",
        "assets": ["BTC", "ETH"],
        "notification_preferences": {
            "cooldown": {"enabled": True, "duration_value": 30, "duration_unit": "m"},
        },
        "conditions": [
            {"id": "c1", "type": "technical_indicator", "label": "RSI",
             "enabled": True,
             "payload": {"indicator": "rsi", "operator": "lt", "value": 25,
                         "timeframe": "4h", "asset": "BTC"}},
            {"id": "c2", "type": "price_alert", "label": "", "enabled": False,
             "payload": {"asset": "ETH", "direction": "below", "target_price": 1800}},
        ],
        "logic_tree": {
            "operator": "AND",
            "conditions": [
                {"ref": "c1"},
                {"operator": "OR", "conditions": [{"ref": "c2"}]},
            ],
        },
        "status": "active",
        "last_run_at": "2024-05-01T00:00:00Z",
        "trigger_count": 3,
    }
    data.update(overrides)
    return data


def _strip_ids(node):
    """Structural form of a tree with group ids removed."""
    if isinstance(node, ConditionRef):
        return ("ref", node.ref)
    return (node.operator, tuple(_strip_ids(c) for c in node.children))


# ---------------------------------------------------------------------------
# Logic tree wire format
# ---------------------------------------------------------------------------

def test_strip_group_ids_shape():
    tree = LogicGroup(id="root", children=(
        ConditionRef("a"),
        LogicGroup(id="g", operator=LogicOperator.OR, children=(ConditionRef("b"),)),
    ))
    assert strip_group_ids(tree) == {
        "operator": "AND",
        "conditions": [
            {"ref": "a"},
            {"operator": "OR", "conditions": [{"ref": "b"}]},
        ],
    }


def test_tree_round_trip_modulo_ids():
    tree = normalize_tree(LogicGroup(children=(
        ConditionRef("a"),
        LogicGroup(operator=LogicOperator.OR, children=(
            LogicGroup(),
            ConditionRef("b"),
        )),
    )))
    again = tree_from_wire(strip_group_ids(tree))
    assert _strip_ids(again) == _strip_ids(tree)
    assert all(g.id for g in iter_groups(again))


def test_tree_from_wire_missing_conditions_is_empty():
    tree = tree_from_wire({"operator": "OR"})
    assert tree.operator is LogicOperator.OR
    assert tree.children == ()
    assert tree.id


def test_tree_from_wire_none_is_empty_root():
    tree = tree_from_wire(None)
    assert tree.children == ()
    assert tree.operator is LogicOperator.AND


def test_tree_from_wire_skips_malformed_children(caplog):
    with caplog.at_level(logging.WARNING):
        tree = tree_from_wire({"operator": "AND", "conditions": [{"ref": "a"}, 42, "x"]})
    assert tree.children == (ConditionRef("a"),)
    assert "malformed" in caplog.text


def test_tree_from_wire_bad_operator():
    with pytest.raises(StrategyFormatError):
        tree_from_wire({"operator": "XOR", "conditions": []})


# ---------------------------------------------------------------------------
# Conditions and payload sanitizing
# ---------------------------------------------------------------------------

def test_sanitize_drops_unknown_keys():
    c = condition_from_wire({"id": "c", "type": "volume_alert",
                             "payload": {"asset": "SOL", "threshold": 5, "junk": 1}})
    assert sanitize_payload(c) == {"asset": "SOL", "timeframe": "1h",
                                   "operator": "gt", "threshold": 5}


def test_sanitize_wallet_flow_individual_keeps_address():
    c = Condition(id="w", payload=WalletFlowPayload(address="0xabc", label="exchange_wallets"))
    wire = sanitize_payload(c)
    assert wire["address"] == "0xabc"
    assert "label" not in wire


def test_sanitize_wallet_flow_group_keeps_label():
    c = Condition(id="w", payload=WalletFlowPayload(entity_type="group", address="0xabc"))
    wire = sanitize_payload(c)
    assert wire["label"] == "smart_money"
    assert "address" not in wire


def test_sanitize_custom_passes_through():
    c = Condition(id="x", payload=CustomPayload(fields={"anything": [1, 2]}))
    assert sanitize_payload(c) == {"anything": [1, 2]}


def test_payload_defaults_fill_missing_keys():
    p = payload_from_wire(ConditionType.TECHNICAL_INDICATOR, {"value": "45"})
    assert p.indicator == "rsi"
    assert p.value == 45.0
    assert p.asset == "BTC"


def test_unknown_condition_type_loads_as_custom(caplog):
    with caplog.at_level(logging.WARNING):
        c = condition_from_wire({"id": "z", "type": "sentiment", "payload": {"score": 0.7}})
    assert c.type is ConditionType.CUSTOM
    assert c.payload.fields == {"score": 0.7}
    assert "sentiment" in caplog.text


def test_condition_without_id_gets_one():
    c = condition_from_wire({"type": "price_alert"})
    assert c.id


def test_condition_payload_must_be_object():
    with pytest.raises(StrategyFormatError):
        condition_from_wire({"id": "c", "type": "price_alert", "payload": [1, 2]})


def test_condition_must_be_object():
    with pytest.raises(StrategyFormatError, match="Condition must be an object"):
        condition_from_wire("oops")


def test_non_numeric_value_falls_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        p = payload_from_wire(ConditionType.TECHNICAL_INDICATOR, {"value": "abc"})
    assert p.value == 30
    assert "Non-numeric value 'abc'" in caplog.text


# ---------------------------------------------------------------------------
# Strategy load / save
# ---------------------------------------------------------------------------

def test_load_strategy():
    state = strategy_codec.load(_wire_strategy())
    assert state.id == "s-1"
    assert state.assets == ("BTC", "ETH")
    assert state.status is StrategyStatus.ACTIVE
    assert [c.id for c in state.conditions] == ["c1", "c2"]
    assert state.conditions[0].payload.value == 25
    assert state.conditions[1].enabled is False
    assert state.logic_tree.id
    assert state.logic_tree.children[1].operator is LogicOperator.OR
    assert state.trigger_count == 3


def test_load_bad_status():
    with pytest.raises(StrategyFormatError):
        strategy_codec.load(_wire_strategy(status="running"))


def test_load_rejects_non_object_condition():
    with pytest.raises(StrategyFormatError):
        strategy_codec.load(_wire_strategy(conditions=["oops"]))


def test_load_rejects_non_list_collections():
    with pytest.raises(StrategyFormatError, match="conditions must be a list"):
        strategy_codec.load(_wire_strategy(conditions={"c1": {}}))
    with pytest.raises(StrategyFormatError, match="assets must be a list"):
        strategy_codec.load(_wire_strategy(assets="BTC"))
    with pytest.raises(StrategyFormatError):
        strategy_codec.load(_wire_strategy(assets=["BTC", 7]))


def test_load_defaults_notification_preferences():
    state = strategy_codec.load(_wire_strategy(notification_preferences=None))
    assert state.notification_preferences["cooldown"]["enabled"] is False


def test_save_omits_server_fields():
    wire = strategy_codec.save(strategy_codec.load(_wire_strategy()))
    assert set(wire) == {"name", "description", "schedule", "assets",
                         "notification_preferences", "conditions", "logic_tree", "status"}
    assert wire["logic_tree"] == _wire_strategy()["logic_tree"]
    assert wire["status"] == "active"


def test_save_load_round_trip():
    original = _wire_strategy()
    wire = strategy_codec.save(strategy_codec.load(original))
    again = strategy_codec.save(strategy_codec.load(wire))
    assert again == wire
    assert wire["conditions"][0] == original["conditions"][0]


def test_new_strategy_saves_paused():
    wire = strategy_codec.save(EditableState())
    assert wire["status"] == "paused"
    assert wire["logic_tree"] == {"operator": "AND", "conditions": []}


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

def test_validate_ok():
    assert strategy_codec.validate(strategy_codec.load(_wire_strategy())) == []


def test_validate_empty_name():
    errors = strategy_codec.validate(EditableState(name="   "))
    assert [e.code for e in errors] == ["empty_name"]
    assert errors[0].message == "Name required"


def test_validate_dangling_ref_reported_once():
    tree = LogicGroup(id="root", children=(ConditionRef("ghost"), ConditionRef("ghost")))
    errors = strategy_codec.validate(EditableState(logic_tree=tree))
    assert len(errors) == 1
    assert errors[0].code == "dangling_ref"
    assert errors[0].ref == "ghost"
