"""Unit tests for the logic tree and condition registry mutators."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from strategy_model import (
    Condition,
    ConditionRef,
    ConditionType,
    LogicGroup,
    LogicOperator,
    PriceAlertPayload,
    TechnicalIndicatorPayload,
)
from strategy_tree import (
    add_condition_to_group,
    add_group_to_group,
    clear_group,
    find_group,
    iter_groups,
    iter_refs,
    normalize_tree,
    remove_condition,
    remove_group_from_tree,
    remove_ref_from_tree,
    set_group_operator,
    update_condition,
    update_group_in_tree,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _cond(cid):
    return Condition(id=cid, payload=TechnicalIndicatorPayload())


def _tree():
    """root(AND) -> [a, g1(OR) -> [b, g2 -> [c]], g3 -> []]"""
    return LogicGroup(id="root", children=(
        ConditionRef("a"),
        LogicGroup(id="g1", operator=LogicOperator.OR, children=(
            ConditionRef("b"),
            LogicGroup(id="g2", children=(ConditionRef("c"),)),
        )),
        LogicGroup(id="g3"),
    ))


# ---------------------------------------------------------------------------
# normalize_tree
# ---------------------------------------------------------------------------

def test_normalize_assigns_missing_ids():
    tree = LogicGroup(children=(LogicGroup(), ConditionRef("a")))
    norm = normalize_tree(tree)
    ids = [g.id for g in iter_groups(norm)]
    assert all(ids)
    assert len(set(ids)) == 2


def test_normalize_is_idempotent():
    tree = LogicGroup(children=(LogicGroup(children=(LogicGroup(),)),))
    once = normalize_tree(tree)
    assert normalize_tree(once) == once
    assert normalize_tree(once) is once


def test_normalize_keeps_existing_ids():
    tree = _tree()
    assert normalize_tree(tree) is tree


def test_normalize_reassigns_duplicate_ids():
    tree = LogicGroup(id="root", children=(
        LogicGroup(id="dup"),
        LogicGroup(id="dup"),
    ))
    norm = normalize_tree(tree)
    ids = [g.id for g in iter_groups(norm)]
    assert len(set(ids)) == 3
    assert norm.children[0].id == "dup"
    assert norm.children[1].id != "dup"


def test_normalize_leaves_refs_untouched():
    tree = LogicGroup(children=(ConditionRef("x"), ConditionRef("x")))
    norm = normalize_tree(tree)
    assert [r.ref for r in iter_refs(norm)] == ["x", "x"]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def test_find_group_nested():
    assert find_group(_tree(), "g2").children == (ConditionRef("c"),)
    assert find_group(_tree(), "nope") is None


def test_iter_refs_depth_first():
    assert [r.ref for r in iter_refs(_tree())] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# update_group_in_tree / set_group_operator
# ---------------------------------------------------------------------------

def test_update_group_only_rebuilds_path():
    tree = _tree()
    g2 = find_group(tree, "g2")
    updated = update_group_in_tree(tree, LogicGroup(id="g2", operator=LogicOperator.OR,
                                                    children=g2.children))
    assert updated is not tree
    assert updated.children[1] is not tree.children[1]
    # siblings along the path are shared
    assert updated.children[0] is tree.children[0]
    assert updated.children[2] is tree.children[2]
    assert updated.children[1].children[0] is tree.children[1].children[0]
    assert find_group(updated, "g2").operator is LogicOperator.OR


def test_update_group_missing_id_returns_same_tree():
    tree = _tree()
    assert update_group_in_tree(tree, LogicGroup(id="nope")) is tree


def test_update_group_replaces_root():
    tree = _tree()
    new_root = LogicGroup(id="root", operator=LogicOperator.OR)
    assert update_group_in_tree(tree, new_root) is new_root


def test_set_group_operator():
    tree = _tree()
    flipped = set_group_operator(tree, "g3", LogicOperator.OR)
    assert find_group(flipped, "g3").operator is LogicOperator.OR
    assert find_group(flipped, "g1") is find_group(tree, "g1")


def test_set_group_operator_same_value_is_noop():
    tree = _tree()
    assert set_group_operator(tree, "g1", LogicOperator.OR) is tree


# ---------------------------------------------------------------------------
# remove_group_from_tree / clear_group
# ---------------------------------------------------------------------------

def test_remove_nested_group():
    tree = _tree()
    updated = remove_group_from_tree(tree, "g2")
    assert find_group(updated, "g2") is None
    assert find_group(updated, "g1").children == (ConditionRef("b"),)
    assert updated.children[2] is tree.children[2]


def test_remove_group_keeps_emptied_parent():
    tree = LogicGroup(id="root", children=(
        LogicGroup(id="outer", children=(LogicGroup(id="inner"),)),
    ))
    updated = remove_group_from_tree(tree, "inner")
    assert find_group(updated, "outer").children == ()


def test_remove_group_root_is_not_a_target():
    tree = _tree()
    assert remove_group_from_tree(tree, "root") is tree


def test_remove_group_missing_is_noop():
    tree = _tree()
    assert remove_group_from_tree(tree, "nope") is tree


def test_clear_group_keeps_id_and_operator():
    tree = _tree()
    cleared = clear_group(tree)
    assert cleared.id == "root"
    assert cleared.operator is LogicOperator.AND
    assert cleared.children == ()
    assert clear_group(cleared) is cleared


# ---------------------------------------------------------------------------
# remove_ref_from_tree
# ---------------------------------------------------------------------------

def test_remove_unreferenced_ref_is_identity():
    tree = _tree()
    assert remove_ref_from_tree(tree, "zzz") is tree
    assert remove_ref_from_tree(tree, "zzz") == tree


def test_remove_ref_prunes_emptied_group():
    updated = remove_ref_from_tree(_tree(), "c")
    assert find_group(updated, "g2") is None
    assert find_group(updated, "g1").children == (ConditionRef("b"),)


def test_remove_ref_keeps_already_empty_group():
    updated = remove_ref_from_tree(_tree(), "a")
    assert find_group(updated, "g3") is not None
    assert [r.ref for r in iter_refs(updated)] == ["b", "c"]


def test_remove_ref_prunes_chain_bottom_up():
    tree = LogicGroup(id="root", children=(
        ConditionRef("keep"),
        LogicGroup(id="outer", children=(
            LogicGroup(id="inner", children=(ConditionRef("x"),)),
        )),
    ))
    updated = remove_ref_from_tree(tree, "x")
    assert updated.children == (ConditionRef("keep"),)


def test_remove_ref_root_may_become_empty():
    tree = LogicGroup(id="root", children=(ConditionRef("x"),))
    updated = remove_ref_from_tree(tree, "x")
    assert updated.id == "root"
    assert updated.children == ()


def test_remove_ref_removes_every_occurrence():
    tree = LogicGroup(id="root", children=(
        ConditionRef("x"),
        LogicGroup(id="g", children=(ConditionRef("x"), ConditionRef("y"))),
    ))
    updated = remove_ref_from_tree(tree, "x")
    assert [r.ref for r in iter_refs(updated)] == ["y"]


# ---------------------------------------------------------------------------
# add_group_to_group / add_condition_to_group
# ---------------------------------------------------------------------------

def test_add_group_appends_empty_and_group():
    tree = _tree()
    updated = add_group_to_group(tree, "g3")
    g3 = find_group(updated, "g3")
    assert len(g3.children) == 1
    new_group = g3.children[0]
    assert isinstance(new_group, LogicGroup)
    assert new_group.operator is LogicOperator.AND
    assert new_group.children == ()
    assert new_group.id


def test_add_group_missing_target_is_noop():
    tree = _tree()
    assert add_group_to_group(tree, "nope") is tree


def test_add_condition_to_group():
    tree = _tree()
    registry = (_cond("a"), _cond("b"), _cond("c"))
    new_registry, new_tree, condition = add_condition_to_group(registry, tree, "g1")
    assert len(new_registry) == len(registry) + 1
    assert new_registry[-1] is condition
    g1 = find_group(new_tree, "g1")
    assert len(g1.children) == 3
    assert g1.children[-1] == ConditionRef(condition.id)
    assert condition.payload == TechnicalIndicatorPayload()


def test_add_condition_uses_type_and_first_asset():
    registry, tree, condition = add_condition_to_group(
        (), LogicGroup(id="root"), "root", ConditionType.PRICE_ALERT, ("ETH", "BTC"))
    assert condition.type is ConditionType.PRICE_ALERT
    assert condition.payload == PriceAlertPayload(asset="ETH")


def test_add_condition_missing_target_leaves_tree():
    tree = _tree()
    new_registry, new_tree, condition = add_condition_to_group((), tree, "nope")
    assert new_tree is tree
    assert new_registry == (condition,)


# ---------------------------------------------------------------------------
# update_condition / remove_condition
# ---------------------------------------------------------------------------

def test_update_condition_merges_payload():
    registry = (_cond("a"), _cond("b"))
    updated = update_condition(registry, "a", {"payload": {"value": 70, "operator": "gt"}})
    assert updated[0].payload.value == 70
    assert updated[0].payload.operator == "gt"
    assert updated[1] is registry[1]


def test_update_condition_type_change_resets_payload():
    registry = (_cond("a"),)
    updated = update_condition(registry, "a", {"type": "price_alert",
                                               "payload": {"value": 70}}, ("SOL",))
    assert updated[0].type is ConditionType.PRICE_ALERT
    assert updated[0].payload == PriceAlertPayload(asset="SOL")


def test_update_condition_label_and_enabled():
    registry = (_cond("a"),)
    updated = update_condition(registry, "a", {"label": "Dip", "enabled": False})
    assert updated[0].label == "Dip"
    assert updated[0].enabled is False


def test_remove_condition_cascades_to_tree():
    tree = _tree()
    registry = (_cond("a"), _cond("b"), _cond("c"))
    new_registry, new_tree = remove_condition(registry, tree, "c")
    assert len(new_registry) == 2
    assert "c" not in [r.ref for r in iter_refs(new_tree)]
    assert find_group(new_tree, "g2") is None


def test_mutators_do_not_modify_inputs():
    tree = _tree()
    snapshot = normalize_tree(tree)
    registry = (_cond("a"), _cond("b"), _cond("c"))
    remove_condition(registry, tree, "b")
    add_group_to_group(tree, "g1")
    add_condition_to_group(registry, tree, "root")
    assert tree == snapshot
    assert [c.id for c in registry] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# End-to-end editing scenario
# ---------------------------------------------------------------------------

def test_editing_scenario():
    tree = LogicGroup(id="root")
    registry = ()

    registry, tree, first = add_condition_to_group(registry, tree, "root")
    registry, tree, _ = add_condition_to_group(registry, tree, "root")
    assert len(registry) == 2
    assert len(tree.children) == 2
    assert all(isinstance(c, ConditionRef) for c in tree.children)

    tree = add_group_to_group(tree, "root")
    assert len(tree.children) == 3
    new_group = tree.children[2]
    assert new_group.operator is LogicOperator.AND
    assert new_group.children == ()

    before = tree
    tree = update_group_in_tree(tree, LogicGroup(id=new_group.id, operator=LogicOperator.OR))
    assert tree.children[2].operator is LogicOperator.OR
    assert tree.children[0] is before.children[0]
    assert tree.children[1] is before.children[1]
    assert tree.operator is LogicOperator.AND

    registry, tree = remove_condition(registry, tree, first.id)
    assert len(registry) == 1
    assert len(tree.children) == 2
