"""
Strategy Studio — Logic Tree Mutators

Pure functions over the condition registry and the logic tree. Inputs are
never modified; edited groups are rebuilt along the root-to-target path
only, every untouched subtree is returned as the same object.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterator, Mapping, Optional, Sequence, Set, Tuple

from strategy_model import (
    Condition,
    ConditionRef,
    ConditionType,
    LogicGroup,
    LogicNode,
    LogicOperator,
    create_condition,
    new_id,
    patch_condition,
)

logger = logging.getLogger(__name__)

Registry = Tuple[Condition, ...]


# ---------------------------------------------------------------------------
# Ids and normalization
# ---------------------------------------------------------------------------

def ensure_group_id(group: LogicGroup) -> LogicGroup:
    if group.id:
        return group
    return replace(group, id=new_id())


def normalize_tree(group: LogicGroup) -> LogicGroup:
    """Give every group a non-empty, unique id. Refs are left untouched."""
    return _normalize(group, set())


def _normalize(group: LogicGroup, seen: Set[str]) -> LogicGroup:
    if group.id and group.id in seen:
        logger.warning("Duplicate group id %s reassigned during normalization", group.id)
        group = replace(group, id=None)
    group = ensure_group_id(group)
    seen.add(group.id)

    children = tuple(
        child if isinstance(child, ConditionRef) else _normalize(child, seen)
        for child in group.children
    )
    if all(new is old for new, old in zip(children, group.children)):
        return group
    return replace(group, children=children)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def find_group(root: LogicGroup, group_id: str) -> Optional[LogicGroup]:
    """Depth-first search for the first group with ``group_id``."""
    if root.id == group_id:
        return root
    for child in root.children:
        if isinstance(child, LogicGroup):
            found = find_group(child, group_id)
            if found is not None:
                return found
    return None


def iter_refs(root: LogicGroup) -> Iterator[ConditionRef]:
    for child in root.children:
        if isinstance(child, ConditionRef):
            yield child
        else:
            yield from iter_refs(child)


def iter_groups(root: LogicGroup) -> Iterator[LogicGroup]:
    yield root
    for child in root.children:
        if isinstance(child, LogicGroup):
            yield from iter_groups(child)


# ---------------------------------------------------------------------------
# Tree mutators
# ---------------------------------------------------------------------------

def _replace_child(group: LogicGroup, index: int, child: LogicNode) -> LogicGroup:
    children = group.children[:index] + (child,) + group.children[index + 1:]
    return replace(group, children=children)


def _append_child(group: LogicGroup, target_id: str, child: LogicNode) -> LogicGroup:
    if group.id == target_id:
        return replace(group, children=group.children + (child,))
    for index, node in enumerate(group.children):
        if isinstance(node, LogicGroup):
            updated = _append_child(node, target_id, child)
            if updated is not node:
                return _replace_child(group, index, updated)
    return group


def clear_group(group: LogicGroup) -> LogicGroup:
    """Empty a group in place of removing it (used for root)."""
    if not group.children:
        return group
    return replace(group, children=())


def update_group_in_tree(root: LogicGroup, updated: LogicGroup) -> LogicGroup:
    """Replace the group whose id matches ``updated.id``."""
    if root.id == updated.id:
        return updated
    for index, node in enumerate(root.children):
        if isinstance(node, LogicGroup):
            new_node = update_group_in_tree(node, updated)
            if new_node is not node:
                return _replace_child(root, index, new_node)
    return root


def set_group_operator(root: LogicGroup, group_id: str,
                       operator: LogicOperator) -> LogicGroup:
    group = find_group(root, group_id)
    if group is None or group.operator is operator:
        return root
    return update_group_in_tree(root, replace(group, operator=operator))


def remove_group_from_tree(root: LogicGroup, target_id: str) -> LogicGroup:
    """Excise the first non-root group with ``target_id``.

    Root is never a target here; callers empty it with ``clear_group``.
    Ancestors left empty by the excision are kept.
    """
    for index, node in enumerate(root.children):
        if not isinstance(node, LogicGroup):
            continue
        if node.id == target_id:
            return replace(root, children=root.children[:index] + root.children[index + 1:])
        new_node = remove_group_from_tree(node, target_id)
        if new_node is not node:
            return _replace_child(root, index, new_node)
    return root


def remove_ref_from_tree(root: LogicGroup, ref_id: str) -> LogicGroup:
    """Remove every ref to ``ref_id``.

    A non-root group emptied by this removal is pruned from its parent; this
    applies bottom-up, so a chain of groups emptied by the same removal goes
    with it. Groups that were already empty stay, and root may end up empty.
    """
    children = []
    changed = False
    for node in root.children:
        if isinstance(node, ConditionRef):
            if node.ref == ref_id:
                changed = True
                continue
            children.append(node)
            continue
        pruned = remove_ref_from_tree(node, ref_id)
        if pruned is not node:
            changed = True
            if not pruned.children:
                continue
        children.append(pruned)
    if not changed:
        return root
    return replace(root, children=tuple(children))


def add_group_to_group(tree: LogicGroup, target_group_id: str) -> LogicGroup:
    """Append an empty AND group to the target; no-op if it is missing."""
    new_group = LogicGroup(id=new_id(), operator=LogicOperator.AND)
    updated = _append_child(tree, target_group_id, new_group)
    if updated is tree:
        logger.info("add_group_to_group: no group %s, tree unchanged", target_group_id)
    return updated


# ---------------------------------------------------------------------------
# Registry mutators
# ---------------------------------------------------------------------------

def add_condition_to_group(
    registry: Registry,
    tree: LogicGroup,
    target_group_id: str,
    condition_type: ConditionType = ConditionType.TECHNICAL_INDICATOR,
    assets: Sequence[str] = (),
) -> Tuple[Registry, LogicGroup, Condition]:
    """Create a default condition and reference it from the target group.

    The condition always enters the registry. A missing target leaves the
    tree unchanged.
    """
    condition = create_condition(condition_type, assets)
    new_tree = _append_child(tree, target_group_id, ConditionRef(ref=condition.id))
    if new_tree is tree:
        logger.info("add_condition_to_group: no group %s, condition %s not linked",
                    target_group_id, condition.id)
    return registry + (condition,), new_tree, condition


def update_condition(registry: Registry, condition_id: str,
                     patch: Mapping[str, Any], assets: Sequence[str] = ()) -> Registry:
    return tuple(
        patch_condition(c, patch, assets) if c.id == condition_id else c
        for c in registry
    )


def remove_condition(registry: Registry, tree: LogicGroup,
                     condition_id: str) -> Tuple[Registry, LogicGroup]:
    """Drop the registry entry and purge every ref to it from the tree."""
    new_registry = tuple(c for c in registry if c.id != condition_id)
    return new_registry, remove_ref_from_tree(tree, condition_id)
