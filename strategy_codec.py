"""
Strategy Studio — Wire Codec

Load/save boundary between the backend strategy schema and the editor.
Group ids are client-only: they are stripped on save and reinstated by
normalization on load. Condition payloads are sanitized per type on save.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from strategy_model import (
    Condition,
    ConditionRef,
    ConditionType,
    EditableState,
    LogicGroup,
    LogicOperator,
    StrategyStatus,
    default_notification_preferences,
    new_id,
    payload_from_wire,
    payload_to_wire,
)
from strategy_tree import iter_refs, normalize_tree

logger = logging.getLogger(__name__)


class StrategyFormatError(Exception):
    """Raised when a loaded payload cannot be turned into editable state."""


@dataclass(frozen=True)
class ValidationError:
    """A problem that blocks saving. Returned, never raised."""
    code: str
    message: str
    ref: Optional[str] = None


# ---------------------------------------------------------------------------
# Logic tree
# ---------------------------------------------------------------------------

def strip_group_ids(group: LogicGroup) -> Dict[str, Any]:
    """Wire form of a group: ``{"operator", "conditions"}``, no ids."""
    return {
        "operator": group.operator.value,
        "conditions": [
            {"ref": child.ref} if isinstance(child, ConditionRef) else strip_group_ids(child)
            for child in group.children
        ],
    }


def _group_from_wire(data: Mapping[str, Any]) -> LogicGroup:
    try:
        operator = LogicOperator(data.get("operator") or "AND")
    except ValueError as e:
        raise StrategyFormatError(f"Unknown logic operator: {data.get('operator')!r}") from e

    children = []
    # A group without a conditions array is treated as empty.
    for child in data.get("conditions") or []:
        if isinstance(child, Mapping) and "ref" in child:
            children.append(ConditionRef(ref=str(child["ref"])))
        elif isinstance(child, Mapping):
            children.append(_group_from_wire(child))
        else:
            logger.warning("Skipping malformed logic tree node: %r", child)
    return LogicGroup(id=data.get("id") or None, operator=operator, children=tuple(children))


def tree_from_wire(data: Optional[Mapping[str, Any]]) -> LogicGroup:
    """Parse a wire logic tree and reinstate group ids."""
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise StrategyFormatError(f"logic_tree must be an object, got {type(data).__name__}")
    return normalize_tree(_group_from_wire(data))


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

def sanitize_payload(condition: Condition) -> Dict[str, Any]:
    return payload_to_wire(condition.payload)


def condition_from_wire(data: Mapping[str, Any]) -> Condition:
    if not isinstance(data, Mapping):
        raise StrategyFormatError(f"Condition must be an object, got {type(data).__name__}")
    raw_type = data.get("type") or ConditionType.CUSTOM.value
    try:
        condition_type = ConditionType(raw_type)
    except ValueError:
        logger.warning("Unknown condition type %r loaded as custom", raw_type)
        condition_type = ConditionType.CUSTOM

    condition_id = data.get("id")
    if not condition_id:
        condition_id = new_id()
        logger.warning("Condition without id assigned %s", condition_id)

    payload = data.get("payload")
    if payload is not None and not isinstance(payload, Mapping):
        raise StrategyFormatError(f"Condition {condition_id} payload must be an object")
    return Condition(
        id=str(condition_id),
        payload=payload_from_wire(condition_type, payload),
        label=data.get("label") or "",
        enabled=data.get("enabled", True) is not False,
    )


def condition_to_wire(condition: Condition) -> Dict[str, Any]:
    return {
        "id": condition.id,
        "type": condition.type.value,
        "label": condition.label,
        "enabled": condition.enabled,
        "payload": sanitize_payload(condition),
    }


# ---------------------------------------------------------------------------
# Strategy load / save / validate
# ---------------------------------------------------------------------------

def _wire_list(payload: Mapping[str, Any], key: str) -> List[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StrategyFormatError(f"{key} must be a list, got {type(value).__name__}")
    return value


def load(payload: Mapping[str, Any]) -> EditableState:
    """Turn a backend strategy payload into editable state."""
    if not isinstance(payload, Mapping):
        raise StrategyFormatError("Strategy payload must be an object")

    conditions = tuple(condition_from_wire(c) for c in _wire_list(payload, "conditions"))
    assets = _wire_list(payload, "assets")
    if not all(isinstance(a, str) for a in assets):
        raise StrategyFormatError("assets must be a list of strings")

    raw_status = payload.get("status") or StrategyStatus.PAUSED.value
    try:
        status = StrategyStatus(raw_status)
    except ValueError as e:
        raise StrategyFormatError(f"Unknown strategy status: {raw_status!r}") from e

    prefs = payload.get("notification_preferences")
    if not isinstance(prefs, Mapping):
        prefs = default_notification_preferences()

    return EditableState(
        id=payload.get("id"),
        name=payload.get("name") or "",
        description=payload.get("description") or "",
        schedule=payload.get("schedule") or "1m",
        assets=tuple(assets),
        notification_preferences=dict(prefs),
        conditions=conditions,
        logic_tree=tree_from_wire(payload.get("logic_tree")),
        status=status,
        last_run_at=payload.get("last_run_at"),
        trigger_count=payload.get("trigger_count"),
    )


def save(state: EditableState) -> Dict[str, Any]:
    """Create/update payload for the backend (server-owned fields omitted)."""
    return {
        "name": state.name,
        "description": state.description,
        "schedule": state.schedule,
        "assets": list(state.assets),
        "notification_preferences": dict(state.notification_preferences),
        "conditions": [condition_to_wire(c) for c in state.conditions],
        "logic_tree": strip_group_ids(state.logic_tree),
        "status": state.status.value,
    }


def validate(state: EditableState) -> List[ValidationError]:
    errors = []
    if not state.name.strip():
        errors.append(ValidationError("empty_name", "Name required"))

    known = {c.id for c in state.conditions}
    reported = set()
    for ref in iter_refs(state.logic_tree):
        if ref.ref in known or ref.ref in reported:
            continue
        reported.add(ref.ref)
        errors.append(ValidationError(
            "dangling_ref",
            f"Logic tree references missing condition {ref.ref}",
            ref=ref.ref,
        ))
    return errors
