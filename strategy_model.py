"""
Strategy Studio — Model Types

Condition payload table, conditions, logic tree nodes, editable strategy.
Every payload variant is a frozen dataclass whose field defaults are the
canonical defaults for that condition type; the same table drives creation
and save-time sanitization.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Sequence, Tuple, Type, Union

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class LogicOperator(Enum):
    AND = "AND"
    OR = "OR"


class ConditionType(Enum):
    TECHNICAL_INDICATOR = "technical_indicator"
    PRICE_ALERT = "price_alert"
    VOLUME_ALERT = "volume_alert"
    WALLET_FLOW = "wallet_flow"
    EXCHANGE_FLOW = "exchange_flow"
    CUSTOM = "custom"


class StrategyStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Payload variants (one per ConditionType)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TechnicalIndicatorPayload:
    condition_type: ClassVar[ConditionType] = ConditionType.TECHNICAL_INDICATOR
    indicator: str = "rsi"
    operator: str = "lt"
    value: float = 30
    timeframe: str = "1h"
    asset: str = "BTC"


@dataclass(frozen=True)
class PriceAlertPayload:
    condition_type: ClassVar[ConditionType] = ConditionType.PRICE_ALERT
    asset: str = ""
    direction: str = "above"
    target_price: float = 0


@dataclass(frozen=True)
class VolumeAlertPayload:
    condition_type: ClassVar[ConditionType] = ConditionType.VOLUME_ALERT
    asset: str = ""
    timeframe: str = "1h"
    operator: str = "gt"
    threshold: float = 0


@dataclass(frozen=True)
class WalletFlowPayload:
    """Wallet flow threshold.

    ``entity_type == "group"`` tracks a labeled wallet group (``label``);
    any other entity type tracks a single ``address``. Only the active one
    of the pair is written to the wire.
    """
    condition_type: ClassVar[ConditionType] = ConditionType.WALLET_FLOW
    direction: str = "inflow"
    entity_type: str = "individual"
    address: str = ""
    label: str = "smart_money"
    asset: str = ""
    value: float = 0

    @property
    def tracks_group(self) -> bool:
        return self.entity_type == "group"


@dataclass(frozen=True)
class ExchangeFlowPayload:
    condition_type: ClassVar[ConditionType] = ConditionType.EXCHANGE_FLOW
    exchange: str = "binance"
    flow_type: str = "net_flow"
    asset: str = ""
    value: float = 0


@dataclass(frozen=True)
class CustomPayload:
    """Free-form payload, passed through unsanitized."""
    condition_type: ClassVar[ConditionType] = ConditionType.CUSTOM
    fields: Dict[str, Any] = field(default_factory=dict)


ConditionPayload = Union[
    TechnicalIndicatorPayload,
    PriceAlertPayload,
    VolumeAlertPayload,
    WalletFlowPayload,
    ExchangeFlowPayload,
    CustomPayload,
]

PAYLOAD_TYPES: Dict[ConditionType, Type] = {
    ConditionType.TECHNICAL_INDICATOR: TechnicalIndicatorPayload,
    ConditionType.PRICE_ALERT: PriceAlertPayload,
    ConditionType.VOLUME_ALERT: VolumeAlertPayload,
    ConditionType.WALLET_FLOW: WalletFlowPayload,
    ConditionType.EXCHANGE_FLOW: ExchangeFlowPayload,
    ConditionType.CUSTOM: CustomPayload,
}


def payload_keys(condition_type: ConditionType) -> Tuple[str, ...]:
    """Recognized wire keys for a typed payload (empty for custom)."""
    if condition_type is ConditionType.CUSTOM:
        return ()
    return tuple(f.name for f in fields(PAYLOAD_TYPES[condition_type]))


def _coerce(value: Any, default: Any, name: str = "") -> Any:
    """Coerce a loaded value towards the kind of its default."""
    if value is None:
        return default
    if isinstance(default, (int, float)) and not isinstance(default, bool):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        try:
            return float(value)
        except (ValueError, TypeError):
            logger.warning("Non-numeric %s %r replaced by default %r", name or "value",
                           value, default)
            return default
    if isinstance(default, str):
        return str(value)
    return value


def _typed_changes(payload_cls: Type, data: Mapping[str, Any]) -> Dict[str, Any]:
    changes = {}
    for f in fields(payload_cls):
        if f.name in data:
            changes[f.name] = _coerce(data[f.name], f.default, f.name)
    return changes


def default_payload(condition_type: ConditionType,
                    assets: Sequence[str] = ()) -> ConditionPayload:
    """Canonical default payload; the first strategy asset seeds ``asset``."""
    payload_cls = PAYLOAD_TYPES[condition_type]
    payload = payload_cls()
    if assets and any(f.name == "asset" for f in fields(payload_cls)):
        payload = replace(payload, asset=assets[0])
    return payload


def payload_from_wire(condition_type: ConditionType,
                      data: Optional[Mapping[str, Any]]) -> ConditionPayload:
    """Build a payload from wire data; missing keys take their defaults."""
    data = data or {}
    if condition_type is ConditionType.CUSTOM:
        return CustomPayload(fields=dict(data))
    payload_cls = PAYLOAD_TYPES[condition_type]
    return payload_cls(**_typed_changes(payload_cls, data))


def payload_to_wire(payload: ConditionPayload) -> Dict[str, Any]:
    """Recognized keys only; custom payloads pass through unchanged."""
    if isinstance(payload, CustomPayload):
        return dict(payload.fields)
    data = {f.name: getattr(payload, f.name) for f in fields(payload)}
    if isinstance(payload, WalletFlowPayload):
        data.pop("address" if payload.tracks_group else "label")
    return data


def merge_payload(payload: ConditionPayload,
                  patch: Mapping[str, Any]) -> ConditionPayload:
    """Merge payload fields. Unknown keys are ignored on typed variants."""
    if isinstance(payload, CustomPayload):
        merged = dict(payload.fields)
        merged.update(patch)
        return CustomPayload(fields=merged)
    return replace(payload, **_typed_changes(type(payload), patch))


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Condition:
    """A leaf fact-check referenced from the logic tree by ``id``."""
    id: str
    payload: ConditionPayload
    label: str = ""
    enabled: bool = True

    @property
    def type(self) -> ConditionType:
        return self.payload.condition_type


def create_condition(
    condition_type: ConditionType = ConditionType.TECHNICAL_INDICATOR,
    assets: Sequence[str] = (),
) -> Condition:
    """New condition with a fresh id and the type's default payload."""
    return Condition(id=new_id(), payload=default_payload(condition_type, assets))


def patch_condition(condition: Condition, patch: Mapping[str, Any],
                    assets: Sequence[str] = ()) -> Condition:
    """Apply an edit patch (``type``, ``label``, ``enabled``, ``payload``).

    Changing the type replaces the payload with the new type's defaults;
    any payload in the same patch is ignored. Otherwise payload fields merge.
    """
    new_type = patch.get("type")
    if new_type is not None and not isinstance(new_type, ConditionType):
        new_type = ConditionType(new_type)

    if new_type is not None and new_type is not condition.type:
        logger.debug("Condition %s type %s -> %s, payload reset",
                     condition.id, condition.type.value, new_type.value)
        payload = default_payload(new_type, assets)
    elif patch.get("payload"):
        payload = merge_payload(condition.payload, patch["payload"])
    else:
        payload = condition.payload

    changes: Dict[str, Any] = {"payload": payload}
    if "label" in patch:
        changes["label"] = patch["label"] or ""
    if "enabled" in patch:
        changes["enabled"] = bool(patch["enabled"])
    return replace(condition, **changes)


# ---------------------------------------------------------------------------
# Logic tree nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConditionRef:
    """Pointer from a group to exactly one condition."""
    ref: str


@dataclass(frozen=True)
class LogicGroup:
    """AND/OR combinator. ``id`` is client-only and assigned lazily."""
    id: Optional[str] = None
    operator: LogicOperator = LogicOperator.AND
    children: Tuple["LogicNode", ...] = ()

    def __post_init__(self):
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))


LogicNode = Union[ConditionRef, LogicGroup]


# ---------------------------------------------------------------------------
# Editable strategy
# ---------------------------------------------------------------------------

SCHEDULE_OPTIONS = ["1m", "5m", "1h", "24h"]
DURATION_UNITS = ["s", "m", "h", "d"]


def default_notification_preferences() -> Dict[str, Any]:
    return {
        "cooldown": {
            "enabled": False,
            "duration_value": 1,
            "duration_unit": "h",
        }
    }


@dataclass(frozen=True)
class EditableState:
    """Strategy aggregate as held by the editor between load and save."""
    name: str = "New Strategy"
    description: str = ""
    schedule: str = "1m"
    assets: Tuple[str, ...] = ()
    notification_preferences: Dict[str, Any] = field(
        default_factory=default_notification_preferences)
    conditions: Tuple[Condition, ...] = ()
    logic_tree: LogicGroup = field(default_factory=lambda: LogicGroup(id=new_id()))
    status: StrategyStatus = StrategyStatus.PAUSED
    id: Optional[str] = None
    last_run_at: Optional[str] = None
    trigger_count: Optional[int] = None
