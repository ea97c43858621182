"""Condition Editor — type selector, label, and per-type payload fields."""

import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from nicegui import ui

from strategy_model import Condition, ConditionType, WalletFlowPayload
from ui.services.list_model import condition_summary, condition_title


# ---------------------------------------------------------------------------
# Option tables
# ---------------------------------------------------------------------------
CONDITION_TYPE_OPTIONS = {
    ConditionType.TECHNICAL_INDICATOR.value: "Technical Indicator",
    ConditionType.PRICE_ALERT.value: "Price Alert",
    ConditionType.VOLUME_ALERT.value: "Volume Alert",
    ConditionType.WALLET_FLOW.value: "Wallet Flow",
    ConditionType.EXCHANGE_FLOW.value: "Exchange Flow",
    ConditionType.CUSTOM.value: "Custom",
}

INDICATOR_OPTIONS = {
    "rsi": "RSI",
    "macd": "MACD",
    "ema": "EMA",
    "sma": "SMA",
    "bollinger": "Bollinger Bands",
}

OPERATOR_OPTIONS = {
    "lt": "Less than (<)",
    "gt": "Greater than (>)",
    "cross_above": "Cross Above",
    "cross_below": "Cross Below",
}

TIMEFRAME_OPTIONS = {
    "1m": "1 Minute",
    "5m": "5 Minutes",
    "15m": "15 Minutes",
    "30m": "30 Minutes",
    "1h": "1 Hour",
    "4h": "4 Hours",
    "1d": "1 Day",
}

PRICE_DIRECTION_OPTIONS = {"above": "Above", "below": "Below"}
FLOW_DIRECTION_OPTIONS = {"inflow": "Inflow", "outflow": "Outflow"}
ENTITY_TYPE_OPTIONS = {"individual": "Specific Address", "group": "Labeled Group"}
WALLET_GROUP_OPTIONS = {
    "smart_money": "Smart Money Whales",
    "exchange_wallets": "Exchange Wallets",
}
EXCHANGE_OPTIONS = {
    "binance": "Binance",
    "coinbase": "Coinbase",
    "okx": "OKX",
    "kraken": "Kraken",
    "bybit": "Bybit",
}
FLOW_TYPE_OPTIONS = {"deposit": "Deposit", "withdrawal": "Withdrawal", "net_flow": "Net Flow"}

# (payload key, label, widget, options); widget is select | number | asset | text
FieldSpec = Tuple[str, str, str, Optional[Dict[str, str]]]

_FIELD_LAYOUTS: Dict[ConditionType, List[FieldSpec]] = {
    ConditionType.TECHNICAL_INDICATOR: [
        ("indicator", "Indicator", "select", INDICATOR_OPTIONS),
        ("operator", "Operator", "select", OPERATOR_OPTIONS),
        ("value", "Value", "number", None),
        ("timeframe", "Timeframe", "select", TIMEFRAME_OPTIONS),
        ("asset", "Asset", "asset", None),
    ],
    ConditionType.PRICE_ALERT: [
        ("asset", "Asset", "asset", None),
        ("direction", "Direction", "select", PRICE_DIRECTION_OPTIONS),
        ("target_price", "Target Price", "number", None),
    ],
    ConditionType.VOLUME_ALERT: [
        ("asset", "Asset", "asset", None),
        ("timeframe", "Timeframe", "select", TIMEFRAME_OPTIONS),
        ("operator", "Operator", "select", OPERATOR_OPTIONS),
        ("threshold", "Threshold", "number", None),
    ],
    ConditionType.EXCHANGE_FLOW: [
        ("exchange", "Exchange", "select", EXCHANGE_OPTIONS),
        ("flow_type", "Flow Type", "select", FLOW_TYPE_OPTIONS),
        ("asset", "Asset", "asset", None),
        ("value", "Threshold", "number", None),
    ],
}

# Edits to these keys change which fields are shown
_STRUCTURAL_KEYS = {"entity_type"}


# ---------------------------------------------------------------------------
# Pure helper functions (testable without UI)
# ---------------------------------------------------------------------------

def payload_fields(condition: Condition) -> List[FieldSpec]:
    """Editable fields for a condition's current payload."""
    payload = condition.payload
    if isinstance(payload, WalletFlowPayload):
        if payload.tracks_group:
            target = ("label", "Label Name", "select", WALLET_GROUP_OPTIONS)
        else:
            target = ("address", "Wallet Address", "text", None)
        return [
            ("entity_type", "Entity Type", "select", ENTITY_TYPE_OPTIONS),
            ("direction", "Direction", "select", FLOW_DIRECTION_OPTIONS),
            ("asset", "Asset", "asset", None),
            target,
            ("value", "Min Value (USD)", "number", None),
        ]
    return list(_FIELD_LAYOUTS.get(condition.type, []))


def with_current(options: Dict[str, str], value: Any) -> Dict[str, str]:
    """Keep a loaded value selectable even when it is not a known option."""
    if value in (None, "") or value in options:
        return options
    merged = dict(options)
    merged[value] = str(value)
    return merged


def asset_options(assets: Sequence[str], current: str) -> Dict[str, str]:
    return with_current({a: a for a in assets}, current)


def parse_custom_fields(text: str) -> Optional[Dict[str, Any]]:
    """JSON object from the custom payload editor, or None if invalid."""
    try:
        data = json.loads(text or "{}")
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# UI rendering
# ---------------------------------------------------------------------------

def render_condition_editor(
    condition: Condition,
    callbacks: Dict[str, Callable],
    assets: Sequence[str],
    on_change: Callable,
    compact: bool = False,
):
    """Render an editor for one condition.

    ``callbacks`` are the node callbacks (``on_update``, ``on_remove``);
    ``on_change`` re-renders the page after edits that change the layout.
    """
    on_update = callbacks.get("on_update")
    on_remove = callbacks.get("on_remove")
    readonly = on_update is None

    def update(patch, structural=False):
        if readonly:
            return
        on_update(patch)
        if structural:
            on_change()

    def remove():
        if on_remove:
            on_remove()
            on_change()

    border = "" if condition.enabled else " opacity-60"
    with ui.column().classes("w-full gap-1" + border):
        with ui.row().classes("w-full items-center gap-2 no-wrap"):
            ui.select(
                options=CONDITION_TYPE_OPTIONS,
                value=condition.type.value,
                label="Type",
                on_change=lambda e: update({"type": e.value}, structural=True),
            ).classes("w-44").props("dense")
            ui.switch(
                value=condition.enabled,
                on_change=lambda e: update({"enabled": e.value}),
            ).props("dense").tooltip("Enabled")
            ui.space()
            if on_remove:
                ui.button(icon="close", on_click=remove).props(
                    "flat dense round size=sm color=negative")

        if not compact:
            label_input = ui.input(
                value=condition.label,
                label="Label (Optional)",
                placeholder="e.g. RSI Dip Condition",
            ).classes("w-full").props("dense")
            label_input.on("change", lambda e: update({"label": e.args}))

        if condition.type is ConditionType.CUSTOM:
            _render_custom_fields(condition, update)
        else:
            with ui.row().classes("w-full items-center gap-2 flex-wrap"):
                for key, label, widget, options in payload_fields(condition):
                    _render_field(condition, key, label, widget, options, assets, update)

        ui.label(f"{condition_title(condition)}: {condition_summary(condition)}").classes(
            "text-xs text-gray-400 italic mt-1")


def _render_field(condition, key, label, widget, options, assets, update):
    value = getattr(condition.payload, key)
    structural = key in _STRUCTURAL_KEYS

    def on_select(e, k=key):
        update({"payload": {k: e.value}}, structural=structural)

    def on_input(e, k=key, upper=False):
        val = e.args if e.args is not None else ""
        if upper and isinstance(val, str):
            val = val.upper()
        update({"payload": {k: val}})

    if widget == "select":
        ui.select(
            options=with_current(options, value),
            value=value or None,
            label=label,
            on_change=on_select,
        ).classes("w-40").props("dense")
    elif widget == "number":
        num = ui.number(value=value, label=label).classes("w-28").props("dense")
        num.on("change", lambda e, k=key: update(
            {"payload": {k: e.args if e.args is not None else 0}}))
    elif widget == "asset" and assets:
        ui.select(
            options=asset_options(assets, value),
            value=value or None,
            label=label,
            on_change=on_select,
        ).classes("w-28").props("dense")
    else:
        upper = widget == "asset"
        placeholder = "e.g. BTC" if upper else "0x..."
        field = ui.input(value=value, label=label, placeholder=placeholder).classes(
            "w-40").props("dense")
        field.on("change", lambda e, k=key, u=upper: on_input(e, k, u))


def _render_custom_fields(condition, update):
    text = json.dumps(condition.payload.fields, indent=2, sort_keys=True)
    area = ui.textarea(value=text, label="Payload (JSON)").classes(
        "w-full monospace").props("outlined dense")

    def on_custom_change(e):
        data = parse_custom_fields(e.args)
        if data is None:
            ui.notify("Custom payload must be a JSON object", type="warning")
            return
        update({"payload": data})

    area.on("change", on_custom_change)
