"""Global Settings — name, description, schedule, assets, notification cooldown."""

from typing import Callable

from nicegui import ui

from strategy_model import DURATION_UNITS, SCHEDULE_OPTIONS

SCHEDULE_LABELS = {"1m": "1 Min", "5m": "5 Min", "1h": "1 Hour", "24h": "Daily"}
AVAILABLE_ASSETS = ["BTC", "ETH", "SOL", "AVAX", "MATIC"]
DURATION_UNIT_LABELS = {"s": "Seconds", "m": "Minutes", "h": "Hours", "d": "Days"}


def render_global_settings(session, on_change: Callable):
    """Render the strategy-level settings card."""
    prefs = session.notification_preferences
    cooldown = prefs.get("cooldown", {})

    with ui.card().classes("w-full p-4 accent-cyan"):
        ui.label("Global Settings").classes("text-lg font-bold")
        with ui.row().classes("w-full gap-4 flex-wrap"):
            name = ui.input(
                value=session.name,
                label="Strategy Name",
                placeholder="e.g. BTC Breakout Strategy",
            ).classes("w-64").props("dense")
            name.on("change", lambda e: session.set_field("name", e.args or ""))

            desc = ui.input(
                value=session.description,
                label="Description",
                placeholder="e.g. This strategy identifies breakout opportunities...",
            ).classes("flex-grow").props("dense")
            desc.on("change", lambda e: session.set_field("description", e.args or ""))

            ui.select(
                options={k: SCHEDULE_LABELS.get(k, k) for k in SCHEDULE_OPTIONS},
                value=session.schedule if session.schedule in SCHEDULE_OPTIONS else None,
                label="Schedule",
                on_change=lambda e: session.set_field("schedule", e.value),
            ).classes("w-32").props("dense")

        # Assets
        ui.label("Assets").classes("text-sm font-bold mt-2")
        with ui.row().classes("items-center gap-2 flex-wrap"):
            for asset in session.assets:
                with ui.chip(asset, removable=True) as chip:
                    chip.on("remove", lambda a=asset: _remove_asset(session, a, on_change))
            remaining = [a for a in AVAILABLE_ASSETS if a not in session.assets]
            if remaining:
                ui.select(
                    options=remaining,
                    label="+ Add Asset",
                    on_change=lambda e: _add_asset(session, e.value, on_change),
                ).classes("w-32").props("dense")

        # Notifications
        ui.separator()
        ui.label("Notifications").classes("text-sm font-bold mt-2")
        with ui.row().classes("items-center gap-4"):
            ui.switch(
                "Cooldown",
                value=bool(cooldown.get("enabled", False)),
                on_change=lambda e: _set_cooldown(session, on_change, enabled=e.value),
            )
            if cooldown.get("enabled"):
                dv = ui.number(
                    value=cooldown.get("duration_value", 1),
                    label="Duration Value",
                    min=1,
                ).classes("w-32").props("dense")
                dv.on("change", lambda e: session.set_cooldown(
                    duration_value=_positive_int(e.args)))
                ui.select(
                    options={u: DURATION_UNIT_LABELS[u] for u in DURATION_UNITS},
                    value=cooldown.get("duration_unit", "h"),
                    label="Duration Unit",
                    on_change=lambda e: session.set_cooldown(duration_unit=e.value),
                ).classes("w-32").props("dense")


def _positive_int(value, default: int = 1) -> int:
    try:
        n = int(float(value))
    except (ValueError, TypeError):
        return default
    return n if n > 0 else default


def _add_asset(session, asset, on_change):
    if asset:
        session.add_asset(asset)
        on_change()


def _remove_asset(session, asset, on_change):
    session.remove_asset(asset)
    on_change()


def _set_cooldown(session, on_change, **changes):
    session.set_cooldown(**changes)
    on_change()
