"""Logic Tree List — the simple (non-canvas) view of the logic tree."""

from typing import Callable

from nicegui import ui

from strategy_model import ConditionType, LogicOperator
from ui.components.condition_editor import CONDITION_TYPE_OPTIONS, render_condition_editor
from ui.services.list_model import (
    ENTRY_CONDITION,
    ENTRY_GROUP,
    ENTRY_MISSING,
    ListEntry,
    build_list_model,
)

GROUP_OPERATOR_OPTIONS = {
    LogicOperator.AND.value: "AND (All)",
    LogicOperator.OR.value: "OR (Any)",
}


def render_logic_tree_list(session, on_change: Callable):
    """Render the whole tree for ``session``; edits go through its mutators."""
    model = build_list_model(session.registry, session.logic_tree, session)
    with ui.column().classes("w-full gap-2"):
        _render_entry(model, session.assets, on_change)


def _render_entry(entry: ListEntry, assets, on_change):
    if entry.kind == ENTRY_GROUP:
        _render_group(entry, assets, on_change)
    elif entry.kind == ENTRY_MISSING:
        _render_missing(entry, on_change)
    elif entry.kind == ENTRY_CONDITION:
        with ui.card().classes("w-full p-3 accent-blue"):
            render_condition_editor(entry.condition, entry.callbacks, assets, on_change)


def _render_group(entry: ListEntry, assets, on_change):
    cb = entry.callbacks
    group = entry.group

    def set_operator(e):
        cb["on_update_operator"](e.value)
        on_change()

    def add_condition(condition_type):
        cb["on_add_condition"](ConditionType(condition_type))
        on_change()

    def add_group():
        cb["on_add_group"]()
        on_change()

    def remove():
        cb["on_remove"]()
        on_change()

    # Root renders inline; nested groups get an indented card
    container = ui.column().classes("w-full gap-2") if entry.is_root else \
        ui.card().classes("w-full p-3 accent-purple").style(
            f"margin-left: {min(entry.depth, 6) * 12}px")

    with container:
        with ui.row().classes("w-full items-center gap-2"):
            ui.label("Root" if entry.is_root else "Group").classes("text-sm font-bold")
            ui.select(
                options=GROUP_OPERATOR_OPTIONS,
                value=group.operator.value,
                on_change=set_operator if cb else None,
            ).classes("w-32").props("dense")
            ui.space()
            if cb:
                with ui.button("Add Condition", icon="add").props("flat dense no-caps"):
                    with ui.menu():
                        for value, label in CONDITION_TYPE_OPTIONS.items():
                            ui.menu_item(label, on_click=lambda v=value: add_condition(v))
                ui.button("Add Group", icon="account_tree",
                          on_click=add_group).props("flat dense no-caps")
                ui.button(icon="delete_sweep" if entry.is_root else "close",
                          on_click=remove).props(
                    "flat dense round size=sm color=negative").tooltip(
                    "Clear all" if entry.is_root else "Remove group")

        if not entry.children:
            ui.label("Empty group. Add a condition or a nested group.").classes(
                "text-xs text-gray-400 italic")
        for child in entry.children:
            _render_entry(child, assets, on_change)


def _render_missing(entry: ListEntry, on_change):
    ref = entry.key.rsplit(":", 1)[-1]
    with ui.card().classes("w-full p-3 accent-red"):
        with ui.row().classes("w-full items-center gap-2"):
            ui.icon("error", color="negative")
            ui.label("Missing Condition").classes("text-sm font-bold text-red-400")
            ui.label(ref).classes("text-xs text-gray-400 monospace")
            ui.space()
            if entry.callbacks.get("on_remove"):
                ui.button(icon="close",
                          on_click=lambda: (entry.callbacks["on_remove"](), on_change())).props(
                    "flat dense round size=sm color=negative")
