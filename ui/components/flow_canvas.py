"""Flow Canvas — positioned node cards with elbow connectors."""

from typing import Callable

from nicegui import ui

from strategy_model import ConditionType
from ui.components.condition_editor import CONDITION_TYPE_OPTIONS, render_condition_editor
from ui.components.logic_tree_list import GROUP_OPERATOR_OPTIONS
from ui.services.graph_projector import (
    NODE_CONDITION,
    NODE_GROUP,
    NODE_HEIGHT,
    NODE_WIDTH,
    FlowNode,
    GraphProjection,
    elbow_segments,
    project_graph,
)
from ui.services.list_model import condition_summary, condition_title

CANVAS_PADDING = 24


def render_flow_canvas(session, on_change: Callable):
    """Render the visual canvas for ``session``."""
    projection = project_graph(session.registry, session.logic_tree, session)

    with ui.element("div").classes("w-full overflow-auto rounded").style(
            "border: 1px solid var(--border); background: var(--bg-surface)"):
        canvas = ui.element("div").style(
            "position: relative; "
            f"width: {projection.width + CANVAS_PADDING * 2}px; "
            f"height: {projection.height + CANVAS_PADDING * 2}px")
        with canvas:
            _render_edges(projection)
            for node in projection.nodes:
                _render_node(node, session.assets, on_change)


def _place(x: int, y: int) -> str:
    return (f"position: absolute; left: {x + CANVAS_PADDING}px; "
            f"top: {y + CANVAS_PADDING}px")


def _render_edges(projection: GraphProjection):
    by_id = {n.id: n for n in projection.nodes}
    for edge in projection.edges:
        source, target = by_id.get(edge.source), by_id.get(edge.target)
        if source is None or target is None:
            continue
        for left, top, width, height in elbow_segments(source, target):
            ui.element("div").style(
                _place(left, top)
                + f"; width: {width}px; height: {height}px; background: var(--text-dim)")


def _render_node(node: FlowNode, assets, on_change: Callable):
    accent = {NODE_GROUP: "accent-purple", NODE_CONDITION: "accent-blue"}.get(
        node.kind, "accent-red")
    card = ui.card().classes(f"p-2 gap-1 {accent}").style(
        _place(node.x, node.y)
        + f"; width: {NODE_WIDTH}px; height: {NODE_HEIGHT}px; overflow: hidden")
    with card:
        if node.kind == NODE_GROUP:
            _group_node(node, on_change)
        elif node.kind == NODE_CONDITION:
            _condition_node(node, assets, on_change)
        else:
            _missing_node(node, on_change)


def _run(callback: Callable, on_change: Callable, *args):
    callback(*args)
    on_change()


def _group_node(node: FlowNode, on_change: Callable):
    cb = node.callbacks
    with ui.row().classes("w-full items-center gap-1 no-wrap"):
        ui.label("Root" if node.is_root else "Group").classes("text-sm font-bold")
        ui.select(
            options=GROUP_OPERATOR_OPTIONS,
            value=node.group.operator.value,
            on_change=(lambda e: _run(cb["on_update_operator"], on_change, e.value))
            if cb else None,
        ).classes("w-28").props("dense")
        ui.space()
        if cb:
            ui.button(icon="delete_sweep" if node.is_root else "close",
                      on_click=lambda: _run(cb["on_remove"], on_change)).props(
                "flat dense round size=sm color=negative")
    ui.label(f"{len(node.group.children)} item(s)").classes("text-xs text-gray-400")
    if cb:
        with ui.row().classes("gap-1"):
            with ui.button("Condition", icon="add").props("flat dense no-caps size=sm"):
                with ui.menu():
                    for value, label in CONDITION_TYPE_OPTIONS.items():
                        ui.menu_item(label, on_click=lambda v=value: _run(
                            cb["on_add_condition"], on_change, ConditionType(v)))
            ui.button("Group", icon="account_tree",
                      on_click=lambda: _run(cb["on_add_group"], on_change)).props(
                "flat dense no-caps size=sm")


def _condition_node(node: FlowNode, assets, on_change: Callable):
    cb = node.callbacks
    condition = node.condition

    with ui.dialog() as dialog, ui.card().classes("w-[640px] max-w-full"):
        render_condition_editor(condition, cb, assets, on_change)
        with ui.row().classes("w-full justify-end"):
            ui.button("Done", on_click=lambda: (dialog.close(), on_change())).props("flat")

    with ui.row().classes("w-full items-center gap-1 no-wrap"):
        ui.label(condition_title(condition)).classes("text-sm font-bold truncate")
        ui.space()
        if cb:
            ui.button(icon="edit", on_click=dialog.open).props("flat dense round size=sm")
            ui.button(icon="close", on_click=lambda: _run(cb["on_remove"], on_change)).props(
                "flat dense round size=sm color=negative")
    ui.label(condition_summary(condition)).classes("text-xs monospace")
    if not condition.enabled:
        ui.badge("disabled", color="grey")


def _missing_node(node: FlowNode, on_change: Callable):
    cb = node.callbacks
    with ui.row().classes("w-full items-center gap-1 no-wrap"):
        ui.icon("error", color="negative")
        ui.label("Missing Condition").classes("text-sm font-bold text-red-400")
        ui.space()
        if cb:
            ui.button(icon="close", on_click=lambda: _run(cb["on_remove"], on_change)).props(
                "flat dense round size=sm color=negative")
    ui.label(node.id).classes("text-xs text-gray-400 monospace truncate")
