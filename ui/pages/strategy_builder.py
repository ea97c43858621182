"""Strategy Builder — global settings plus the visual / simple logic editor."""

import asyncio
import logging
import os
from typing import Any, Dict, Final, Mapping, Optional

import aiohttp
from nicegui import ui

from strategy_codec import StrategyFormatError
from strategy_model import ConditionType, EditableState, new_id
from ui.components.condition_editor import CONDITION_TYPE_OPTIONS
from ui.components.flow_canvas import render_flow_canvas
from ui.components.global_settings import render_global_settings
from ui.components.logic_tree_list import render_logic_tree_list
from ui.services.editor_session import VIEW_LIST, VIEW_VISUAL, EditorSession
from ui.services.strategy_client import (
    StrategyClient,
    StrategyNotFoundError,
    StrategyServiceError,
)

logger = logging.getLogger(__name__)

# Module-level session cache: keeps EditorSession alive across the
# ui.navigate.to() re-renders that follow structural edits.
_sessions: Dict[str, EditorSession] = {}

STUDIO_MAX_SESSIONS: Final[int] = int(os.environ.get("STUDIO_MAX_SESSIONS", "32"))

VIEW_OPTIONS = {VIEW_VISUAL: "Visual", VIEW_LIST: "Simple"}


def _builder_url(key: str) -> str:
    return f"/builder/{key}"


def _store(key: str, session: EditorSession) -> None:
    previous = _sessions.pop(key, None)
    if previous is not None and previous is not session:
        previous.close()
    _sessions[key] = session
    # least recently used first
    while len(_sessions) > STUDIO_MAX_SESSIONS:
        stale_key = next(iter(_sessions))
        logger.info("Evicting builder session %s", stale_key)
        _sessions.pop(stale_key).close()


def _touch(key: str) -> Optional[EditorSession]:
    session = _sessions.pop(key, None)
    if session is not None:
        _sessions[key] = session
    return session


def new_builder_session(client: Optional[StrategyClient] = None) -> str:
    """Start editing a fresh strategy; returns its session key."""
    key = f"draft-{new_id()}"
    _store(key, EditorSession(EditableState(), client=client or StrategyClient(),
                              notify=ui.notify))
    return key


def open_in_builder(payload: Mapping[str, Any],
                    client: Optional[StrategyClient] = None) -> None:
    """Load a wire payload into a new session and navigate to the builder."""
    try:
        session = EditorSession.from_payload(payload, client=client or StrategyClient(),
                                             notify=ui.notify)
    except StrategyFormatError as e:
        logger.warning("Cannot open strategy in builder: %s", e)
        ui.notify(f"Cannot open strategy: {e}", type="negative")
        return
    key = session.strategy_id or f"draft-{new_id()}"
    _store(key, session)
    ui.navigate.to(_builder_url(key))


def close_session(key: str) -> None:
    session = _sessions.pop(key, None)
    if session is not None:
        session.close()


async def _load_session(key: str) -> Optional[EditorSession]:
    client = StrategyClient()
    try:
        payload = await client.get_strategy(key)
        session = EditorSession.from_payload(payload, client=client, notify=ui.notify)
    except StrategyNotFoundError:
        return None
    except (StrategyServiceError, StrategyFormatError, aiohttp.ClientError,
            asyncio.TimeoutError) as e:
        logger.warning("Failed to load strategy %s: %s", key, e)
        ui.notify(f"Failed to load strategy: {e}", type="negative")
        return None
    _store(key, session)
    return session


async def strategy_builder_page(key: Optional[str] = None):
    """Render the builder for session ``key`` (or a backend strategy id)."""
    if key is None:
        ui.navigate.to(_builder_url(new_builder_session()))
        return

    session = _touch(key)
    if session is None and not key.startswith("draft-"):
        session = await _load_session(key)
    if session is None:
        ui.label("Strategy not found").classes("text-red-400 text-xl p-8")
        ui.button("Back to list", on_click=lambda: ui.navigate.to("/"))
        return

    def rerender():
        ui.navigate.to(_builder_url(key))

    with ui.column().classes("w-full max-w-7xl mx-auto p-4"):
        _render_header(key, session, rerender)
        render_global_settings(session, rerender)
        _render_logic_panel(session, rerender)


def _render_header(key: str, session: EditorSession, rerender):
    def go_back():
        close_session(key)
        ui.navigate.to("/")

    with ui.row().classes("w-full items-center justify-between mb-2"):
        with ui.row().classes("items-center gap-4"):
            ui.button(icon="arrow_back", on_click=go_back).props("flat dense round")
            title = ui.label(session.name or "Untitled").classes("text-xl font-bold")
            if session.unsaved:
                title.classes("unsaved-dot")
            ui.badge(session.status.value).props("color=grey outline")
            if session.trigger_count is not None:
                ui.label(f"{session.trigger_count} triggers").classes(
                    "text-sm text-gray-400")

        with ui.row().classes("gap-2"):
            def undo():
                session.undo()
                rerender()

            def redo():
                session.redo()
                rerender()

            undo_btn = ui.button(icon="undo", on_click=undo).props("flat dense")
            undo_btn.tooltip("Undo")
            if not session.can_undo:
                undo_btn.props("disable")
            redo_btn = ui.button(icon="redo", on_click=redo).props("flat dense")
            redo_btn.tooltip("Redo")
            if not session.can_redo:
                redo_btn.props("disable")

            save_btn = ui.button("Save Strategy", icon="save").props("color=positive")

            async def do_save():
                save_btn.props("loading")
                try:
                    result = await session.save()
                finally:
                    save_btn.props(remove="loading")
                if result is not None:
                    rerender()

            save_btn.on_click(do_save)


def _render_logic_panel(session: EditorSession, rerender):
    root_id = session.root_id

    def add_condition(condition_type: str):
        session.add_condition_to_group(root_id, ConditionType(condition_type))
        rerender()

    def add_group():
        session.add_group_to_group(root_id)
        rerender()

    def set_view(e):
        session.view_mode = e.value
        rerender()

    with ui.card().classes("w-full p-4 mt-4"):
        with ui.row().classes("w-full items-center gap-2"):
            ui.label("Logic").classes("text-lg font-bold")
            ui.toggle(VIEW_OPTIONS, value=session.view_mode, on_change=set_view).props(
                "dense no-caps")
            ui.space()
            with ui.button("Add Condition", icon="add").props("outline dense no-caps"):
                with ui.menu():
                    for value, label in CONDITION_TYPE_OPTIONS.items():
                        ui.menu_item(label, on_click=lambda v=value: add_condition(v))
            ui.button("Add Group", icon="account_tree", on_click=add_group).props(
                "outline dense no-caps")

        errors = session.validate()
        for err in errors:
            if err.code == "dangling_ref":
                ui.label(err.message).classes("text-xs text-red-400")

        if session.view_mode == VIEW_LIST:
            render_logic_tree_list(session, rerender)
        else:
            render_flow_canvas(session, rerender)
