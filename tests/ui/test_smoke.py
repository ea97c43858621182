"""UI smoke tests — imports and the builder session cache, no server."""

import asyncio
import os
import sys

import pytest

# Ensure project root on path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))


@pytest.fixture
def clean_sessions(monkeypatch):
    """Give each test an empty builder session cache."""
    import ui.pages.strategy_builder as sb
    monkeypatch.setattr(sb, "_sessions", {})
    return sb


def test_import_ui_app():
    """UI module imports without side effects."""
    import ui.app  # noqa: F401


def test_import_services():
    """Service modules import cleanly."""
    import ui.services.editor_session  # noqa: F401
    import ui.services.graph_projector  # noqa: F401
    import ui.services.list_model  # noqa: F401
    import ui.services.strategy_client  # noqa: F401


def test_import_components():
    import ui.components.condition_editor  # noqa: F401
    import ui.components.flow_canvas  # noqa: F401
    import ui.components.global_settings  # noqa: F401
    import ui.components.logic_tree_list  # noqa: F401


def test_new_builder_session(clean_sessions):
    key = clean_sessions.new_builder_session()
    assert key.startswith("draft-")
    session = clean_sessions._sessions[key]
    assert session.name == "New Strategy"
    assert session.logic_tree.id
    assert session.alive


def test_close_session(clean_sessions):
    key = clean_sessions.new_builder_session()
    session = clean_sessions._sessions[key]
    clean_sessions.close_session(key)
    assert key not in clean_sessions._sessions
    assert not session.alive
    clean_sessions.close_session(key)


def test_replacing_session_closes_previous(clean_sessions):
    from strategy_model import EditableState
    from ui.services.editor_session import EditorSession

    first = EditorSession(EditableState())
    second = EditorSession(EditableState())
    clean_sessions._store("s-1", first)
    clean_sessions._store("s-1", second)
    assert not first.alive
    assert second.alive
    assert clean_sessions._sessions["s-1"] is second


def test_session_cache_evicts_least_recently_used(clean_sessions, monkeypatch):
    from strategy_model import EditableState
    from ui.services.editor_session import EditorSession

    monkeypatch.setattr(clean_sessions, "STUDIO_MAX_SESSIONS", 2)
    first, second, third = (EditorSession(EditableState()) for _ in range(3))
    clean_sessions._store("a", first)
    clean_sessions._store("b", second)
    assert clean_sessions._touch("a") is first
    clean_sessions._store("c", third)
    assert list(clean_sessions._sessions) == ["a", "c"]
    assert not second.alive
    assert first.alive and third.alive


def test_drafts_do_not_grow_without_bound(clean_sessions, monkeypatch):
    monkeypatch.setattr(clean_sessions, "STUDIO_MAX_SESSIONS", 3)
    keys = [clean_sessions.new_builder_session() for _ in range(5)]
    assert list(clean_sessions._sessions) == keys[-3:]


class _Notes:
    def __init__(self):
        self.messages = []

    def __call__(self, message, type="info", **kwargs):
        self.messages.append((type, message))


class _SlowClient:
    """Strategy client whose every call times out."""

    async def get_strategy(self, strategy_id):
        raise asyncio.TimeoutError()

    async def update_strategy(self, strategy_id, payload):
        raise asyncio.TimeoutError()


def test_load_session_timeout_notifies(clean_sessions, monkeypatch):
    notes = _Notes()
    monkeypatch.setattr(clean_sessions, "StrategyClient", _SlowClient)
    monkeypatch.setattr(clean_sessions.ui, "notify", notes)
    assert asyncio.run(clean_sessions._load_session("s-1")) is None
    assert notes.messages[-1][0] == "negative"
    assert clean_sessions._sessions == {}


def test_toggle_timeout_notifies(monkeypatch):
    import ui.pages.strategy_list as sl

    notes = _Notes()
    refreshed = []

    async def refresh_table():
        refreshed.append(True)

    monkeypatch.setattr(sl.ui, "notify", notes)
    by_id = {"s-1": {"id": "s-1", "name": "A", "status": "active"}}
    asyncio.run(sl._do_toggle(_SlowClient(), by_id, "s-1", refresh_table))
    assert [t for t, _ in notes.messages] == ["negative"]
    assert refreshed == []
