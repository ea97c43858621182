"""Strategy List — home screen with status filter, search, pause/resume, delete."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from nicegui import ui

from strategy_model import StrategyStatus
from ui.pages.strategy_builder import open_in_builder
from ui.services.strategy_client import StrategyClient, StrategyServiceError

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    StrategyStatus.ACTIVE.value: "positive",
    StrategyStatus.PAUSED.value: "warning",
    StrategyStatus.ARCHIVED.value: "grey",
    StrategyStatus.ERROR.value: "negative",
}

STATUS_FILTER_OPTIONS = ["All"] + [s.value for s in StrategyStatus]


# ---------------------------------------------------------------------------
# Pure helper functions (testable without UI)
# ---------------------------------------------------------------------------

def build_row(strategy: Dict[str, Any]) -> Dict[str, Any]:
    """Display row for one backend strategy."""
    status = strategy.get("status") or StrategyStatus.PAUSED.value
    return {
        "id": strategy.get("id", ""),
        "name": strategy.get("name") or "Untitled",
        "description": strategy.get("description", ""),
        "status": status,
        "status_color": STATUS_COLORS.get(status, "blue"),
        "schedule": strategy.get("schedule", ""),
        "assets": ", ".join(strategy.get("assets") or []),
        "conditions": len(strategy.get("conditions") or []),
        "trigger_count": strategy.get("trigger_count") or 0,
        "last_run_at": strategy.get("last_run_at") or "—",
    }


def filter_rows(rows: List[Dict[str, Any]], search: str) -> List[Dict[str, Any]]:
    needle = (search or "").strip().lower()
    if not needle:
        return rows
    return [r for r in rows
            if needle in r["name"].lower() or needle in r["description"].lower()]


def toggled_status(status: str) -> Optional[str]:
    """Pause an active strategy or resume a paused one; None otherwise."""
    if status == StrategyStatus.ACTIVE.value:
        return StrategyStatus.PAUSED.value
    if status == StrategyStatus.PAUSED.value:
        return StrategyStatus.ACTIVE.value
    return None


# ---------------------------------------------------------------------------
# UI rendering
# ---------------------------------------------------------------------------

def strategy_list_page(client: Optional[StrategyClient] = None):
    """Render the strategy list home screen."""
    client = client or StrategyClient()
    by_id: Dict[str, Dict[str, Any]] = {}

    with ui.column().classes("w-full max-w-7xl mx-auto p-4"):
        with ui.row().classes("w-full items-center justify-between mb-4"):
            ui.label("Strategies").classes("text-2xl font-bold")
            ui.button("New Strategy", icon="add",
                      on_click=lambda: ui.navigate.to("/builder")).props("color=primary")

        with ui.row().classes("w-full gap-4 mb-4 items-end"):
            status_filter = ui.select(STATUS_FILTER_OPTIONS, value="All",
                                      label="Status").classes("w-48")
            search = ui.input(label="Search").classes("w-64")

        table_container = ui.column().classes("w-full")

        async def refresh_table():
            status = None if status_filter.value == "All" else status_filter.value
            try:
                strategies = await client.list_strategies(status=status)
            except (StrategyServiceError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Failed to list strategies: %s", e)
                table_container.clear()
                with table_container:
                    ui.label(f"Failed to load strategies: {e}").classes("text-red-400 py-8")
                return

            by_id.clear()
            by_id.update({s.get("id"): s for s in strategies or [] if s.get("id")})
            rows = filter_rows([build_row(s) for s in by_id.values()], search.value)

            table_container.clear()
            with table_container:
                if not rows:
                    ui.label("No strategies found. Create one to get started.").classes(
                        "text-gray-400 py-8 text-center w-full")
                    return

                columns = [
                    {"name": "name", "label": "Name", "field": "name", "align": "left", "sortable": True},
                    {"name": "status", "label": "Status", "field": "status", "align": "center"},
                    {"name": "schedule", "label": "Schedule", "field": "schedule", "align": "center"},
                    {"name": "assets", "label": "Assets", "field": "assets", "align": "left"},
                    {"name": "conditions", "label": "Conditions", "field": "conditions", "align": "center"},
                    {"name": "trigger_count", "label": "Triggers", "field": "trigger_count", "align": "center", "sortable": True},
                    {"name": "last_run_at", "label": "Last Run", "field": "last_run_at", "align": "left"},
                    {"name": "actions", "label": "", "field": "actions", "align": "center"},
                ]
                table = ui.table(columns=columns, rows=rows, row_key="id").classes(
                    "w-full").props("flat bordered dense")

                table.add_slot("body-cell-status", """
                    <q-td :props="props">
                        <q-badge :color="props.row.status_color" :label="props.row.status" />
                    </q-td>
                """)

                table.add_slot("body-cell-actions", """
                    <q-td :props="props">
                        <q-btn v-if="props.row.status === 'active'"
                               flat dense round icon="pause" size="sm" color="warning"
                               @click.stop="$parent.$emit('toggle', props.row.id)">
                            <q-tooltip>Pause</q-tooltip>
                        </q-btn>
                        <q-btn v-if="props.row.status === 'paused'"
                               flat dense round icon="play_arrow" size="sm" color="positive"
                               @click.stop="$parent.$emit('toggle', props.row.id)">
                            <q-tooltip>Resume</q-tooltip>
                        </q-btn>
                        <q-btn flat dense round icon="edit" size="sm"
                               @click.stop="$parent.$emit('edit', props.row.id)" />
                        <q-btn flat dense round icon="delete" size="sm" color="negative"
                               @click.stop="$parent.$emit('delete', props.row.id)" />
                    </q-td>
                """)

                table.on("edit", lambda e: _do_edit(by_id, e.args, client))
                table.on("toggle", lambda e: _do_toggle(client, by_id, e.args, refresh_table))
                table.on("delete", lambda e: _do_delete(client, by_id, e.args, refresh_table))
                table.on("row-click", lambda e: _do_edit(by_id, e.args[1]["id"], client))

                with ui.row().classes("w-full gap-2 mt-2"):
                    ui.button("Refresh", icon="refresh",
                              on_click=refresh_table).props("flat dense")

        status_filter.on("update:model-value", refresh_table)
        search.on("change", refresh_table)

        ui.timer(0, refresh_table, once=True)


def _do_edit(by_id, strategy_id, client):
    strategy = by_id.get(strategy_id)
    if strategy is None:
        ui.navigate.to(f"/builder/{strategy_id}")
        return
    open_in_builder(strategy, client=client)


async def _do_toggle(client, by_id, strategy_id, refresh_table):
    strategy = by_id.get(strategy_id) or {}
    new_status = toggled_status(strategy.get("status", ""))
    if new_status is None:
        return
    try:
        await client.update_strategy(strategy_id, {"status": new_status})
    except (StrategyServiceError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning("Status change failed for %s: %s", strategy_id, e)
        ui.notify(f"Failed: {e}", type="negative")
        return
    verb = "Resumed" if new_status == StrategyStatus.ACTIVE.value else "Paused"
    ui.notify(f"{verb}: {strategy.get('name', 'strategy')}", type="positive")
    await refresh_table()


async def _do_delete(client, by_id, strategy_id, refresh_table):
    """Delete a strategy after confirmation."""
    name = (by_id.get(strategy_id) or {}).get("name", "strategy")

    with ui.dialog() as dialog, ui.card().classes("w-[400px]"):
        ui.label(f"Delete '{name}'?").classes("text-lg font-bold")
        ui.label("This cannot be undone.").classes("text-sm text-red-400")
        with ui.row().classes("w-full justify-end gap-2 mt-4"):
            ui.button("Cancel", on_click=lambda: dialog.submit(False)).props("flat")
            ui.button("Delete", on_click=lambda: dialog.submit(True)).props(
                "color=negative")

    confirmed = await dialog
    if not confirmed:
        return
    try:
        await client.delete_strategy(strategy_id)
    except (StrategyServiceError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning("Delete failed for %s: %s", strategy_id, e)
        ui.notify(f"Delete failed: {e}", type="negative")
        return
    ui.notify(f"Deleted: {name}", type="info")
    await refresh_table()
