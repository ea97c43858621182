"""Strategy Studio — NiceGUI entry point."""

import logging
import sys
import os
from typing import Final

# Ensure project root is on path for top-level module imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from nicegui import ui

from ui.pages.strategy_list import strategy_list_page
from ui.pages.strategy_builder import strategy_builder_page

STUDIO_HOST: Final[str] = os.environ.get("STUDIO_HOST", "0.0.0.0")
STUDIO_PORT: Final[int] = int(os.environ.get("STUDIO_PORT", "8080"))

# Dark theme CSS
DARK_CSS = """
@import url('https://fonts.googleapis.com/css2?family=JetBrains+Mono:wght@400;500&family=Inter:wght@400;500;600;700&display=swap');
:root {
    --bg-primary: #0a0f1a;
    --bg-panel: #0d1117;
    --bg-surface: #131a27;
    --border: #1e293b;
    --blue: #3b82f6;
    --green: #10b981;
    --amber: #f59e0b;
    --red: #ef4444;
    --purple: #8b5cf6;
    --text: #e2e8f0;
    --text-dim: #94a3b8;
}
body {
    background-color: var(--bg-primary) !important;
    color: var(--text) !important;
    font-family: 'Inter', system-ui, sans-serif;
}
.nicegui-content { background-color: var(--bg-primary) !important; }
.q-card {
    background-color: var(--bg-panel) !important;
    color: var(--text) !important;
    border: 1px solid var(--border) !important;
    border-radius: 12px !important;
}
.q-table {
    background-color: var(--bg-panel) !important;
    color: var(--text) !important;
    border: 1px solid var(--border) !important;
    border-radius: 10px !important;
}
.q-table thead th {
    color: var(--text-dim) !important;
    font-size: 11px !important;
    text-transform: uppercase !important;
}
.q-table tbody tr { cursor: pointer; }
.q-field__control { background-color: var(--border) !important; border-radius: 8px !important; }
.q-field__label { color: var(--text-dim) !important; }
.q-menu { background-color: var(--bg-surface); border: 1px solid var(--border); }
.q-item { color: var(--text); }
.q-btn { border-radius: 8px !important; }
.q-btn--disabled { opacity: 0.35 !important; }
.q-separator { background: var(--border) !important; }
.monospace { font-family: 'JetBrains Mono', 'Fira Code', monospace; }
.unsaved-dot::after { content: '●'; color: var(--amber); margin-left: 4px; font-size: 10px; }
/* Node accents: groups purple, conditions blue, missing red */
.accent-blue { border-left: 3px solid var(--blue) !important; }
.accent-purple { border-left: 3px solid var(--purple) !important; }
.accent-red { border-left: 3px solid var(--red) !important; }
.accent-cyan { border-left: 3px solid #06b6d4 !important; }
"""


def _head():
    ui.add_head_html(f"<style>{DARK_CSS}</style>")


@ui.page("/")
def index():
    _head()
    strategy_list_page()


@ui.page("/builder")
async def builder_new():
    _head()
    await strategy_builder_page()


@ui.page("/builder/{key}")
async def builder(key: str):
    _head()
    await strategy_builder_page(key)


@ui.page("/strategies/{strategy_id}/edit")
def edit_strategy(strategy_id: str):
    ui.navigate.to(f"/builder/{strategy_id}")


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ui.run(
        title="Strategy Studio",
        host=STUDIO_HOST,
        port=STUDIO_PORT,
        dark=True,
        reload=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
