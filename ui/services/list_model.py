"""List view model — the non-visual rendering of the canonical tree.

Walks (registry, tree) directly without coordinates: root inline, nested
groups indented, leaves as condition editors, dangling refs as an explicit
missing-condition entry. No NiceGUI import here so the CLI can reuse it.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from strategy_model import (
    Condition,
    ConditionRef,
    ConditionType,
    LogicGroup,
    LogicNode,
)
from ui.services.node_actions import condition_callbacks, group_callbacks, missing_callbacks

ENTRY_GROUP = "group"
ENTRY_CONDITION = "condition"
ENTRY_MISSING = "missing"


@dataclass
class ListEntry:
    kind: str
    key: str
    depth: int
    group: Optional[LogicGroup] = None
    condition: Optional[Condition] = None
    children: List["ListEntry"] = field(default_factory=list)
    callbacks: Dict[str, Callable] = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.kind == ENTRY_GROUP and self.depth == 0


# ---------------------------------------------------------------------------
# Pure helper functions (testable without UI)
# ---------------------------------------------------------------------------

def _fmt(value, fallback) -> str:
    if value is None or value == "":
        return str(fallback)
    return str(value)


def condition_summary(condition: Condition) -> str:
    """One-line human summary of a condition's payload."""
    p = condition.payload
    t = condition.type
    if t is ConditionType.TECHNICAL_INDICATOR:
        return f"{_fmt(p.indicator, 'rsi').upper()} {_fmt(p.operator, '<')} {_fmt(p.value, 30)}"
    if t is ConditionType.PRICE_ALERT:
        return f"{_fmt(p.asset, 'Asset')} {_fmt(p.direction, 'crosses')} {_fmt(p.target_price, 0)}"
    if t is ConditionType.VOLUME_ALERT:
        return f"Volume > {_fmt(p.threshold, 0)}"
    if t is ConditionType.WALLET_FLOW:
        flow = "Inflow" if p.direction == "inflow" else "Outflow"
        target = p.label if p.tracks_group else (p.address or "Wallet")
        return f"{flow} to {_fmt(target, 'Wallet')} > {_fmt(p.value, 0)} {p.asset}".rstrip()
    if t is ConditionType.EXCHANGE_FLOW:
        return f"{_fmt(p.exchange, 'Exchange')} {_fmt(p.flow_type, 'Net Flow')} > {_fmt(p.value, 0)} {p.asset}".rstrip()
    return "Custom Condition"


def condition_title(condition: Condition) -> str:
    return condition.label or condition.type.value.replace("_", " ").title()


def build_list_model(registry: Sequence[Condition], tree: LogicGroup,
                     actions=None) -> ListEntry:
    """Nested list entries for the tree; callbacks bound when ``actions`` given."""
    by_id = {c.id: c for c in registry}

    def walk(node: LogicNode, depth: int, position: str) -> ListEntry:
        if isinstance(node, ConditionRef):
            condition = by_id.get(node.ref)
            if condition is None:
                return ListEntry(
                    kind=ENTRY_MISSING, key=f"{position}:{node.ref}", depth=depth,
                    callbacks=missing_callbacks(actions, node.ref),
                )
            return ListEntry(
                kind=ENTRY_CONDITION, key=f"{position}:{node.ref}", depth=depth,
                condition=condition,
                callbacks=condition_callbacks(actions, node.ref),
            )
        entry = ListEntry(
            kind=ENTRY_GROUP, key=f"{position}:{node.id}", depth=depth, group=node,
            callbacks=group_callbacks(actions, node.id, is_root=depth == 0),
        )
        entry.children = [
            walk(child, depth + 1, f"{position}.{i}")
            for i, child in enumerate(node.children)
        ]
        return entry

    return walk(tree, 0, "0")


def format_outline(entry: ListEntry, indent: str = "  ") -> List[str]:
    """Plain-text outline of a list model, one line per entry."""
    pad = indent * entry.depth
    if entry.kind == ENTRY_GROUP:
        lines = [f"{pad}{entry.group.operator.value} GROUP"]
        if not entry.children:
            lines.append(f"{pad}{indent}(empty group)")
        for child in entry.children:
            lines.extend(format_outline(child, indent))
        return lines
    if entry.kind == ENTRY_MISSING:
        ref = entry.key.rsplit(":", 1)[-1]
        return [f"{pad}! Missing condition (ref {ref})"]
    c = entry.condition
    state = "" if c.enabled else " [disabled]"
    return [f"{pad}- {condition_title(c)}: {condition_summary(c)}{state}"]
