
"""Editor session — one strategy being edited, with its two histories.

The condition registry and the logic tree each have their own History. An
action that touches both (adding or removing a condition) pushes one entry
on each. The session journals which stacks every action pushed, so the
combined undo()/redo() step exactly those stacks and never leave a ref
without its condition. The per-stack methods step one stack alone.
"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import aiohttp

import strategy_codec
from strategy_codec import ValidationError
from strategy_history import History
from strategy_model import (
    Condition,
    ConditionType,
    EditableState,
    LogicGroup,
    LogicOperator,
    StrategyStatus,
)
from strategy_tree import (
    Registry,
    add_condition_to_group,
    add_group_to_group,
    clear_group,
    remove_condition,
    remove_group_from_tree,
    remove_ref_from_tree,
    set_group_operator,
    update_condition,
)
from ui.services.strategy_client import StrategyServiceError

logger = logging.getLogger(__name__)

VIEW_VISUAL = "visual"
VIEW_LIST = "simple"

_METADATA_FIELDS = ("name", "description", "schedule", "status")

_REGISTRY = "conditions"
_TREE = "tree"


def _log_notify(message: str, type: str = "info", **kwargs):
    logger.info("[%s] %s", type, message)


class EditorSession:
    """In-memory editing state, separate from the persisted strategy."""

    def __init__(self, state: EditableState, client=None,
                 notify: Optional[Callable] = None):
        self.strategy_id = state.id
        self.name = state.name
        self.description = state.description
        self.schedule = state.schedule
        self.assets: List[str] = list(state.assets)
        self.notification_preferences: Dict[str, Any] = copy.deepcopy(
            dict(state.notification_preferences))
        self.status = state.status
        self.last_run_at = state.last_run_at
        self.trigger_count = state.trigger_count

        self.conditions: History[Registry] = History(state.conditions)
        self.tree: History[LogicGroup] = History(state.logic_tree)
        # stacks pushed by each session action, newest last
        self._undo_log: List[Tuple[str, ...]] = []
        self._redo_log: List[Tuple[str, ...]] = []

        self.client = client
        self.notify = notify or _log_notify
        self.saving = False
        self.alive = True
        self.unsaved = False
        self.view_mode = VIEW_VISUAL

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], client=None,
                     notify: Optional[Callable] = None) -> "EditorSession":
        return cls(strategy_codec.load(payload), client=client, notify=notify)

    # -- current values ----------------------------------------------------

    @property
    def registry(self) -> Registry:
        return self.conditions.state

    @property
    def logic_tree(self) -> LogicGroup:
        return self.tree.state

    @property
    def root_id(self) -> str:
        return self.logic_tree.id

    def condition(self, condition_id: str) -> Optional[Condition]:
        for c in self.registry:
            if c.id == condition_id:
                return c
        return None

    def snapshot(self) -> EditableState:
        return EditableState(
            id=self.strategy_id,
            name=self.name,
            description=self.description,
            schedule=self.schedule,
            assets=tuple(self.assets),
            notification_preferences=copy.deepcopy(self.notification_preferences),
            conditions=self.registry,
            logic_tree=self.logic_tree,
            status=self.status,
            last_run_at=self.last_run_at,
            trigger_count=self.trigger_count,
        )

    def mark_changed(self):
        self.unsaved = True

    def _push(self, registry: Optional[Registry] = None,
              tree: Optional[LogicGroup] = None):
        pushed = []
        if registry is not None and self.conditions.set_state(registry):
            pushed.append(_REGISTRY)
        if tree is not None and self.tree.set_state(tree):
            pushed.append(_TREE)
        if pushed:
            self._undo_log.append(tuple(pushed))
            del self._redo_log[:]
            self.mark_changed()

    # -- condition actions -------------------------------------------------

    def add_condition_to_group(self, group_id: str,
                               condition_type: ConditionType = ConditionType.TECHNICAL_INDICATOR
                               ) -> Condition:
        registry, tree, condition = add_condition_to_group(
            self.registry, self.logic_tree, group_id, condition_type, self.assets)
        self._push(registry, tree)
        return condition

    def update_condition(self, condition_id: str, patch: Mapping[str, Any]):
        self._push(registry=update_condition(self.registry, condition_id, patch, self.assets))

    def remove_condition(self, condition_id: str):
        registry, tree = remove_condition(self.registry, self.logic_tree, condition_id)
        self._push(registry, tree)

    def remove_ref(self, ref_id: str):
        """Drop a (possibly dangling) ref from the tree only."""
        self._push(tree=remove_ref_from_tree(self.logic_tree, ref_id))

    # -- group actions -----------------------------------------------------

    def add_group_to_group(self, group_id: str):
        self._push(tree=add_group_to_group(self.logic_tree, group_id))

    def set_group_operator(self, group_id: str, operator):
        if not isinstance(operator, LogicOperator):
            operator = LogicOperator(operator)
        self._push(tree=set_group_operator(self.logic_tree, group_id, operator))

    def remove_group(self, group_id: str):
        if group_id == self.root_id:
            self.clear_root()
            return
        self._push(tree=remove_group_from_tree(self.logic_tree, group_id))

    def clear_root(self):
        self._push(tree=clear_group(self.logic_tree))

    # -- metadata ----------------------------------------------------------

    def set_field(self, field: str, value):
        if field not in _METADATA_FIELDS:
            raise ValueError(f"Unknown strategy field: {field}")
        if field == "status" and not isinstance(value, StrategyStatus):
            value = StrategyStatus(value)
        if getattr(self, field) != value:
            setattr(self, field, value)
            self.mark_changed()

    def add_asset(self, asset: str):
        if asset and asset not in self.assets:
            self.assets.append(asset)
            self.mark_changed()

    def remove_asset(self, asset: str):
        if asset in self.assets:
            self.assets.remove(asset)
            self.mark_changed()

    def set_cooldown(self, **changes):
        cooldown = self.notification_preferences.setdefault("cooldown", {
            "enabled": False, "duration_value": 1, "duration_unit": "h",
        })
        cooldown.update(changes)
        self.mark_changed()

    # -- history -----------------------------------------------------------

    def _stack(self, name: str) -> History:
        return self.conditions if name == _REGISTRY else self.tree

    def _step_one(self, name: str, source: List[Tuple[str, ...]],
                  target: List[Tuple[str, ...]], forward: bool):
        stack = self._stack(name)
        if not (stack.can_redo if forward else stack.can_undo):
            return
        if forward:
            stack.redo()
        else:
            stack.undo()
        for i in range(len(source) - 1, -1, -1):
            if name in source[i]:
                rest = tuple(n for n in source[i] if n != name)
                if rest:
                    source[i] = rest
                else:
                    del source[i]
                break
        target.append((name,))

    def undo_conditions(self):
        self._step_one(_REGISTRY, self._undo_log, self._redo_log, forward=False)

    def redo_conditions(self):
        self._step_one(_REGISTRY, self._redo_log, self._undo_log, forward=True)

    def undo_tree(self):
        self._step_one(_TREE, self._undo_log, self._redo_log, forward=False)

    def redo_tree(self):
        self._step_one(_TREE, self._redo_log, self._undo_log, forward=True)

    def undo(self):
        """Undo the last session action on exactly the stacks it pushed."""
        if not self._undo_log:
            return
        names = self._undo_log.pop()
        for name in names:
            self._stack(name).undo()
        self._redo_log.append(names)

    def redo(self):
        if not self._redo_log:
            return
        names = self._redo_log.pop()
        for name in names:
            self._stack(name).redo()
        self._undo_log.append(names)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_log)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_log)

    # -- validation / persistence -----------------------------------------

    def validate(self) -> List[ValidationError]:
        return strategy_codec.validate(self.snapshot())

    def wire_payload(self) -> Dict[str, Any]:
        return strategy_codec.save(self.snapshot())

    async def save(self) -> Optional[Dict[str, Any]]:
        """Create or update the strategy on the backend.

        Returns the backend response, or None when the save was skipped,
        blocked by validation, failed, or arrived after ``close()``.
        """
        if self.saving:
            logger.info("Save already in flight for %s, ignored", self.strategy_id or "new strategy")
            return None
        errors = self.validate()
        if errors:
            self.notify("; ".join(e.message for e in errors), type="negative")
            return None
        if self.client is None:
            raise RuntimeError("EditorSession has no strategy client")

        payload = self.wire_payload()
        self.saving = True
        try:
            if self.strategy_id:
                result = await self.client.update_strategy(self.strategy_id, payload)
            else:
                result = await self.client.create_strategy(payload)
        except (StrategyServiceError, aiohttp.ClientError, asyncio.TimeoutError,
                ValueError) as e:
            # ValueError: a 2xx body that is not JSON
            logger.warning("Strategy save failed: %s", e)
            if self.alive:
                self.notify(f"Failed: {e}", type="negative")
            return None
        finally:
            self.saving = False

        if not self.alive:
            logger.info("Discarding save response for closed session (%s)", self.strategy_id)
            return None

        try:
            applied = _saved_fields(result or {}, self)
        except ValueError as e:
            logger.warning("Unexpected save response %r: %s", result, e)
            self.notify(f"Failed: unexpected response from server ({e})", type="negative")
            return None
        for name, value in applied.items():
            setattr(self, name, value)
        self.unsaved = False
        self.notify("Strategy saved successfully.", type="positive")
        return result

    def close(self):
        """End the session; late network responses are dropped."""
        self.alive = False


def _saved_fields(result: Any, session: EditorSession) -> Dict[str, Any]:
    """Server-owned fields from a save response; raises ValueError, assigns nothing."""
    if not isinstance(result, Mapping):
        raise ValueError(f"expected an object, got {type(result).__name__}")
    strategy_id = result.get("id", session.strategy_id)
    if strategy_id is not None and not isinstance(strategy_id, str):
        raise ValueError(f"invalid id {strategy_id!r}")
    status = session.status
    if result.get("status"):
        status = StrategyStatus(result["status"])
    trigger_count = result.get("trigger_count", session.trigger_count)
    if trigger_count is not None and (
            isinstance(trigger_count, bool) or not isinstance(trigger_count, int)):
        raise ValueError(f"invalid trigger_count {trigger_count!r}")
    return {
        "strategy_id": strategy_id,
        "status": status,
        "last_run_at": result.get("last_run_at", session.last_run_at),
        "trigger_count": trigger_count,
    }
