"""
Strategy Studio — Undo/Redo History

Value history over immutable snapshots. Snapshots are stored as given and
never copied or mutated, so callers must hand in immutable values (tuples,
frozen dataclasses).
"""

from __future__ import annotations

from typing import Callable, Generic, List, TypeVar, Union

T = TypeVar("T")


class History(Generic[T]):
    """Ordered snapshots plus a cursor."""

    def __init__(self, initial: T):
        self._snapshots: List[T] = [initial]
        self._index = 0

    @property
    def state(self) -> T:
        return self._snapshots[self._index]

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    def set_state(self, action: Union[T, Callable[[T], T]]) -> bool:
        """Push a new snapshot (or the result of ``action(current)``).

        Returns False when the candidate equals the current snapshot. A new
        snapshot discards everything after the cursor.
        """
        current = self.state
        candidate = action(current) if callable(action) else action
        if candidate == current:
            return False
        del self._snapshots[self._index + 1:]
        self._snapshots.append(candidate)
        self._index += 1
        return True

    def undo(self) -> T:
        self._index = max(0, self._index - 1)
        return self.state

    def redo(self) -> T:
        self._index = min(len(self._snapshots) - 1, self._index + 1)
        return self.state
