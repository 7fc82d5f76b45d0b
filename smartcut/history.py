"""
Linear undo/redo history.

History keeps past, present and future states. It does not look inside
the states; it only relies on each pushed value never being mutated
afterwards, which holds for the tuple-of-frozen-models sequences used by
the editor.
"""

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class History(Generic[T]):
    """
    Undo/redo state machine.

    set() pushes the current state onto past and clears future, so redo
    is impossible after a new edit. limit caps the number of undo steps
    kept (0 means unlimited).
    """

    def __init__(self, initial: T, limit: int = 0):
        self._past: list[T] = []
        self._present: T = initial
        self._future: list[T] = []
        self.limit = limit

    @property
    def present(self) -> T:
        return self._present

    @property
    def past(self) -> tuple[T, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[T, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def set(self, new_state: T) -> bool:
        """
        Record a new present state.

        Passing the current present object itself is ignored, so no-op
        operations do not leave empty undo steps behind.

        Returns:
            True if a new history entry was recorded
        """
        if new_state is self._present:
            return False

        self._past.append(self._present)
        if self.limit and len(self._past) > self.limit:
            self._past.pop(0)
        self._present = new_state
        self._future.clear()
        return True

    def update(self, fn: Callable[[T], T]) -> bool:
        """Functional form of set(): new state computed from the present one."""
        return self.set(fn(self._present))

    def undo(self) -> bool:
        if not self._past:
            return False
        self._future.insert(0, self._present)
        self._present = self._past.pop()
        logger.debug(f"Undo: {len(self._past)} past, {len(self._future)} future")
        return True

    def redo(self) -> bool:
        if not self._future:
            return False
        self._past.append(self._present)
        self._present = self._future.pop(0)
        logger.debug(f"Redo: {len(self._past)} past, {len(self._future)} future")
        return True

    def reset(self, initial: T) -> None:
        """Drop all history and start over from initial."""
        self._past.clear()
        self._future.clear()
        self._present = initial
