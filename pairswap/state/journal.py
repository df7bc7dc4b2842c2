"""
Nested undo journal shared by every table and engine over one asset ledger.

A mutation inside an ``atomic()`` scope records a closure that puts the old
value back. Scopes nest:

- an inner scope that commits hands its undo entries and commit hooks to
  the enclosing scope,
- any scope that raises replays its own undo entries newest first,
- commit hooks run only when the outermost scope commits.

Cost is proportional to the keys touched, not the size of the tables.
Undo closures must write through raw setters that do not record.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, List


Undo = Callable[[], None]


class _Frame:
    __slots__ = ("undo", "on_commit")

    def __init__(self) -> None:
        self.undo: List[Undo] = []
        self.on_commit: List[Callable[[], None]] = []


class Journal:
    def __init__(self) -> None:
        self._frames: List[_Frame] = []

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def active(self) -> bool:
        return bool(self._frames)

    def record(self, undo: Undo) -> None:
        """Record an undo closure in the innermost scope (no-op outside any scope)."""
        if self._frames:
            self._frames[-1].undo.append(undo)

    def on_commit(self, hook: Callable[[], None]) -> None:
        """Run ``hook`` once the outermost scope commits; immediately if none is open."""
        if self._frames:
            self._frames[-1].on_commit.append(hook)
        else:
            hook()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        frame = _Frame()
        self._frames.append(frame)
        try:
            yield
        except Exception:
            self._frames.pop()
            for undo in reversed(frame.undo):
                undo()
            raise
        self._frames.pop()
        if self._frames:
            parent = self._frames[-1]
            parent.undo.extend(frame.undo)
            parent.on_commit.extend(frame.on_commit)
            return
        for hook in frame.on_commit:
            hook()

    def __repr__(self) -> str:
        return f"Journal(depth={len(self._frames)})"
