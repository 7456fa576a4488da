"""Cascade engine — the heart of cellflow.

When an input changes, every cell reachable from it along dependent edges is
marked dirty, then the dirty derived cells are recomputed in ascending rank
order. Ranks are fixed at registration (one more than the highest-ranked
dependency), so by the time a cell runs all of its dependencies are final and
each cell runs exactly once per cascade, however many paths lead to it.

Batching: updates inside a transaction accumulate their roots and run one
cascade when the outermost scope exits. Updates issued while a cascade is
running (from an observer or a compute function) are queued and run as their
own cascades once the current one has finished.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Hashable, Iterable

from cellflow._anchor import CellTable
from cellflow.errors import ComputeError

logger = logging.getLogger("cellflow.cascade")


def has_changed(old: object, new: object) -> bool:
    """Whether a cell's value changed, for observer notification."""
    if old is new:
        return False
    if isinstance(old, ComputeError) and isinstance(new, ComputeError):
        return _error_key(old) != _error_key(new)
    try:
        return bool(old != new)
    except (TypeError, ValueError):
        # Element-wise comparisons (arrays, frames) have no single truth value.
        return True


def _error_key(error: ComputeError) -> tuple:
    return error.origin, type(error.cause), str(error.cause)


def collect_dirty(table: CellTable, roots: Iterable[Hashable]) -> list:
    """Mark roots and their transitive dependents dirty.

    Returns the dirty derived cells in the order they must be recomputed.
    """
    seen: set = set()
    stack = list(roots)
    for cell_id in stack:
        table.dirty_flags[cell_id] = True
    while stack:
        cell_id = stack.pop()
        for dependent in table.dependents[cell_id]:
            if dependent not in seen:
                seen.add(dependent)
                table.dirty_flags[dependent] = True
                stack.append(dependent)
    return sorted(seen, key=table.sort_key)


def recompute(table: CellTable, cell_id: Hashable) -> None:
    """Recompute one derived cell from the current values of its dependencies.

    An upstream error state is copied instead of calling the compute function.
    An exception from the compute function becomes this cell's error state.
    """
    deps = table.dependencies[cell_id]
    args = [table.values[d] for d in deps]
    upstream = next((a for a in args if isinstance(a, ComputeError)), None)
    if upstream is not None:
        table.values[cell_id] = ComputeError(cell_id, upstream.origin, upstream.cause)
    else:
        try:
            table.values[cell_id] = table.compute_fns[cell_id](*args)
        except Exception as exc:
            logger.exception("Compute function for cell %r failed", cell_id)
            table.values[cell_id] = ComputeError(cell_id, cell_id, exc)
    table.dirty_flags[cell_id] = False


def run_cascade(table: CellTable, roots: Iterable[Hashable], changed: dict) -> list:
    """Run one full cascade from the given input roots.

    Derived cells whose value changed are added to `changed` (used as an
    ordered set). Returns the recomputed cell ids in order.
    """
    roots = list(roots)
    order = collect_dirty(table, roots)
    for cell_id in order:
        old = table.values[cell_id]
        recompute(table, cell_id)
        if has_changed(old, table.values[cell_id]):
            changed[cell_id] = None
    for cell_id in roots:
        table.dirty_flags[cell_id] = False
    logger.debug("Cascade from %r recomputed %d cell(s)", roots, len(order))
    return order


class Scheduler:
    """Per-graph batching and queueing of input updates."""

    __slots__ = ("_table", "_notify", "_depth", "_pending", "_changed", "_queued", "_running")

    def __init__(self, table: CellTable, notify: Callable[[list], None]) -> None:
        self._table = table
        self._notify = notify
        # Batch depth. When > 0, cascades are deferred.
        self._depth = 0
        # Input roots written during a batch, awaiting flush (ordered set).
        self._pending: dict = {}
        # Cells whose value changed since the last notification (ordered set).
        self._changed: dict = {}
        # Updates issued while a cascade was running.
        self._queued: deque = deque()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def batching(self) -> bool:
        return self._depth > 0

    def begin_batch(self) -> None:
        """Enter a batching scope. Nested batches are supported."""
        self._depth += 1

    def end_batch(self) -> list:
        """Exit a batching scope. When the outermost scope exits, flush pending roots.

        Returns the cells recomputed by the flush (empty for inner scopes).
        """
        self._depth -= 1
        if self._depth == 0 and self._pending:
            return self._flush()
        return []

    def update(self, cell_id: Hashable, value: object) -> list:
        """Write an input value and cascade (or defer, when batching or running)."""
        if self._running:
            self._queued.append((cell_id, value))
            logger.debug("Queued update of %r until the running cascade completes", cell_id)
            return []
        self._write(cell_id, value)
        if self._depth > 0:
            return []
        return self._flush()

    def _write(self, cell_id: Hashable, value: object) -> None:
        old = self._table.values[cell_id]
        self._table.values[cell_id] = value
        self._pending[cell_id] = None
        if has_changed(old, value):
            self._changed[cell_id] = None

    def _flush(self) -> list:
        """Run pending cascades, then any updates queued while they ran."""
        recomputed = self._cascade()
        while self._queued:
            cell_id, value = self._queued.popleft()
            self._write(cell_id, value)
            self._cascade()
        return recomputed

    def _cascade(self) -> list:
        roots = list(self._pending)
        self._pending.clear()
        self._running = True
        try:
            recomputed = run_cascade(self._table, roots, self._changed)
            changed = sorted(self._changed, key=self._table.sort_key)
            self._changed.clear()
            self._notify(changed)
        except Exception:
            if self._queued:
                logger.warning("Dropping %d queued update(s) after a failed cascade", len(self._queued))
                self._queued.clear()
            raise
        finally:
            self._running = False
        return recomputed
