"""ReactiveGraph — input cells, derived cells, and the cascade between them.

Dependencies are declared explicitly at registration instead of being
inferred while a function runs, so the wiring can be checked up front:
unknown dependencies and cycles are rejected before anything is committed.

Usage:
    graph = ReactiveGraph("cars")
    graph.register_input("speed", [40, 50, 60])
    graph.register_derived("mean_speed", ["speed"], lambda s: sum(s) / len(s))

    graph.set_input("speed", [10, 20, 30])
    graph.get_value("mean_speed")  # 20.0
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable, Iterator

from cellflow import _anchor
from cellflow._tracking import Scheduler, has_changed, recompute
from cellflow.action import transaction
from cellflow.errors import (
    ComputeError,
    CycleError,
    DuplicateIdError,
    GraphFrozenError,
    NotAnInputError,
    UnknownCellError,
    UnknownDependencyError,
)
from cellflow.reaction import Observer, ObserverRegistry, observe

logger = logging.getLogger("cellflow.graph")


class ReactiveGraph:
    """A dependency graph of input and derived cells owned by one application.

    Args:
        name: Label used in log records and repr.
        skip_unchanged: When True, setting an input to a value equal to its
            current one does nothing. By default every set_input cascades.
    """

    def __init__(self, name: str = "graph", *, skip_unchanged: bool = False) -> None:
        self.name = name
        self.skip_unchanged = skip_unchanged
        self._table = _anchor.CellTable()
        self._observers = ObserverRegistry(self._table)
        self._scheduler = Scheduler(self._table, self._observers.notify)
        self._frozen = False

    # -- Structure -----------------------------------------------------------

    def register_input(self, cell_id: Hashable, initial_value: object = None) -> None:
        """Create an input cell holding initial_value."""
        self._check_mutable()
        if cell_id in self._table:
            raise DuplicateIdError(cell_id)
        self._table.add(cell_id, initial_value)
        logger.debug("[%s] registered input %r", self.name, cell_id)

    def register_derived(
        self,
        cell_id: Hashable,
        dependency_ids: Iterable[Hashable],
        compute_fn: Callable[..., object],
    ) -> None:
        """Create a derived cell computed as compute_fn(*dependency_values).

        The value is computed immediately. If compute_fn raises, or a
        dependency is in error state, the cell starts in error state.
        Raises CycleError, UnknownDependencyError or DuplicateIdError without
        changing the graph.
        """
        self._check_mutable()
        deps = tuple(dependency_ids)
        if cell_id in deps:
            raise CycleError(cell_id, (cell_id, cell_id))
        missing = [d for d in dict.fromkeys(deps) if d not in self._table]
        if missing:
            raise UnknownDependencyError(cell_id, missing)
        if cell_id in self._table:
            path = self._find_path(cell_id, set(deps))
            if path is not None:
                raise CycleError(cell_id, path + [cell_id])
            raise DuplicateIdError(cell_id)

        self._table.add(cell_id, _anchor.UNSET, deps, compute_fn)
        recompute(self._table, cell_id)
        logger.debug(
            "[%s] registered derived %r (rank %d) on %r",
            self.name, cell_id, self._table.ranks[cell_id], deps,
        )

    def _find_path(self, start: Hashable, targets: set) -> list | None:
        """Depth-first search along dependent edges from start to any target."""
        parents: dict = {start: None}
        stack = [start]
        while stack:
            cell_id = stack.pop()
            if cell_id in targets:
                path = []
                while cell_id is not None:
                    path.append(cell_id)
                    cell_id = parents[cell_id]
                return path[::-1]
            for dependent in self._table.dependents[cell_id]:
                if dependent not in parents:
                    parents[dependent] = cell_id
                    stack.append(dependent)
        return None

    def freeze(self) -> None:
        """Seal the structure. Later registrations raise GraphFrozenError."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError(f"Graph {self.name!r} is frozen; cells can only be registered during setup")
        if self._scheduler.running:
            raise GraphFrozenError(f"Graph {self.name!r} cannot be restructured during a cascade")

    # -- Values --------------------------------------------------------------

    def set_input(self, cell_id: Hashable, value: object) -> list:
        """Update an input cell and recompute everything downstream of it.

        Returns the ids of the derived cells recomputed, in order. Inside a
        transaction, or when issued by an observer during a running cascade,
        the cascade is deferred and the return value is empty.
        """
        self._require(cell_id)
        if not self._table.is_input(cell_id):
            raise NotAnInputError(cell_id)
        if self.skip_unchanged and not has_changed(self._table.values[cell_id], value):
            return []
        return self._scheduler.update(cell_id, value)

    def set_inputs(self, values: dict) -> list:
        """Update several inputs with a single cascade.

        Returns the ids recomputed, like set_input. Empty when called inside
        an enclosing transaction, whose exit runs the cascade instead.
        """
        self._scheduler.begin_batch()
        try:
            for cell_id, value in values.items():
                self.set_input(cell_id, value)
        except Exception:
            self._scheduler.end_batch()
            raise
        return self._scheduler.end_batch()

    def get_value(self, cell_id: Hashable) -> object:
        """Return the cell's cached value. Never computes anything."""
        self._require(cell_id)
        return self._table.values[cell_id]

    def is_error(self, cell_id: Hashable) -> bool:
        return isinstance(self.get_value(cell_id), ComputeError)

    def transaction(self):
        """Batch input updates; see cellflow.action.transaction."""
        return transaction(self)

    def observe(self, cell_id: Hashable, callback: Callable[[object], None], *, fire_immediately: bool = False) -> Observer:
        """Call callback whenever a cascade changes the cell; see cellflow.reaction.observe."""
        return observe(self, cell_id, callback, fire_immediately=fire_immediately)

    # -- Introspection -------------------------------------------------------

    def _require(self, cell_id: Hashable) -> None:
        if cell_id not in self._table:
            raise UnknownCellError(cell_id)

    def has_cell(self, cell_id: Hashable) -> bool:
        return cell_id in self._table

    def is_input(self, cell_id: Hashable) -> bool:
        self._require(cell_id)
        return self._table.is_input(cell_id)

    def is_dirty(self, cell_id: Hashable) -> bool:
        self._require(cell_id)
        return self._table.dirty_flags[cell_id]

    def dependencies_of(self, cell_id: Hashable) -> tuple:
        self._require(cell_id)
        return self._table.dependencies[cell_id]

    def dependents_of(self, cell_id: Hashable) -> frozenset:
        self._require(cell_id)
        return frozenset(self._table.dependents[cell_id])

    def rank_of(self, cell_id: Hashable) -> int:
        self._require(cell_id)
        return self._table.ranks[cell_id]

    def cells(self) -> list:
        """All cell ids, in registration order."""
        return list(self._table.values)

    def __contains__(self, cell_id: Hashable) -> bool:
        return cell_id in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.cells())

    def __repr__(self) -> str:
        inputs = sum(1 for c in self._table.values if self._table.is_input(c))
        return f"ReactiveGraph({self.name!r}, inputs={inputs}, derived={len(self) - inputs})"
