"""Data anchor — plain Python structures that hold a graph's cell state.

Each ReactiveGraph owns one CellTable. The table is only data: the graph and
the cascade machinery in _tracking operate on it. Keeping behavior out of here
means the structure can be inspected (or dumped in a debugger) without going
through the public API.
"""

from __future__ import annotations

from typing import Callable, Hashable

# Sentinel for a cell whose value has never been computed.
UNSET = object()


class CellTable:
    """All state for the cells of a single graph, keyed by cell id."""

    __slots__ = (
        "values",
        "compute_fns",
        "dependencies",
        "dependents",
        "ranks",
        "dirty_flags",
        "order",
    )

    def __init__(self) -> None:
        self.values: dict[Hashable, object] = {}
        # Derived cells only. Inputs have no entry.
        self.compute_fns: dict[Hashable, Callable] = {}
        # cell -> dependency ids, in declared order
        self.dependencies: dict[Hashable, tuple] = {}
        # cell -> ids of cells that read from it
        self.dependents: dict[Hashable, set] = {}
        self.ranks: dict[Hashable, int] = {}
        self.dirty_flags: dict[Hashable, bool] = {}
        # cell -> registration sequence number, used to break rank ties
        self.order: dict[Hashable, int] = {}

    def __contains__(self, cell_id: Hashable) -> bool:
        return cell_id in self.values

    def __len__(self) -> int:
        return len(self.values)

    def add(self, cell_id: Hashable, value: object, deps: tuple = (), fn: Callable | None = None) -> None:
        self.values[cell_id] = value
        self.dependencies[cell_id] = deps
        self.dependents[cell_id] = set()
        self.ranks[cell_id] = max((self.ranks[d] for d in deps), default=-1) + 1
        self.dirty_flags[cell_id] = False
        self.order[cell_id] = len(self.order)
        if fn is not None:
            self.compute_fns[cell_id] = fn
        for dep in deps:
            self.dependents[dep].add(cell_id)

    def is_input(self, cell_id: Hashable) -> bool:
        return cell_id not in self.compute_fns

    def sort_key(self, cell_id: Hashable) -> tuple[int, int]:
        return self.ranks[cell_id], self.order[cell_id]
