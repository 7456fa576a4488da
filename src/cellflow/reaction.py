"""Observers — side effects fired when a cell's value changes.

Cells are recomputed eagerly by the cascade; observers are how an output
(a plot, a table, a label) learns that it has something new to show. After
each cascade, every observer of a cell whose value changed is called once with
the new value, in rank order. Error states are delivered like any other value,
so an output can render an error indicator instead of a stale result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Hashable

if TYPE_CHECKING:
    from cellflow._anchor import CellTable
    from cellflow.graph import ReactiveGraph


class Observer:
    """A callback attached to one cell. Call .dispose() to detach it."""

    __slots__ = ("cell_id", "_callback", "_registry", "_disposed")

    def __init__(self, cell_id: Hashable, callback: Callable[[object], None], registry: ObserverRegistry) -> None:
        self.cell_id = cell_id
        self._callback = callback
        self._registry = registry
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _fire(self, value: object) -> None:
        if not self._disposed:
            self._callback(value)

    def dispose(self) -> None:
        """Stop this observer. Safe to call more than once."""
        if not self._disposed:
            self._disposed = True
            self._registry.discard(self)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._callback, "__name__", repr(self._callback))
        return f"Observer({self.cell_id!r}, {name}, {state})"


class ObserverRegistry:
    """Observers of one graph, keyed by cell id."""

    __slots__ = ("_table", "_observers")

    def __init__(self, table: CellTable) -> None:
        self._table = table
        self._observers: dict[Hashable, list[Observer]] = {}

    def add(self, cell_id: Hashable, callback: Callable[[object], None]) -> Observer:
        observer = Observer(cell_id, callback, self)
        self._observers.setdefault(cell_id, []).append(observer)
        return observer

    def discard(self, observer: Observer) -> None:
        observers = self._observers.get(observer.cell_id)
        if observers and observer in observers:
            observers.remove(observer)
            if not observers:
                del self._observers[observer.cell_id]

    def count(self, cell_id: Hashable | None = None) -> int:
        """Number of active observers, on one cell or overall."""
        if cell_id is not None:
            return len(self._observers.get(cell_id, ()))
        return sum(len(obs) for obs in self._observers.values())

    def notify(self, changed: list) -> None:
        """Fire observers of the changed cells, in the given order.

        Every observer runs even if an earlier one raises; the first error
        is re-raised once all of them have been called.
        """
        first_error: Exception | None = None
        for cell_id in changed:
            for observer in list(self._observers.get(cell_id, ())):
                try:
                    observer._fire(self._table.values[cell_id])
                except Exception as exc:
                    if first_error is None:
                        first_error = exc
        if first_error is not None:
            raise first_error


def observe(
    graph: ReactiveGraph,
    cell_id: Hashable,
    callback: Callable[[object], None],
    *,
    fire_immediately: bool = False,
) -> Observer:
    """Call callback with the cell's value each time a cascade changes it.

    Returns the Observer (call .dispose() to stop).

    Usage:
        graph = ReactiveGraph()
        graph.register_input("bins", 10)
        graph.register_derived("label", ["bins"], lambda n: f"{n} bins")

        shown = []
        observe(graph, "label", shown.append, fire_immediately=True)
        # shown == ["10 bins"]

        graph.set_input("bins", 20)
        # shown == ["10 bins", "20 bins"]
    """
    graph._require(cell_id)
    observer = graph._observers.add(cell_id, callback)
    if fire_immediately:
        observer._fire(graph._table.values[cell_id])
    return observer
