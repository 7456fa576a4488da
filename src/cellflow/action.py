"""Actions and transactions — batched input updates.

Wrapping several set_input calls in an action or `with transaction(graph)`
defers the cascade until the outermost scope exits. One cascade then runs
over everything that changed, so a cell fed by two of the updated inputs is
recomputed once and never observed with only half of the new inputs applied.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, ParamSpec, TypeVar

if TYPE_CHECKING:
    from cellflow.graph import ReactiveGraph

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def transaction(graph: ReactiveGraph) -> Iterator[ReactiveGraph]:
    """Context manager for batching input updates on one graph.

    Usage:
        with transaction(graph):
            graph.set_input("cyl", 6)
            graph.set_input("gear", 4)
            # the cascade runs here, after both are set
    """
    graph._scheduler.begin_batch()
    try:
        yield graph
    finally:
        graph._scheduler.end_batch()


def action(graph: ReactiveGraph) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator factory: batch all input updates made inside the function.

    Usage:
        @action(graph)
        def reset_filters():
            graph.set_input("cyl", None)
            graph.set_input("gear", None)
    """

    def decorate(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with transaction(graph):
                return fn(*args, **kwargs)

        return wrapper

    return decorate
