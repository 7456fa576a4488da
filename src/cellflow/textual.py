"""Textual integration for cellflow. Opt-in — requires textual.

Two directions cross this seam: widget events go in through input_handler()
(ending in graph.set_input) and cell values come out through bind() (ending
in a widget update). Guarding, NoMatches handling and thread marshalling are
enforced here, not at callsites. Textual coupling stays in this module; the
engine itself never imports textual.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Hashable

from textual.css.query import NoMatches

from cellflow.errors import ComputeError

logger = logging.getLogger("cellflow.textual")

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bound outputs during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def error_indicator(error: ComputeError) -> str:
    """Default rendering of a cell in error state."""
    return f"⚠ {error}"


def bind(
    app,
    graph,
    cell_id: Hashable,
    render: Callable[[object], None],
    *,
    on_error: Callable[[str], None] | None = None,
    format_error: Callable[[ComputeError], str] = error_indicator,
    fire_immediately: bool = True,
):
    """Push a cell's value into a widget whenever a cascade changes it.

    Error states never reach render: they are formatted with format_error and
    handed to on_error (render itself when on_error is not given), so the
    widget shows an error indicator instead of a stale or partial value.

    Returns the Observer (call .dispose() to unbind).

    Usage:
        bind(app, graph, "mean_speed", lambda v: app.query_one("#mean", Label).update(f"{v:.1f}"))
    """
    _main = threading.get_ident()
    show_error = on_error if on_error is not None else render

    def _guarded(value):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value)
        else:
            _safe(value)

    def _safe(value):
        try:
            if isinstance(value, ComputeError):
                show_error(format_error(value))
            else:
                render(value)
        except NoMatches:
            pass

    return graph.observe(cell_id, _guarded, fire_immediately=fire_immediately)


def input_handler(app, graph, cell_id: Hashable, parse: Callable[[object], object] | None = None):
    """Build a message handler that feeds a widget's value into an input cell.

    The handler reads ``event.value`` (Input.Changed, Select.Changed,
    Switch.Changed, ...), applies parse if given, and calls set_input. A value parse
    rejects (ValueError or TypeError, e.g. a cleared field with parse=int) is
    logged and skipped; the input keeps its last good value. Calls
    from a background thread are marshalled with call_from_thread so the
    cascade always runs on the app thread.

    Usage:
        class Dashboard(App):
            def on_mount(self):
                self._on_bins = input_handler(self, graph, "bins", parse=int)

            def on_input_changed(self, event: Input.Changed):
                self._on_bins(event)
    """
    _main = threading.get_ident()

    def _deliver(value):
        if parse is not None:
            try:
                value = parse(value)
            except (ValueError, TypeError) as exc:
                logger.warning("Ignoring invalid value %r for input %r: %s", value, cell_id, exc)
                return
        graph.set_input(cell_id, value)

    def _handler(event):
        value = event.value
        if threading.get_ident() != _main:
            app.call_from_thread(_deliver, value)
        else:
            _deliver(value)

    return _handler
