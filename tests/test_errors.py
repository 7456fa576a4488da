"""Tests for compute-function failures and error-state propagation."""

import logging

from cellflow import ComputeError, ReactiveGraph


def _ratio_graph(calls):
    g = ReactiveGraph()
    g.register_input("num", 10)
    g.register_input("den", 2)

    def ratio(n, d):
        calls.append("ratio")
        return n / d

    def label(r):
        calls.append("label")
        return f"{r:.1f}"

    g.register_derived("ratio", ["num", "den"], ratio)
    g.register_derived("label", ["ratio"], label)
    g.register_derived("den_sq", ["den"], lambda d: d * d)
    return g


class TestComputeError:
    def test_failure_is_captured(self):
        calls = []
        g = _ratio_graph(calls)
        g.set_input("den", 0)  # does not raise
        err = g.get_value("ratio")
        assert isinstance(err, ComputeError)
        assert isinstance(err.cause, ZeroDivisionError)
        assert err.cell_id == "ratio"
        assert err.origin == "ratio"
        assert not err.propagated
        assert g.is_error("ratio")

    def test_propagates_without_calling_dependents(self):
        calls = []
        g = _ratio_graph(calls)
        calls.clear()
        g.set_input("den", 0)
        assert calls == ["ratio"]  # label's compute function was skipped
        err = g.get_value("label")
        assert isinstance(err, ComputeError)
        assert err.cell_id == "label"
        assert err.origin == "ratio"
        assert err.propagated

    def test_unrelated_cells_still_recompute(self):
        g = _ratio_graph([])
        g.set_input("den", 0)
        assert g.get_value("den_sq") == 0
        assert not g.is_error("den_sq")

    def test_recovery(self):
        g = _ratio_graph([])
        g.set_input("den", 0)
        g.set_input("den", 4)
        assert g.get_value("ratio") == 2.5
        assert g.get_value("label") == "2.5"
        assert not g.is_error("label")

    def test_error_at_registration(self):
        g = ReactiveGraph()
        g.register_input("rows", [])
        g.register_derived("first", ["rows"], lambda rows: rows[0])
        g.register_derived("shown", ["first"], str)
        assert isinstance(g.get_value("first").cause, IndexError)
        assert g.get_value("shown").origin == "first"

        g.set_input("rows", [7])
        assert g.get_value("shown") == "7"

    def test_failure_logged(self, caplog):
        g = ReactiveGraph()
        g.register_input("a", 1)
        g.register_derived("b", ["a"], lambda a: 1 / (a - 2))
        with caplog.at_level(logging.ERROR, logger="cellflow.cascade"):
            g.set_input("a", 2)
        assert "Compute function for cell 'b' failed" in caplog.text

    def test_repr_and_str(self):
        err = ComputeError("b", "a", ValueError("bad bins"))
        assert str(err) == "ValueError: bad bins"
        assert "origin='a'" in repr(err)
