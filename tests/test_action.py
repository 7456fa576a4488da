"""Tests for action batching and the transaction context manager."""

from cellflow import ReactiveGraph, action, transaction


def _filter_graph(log):
    g = ReactiveGraph()
    g.register_input("cyl", 4)
    g.register_input("gear", 3)

    def label(cyl, gear):
        log.append((cyl, gear))
        return f"{cyl} cyl / {gear} gear"

    g.register_derived("label", ["cyl", "gear"], label)
    log.clear()
    return g


class TestTransaction:
    def test_batches_updates(self):
        log = []
        g = _filter_graph(log)
        with transaction(g):
            g.set_input("cyl", 6)
            g.set_input("gear", 4)
            assert log == []  # deferred
        # One recompute, never the intermediate (6, 3)
        assert log == [(6, 4)]
        assert g.get_value("label") == "6 cyl / 4 gear"

    def test_method_form(self):
        log = []
        g = _filter_graph(log)
        with g.transaction():
            g.set_input("cyl", 8)
            g.set_input("cyl", 6)
        assert log == [(6, 3)]

    def test_nested(self):
        log = []
        g = _filter_graph(log)
        with transaction(g):
            g.set_input("cyl", 6)
            with transaction(g):
                g.set_input("gear", 5)
            assert log == []
        assert log == [(6, 5)]

    def test_observers_fire_once(self):
        log = []
        g = _filter_graph(log)
        shown = []
        g.observe("label", shown.append)
        with transaction(g):
            g.set_input("cyl", 6)
            g.set_input("gear", 4)
        assert shown == ["6 cyl / 4 gear"]

    def test_set_inputs(self):
        log = []
        g = _filter_graph(log)
        assert g.set_inputs({"cyl": 8, "gear": 5}) == ["label"]
        assert log == [(8, 5)]

    def test_set_inputs_inside_transaction(self):
        log = []
        g = _filter_graph(log)
        with transaction(g):
            assert g.set_inputs({"cyl": 6}) == []
            g.set_input("gear", 5)
        assert log == [(6, 5)]


class TestAction:
    def test_batches_updates(self):
        log = []
        g = _filter_graph(log)

        @action(g)
        def reset():
            g.set_input("cyl", 4)
            g.set_input("gear", 4)

        reset()
        assert log == [(4, 4)]

    def test_preserves_return_value(self):
        g = ReactiveGraph()

        @action(g)
        def compute():
            return 42

        assert compute() == 42
        assert compute.__name__ == "compute"
