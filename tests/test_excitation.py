"""
Tests for the cell excitation view
"""

import pytest

from cortexviz.excitation import (
    excitation_view,
    legend_breakdown,
    order_breakdowns,
    source_shades,
    stack_series,
)


BREAKDOWNS = {
    (3, 0): {"proximal-unstable": {"input": 3.0}, "proximal-stable": {},
             "boost": 0.5, "distal": 0.0, "total": 3.5},
    (3, 1): {"proximal-unstable": {"input": 1.0, "motor": 1.0},
             "distal": 2.0, "total": 4.0},
    (2, 0): {"boost": 3.5, "total": 3.5},
}


class TestOrdering:
    def test_descending_total_ties_by_id(self):
        ordered = [cell for cell, _ in order_breakdowns(BREAKDOWNS)]
        assert ordered == [(3, 1), (2, 0), (3, 0)]

    def test_source_shades(self):
        shades = source_shades(["input", "motor"])
        assert shades["input"] == pytest.approx(-0.3)
        assert shades["motor"] == pytest.approx(0.2)
        assert source_shades([]) == {}


class TestStacking:
    def test_stack_bottom_to_top(self):
        shades = source_shades(["motor", "input"])
        series = stack_series(BREAKDOWNS[(3, 1)], shades)
        assert series == [
            ("proximal-unstable", "motor", 1.0),
            ("proximal-unstable", "input", 1.0),
            ("distal", None, 2.0),
        ]

    def test_zero_segments_dropped(self):
        series = stack_series(BREAKDOWNS[(3, 0)], {})
        assert [k for k, _, _ in series] == ["proximal-unstable", "boost"]

    def test_legend_gives_equal_shares(self):
        legend = legend_breakdown(BREAKDOWNS.values(), y_max=10.0)
        # four present segments: two proximal sources, boost, distal
        assert legend["total"] == pytest.approx(10.0)
        assert legend["proximal-unstable"] == {"input": 2.5, "motor": 2.5}
        assert legend["boost"] == pytest.approx(2.5)
        assert legend["distal"] == pytest.approx(2.5)

    def test_legend_of_nothing(self):
        assert legend_breakdown([], y_max=1.0) == {"total": 0.0}


class TestView:
    def test_excitation_view(self):
        view = excitation_view(BREAKDOWNS, sources=["input", "motor"], selected_column=3)
        assert view.y_max == pytest.approx(4.4)
        assert view.cells[0][0] == (3, 1)
        assert view.legend["total"] == pytest.approx(4.4)
        assert set(view.shades) == {"input", "motor"}
        assert view.selected_column == 3

    def test_empty_view(self):
        view = excitation_view({})
        assert view.cells == []
        assert view.y_max == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
