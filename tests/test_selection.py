import pytest

from shoproute.models.domain import Coordinate
from shoproute.services.routing.errors import UnknownCandidate
from shoproute.services.routing.models import RouteCandidate, Strategy
from shoproute.services.routing.selection import RouteSelection


def _candidates() -> list[RouteCandidate]:
    geometry = (Coordinate(0, 0), Coordinate(0, 1))
    return [
        RouteCandidate(1, "Direct line", Strategy.DIRECT, ("origin", "shop"), geometry, 100.0, rank=2),
        RouteCandidate(2, "Road route", Strategy.ROUTED, ("origin", "shop"), geometry, 120.0, 15.0, rank=1, recommended=True),
    ]


def test_selection_starts_empty():
    selection = RouteSelection(_candidates())
    assert selection.current_selection() is None
    assert selection.selected_candidate() is None


def test_select_known_candidate():
    selection = RouteSelection(_candidates())
    candidate = selection.select(1)
    assert candidate.strategy is Strategy.DIRECT
    assert selection.current_selection() == 1


def test_select_unknown_candidate_keeps_previous_selection():
    selection = RouteSelection(_candidates())
    selection.select(2)
    with pytest.raises(UnknownCandidate):
        selection.select(99)
    assert selection.current_selection() == 2


def test_replace_clears_or_auto_selects():
    selection = RouteSelection(_candidates())
    selection.select(1)

    selection.replace(_candidates())
    assert selection.current_selection() is None

    selection.replace(_candidates(), auto_select=True)
    assert selection.current_selection() == 2

    selection.clear()
    assert selection.candidates == ()
    assert selection.current_selection() is None
