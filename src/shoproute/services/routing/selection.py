"""Selection state for the presentation layer."""

from __future__ import annotations

from typing import Optional, Sequence

from .errors import UnknownCandidate
from .models import RouteCandidate


class RouteSelection:
    """Holds the current candidate set and which candidate the user picked.

    Starts with no selection. Only ``select`` moves it to a selected state;
    ``replace`` swaps in a new set and either clears the selection or selects
    the new recommended candidate.
    """

    def __init__(self, candidates: Sequence[RouteCandidate] = ()) -> None:
        self._candidates: tuple[RouteCandidate, ...] = tuple(candidates)
        self._selected: Optional[int] = None

    @property
    def candidates(self) -> tuple[RouteCandidate, ...]:
        return self._candidates

    def select(self, candidate_id: int) -> RouteCandidate:
        candidate = self.get(candidate_id)
        if candidate is None:
            raise UnknownCandidate(candidate_id)
        self._selected = candidate_id
        return candidate

    def current_selection(self) -> Optional[int]:
        return self._selected

    def selected_candidate(self) -> Optional[RouteCandidate]:
        return self.get(self._selected) if self._selected is not None else None

    def get(self, candidate_id: int) -> Optional[RouteCandidate]:
        return next((c for c in self._candidates if c.id == candidate_id), None)

    def replace(self, candidates: Sequence[RouteCandidate], *, auto_select: bool = False) -> None:
        self._candidates = tuple(candidates)
        self._selected = None
        if auto_select:
            recommended = next((c for c in self._candidates if c.recommended), None)
            if recommended is not None:
                self._selected = recommended.id

    def clear(self) -> None:
        self.replace(())
