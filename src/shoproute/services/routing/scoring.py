"""Scoring and ranking of candidate routes.

Scores are higher-is-better in (0, 1]. Distance and duration are normalized
against the worst value in the set, combined with policy weights, and the
purpose-computed multi-stop route receives a small bonus. Ranking breaks ties
by strategy (optimal multi-stop, then routed, then direct) and then by id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ...config import settings
from .models import STRATEGY_PRIORITY, RouteCandidate, Strategy

MIN_SCORE = 1e-6
# Scores closer than this are treated as tied.
SCORE_PRECISION = 9


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Policy constants for the composite score. Tunable, not derived."""

    distance: float = 0.6
    duration: float = 0.4
    multi_stop_bonus: float = 0.05

    def __post_init__(self) -> None:
        if self.distance < 0 or self.duration < 0 or self.multi_stop_bonus < 0:
            raise ValueError("Scoring weights must be non-negative.")
        if self.distance + self.duration <= 0:
            raise ValueError("At least one of the distance/duration weights must be positive.")

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            distance=settings.scoring_distance_weight,
            duration=settings.scoring_duration_weight,
            multi_stop_bonus=settings.scoring_multi_stop_bonus,
        )


def _normalized(value: float, values: Sequence[float]) -> float:
    worst = max(values)
    if worst <= 0 or all(v == values[0] for v in values):
        return 1.0
    return 1.0 - (value / worst)


def score_candidates(
    candidates: Sequence[RouteCandidate], weights: ScoringWeights | None = None
) -> dict[int, float]:
    """Composite score per candidate id."""
    if not candidates:
        return {}
    weights = weights or ScoringWeights.from_settings()

    distances = [c.distance_meters for c in candidates]
    dist_scores = {c.id: _normalized(c.distance_meters, distances) for c in candidates}

    timed = [c for c in candidates if c.duration_seconds is not None]
    durations = [c.duration_seconds for c in timed]
    duration_scores = {c.id: _normalized(c.duration_seconds, durations) for c in timed}
    # Untimed candidates take the worst observed duration score, never the best.
    fallback_duration = min(duration_scores.values()) if duration_scores else 1.0

    total_weight = weights.distance + weights.duration
    scores: dict[int, float] = {}
    for candidate in candidates:
        duration_score = duration_scores.get(candidate.id, fallback_duration)
        score = (weights.distance * dist_scores[candidate.id] + weights.duration * duration_score) / total_weight
        if candidate.strategy is Strategy.OPTIMAL_MULTI_STOP:
            score += weights.multi_stop_bonus
        scores[candidate.id] = min(1.0, max(MIN_SCORE, score))
    return scores


def _rank_key(candidate: RouteCandidate, score: float) -> tuple:
    return (-round(score, SCORE_PRECISION), STRATEGY_PRIORITY[candidate.strategy], candidate.id)


def rank_candidates(
    candidates: Sequence[RouteCandidate], weights: ScoringWeights | None = None
) -> list[RouteCandidate]:
    """Return the candidates scored, ranked 1..N and with exactly one recommended.

    ``direct`` is a lower-bound reference: it is never recommended while a
    routed or optimal multi-stop candidate exists, whatever its rank.
    """
    if not candidates:
        return []
    ids = [c.id for c in candidates]
    if len(set(ids)) != len(ids):
        raise ValueError("Candidate ids must be unique within a set.")

    scores = score_candidates(candidates, weights)
    ordered = sorted(candidates, key=lambda c: _rank_key(c, scores[c.id]))

    recommended = ordered[0]
    if recommended.strategy is Strategy.DIRECT:
        recommended = next((c for c in ordered if c.strategy is not Strategy.DIRECT), recommended)

    return [
        candidate.with_ranking(
            score=scores[candidate.id],
            rank=position,
            recommended=candidate.id == recommended.id,
        )
        for position, candidate in enumerate(ordered, start=1)
    ]
