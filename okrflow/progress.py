"""
Progress, score and traffic-light calculations for objectives and key results.

Key-result progress is ``current / target`` as a percentage clamped to
0-100. Objective progress is the weighted roll-up of its key results.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from okrflow.types import ObjectiveStatus, TrafficLight


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def kr_progress(current: float, target: float) -> float:
    """Progress percentage of a single key result, clamped to [0, 100]."""
    if not target:
        return 0.0
    return _clamp((current / target) * 100)


def calc_progress(key_results: Sequence[Mapping[str, float]]) -> int:
    """
    Objective progress from raw key-result values.

    Progress = sum(clamp(current / target * 100) * weight / 100), rounded.
    Weights are used as-is, so a set that sums to less than 100 caps the
    objective below 100.
    """
    if not key_results:
        return 0
    total = 0.0
    for kr in key_results:
        total += kr_progress(kr["current"], kr["target"]) * (kr["weight"] / 100)
    return round(total)


def calc_progress_from_progress(key_results: Sequence[Mapping[str, float]]) -> int:
    """
    Objective progress from per-key-result percentages.

    Weights are normalized against their total so sets that do not sum to
    100 still produce a 0-100 value. Returns 0 for an empty set or a zero
    total weight.
    """
    if not key_results:
        return 0
    total_weight = sum(kr["weight"] for kr in key_results)
    if total_weight == 0:
        return 0
    weighted = sum(kr["progress"] * (kr["weight"] / total_weight) for kr in key_results)
    return round(weighted)


def objective_progress(key_results: Sequence[Mapping[str, float]]) -> float:
    """Un-normalized weighted sum of key-result percentages, clamped to [0, 100]."""
    if not key_results:
        return 0.0
    total = sum(kr["progress"] * kr["weight"] / 100 for kr in key_results)
    return _clamp(total)


def traffic_light(progress: Optional[float]) -> TrafficLight:
    if not progress:
        return TrafficLight.GRAY
    if progress > 70:
        return TrafficLight.GREEN
    if progress >= 30:
        return TrafficLight.YELLOW
    return TrafficLight.RED


def objective_score(progress: Optional[float]) -> float:
    """OKR score on the 0.0-1.0 scale."""
    return round(_clamp((progress or 0) / 100, 0.0, 1.0), 2)


def validate_kr_weights(existing: Iterable[Mapping[str, int]], new_weight: int) -> bool:
    """True when adding ``new_weight`` keeps the total weight at or below 100."""
    total = sum(kr["weight"] for kr in existing)
    return total + new_weight <= 100


def scored_status(progress: int, current: ObjectiveStatus) -> ObjectiveStatus:
    """Status the scoring job assigns for a given rounded progress."""
    if progress >= 95:
        return ObjectiveStatus.DONE
    light = traffic_light(progress)
    if light == TrafficLight.GREEN:
        return ObjectiveStatus.IN_PROGRESS
    if light in (TrafficLight.YELLOW, TrafficLight.RED):
        return ObjectiveStatus.AT_RISK
    return current
