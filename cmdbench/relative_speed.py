"""Speed of each benchmark relative to a reference benchmark."""

from __future__ import annotations

import functools
import math
from dataclasses import dataclass
from typing import Optional

from .cli import SortOrder
from .results import BenchmarkResult


@dataclass
class RelativeSpeed:
    """A benchmark result annotated with its speed relative to the reference."""

    result: BenchmarkResult
    relative_speed: float
    relative_speed_stddev: Optional[float]
    is_reference: bool
    # Negative means faster than the reference, positive slower.
    relative_ordering: int


def compare_mean_time(left, right) -> int:
    """-1, 0 or 1 as the mean time of left is below, equal to or above that of right."""
    if left.mean < right.mean:
        return -1
    if left.mean > right.mean:
        return 1
    return 0


def fastest_of(results):
    """The first result with the lowest mean time."""
    if not results:
        raise ValueError("at least one benchmark result is required")
    fastest = results[0]
    for result in results[1:]:
        if compare_mean_time(result, fastest) < 0:
            fastest = result
    return fastest


def _divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def _annotate(result, reference) -> RelativeSpeed:
    is_reference = result == reference
    ordering = compare_mean_time(result, reference)

    if result.mean == 0.0:
        return RelativeSpeed(
            result, 1.0 if is_reference else math.inf, None, is_reference, ordering
        )

    if ordering < 0:
        ratio = _divide(reference.mean, result.mean)
    elif ordering > 0:
        ratio = _divide(result.mean, reference.mean)
    else:
        ratio = 1.0

    # Propagation of uncertainty, assuming independent measurements.
    ratio_stddev = None
    if result.stddev is not None and reference.stddev is not None:
        ratio_stddev = ratio * math.sqrt(
            _divide(result.stddev, result.mean) ** 2
            + _divide(reference.stddev, reference.mean) ** 2
        )

    return RelativeSpeed(result, ratio, ratio_stddev, is_reference, ordering)


def _compute_relative_speeds(results, reference, sort_order) -> list:
    annotated = [_annotate(result, reference) for result in results]
    if sort_order == SortOrder.MEAN_TIME:
        annotated.sort(
            key=functools.cmp_to_key(
                lambda a, b: compare_mean_time(a.result, b.result)
            )
        )
    return annotated


def compute_with_check_from_reference(results, reference, sort_order):
    """Relative speeds against the given reference, or None if a mean time is zero."""
    if fastest_of(results).mean == 0.0 or reference.mean == 0.0:
        return None
    return _compute_relative_speeds(results, reference, sort_order)


def compute_with_check(results, sort_order):
    """Relative speeds against the fastest result, or None if its mean time is zero."""
    fastest = fastest_of(results)
    if fastest.mean == 0.0:
        return None
    return _compute_relative_speeds(results, fastest, sort_order)


def compute(results, sort_order) -> list:
    """Relative speeds against the fastest result; zero times give infinite speeds."""
    return _compute_relative_speeds(results, fastest_of(results), sort_order)