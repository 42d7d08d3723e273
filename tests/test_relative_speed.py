import math

import pytest

from cmdbench.cli import SortOrder
from cmdbench.relative_speed import (
    compare_mean_time,
    compute,
    compute_with_check,
    compute_with_check_from_reference,
    fastest_of,
)
from cmdbench.results import BenchmarkResult


def create_result(name, mean, stddev=1.0):
    return BenchmarkResult(
        command=name,
        command_with_unused_parameters=name,
        mean=mean,
        stddev=stddev,
        median=mean,
        user=mean,
        system=0.0,
        min=mean,
        max=mean,
        times=None,
        memory_usage_byte=None,
        exit_codes=[],
        parameters={},
    )


def test_compute_relative_speed():
    results = [
        create_result("cmd1", 3.0),
        create_result("cmd2", 2.0),
        create_result("cmd3", 5.0),
    ]
    annotated = compute_with_check(results, SortOrder.COMMAND)
    assert annotated[0].relative_speed == pytest.approx(1.5)
    assert annotated[1].relative_speed == pytest.approx(1.0)
    assert annotated[2].relative_speed == pytest.approx(2.5)


def test_compute_relative_speed_with_reference():
    results = [create_result("cmd2", 2.0), create_result("cmd3", 5.0)]
    reference = create_result("cmd2", 4.0)
    annotated = compute_with_check_from_reference(results, reference, SortOrder.COMMAND)
    assert annotated[0].relative_speed == pytest.approx(2.0)
    assert annotated[1].relative_speed == pytest.approx(1.25)


def test_compute_relative_speed_for_zero_times():
    results = [create_result("cmd1", 1.0), create_result("cmd2", 0.0)]
    assert compute_with_check(results, SortOrder.COMMAND) is None


def test_zero_reference_gives_none():
    results = [create_result("cmd1", 1.0)]
    reference = create_result("ref", 0.0)
    assert compute_with_check_from_reference(results, reference, SortOrder.COMMAND) is None


def test_compute_allows_infinite_speed():
    results = [create_result("cmd1", 1.0), create_result("cmd2", 0.0)]
    annotated = compute(results, SortOrder.COMMAND)
    assert annotated[0].relative_speed == math.inf
    assert annotated[1].relative_speed == 1.0
    assert annotated[1].is_reference


def test_mean_time_sort_order():
    results = [
        create_result("cmd1", 3.0),
        create_result("cmd2", 2.0),
        create_result("cmd3", 5.0),
    ]
    annotated = compute_with_check(results, SortOrder.MEAN_TIME)
    assert [item.result.command for item in annotated] == ["cmd2", "cmd1", "cmd3"]
    assert [item.is_reference for item in annotated] == [True, False, False]


def test_relative_ordering_against_reference():
    results = [create_result("a", 1.0), create_result("b", 4.0), create_result("c", 2.0)]
    reference = results[2]
    annotated = compute_with_check_from_reference(results, reference, SortOrder.COMMAND)
    assert [item.relative_ordering for item in annotated] == [-1, 1, 0]
    assert annotated[0].relative_speed == pytest.approx(2.0)
    assert annotated[1].relative_speed == pytest.approx(2.0)


def test_stddev_missing_when_a_stddev_is_missing():
    results = [create_result("a", 1.0, stddev=None), create_result("b", 2.0)]
    annotated = compute_with_check(results, SortOrder.COMMAND)
    assert annotated[0].relative_speed_stddev is None
    assert annotated[1].relative_speed_stddev is None


def test_stddev_is_positive_with_both_stddevs():
    results = [create_result("a", 1.0), create_result("b", 2.0)]
    annotated = compute_with_check(results, SortOrder.COMMAND)
    assert annotated[1].relative_speed_stddev > annotated[1].relative_speed


def test_fastest_of_picks_first_minimum():
    results = [create_result("a", 2.0), create_result("b", 1.0), create_result("c", 1.0)]
    assert fastest_of(results).command == "b"


def test_fastest_of_empty_raises():
    with pytest.raises(ValueError):
        fastest_of([])


def test_compare_mean_time():
    slow, fast = create_result("slow", 2.0), create_result("fast", 1.0)
    assert compare_mean_time(fast, slow) == -1
    assert compare_mean_time(slow, fast) == 1
    assert compare_mean_time(fast, fast) == 0