import json

from cmdbench.results import BenchmarkResult, TimingResult


def make_result(**overrides):
    values = dict(
        command="sleep 0.123",
        command_with_unused_parameters="sleep 0.123 (x = 1)",
        mean=0.123,
        stddev=0.0,
        median=0.123,
        user=0.0,
        system=0.0,
        min=0.123,
        max=0.123,
        times=[0.123, 0.123],
        memory_usage_byte=[0, 0],
        exit_codes=[0, 0],
    )
    values.update(overrides)
    return BenchmarkResult(**values)


def test_timing_result_defaults_to_zero_and_is_comparable():
    assert TimingResult() == TimingResult(0.0, 0.0, 0.0, 0)
    assert TimingResult(time_real=1.5).time_real == 1.5


def test_key_order_follows_export_format():
    data = make_result().to_dict()
    assert list(data) == [
        "command",
        "mean",
        "stddev",
        "median",
        "user",
        "system",
        "min",
        "max",
        "times",
        "memory_usage_byte",
        "exit_codes",
    ]


def test_command_with_unused_parameters_is_not_exported():
    data = make_result().to_dict()
    assert "command_with_unused_parameters" not in data
    assert data["command"] == "sleep 0.123"


def test_missing_times_and_memory_are_left_out():
    data = make_result(times=None, memory_usage_byte=None).to_dict()
    assert "times" not in data
    assert "memory_usage_byte" not in data
    assert data["exit_codes"] == [0, 0]


def test_missing_stddev_is_kept_as_null():
    data = make_result(stddev=None).to_dict()
    assert data["stddev"] is None
    assert json.loads(json.dumps(data))["stddev"] is None


def test_parameters_are_sorted_by_name():
    data = make_result(parameters={"zeta": "1", "alpha": "2"}).to_dict()
    assert list(data["parameters"].items()) == [("alpha", "2"), ("zeta", "1")]


def test_json_round_trip_preserves_values():
    result = make_result(exit_codes=[0, None], parameters={"n": "3"})
    restored = json.loads(json.dumps(result.to_dict()))
    assert restored["times"] == result.times
    assert restored["exit_codes"] == result.exit_codes
    assert restored["parameters"] == result.parameters
    assert restored["mean"] == result.mean