import subprocess
from pathlib import Path

import pytest

from cmdbench.cli import (
    CmdFailureAction,
    ExecutorKind,
    InputPolicy,
    Options,
    OutputPolicy,
    OutputStyle,
    RunBounds,
    Shell,
    SortOrder,
    build_parser,
    parse_arguments,
)
from cmdbench.errors import (
    EmptyRunsRangeError,
    EmptyShellError,
    FloatParsingError,
    IntParsingError,
    OptionsError,
    ShellParseError,
    StdinDataFileDoesNotExistError,
    UnknownOutputPolicyError,
)


def options_for(*argv):
    return Options.from_arguments(parse_arguments(list(argv)))


def test_commands_are_collected_around_options():
    args = parse_arguments(["echo a", "--runs", "2", "echo b"])
    assert args.command == ["echo a", "echo b"]
    assert args.runs == "2"


def test_missing_command_exits():
    with pytest.raises(SystemExit):
        parse_arguments(["--runs", "2"])


def test_empty_command_exits():
    with pytest.raises(SystemExit):
        parse_arguments([""])


def test_parser_rejects_unknown_style():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--style", "fancy", "cmd"])


@pytest.mark.parametrize(
    "argv",
    [
        ["--runs", "2", "--min-runs", "3", "cmd"],
        ["--runs", "2", "--max-runs", "3", "cmd"],
        ["-N", "--shell", "bash", "cmd"],
        ["-N", "--debug-mode", "cmd"],
        ["--show-output", "--style", "basic", "cmd"],
        ["--output", "pipe", "--show-output", "cmd"],
        ["-L", "x", "1,2", "-P", "y", "1", "3", "cmd"],
    ],
)
def test_conflicting_arguments_exit(argv):
    with pytest.raises(SystemExit):
        parse_arguments(argv)


@pytest.mark.parametrize(
    "argv",
    [["--reference-name", "ref", "cmd"], ["-D", "2", "cmd"]],
)
def test_missing_required_argument_exits(argv):
    with pytest.raises(SystemExit):
        parse_arguments(argv)


def test_parameter_scan_accepts_negative_bounds():
    args = parse_arguments(["-P", "x", "-5", "5", "echo {x}"])
    assert args.parameter_scan == ["x", "-5", "5"]
    assert args.command == ["echo {x}"]


def test_parameter_list_is_appended():
    args = parse_arguments(["-L", "a", "1,2", "-L", "b", "x", "cmd"])
    assert args.parameter_list == [["a", "1,2"], ["b", "x"]]


def test_default_run_bounds():
    assert options_for("cmd").run_bounds == RunBounds(10, None)


def test_exact_runs():
    assert options_for("--runs", "4", "cmd").run_bounds == RunBounds(4, 4)


def test_max_runs_lowers_default_minimum():
    bounds = options_for("--max-runs", "3", "cmd").run_bounds
    assert bounds.min == 3
    assert bounds.max == 3


def test_min_and_max_runs():
    assert options_for("-m", "2", "-M", "7", "cmd").run_bounds == RunBounds(2, 7)


def test_empty_runs_range():
    with pytest.raises(EmptyRunsRangeError):
        options_for("--min-runs", "5", "--max-runs", "2", "cmd")


@pytest.mark.parametrize("value", ["abc", "-1", "1.5", ""])
def test_bad_warmup_count(value):
    with pytest.raises(IntParsingError) as info:
        options_for("--warmup", value, "cmd")
    assert info.value.option == "warmup"


def test_warmup_count():
    assert options_for("-w", "+3", "cmd").warmup_count == 3


def test_bad_min_benchmarking_time():
    with pytest.raises(FloatParsingError) as info:
        options_for("--min-benchmarking-time", "soon", "cmd")
    assert info.value.option == "min-benchmarking-time"


def test_min_benchmarking_time():
    assert options_for("--min-benchmarking-time", "0.25", "cmd").min_benchmarking_time == 0.25


def test_show_output_inherits_and_uses_basic_style():
    options = options_for("--show-output", "cmd")
    assert options.command_output_policies == [OutputPolicy("inherit")]
    assert options.output_style is OutputStyle.BASIC


@pytest.mark.parametrize(
    "value, style",
    [("none", OutputStyle.DISABLED), ("nocolor", OutputStyle.NO_COLOR), ("full", OutputStyle.FULL)],
)
def test_explicit_style(value, style):
    assert options_for("--style", value, "cmd").output_style is style


def test_output_policies_from_arguments():
    options = options_for("--output", "pipe", "--output", "./log.txt", "a", "b")
    assert options.command_output_policies == [
        OutputPolicy("pipe"),
        OutputPolicy("file", Path("./log.txt")),
    ]


@pytest.mark.parametrize("value", ["results", "", "/"])
def test_bare_name_is_unknown_output_policy(value):
    with pytest.raises(UnknownOutputPolicyError):
        OutputPolicy.from_argument(value)


def test_output_policy_rejects_inconsistent_fields():
    with pytest.raises(ValueError):
        OutputPolicy("file")


def test_missing_input_file(tmp_path):
    missing = str(tmp_path / "missing.txt")
    with pytest.raises(StdinDataFileDoesNotExistError):
        options_for("--input", missing, "cmd")


def test_input_file_is_read(tmp_path):
    data = tmp_path / "in.txt"
    data.write_bytes(b"payload")
    policy = options_for("--input", str(data), "cmd").command_input_policy
    assert policy.path == data
    with policy.open_stdin() as stdin:
        assert stdin.read() == b"payload"


def test_null_input():
    policy = InputPolicy.from_argument("null")
    with policy.open_stdin() as stdin:
        assert stdin == subprocess.DEVNULL


def test_default_executor_is_default_shell():
    options = options_for("cmd")
    assert options.executor_kind is ExecutorKind.SHELL
    assert options.shell.is_default


@pytest.mark.parametrize("argv", [["-N", "cmd"], ["--shell=none", "cmd"]])
def test_raw_executor(argv):
    options = options_for(*argv)
    assert options.executor_kind is ExecutorKind.RAW
    assert options.shell is None


def test_custom_shell():
    options = options_for("--shell", "bash --norc", "cmd")
    assert options.executor_kind is ExecutorKind.SHELL
    assert options.shell.argv() == ["bash", "--norc"]
    assert not options.shell.is_default


def test_empty_shell():
    with pytest.raises(EmptyShellError):
        options_for("--shell", "", "cmd")


def test_unparsable_shell():
    with pytest.raises(ShellParseError):
        Shell.from_argument("bash 'unterminated")


def test_shell_text_round_trip():
    shell = Shell.from_argument("my shell --flag 'two words'")
    assert Shell.from_argument(str(shell)) == shell


def test_debug_mode_uses_mock_executor():
    options = options_for("--debug-mode", "sleep 0.1")
    assert options.executor_kind is ExecutorKind.MOCK
    assert options.mock_shell is None


def test_debug_mode_keeps_shell_text():
    options = options_for("--debug-mode", "--shell", "sleep 0.01", "sleep 0.1")
    assert options.mock_shell == "sleep 0.01"


def test_ignore_failure():
    assert options_for("-i", "cmd").command_failure_action is CmdFailureAction.IGNORE
    assert options_for("cmd").command_failure_action is CmdFailureAction.RAISE_ERROR


@pytest.mark.parametrize(
    "value, speed, exports",
    [
        ("auto", SortOrder.MEAN_TIME, SortOrder.COMMAND),
        ("command", SortOrder.COMMAND, SortOrder.COMMAND),
        ("mean-time", SortOrder.MEAN_TIME, SortOrder.MEAN_TIME),
    ],
)
def test_sort_orders(value, speed, exports):
    options = options_for("--sort", value, "cmd")
    assert options.sort_order_speed_comparison is speed
    assert options.sort_order_exports is exports


def test_time_unit_and_commands_options():
    options = options_for(
        "-u", "millisecond", "--setup", "make", "--cleanup", "rm x",
        "--reference", "ref", "--reference-name", "base", "cmd",
    )
    assert options.time_unit == "millisecond"
    assert (options.setup_command, options.cleanup_command) == ("make", "rm x")
    assert (options.reference_command, options.reference_name) == ("ref", "base")


def test_single_output_policy_is_replicated():
    options = options_for("--output", "pipe", "a", "b", "c")
    options.validate_against_command_count(3)
    assert options.command_output_policies == [OutputPolicy("pipe")] * 3


def test_output_policy_count_mismatch():
    options = options_for("--output", "pipe", "--output", "null", "a", "b", "c")
    with pytest.raises(OptionsError):
        options.validate_against_command_count(3)


def test_prepare_count_mismatch():
    options = options_for("-p", "x", "-p", "y", "a", "b", "c")
    with pytest.raises(OptionsError):
        options.validate_against_command_count(3)


def test_prepare_per_command_is_kept():
    options = options_for("-p", "x", "-p", "y", "a", "b")
    options.validate_against_command_count(2)
    assert options.preparation_command == ["x", "y"]
    assert len(options.command_output_policies) == 2


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("null", (subprocess.DEVNULL, subprocess.DEVNULL)),
        ("pipe", (subprocess.PIPE, subprocess.PIPE)),
        ("inherit", (None, None)),
    ],
)
def test_output_streams(kind, expected):
    with OutputPolicy(kind).open_streams() as streams:
        assert streams == expected


def test_file_output_stream_writes_stdout(tmp_path):
    target = tmp_path / "out.txt"
    with OutputPolicy.from_argument(str(target)).open_streams() as (stdout, stderr):
        stdout.write(b"hello")
        assert stderr == subprocess.DEVNULL
    assert target.read_bytes() == b"hello"