"""Command line parsing and the options derived from it."""

from __future__ import annotations

import argparse
import contextlib
import os
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from .errors import (
    EmptyRunsRangeError,
    EmptyShellError,
    FloatParsingError,
    IntParsingError,
    OptionsError,
    ShellParseError,
    StdinDataFileDoesNotExistError,
    UnknownOutputPolicyError,
)

_VERSION = "1.19.0"
_DEFAULT_MIN_RUNS = 10
_DEFAULT_MIN_BENCHMARKING_TIME = 3.0


class OutputStyle(Enum):
    """How much decoration the terminal output gets."""

    BASIC = "basic"
    FULL = "full"
    NO_COLOR = "nocolor"
    COLOR = "color"
    DISABLED = "none"


class SortOrder(Enum):
    """Order of benchmarks in summaries and exported tables."""

    COMMAND = "command"
    MEAN_TIME = "mean-time"


class CmdFailureAction(Enum):
    """What to do when a benchmarked command exits unsuccessfully."""

    RAISE_ERROR = "raise"
    IGNORE = "ignore"


class ExecutorKind(Enum):
    """How commands are started."""

    RAW = "raw"
    SHELL = "shell"
    MOCK = "mock"


_OUTPUT_KINDS = ("null", "pipe", "inherit", "file")


def _has_several_components(value: str) -> bool:
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    trimmed = value
    while len(trimmed) > 1 and trimmed[-1] in separators:
        trimmed = trimmed[:-1]
    if trimmed in separators:
        return False
    return any(sep in trimmed for sep in separators)


@dataclass(frozen=True)
class OutputPolicy:
    """Where the standard output and error of a benchmarked command go."""

    kind: str = "null"
    path: Optional[Path] = None

    def __post_init__(self):
        if self.kind not in _OUTPUT_KINDS:
            raise ValueError(f"unknown output kind {self.kind!r}")
        if (self.kind == "file") != (self.path is not None):
            raise ValueError("a path is given exactly for the 'file' output kind")

    @classmethod
    def from_argument(cls, value: str) -> "OutputPolicy":
        """Read a policy from the value of '--output'."""
        if value in ("null", "pipe", "inherit"):
            return cls(value)
        if not _has_several_components(value):
            raise UnknownOutputPolicyError(value)
        return cls("file", Path(value))

    @contextlib.contextmanager
    def open_streams(self) -> Iterator[tuple]:
        """Yield the (stdout, stderr) arguments for starting a process."""
        if self.kind == "null":
            yield subprocess.DEVNULL, subprocess.DEVNULL
        elif self.kind == "pipe":
            yield subprocess.PIPE, subprocess.PIPE
        elif self.kind == "inherit":
            yield None, None
        else:
            with open(self.path, "wb") as handle:
                yield handle, subprocess.DEVNULL


@dataclass(frozen=True)
class InputPolicy:
    """Where the standard input of a benchmarked command comes from."""

    path: Optional[Path] = None

    @classmethod
    def from_argument(cls, value: str) -> "InputPolicy":
        """Read a policy from the value of '--input'."""
        if value == "null":
            return cls()
        path = Path(value)
        if not path.exists():
            raise StdinDataFileDoesNotExistError(value)
        return cls(path)

    @contextlib.contextmanager
    def open_stdin(self) -> Iterator:
        """Yield the stdin argument for starting a process."""
        if self.path is None:
            yield subprocess.DEVNULL
        else:
            with open(self.path, "rb") as handle:
                yield handle


@dataclass(frozen=True)
class Shell:
    """A shell program with its leading arguments."""

    words: tuple
    is_default: bool = False

    def __post_init__(self):
        object.__setattr__(self, "words", tuple(self.words))
        if not self.words:
            raise EmptyShellError()

    @classmethod
    def from_argument(cls, value: str) -> "Shell":
        """Read a shell from the value of '--shell'."""
        if value == "default":
            return _default_shell()
        try:
            words = shlex.split(value)
        except ValueError as error:
            raise ShellParseError(str(error)) from error
        if not words:
            raise EmptyShellError()
        return cls(tuple(words))

    def argv(self) -> list:
        """The words that start the shell."""
        return list(self.words)

    def __str__(self) -> str:
        if self.is_default:
            return self.words[0]
        return shlex.join(self.words)


def _default_shell() -> Shell:
    return Shell(("cmd.exe",) if os.name == "nt" else ("sh",), is_default=True)


@dataclass
class RunBounds:
    """Lower and optional upper limit on the number of timing runs."""

    min: int = _DEFAULT_MIN_RUNS
    max: Optional[int] = None


_UINT = re.compile(r"\+?[0-9]+")
_FLOAT = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)


def _parse_count(option: str, value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    if value == "":
        raise IntParsingError(option, "cannot parse integer from empty string")
    if not _UINT.fullmatch(value):
        raise IntParsingError(option, "invalid digit found in string")
    number = int(value)
    if number >= 2**64:
        raise IntParsingError(option, "number too large to fit in target type")
    return number


def _parse_seconds(option: str, value: str) -> float:
    if value == "":
        raise FloatParsingError(option, "cannot parse float from empty string")
    if not _FLOAT.fullmatch(value):
        raise FloatParsingError(option, "invalid float literal")
    return float(value)


def _auto_style(policies) -> OutputStyle:
    if any(policy.kind == "inherit" for policy in policies) or not sys.stdout.isatty():
        return OutputStyle.BASIC
    term = os.environ.get("TERM")
    if term is None:
        plain = os.name != "nt"
    else:
        plain = term in ("unknown", "dumb")
    if plain or os.environ.get("NO_COLOR"):
        return OutputStyle.NO_COLOR
    return OutputStyle.FULL


_STYLES = {
    "basic": OutputStyle.BASIC,
    "full": OutputStyle.FULL,
    "nocolor": OutputStyle.NO_COLOR,
    "color": OutputStyle.COLOR,
    "none": OutputStyle.DISABLED,
}

_SORT_ORDERS = {
    "auto": (SortOrder.MEAN_TIME, SortOrder.COMMAND),
    "command": (SortOrder.COMMAND, SortOrder.COMMAND),
    "mean-time": (SortOrder.MEAN_TIME, SortOrder.MEAN_TIME),
}


@dataclass
class Options:
    """Settings that control how every benchmark is run."""

    run_bounds: RunBounds = field(default_factory=RunBounds)
    warmup_count: int = 0
    min_benchmarking_time: float = _DEFAULT_MIN_BENCHMARKING_TIME
    command_failure_action: CmdFailureAction = CmdFailureAction.RAISE_ERROR
    reference_command: Optional[str] = None
    reference_name: Optional[str] = None
    preparation_command: Optional[list] = None
    conclusion_command: Optional[list] = None
    setup_command: Optional[str] = None
    cleanup_command: Optional[str] = None
    output_style: OutputStyle = OutputStyle.FULL
    sort_order_speed_comparison: SortOrder = SortOrder.MEAN_TIME
    sort_order_exports: SortOrder = SortOrder.COMMAND
    executor_kind: ExecutorKind = ExecutorKind.SHELL
    shell: Optional[Shell] = field(default_factory=_default_shell)
    mock_shell: Optional[str] = None
    command_output_policies: list = field(default_factory=lambda: [OutputPolicy()])
    command_input_policy: InputPolicy = field(default_factory=InputPolicy)
    time_unit: Optional[str] = None

    @classmethod
    def from_arguments(cls, args: argparse.Namespace) -> "Options":
        """Build options from the namespace returned by parse_arguments."""
        options = cls()

        warmup = _parse_count("warmup", args.warmup)
        if warmup is not None:
            options.warmup_count = warmup

        runs = _parse_count("runs", args.runs)
        if runs is not None:
            options.run_bounds = RunBounds(runs, runs)
        else:
            min_runs = _parse_count("min-runs", args.min_runs)
            max_runs = _parse_count("max-runs", args.max_runs)
            if min_runs is not None and max_runs is not None:
                if min_runs > max_runs:
                    raise EmptyRunsRangeError()
                options.run_bounds = RunBounds(min_runs, max_runs)
            elif min_runs is not None:
                options.run_bounds = RunBounds(min_runs, None)
            elif max_runs is not None:
                options.run_bounds = RunBounds(min(_DEFAULT_MIN_RUNS, max_runs), max_runs)

        options.setup_command = args.setup
        options.cleanup_command = args.cleanup
        options.reference_command = args.reference
        options.reference_name = args.reference_name
        options.preparation_command = list(args.prepare) if args.prepare else None
        options.conclusion_command = list(args.conclude) if args.conclude else None

        if args.show_output:
            options.command_output_policies = [OutputPolicy("inherit")]
        elif args.output:
            options.command_output_policies = [
                OutputPolicy.from_argument(value) for value in args.output
            ]
        else:
            options.command_output_policies = [OutputPolicy()]

        if args.input is not None:
            options.command_input_policy = InputPolicy.from_argument(args.input)

        if args.style in _STYLES:
            options.output_style = _STYLES[args.style]
        else:
            options.output_style = _auto_style(options.command_output_policies)

        (
            options.sort_order_speed_comparison,
            options.sort_order_exports,
        ) = _SORT_ORDERS[args.sort or "auto"]

        if args.no_shell:
            options.executor_kind, options.shell = ExecutorKind.RAW, None
        elif args.debug_mode:
            options.executor_kind, options.shell = ExecutorKind.MOCK, None
            options.mock_shell = args.shell
        elif args.shell == "none":
            options.executor_kind, options.shell = ExecutorKind.RAW, None
        elif args.shell is not None:
            options.executor_kind = ExecutorKind.SHELL
            options.shell = Shell.from_argument(args.shell)
        else:
            options.executor_kind, options.shell = ExecutorKind.SHELL, _default_shell()

        if args.ignore_failure:
            options.command_failure_action = CmdFailureAction.IGNORE

        options.time_unit = args.time_unit

        if args.min_benchmarking_time is not None:
            options.min_benchmarking_time = _parse_seconds(
                "min-benchmarking-time", args.min_benchmarking_time
            )

        return options

    def validate_against_command_count(self, count: int) -> None:
        """Check per-command options against the number of benchmarks."""
        for values, option in (
            (self.preparation_command, "--prepare"),
            (self.conclusion_command, "--conclude"),
        ):
            if values is not None and len(values) > 1 and len(values) != count:
                raise OptionsError(
                    f"The '{option}' option has to be provided just once or N times, "
                    f"where N={count} is the number of benchmark commands."
                )
        if len(self.command_output_policies) == 1:
            self.command_output_policies = self.command_output_policies * count
        elif len(self.command_output_policies) != count:
            raise OptionsError(
                "The '--output' option has to be provided just once or N times, "
                f"where N={count} is the number of benchmark commands."
            )


def _non_empty(value: str) -> str:
    if not value:
        raise argparse.ArgumentTypeError("a value is required but none was supplied")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the command line."""
    parser = argparse.ArgumentParser(
        prog="cmdbench",
        description="A command-line benchmarking tool.",
        allow_abbrev=False,
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    parser.add_argument(
        "command",
        nargs="+",
        type=_non_empty,
        metavar="COMMAND",
        help="The command to benchmark. This can be the name of an executable, a command "
        "line like \"grep -i todo\" or a shell command like \"sleep 0.5 && echo test\". "
        "The latter is only available if the shell is not disabled via '--shell=none'. "
        "If several commands are given, their runtimes are compared.",
    )
    parser.add_argument(
        "-w", "--warmup", metavar="NUM",
        help="Perform NUM warmup runs before the actual benchmark.",
    )
    parser.add_argument(
        "-m", "--min-runs", metavar="NUM",
        help="Perform at least NUM runs for each command (default: 10).",
    )
    parser.add_argument(
        "-M", "--max-runs", metavar="NUM",
        help="Perform at most NUM runs for each command. By default, there is no limit.",
    )
    parser.add_argument(
        "-r", "--runs", metavar="NUM",
        help="Perform exactly NUM runs for each command.",
    )
    parser.add_argument(
        "-s", "--setup", metavar="CMD",
        help="Execute CMD before each set of timing runs.",
    )
    parser.add_argument(
        "--reference", metavar="CMD",
        help="The reference command for the relative comparison of results. If unset, "
        "results are compared with the fastest command.",
    )
    parser.add_argument(
        "--reference-name", metavar="CMD",
        help="Give a meaningful name to the reference command.",
    )
    parser.add_argument(
        "-p", "--prepare", action="append", metavar="CMD",
        help="Execute CMD before each timing run. Give it once for all commands or once "
        "for each command.",
    )
    parser.add_argument(
        "-C", "--conclude", action="append", metavar="CMD",
        help="Execute CMD after each timing run. Give it once for all commands or once "
        "for each command.",
    )
    parser.add_argument(
        "-c", "--cleanup", metavar="CMD",
        help="Execute CMD after all benchmarking runs of each command.",
    )
    parser.add_argument(
        "-P", "--parameter-scan", nargs=3, metavar=("VAR", "MIN", "MAX"),
        help="Perform benchmark runs for each value in the range MIN..MAX, replacing "
        "'{VAR}' in each command by the current value.",
    )
    parser.add_argument(
        "-D", "--parameter-step-size", metavar="DELTA",
        help="Traverse the range of --parameter-scan in steps of DELTA.",
    )
    parser.add_argument(
        "-L", "--parameter-list", nargs=2, action="append", metavar=("VAR", "VALUES"),
        help="Perform benchmark runs for each value in the comma-separated list VALUES, "
        "replacing '{VAR}' in each command. May be given several times.",
    )
    parser.add_argument(
        "-S", "--shell", metavar="SHELL",
        help="The shell used to execute commands: a name, a path, a command line, "
        "'default', or 'none' to run commands directly.",
    )
    parser.add_argument(
        "-N", dest="no_shell", action="store_true",
        help="An alias for '--shell=none'.",
    )
    parser.add_argument(
        "-i", "--ignore-failure", action="store_true",
        help="Ignore non-zero exit codes of the benchmarked programs.",
    )
    parser.add_argument(
        "--style", choices=list(("auto",) + tuple(_STYLES)), metavar="TYPE",
        help="Set output style type: auto, basic, full, nocolor, color or none.",
    )
    parser.add_argument(
        "--sort", choices=list(_SORT_ORDERS), default="auto", metavar="METHOD",
        help="Sort order of the speed comparison and markup exports: auto, command "
        "or mean-time.",
    )
    parser.add_argument(
        "-u", "--time-unit", choices=["microsecond", "millisecond", "second"],
        metavar="UNIT",
        help="Set the time unit: microsecond, millisecond or second.",
    )
    for name, what in (
        ("asciidoc", "an AsciiDoc table"),
        ("csv", "CSV"),
        ("json", "JSON, including individual runs"),
        ("markdown", "a Markdown table"),
        ("orgmode", "an Emacs org-mode table"),
    ):
        parser.add_argument(
            f"--export-{name}", metavar="FILE",
            help=f"Export the timing summary statistics as {what} to FILE.",
        )
    parser.add_argument(
        "--show-output", action="store_true",
        help="Print the stdout and stderr of the benchmark instead of suppressing it.",
    )
    parser.add_argument(
        "--output", action="append", metavar="WHERE",
        help="Where the output of the benchmark goes: null, pipe, inherit or a file "
        "path. Give it once for all commands or once for each command.",
    )
    parser.add_argument(
        "--input", metavar="WHERE",
        help="Where the input of the benchmark comes from: null or a file path.",
    )
    parser.add_argument(
        "-n", "--command-name", action="append", metavar="NAME",
        help="Give a meaningful name to a command. May be given several times.",
    )
    parser.add_argument("--min-benchmarking-time", help=argparse.SUPPRESS)
    parser.add_argument("--debug-mode", action="store_true", help=argparse.SUPPRESS)
    return parser


_FLAGS = {
    "runs": "--runs",
    "min_runs": "--min-runs",
    "max_runs": "--max-runs",
    "reference": "--reference",
    "reference_name": "--reference-name",
    "parameter_scan": "--parameter-scan",
    "parameter_step_size": "--parameter-step-size",
    "parameter_list": "--parameter-list",
    "shell": "--shell",
    "no_shell": "-N",
    "debug_mode": "--debug-mode",
    "style": "--style",
    "show_output": "--show-output",
    "output": "--output",
}

_CONFLICTS = (
    ("runs", "max_runs"),
    ("runs", "min_runs"),
    ("parameter_list", "parameter_scan"),
    ("parameter_list", "parameter_step_size"),
    ("no_shell", "shell"),
    ("no_shell", "debug_mode"),
    ("show_output", "style"),
    ("output", "show_output"),
)

_REQUIREMENTS = (
    ("reference_name", "reference"),
    ("parameter_step_size", "parameter_scan"),
)


def _given(args: argparse.Namespace, dest: str) -> bool:
    value = getattr(args, dest)
    return value is not None and value is not False


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse the command line; exits with a usage message on errors."""
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)
    for first, second in _CONFLICTS:
        if _given(args, first) and _given(args, second):
            parser.error(
                f"the argument '{_FLAGS[first]}' cannot be used with '{_FLAGS[second]}'"
            )
    for dependent, required in _REQUIREMENTS:
        if _given(args, dependent) and not _given(args, required):
            parser.error(
                f"the argument '{_FLAGS[dependent]}' requires '{_FLAGS[required]}'"
            )
    return args