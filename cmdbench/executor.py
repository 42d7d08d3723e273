"""Ways of starting a command and measuring how long it takes."""

from __future__ import annotations

import abc
import os
import random
import statistics
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Optional

from .cli import CmdFailureAction, Options, OutputPolicy, Shell
from .command import Command
from .errors import BenchError
from .results import TimingResult

ITERATION_VARIABLE = "CMDBENCH_ITERATION"
OFFSET_VARIABLE = "CMDBENCH_RANDOMIZED_ENVIRONMENT_OFFSET"

# A random-length environment entry shifts the stack position of the benchmarked
# process, so that memory layout effects do not bias a whole benchmark.
_RANDOMIZED_OFFSET = "X" * random.randrange(4096)

_CALIBRATION_RUNS = 50


@dataclass(frozen=True)
class BenchmarkIteration:
    """Which run of a benchmark a command execution belongs to."""

    kind: str = "non-benchmark"
    number: int = 0

    NON_BENCHMARK = "non-benchmark"
    WARMUP = "warmup"
    BENCHMARK = "benchmark"

    def __post_init__(self):
        if self.kind not in (self.NON_BENCHMARK, self.WARMUP, self.BENCHMARK):
            raise ValueError(f"unknown iteration kind {self.kind!r}")

    @classmethod
    def non_benchmark(cls) -> "BenchmarkIteration":
        return cls(cls.NON_BENCHMARK)

    @classmethod
    def warmup(cls, number: int) -> "BenchmarkIteration":
        return cls(cls.WARMUP, number)

    @classmethod
    def benchmark(cls, number: int) -> "BenchmarkIteration":
        return cls(cls.BENCHMARK, number)

    def env_value(self) -> Optional[str]:
        """The value of the iteration environment variable, if any."""
        if self.kind == self.WARMUP:
            return f"warmup-{self.number}"
        if self.kind == self.BENCHMARK:
            return str(self.number)
        return None

    def describe(self) -> str:
        """A phrase naming this run, used in error messages."""
        if self.kind == self.WARMUP:
            return "the first warmup run" if self.number == 0 else f"warmup iteration {self.number}"
        if self.kind == self.BENCHMARK:
            if self.number == 0:
                return "the first benchmark run"
            return f"benchmark iteration {self.number}"
        return "a non-benchmark run"


def _drain(stream) -> None:
    with stream:
        while stream.read(65536):
            pass


def _execute_and_measure(argv, stdin, stdout, stderr, env):
    start = time.perf_counter()
    process = subprocess.Popen(argv, stdin=stdin, stdout=stdout, stderr=stderr, env=env)
    drainers = [
        threading.Thread(target=_drain, args=(stream,), daemon=True)
        for stream in (process.stdout, process.stderr)
        if stream is not None
    ]
    for drainer in drainers:
        drainer.start()

    if hasattr(os, "wait4"):
        _, status, usage = os.wait4(process.pid, 0)
        elapsed = time.perf_counter() - start
        returncode = os.waitstatus_to_exitcode(status)
        process.returncode = returncode
        scale = 1 if sys.platform == "darwin" else 1024
        timing = TimingResult(elapsed, usage.ru_utime, usage.ru_stime, usage.ru_maxrss * scale)
    else:
        returncode = process.wait()
        elapsed = time.perf_counter() - start
        timing = TimingResult(elapsed, 0.0, 0.0, 0)

    for drainer in drainers:
        drainer.join()
    return timing, returncode


def _run_and_measure_common(
    argv, iteration, failure_action, input_policy, output_policy, command_name
):
    env = dict(os.environ)
    env[OFFSET_VARIABLE] = _RANDOMIZED_OFFSET
    value = iteration.env_value()
    if value is not None:
        env[ITERATION_VARIABLE] = value

    with input_policy.open_stdin() as stdin, output_policy.open_streams() as (stdout, stderr):
        try:
            timing, returncode = _execute_and_measure(argv, stdin, stdout, stderr, env)
        except OSError as error:
            raise BenchError(f"Failed to run command '{command_name}': {error}") from error

    if failure_action == CmdFailureAction.RAISE_ERROR and returncode != 0:
        if returncode < 0:
            cause = "The process has been terminated by a signal"
        else:
            cause = f"Command terminated with non-zero exit code {returncode}"
        raise BenchError(
            f"{cause} in {iteration.describe()}. Use the '-i'/'--ignore-failure' option "
            "if you want to ignore this. Alternatively, use the '--show-output' option "
            "to debug what went wrong."
        )
    return timing, returncode


class Executor(abc.ABC):
    """Runs commands and measures them; returns (TimingResult, exit status)."""

    @abc.abstractmethod
    def run_command_and_measure(self, command, iteration, failure_action, output_policy):
        """Run the command once and return its timing and exit status."""

    def calibrate(self) -> None:
        """Measure any overhead this executor adds to each run."""

    def time_overhead(self) -> float:
        """Time spent per run in addition to the command itself."""
        return 0.0


class RawExecutor(Executor):
    """Starts commands directly, without a shell."""

    def __init__(self, options: Options):
        self.options = options

    def run_command_and_measure(self, command, iteration, failure_action, output_policy):
        return _run_and_measure_common(
            command.get_argv(),
            iteration,
            failure_action or self.options.command_failure_action,
            self.options.command_input_policy,
            output_policy,
            command.get_command_line(),
        )


class ShellExecutor(Executor):
    """Starts commands through a shell and subtracts the shell's start-up time."""

    def __init__(self, shell: Shell, options: Options):
        self.shell = shell
        self.options = options
        self.shell_spawning_time: Optional[TimingResult] = None

    def _on_windows_cmd(self) -> bool:
        return os.name == "nt" and self.shell.is_default and self.shell.words == ("cmd.exe",)

    def run_command_and_measure(self, command, iteration, failure_action, output_policy):
        command_line = command.get_command_line()
        if self._on_windows_cmd():
            # cmd.exe parses its own arguments, so the command line is passed verbatim.
            argv = f"{subprocess.list2cmdline(self.shell.argv())} /C {command_line}"
        else:
            argv = [*self.shell.argv(), "-c", command_line]

        timing, returncode = _run_and_measure_common(
            argv,
            iteration,
            failure_action or self.options.command_failure_action,
            self.options.command_input_policy,
            output_policy,
            command_line,
        )

        spawning = self.shell_spawning_time
        if spawning is not None:
            timing = TimingResult(
                max(timing.time_real - spawning.time_real, 0.0),
                max(timing.time_user - spawning.time_user, 0.0),
                max(timing.time_system - spawning.time_system, 0.0),
                timing.memory_usage_byte,
            )
        return timing, returncode

    def calibrate(self) -> None:
        """Measure the mean time it takes to start the shell with an empty command."""
        timings = []
        for _ in range(_CALIBRATION_RUNS):
            try:
                timing, _ = self.run_command_and_measure(
                    Command(""), BenchmarkIteration.non_benchmark(), None, OutputPolicy()
                )
            except BenchError as error:
                flag = "/C" if os.name == "nt" else "-c"
                raise BenchError(
                    "Could not measure shell execution time. "
                    f"Make sure you can run '{self.shell} {flag} \"\"'."
                ) from error
            timings.append(timing)

        self.shell_spawning_time = TimingResult(
            statistics.fmean(t.time_real for t in timings),
            statistics.fmean(t.time_user for t in timings),
            statistics.fmean(t.time_system for t in timings),
            0,
        )

    def time_overhead(self) -> float:
        if self.shell_spawning_time is None:
            raise BenchError("The shell spawning time has not been measured")
        return self.shell_spawning_time.time_real


class MockExecutor(Executor):
    """Runs nothing; 'sleep <time>' commands report <time> as their runtime."""

    def __init__(self, shell: Optional[str] = None):
        self.shell = shell

    @staticmethod
    def extract_time(command_line: str) -> float:
        """The duration in a 'sleep <time>' command line."""
        prefix = "sleep "
        if not command_line.startswith(prefix):
            raise ValueError(f"not a sleep command: {command_line!r}")
        rest = command_line
        while rest.startswith(prefix):
            rest = rest[len(prefix):]
        return float(rest)

    def run_command_and_measure(self, command, iteration, failure_action, output_policy):
        return TimingResult(self.extract_time(command.get_command_line())), 0

    def time_overhead(self) -> float:
        if self.shell is None:
            return 0.0
        return self.extract_time(self.shell)