"""Running all timing runs of one command and summarising them."""

from __future__ import annotations

import math
import statistics
import sys
from dataclasses import dataclass
from typing import Optional

from .cli import CmdFailureAction, ExecutorKind, OutputStyle
from .command import Command
from .errors import BenchError
from .executor import BenchmarkIteration, Executor
from .results import BenchmarkResult, TimingResult

# Threshold for warning about fast execution time.
MIN_EXECUTION_TIME = 5e-3

# Modified Z-scores above this value mark a measurement as an outlier.
OUTLIER_THRESHOLD = 14.826

# Scale factor that makes the median absolute deviation comparable to a
# standard deviation for normally distributed data.
_MAD_SCALE = 1.4826

# Run count used when the measured time is zero and no upper bound exists.
_UNBOUNDED_RUNS = 2**64 - 1

_ANSI = {
    "bold": "1",
    "dimmed": "2",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "purple": "35",
    "cyan": "36",
}


def _divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def modified_zscores(values) -> list:
    """Modified Z-scores of the values, based on the median absolute deviation."""
    values = list(values)
    center = statistics.median(values)
    deviations = [abs(value - center) for value in values]
    mad = statistics.median(deviations)
    return [_divide(_divide(value - center, mad), _MAD_SCALE) for value in values]


def _format_duration_unit(duration: float, unit: Optional[str]):
    if unit is None:
        if duration < 1e-3:
            unit = "microsecond"
        elif duration < 1.0:
            unit = "millisecond"
        else:
            unit = "second"
    if unit == "microsecond":
        return f"{duration * 1e6:.1f} µs", unit
    if unit == "millisecond":
        return f"{duration * 1e3:.1f} ms", unit
    return f"{duration:.3f} s", unit


def _format_duration(duration: float, unit: Optional[str]) -> str:
    return _format_duration_unit(duration, unit)[0]


def _exit_code(returncode: int) -> Optional[int]:
    # A negative return code means the process was terminated by a signal.
    return None if returncode < 0 else returncode


@dataclass(frozen=True)
class _OutlierHints:
    warmup_in_use: bool
    prepare_in_use: bool

    def text(self) -> str:
        if self.warmup_in_use and self.prepare_in_use:
            return (
                "You are already using both the '--warmup' option as well as the "
                "'--prepare' option. Consider re-running the benchmark on a quiet system. "
                "Maybe it was a random outlier. Alternatively, consider increasing the "
                "warmup count."
            )
        if self.warmup_in_use:
            return (
                "You are already using the '--warmup' option which helps to fill these "
                "caches before the actual benchmark. You can either try to increase the "
                "warmup count further or re-run this benchmark on a quiet system in case "
                "it was a random outlier. Alternatively, consider using the '--prepare' "
                "option to clear the caches before each timing run."
            )
        if self.prepare_in_use:
            return (
                "You are already using the '--prepare' option which can be used to clear "
                "caches. If you did not use a cache-clearing command with '--prepare', you "
                "can either try that or consider using the '--warmup' option to fill those "
                "caches before the actual benchmark."
            )
        return (
            "You should consider using the '--warmup' option to fill those caches before "
            "the actual benchmark. Alternatively, use the '--prepare' option to clear the "
            "caches before each timing run."
        )


class Benchmark:
    """All warmup and timing runs of a single command."""

    def __init__(self, number: int, command: Command, options, executor: Executor):
        self.number = number
        self.command = command
        self.options = options
        self.executor = executor

    def _paint(self, text: str, *styles: str) -> str:
        if self.options.output_style not in (OutputStyle.FULL, OutputStyle.COLOR):
            return text
        codes = ";".join(_ANSI[style] for style in styles)
        return f"\x1b[{codes}m{text}\x1b[0m"

    def _run_intermediate_command(self, command, error_output, output_policy) -> TimingResult:
        try:
            timing, _ = self.executor.run_command_and_measure(
                command,
                BenchmarkIteration.non_benchmark(),
                CmdFailureAction.RAISE_ERROR,
                output_policy,
            )
        except (BenchError, OSError, ValueError) as error:
            raise BenchError(error_output) from error
        return timing

    def _run_optional_command(self, expression, what, output_policy) -> TimingResult:
        if expression is None:
            return TimingResult()
        command = Command(expression, None, self.command.parameters)
        return self._run_intermediate_command(
            command, self._error_text(what), output_policy
        )

    @staticmethod
    def _error_text(what: str) -> str:
        return (
            f"The {what} command terminated with a non-zero exit code. "
            "Append ' || true' to the command if you are sure that this can be ignored."
        )

    def _per_command(self, values) -> Optional[Command]:
        if values is None:
            return None
        expression = values[0] if len(values) == 1 else values[self.number]
        return Command(expression, None, self.command.parameters)

    def run(self) -> BenchmarkResult:
        """Run the benchmark and return its summary statistics."""
        options = self.options
        visible = options.output_style != OutputStyle.DISABLED

        if visible:
            print(
                f"{self._paint('Benchmark ', 'bold')}"
                f"{self._paint(str(self.number + 1), 'bold')}: "
                f"{self.command.get_name_with_unused_parameters()}"
            )

        output_policy = options.command_output_policies[self.number]
        preparation = self._per_command(options.preparation_command)
        conclusion = self._per_command(options.conclusion_command)
        preparation_error = self._error_text("preparation")
        conclusion_error = self._error_text("conclusion")

        def run_preparation() -> Optional[TimingResult]:
            if preparation is None:
                return None
            return self._run_intermediate_command(
                preparation, preparation_error, output_policy
            )

        def run_conclusion() -> Optional[TimingResult]:
            if conclusion is None:
                return None
            return self._run_intermediate_command(
                conclusion, conclusion_error, output_policy
            )

        self._run_optional_command(options.setup_command, "setup", output_policy)

        for i in range(options.warmup_count):
            run_preparation()
            self.executor.run_command_and_measure(
                self.command, BenchmarkIteration.warmup(i), None, output_policy
            )
            run_conclusion()

        preparation_result = run_preparation()
        preparation_overhead = (
            0.0
            if preparation_result is None
            else preparation_result.time_real + self.executor.time_overhead()
        )

        timing, returncode = self.executor.run_command_and_measure(
            self.command, BenchmarkIteration.benchmark(0), None, output_policy
        )

        conclusion_result = run_conclusion()
        conclusion_overhead = (
            0.0
            if conclusion_result is None
            else conclusion_result.time_real + self.executor.time_overhead()
        )

        per_run = (
            timing.time_real
            + self.executor.time_overhead()
            + preparation_overhead
            + conclusion_overhead
        )
        ratio = _divide(options.min_benchmarking_time, per_run)
        if math.isnan(ratio) or ratio <= 0:
            runs_in_min_time = 0
        elif math.isinf(ratio) or ratio >= _UNBOUNDED_RUNS:
            runs_in_min_time = _UNBOUNDED_RUNS
        else:
            runs_in_min_time = int(ratio)

        count = max(runs_in_min_time, options.run_bounds.min)
        if options.run_bounds.max is not None:
            count = min(count, options.run_bounds.max)

        timings = [timing]
        exit_codes = [_exit_code(returncode)]
        all_succeeded = returncode == 0

        for i in range(count - 1):
            run_preparation()
            timing, returncode = self.executor.run_command_and_measure(
                self.command, BenchmarkIteration.benchmark(i + 1), None, output_policy
            )
            timings.append(timing)
            exit_codes.append(_exit_code(returncode))
            all_succeeded = all_succeeded and returncode == 0
            run_conclusion()

        times_real = [t.time_real for t in timings]
        t_mean = statistics.fmean(times_real)
        t_stddev = (
            statistics.stdev(times_real, xbar=t_mean) if len(times_real) > 1 else None
        )
        t_median = statistics.median(times_real)
        t_min = min(times_real)
        t_max = max(times_real)
        user_mean = statistics.fmean(t.time_user for t in timings)
        system_mean = statistics.fmean(t.time_system for t in timings)

        if visible:
            self._print_summary(
                times_real, t_mean, t_stddev, t_min, t_max, user_mean, system_mean
            )

        warnings = self._warnings(times_real, all_succeeded)
        if warnings:
            print(" ", file=sys.stderr)
            for warning in warnings:
                print(f"  {self._paint('Warning', 'yellow')}: {warning}", file=sys.stderr)

        if visible:
            print(" ")

        self._run_optional_command(options.cleanup_command, "cleanup", output_policy)

        return BenchmarkResult(
            command=self.command.get_name(),
            command_with_unused_parameters=self.command.get_name_with_unused_parameters(),
            mean=t_mean,
            stddev=t_stddev,
            median=t_median,
            user=user_mean,
            system=system_mean,
            min=t_min,
            max=t_max,
            times=times_real,
            memory_usage_byte=[t.memory_usage_byte for t in timings],
            exit_codes=exit_codes,
            parameters={str(key): str(value) for key, value in self.command.parameters},
        )

    def _print_summary(self, times, mean, stddev, t_min, t_max, user, system) -> None:
        mean_str, unit = _format_duration_unit(mean, self.options.time_unit)
        user_str = self._paint(_format_duration(user, unit), "blue")
        system_str = self._paint(_format_duration(system, unit), "blue")
        if len(times) == 1:
            print(
                f"  Time ({self._paint('abs', 'green', 'bold')} ≡):        "
                f"{self._paint(f'{mean_str:>8}', 'green', 'bold')}  {'':>8}     "
                f"[User: {user_str}, System: {system_str}]"
            )
            return
        stddev_str = _format_duration(stddev, unit)
        min_str = _format_duration(t_min, unit)
        max_str = _format_duration(t_max, unit)
        print(
            f"  Time ({self._paint('mean', 'green', 'bold')} ± {self._paint('σ', 'green')}):     "
            f"{self._paint(f'{mean_str:>8}', 'green', 'bold')} ± "
            f"{self._paint(f'{stddev_str:>8}', 'green')}    "
            f"[User: {user_str}, System: {system_str}]"
        )
        print(
            f"  Range ({self._paint('min', 'cyan')} … {self._paint('max', 'purple')}):   "
            f"{self._paint(f'{min_str:>8}', 'cyan')} … "
            f"{self._paint(f'{max_str:>8}', 'purple')}    "
            f"{self._paint(f'{len(times)} runs', 'dimmed')}"
        )

    def _warnings(self, times_real, all_succeeded) -> list:
        options = self.options
        warnings = []
        if options.executor_kind == ExecutorKind.SHELL and any(
            t < MIN_EXECUTION_TIME for t in times_real
        ):
            warnings.append(
                "Command took less than 5 ms to complete. Note that the results might be "
                "inaccurate because the shell startup time can not be calibrated much more "
                "precisely than this limit. You can try to use the '-N'/'--shell=none' "
                "option to disable the shell completely."
            )
        if not all_succeeded:
            warnings.append("Ignoring non-zero exit code.")

        hints = _OutlierHints(
            warmup_in_use=options.warmup_count > 0,
            prepare_in_use=bool(options.preparation_command),
        )
        scores = modified_zscores(times_real)
        if scores[0] > OUTLIER_THRESHOLD:
            first = _format_duration(times_real[0], None)
            warnings.append(
                "The first benchmarking run for this command was significantly slower than "
                f"the rest ({first}). This could be caused by (filesystem) caches that were "
                f"not filled until after the first run. {hints.text()}"
            )
        elif any(abs(score) > OUTLIER_THRESHOLD for score in scores):
            warnings.append(
                "Statistical outliers were detected. Consider re-running this benchmark on "
                "a quiet system without any interferences from other programs. "
                f"{hints.text()}"
            )
        return warnings