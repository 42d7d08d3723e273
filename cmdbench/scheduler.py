"""Running the benchmarks of all commands and comparing their speeds."""

from __future__ import annotations

import sys
from typing import Optional

from . import relative_speed
from .benchmark import Benchmark
from .cli import ExecutorKind, Options, OutputStyle, SortOrder, parse_arguments
from .command import Command, Commands
from .errors import BenchError
from .executor import Executor, MockExecutor, RawExecutor, ShellExecutor

_ANSI = {
    "bold": "1",
    "red": "31",
    "green": "32",
    "magenta": "35",
    "cyan": "36",
}

_ZERO_TIME_NOTE = (
    "The benchmark comparison could not be computed as some benchmark times are zero. "
    "This could be caused by background interference during the initial calibration phase "
    "of cmdbench, in combination with very fast commands (faster than a few milliseconds). "
    "Try to re-run the benchmark on a quiet system. If you did not do so already, try the "
    "--shell=none/-N option. If it does not help either, you command is most likely too fast "
    "to be accurately benchmarked by cmdbench."
)


def _mock_shell(options) -> Optional[str]:
    shell = getattr(options, "shell", None)
    if shell is None:
        return None
    text = str(shell)
    return text if text.startswith("sleep ") else None


def _make_executor(options) -> Executor:
    if options.executor_kind == ExecutorKind.RAW:
        return RawExecutor(options)
    if options.executor_kind == ExecutorKind.SHELL:
        return ShellExecutor(options.shell, options)
    return MockExecutor(_mock_shell(options))


class Scheduler:
    """Runs one benchmark per command and reports how they compare."""

    def __init__(self, commands: Commands, options: Options, export_manager=None,
                 executor: Optional[Executor] = None):
        self.commands = commands
        self.options = options
        self.export_manager = export_manager
        self.executor = executor
        self.results: list = []

    def _paint(self, text: str, *styles: str) -> str:
        if self.options.output_style not in (OutputStyle.FULL, OutputStyle.COLOR):
            return text
        codes = ";".join(_ANSI[style] for style in styles)
        return f"\x1b[{codes}m{text}\x1b[0m"

    def _export(self, intermediate: bool) -> None:
        if self.export_manager is not None:
            self.export_manager.write_results(self.results, intermediate)

    def run_benchmarks(self) -> None:
        """Benchmark the reference command, if any, then every command in order."""
        executor = self.executor if self.executor is not None else _make_executor(self.options)
        self.executor = executor

        commands = list(self.commands)
        if self.options.reference_command is not None:
            commands.insert(
                0, Command(self.options.reference_command, self.options.reference_name)
            )

        executor.calibrate()

        for number, command in enumerate(commands):
            self.results.append(Benchmark(number, command, self.options, executor).run())
            # Export after each benchmark so a later failure does not lose results.
            self._export(True)

    def print_relative_speed_comparison(self) -> None:
        """Print how the benchmarks compare to the reference or the fastest one."""
        if self.options.output_style == OutputStyle.DISABLED:
            return
        if len(self.results) < 2:
            return

        if self.options.reference_command is not None:
            reference = self.results[0]
        else:
            reference = relative_speed.fastest_of(self.results)

        sort_order = self.options.sort_order_speed_comparison
        annotated = relative_speed.compute_with_check_from_reference(
            self.results, reference, sort_order
        )
        if annotated is None:
            print(f"{self._paint('Note', 'bold', 'red')}: {_ZERO_TIME_NOTE}", file=sys.stderr)
            return

        if sort_order == SortOrder.MEAN_TIME:
            self._print_summary(annotated)
        else:
            self._print_table(annotated)

    def _print_summary(self, annotated) -> None:
        print(self._paint("Summary", "bold"))
        reference = next(item for item in annotated if item.is_reference)
        print(f"  {self._paint(reference.result.command_with_unused_parameters, 'cyan')} ran")
        for item in annotated:
            if item.is_reference:
                continue
            stddev = ""
            if item.relative_speed_stddev is not None:
                stddev = f" ± {self._paint(f'{item.relative_speed_stddev:.2f}', 'green')}"
            if item.relative_ordering < 0:
                speed = self._paint(f"{item.relative_speed:8.2f}", "bold", "green")
                comparator = f"{speed}{stddev} times slower than"
            elif item.relative_ordering > 0:
                speed = self._paint(f"{item.relative_speed:8.2f}", "bold", "green")
                comparator = f"{speed}{stddev} times faster than"
            else:
                speed = self._paint(f"{item.relative_speed:.2f}", "bold", "green")
                comparator = f"    As fast ({speed}{stddev}) as"
            name = self._paint(item.result.command_with_unused_parameters, "magenta")
            print(f"{comparator} {name}")

    def _print_table(self, annotated) -> None:
        print(self._paint("Relative speed comparison", "bold"))
        for item in annotated:
            if item.is_reference or item.relative_speed_stddev is None:
                stddev = " " * 8
            else:
                stddev = f" ± {self._paint(f'{item.relative_speed_stddev:5.2f}', 'green')}"
            speed = self._paint(f"{item.relative_speed:10.2f}", "bold", "green")
            print(f"  {speed}{stddev}  {item.result.command_with_unused_parameters}")

    def final_export(self) -> None:
        """Write the complete set of results."""
        self._export(False)


def main(argv=None) -> int:
    """Run the benchmarks described by the command line; return the exit status."""
    try:
        args = parse_arguments(argv)
        options = Options.from_arguments(args)
        commands = Commands.from_arguments(args)
        options.validate_against_command_count(
            commands.num_commands(options.reference_command is not None)
        )
        scheduler = Scheduler(commands, options)
        scheduler.run_benchmarks()
        scheduler.print_relative_speed_comparison()
        scheduler.final_export()
    except BenchError as error:
        print(f"[cmdbench error]: {error}", file=sys.stderr)
        return 1
    return 0