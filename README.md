# cmdbench

A command-line benchmarking tool. It runs one or more commands many times,
measures wall-clock, user and system time, and prints the mean, standard
deviation, range and a relative speed comparison between the commands.

## Installation

    pip install .

This installs the `cmdbench` command.

## Usage

Benchmark a single command:

    cmdbench 'sleep 0.3'

Compare several commands; the summary shows how much faster or slower each
one is than the fastest:

    cmdbench 'grep -R todo .' 'rg todo'

### Number of runs

Each command runs at least 10 times, and more when it is fast enough that
more runs fit into about three seconds.

    cmdbench --warmup 3 'make'
    cmdbench --runs 5 'make'
    cmdbench --min-runs 20 --max-runs 50 'make'

`--runs` cannot be combined with `--min-runs` or `--max-runs`, and a minimum
larger than the maximum is an error.

### Setup, preparation and cleanup

    cmdbench --setup 'make clean' --prepare 'sync' --cleanup 'rm -f out' 'make'

* `--setup CMD` runs once before the timing runs of each command.
* `--prepare CMD` runs before every timing run; `--conclude CMD` after each.
  Both may be given once for all commands or once per command.
* `--cleanup CMD` runs after all runs of each command.

If any of these exits with a non-zero code, the benchmark stops with an error.

### Parameters

Scan a numeric range, replacing `{VAR}` in each command:

    cmdbench -P threads 1 8 'make -j {threads}'
    cmdbench -P delay 0.3 0.7 -D 0.2 'sleep {delay}'

Whole-number bounds step by 1 unless `-D` says otherwise; decimal bounds need
`-D`.

Or iterate over comma-separated lists (`\,` is a literal comma); several lists
give every combination:

    cmdbench -L compiler gcc,clang '{compiler} -O2 main.cpp'

Use `--command-name` (`-n`) to name commands; with parameters it may contain
`{VAR}` placeholders as well, and it must be given once or once per benchmark.

### Shell, input and output

* `--shell SHELL` picks the shell used to run commands (a name, a path, a
  command line, or `default`). The shell's start-up time is measured before
  the benchmarks and subtracted from each run.
* `-N` or `--shell=none` runs commands directly, split into words like a
  shell would, without a shell.
* `--ignore-failure` (`-i`) keeps going when a command exits with a non-zero code.
* `--output WHERE` sends command output to `null` (default), `pipe`, `inherit`
  or a file path (a path must contain a directory separator, e.g. `./out.log`);
  `--show-output` is the same as `--output=inherit`.
* `--input WHERE` reads command input from `null` (default) or an existing file.
* `--style TYPE` is one of `auto`, `basic`, `full`, `nocolor`, `color`, `none`.
* `--sort METHOD` orders the comparison: `auto` or `mean-time` print a summary
  ordered by mean time, `command` prints a table in the order given.
* `--time-unit UNIT` is one of `microsecond`, `millisecond`, `second`.
* `--reference CMD` (with an optional `--reference-name`) is benchmarked first
  and all results are compared with it instead of with the fastest one.

Each run sees `CMDBENCH_ITERATION` in its environment (`warmup-N` for warmup
runs, `N` for timing runs), so output can be logged per run:

    cmdbench 'my-command > output-${CMDBENCH_ITERATION}.log'

## Library use

* `cmdbench.cli.parse_arguments` reads the command line and
  `cmdbench.cli.Options.from_arguments` turns it into options.
* `cmdbench.command.Commands.from_arguments` expands commands, parameter scans
  and parameter lists into `cmdbench.command.Command` objects.
* `cmdbench.executor` holds `RawExecutor`, `ShellExecutor` and `MockExecutor`
  (which only understands `sleep <time>` and reports that time without running
  anything).
* `cmdbench.benchmark.Benchmark` times one command and returns a
  `cmdbench.results.BenchmarkResult`; `to_dict()` gives its fields.
* `cmdbench.relative_speed.compute` compares a list of results.
* `cmdbench.scheduler.Scheduler` runs all benchmarks; `cmdbench.scheduler.main`
  is the command-line entry point.

## What it does not do

* The `--export-asciidoc`, `--export-csv`, `--export-json`,
  `--export-markdown` and `--export-orgmode` options are accepted, but no
  files are written: results are only printed to the terminal.
* There are no progress bars while benchmarks run.

## Running the tests

    pip install '.[test]'
    pytest