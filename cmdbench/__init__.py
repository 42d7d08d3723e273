"""A command-line benchmarking tool: run commands repeatedly, time them and compare them."""

__version__ = "1.19.0"