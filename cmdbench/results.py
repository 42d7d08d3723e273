"""Measurements of single runs and summaries of whole benchmarks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TimingResult:
    """Times and memory use measured for one run of a command."""

    time_real: float = 0.0
    time_user: float = 0.0
    time_system: float = 0.0
    memory_usage_byte: int = 0


@dataclass
class BenchmarkResult:
    """Summary statistics of all timing runs of one command."""

    command: str = ""
    command_with_unused_parameters: str = ""
    mean: float = 0.0
    stddev: Optional[float] = None
    median: float = 0.0
    user: float = 0.0
    system: float = 0.0
    min: float = 0.0
    max: float = 0.0
    times: Optional[list] = None
    memory_usage_byte: Optional[list] = None
    exit_codes: list = field(default_factory=list)
    parameters: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """The exported fields, in export order; absent or empty ones are left out."""
        data = {
            "command": self.command,
            "mean": self.mean,
            "stddev": self.stddev,
            "median": self.median,
            "user": self.user,
            "system": self.system,
            "min": self.min,
            "max": self.max,
        }
        if self.times is not None:
            data["times"] = list(self.times)
        if self.memory_usage_byte is not None:
            data["memory_usage_byte"] = list(self.memory_usage_byte)
        data["exit_codes"] = list(self.exit_codes)
        if self.parameters:
            data["parameters"] = {
                str(key): str(value) for key, value in sorted(self.parameters.items())
            }
        return data