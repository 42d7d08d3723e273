"""Commands to benchmark, including parameter scans and parameter lists."""

from __future__ import annotations

import itertools
import math
import re
import shlex
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, Iterator, Optional

from .errors import (
    BenchError,
    EmptyRangeError,
    OptionsError,
    ParameterParseError,
    RangeTooLargeError,
    StepRequiredError,
    TooManyCommandNamesError,
    UnexpectedCommandNameCountError,
    UnexpectedOptionsCommandNameCountError,
    ZeroStepError,
)

MAX_PARAMETERS = 100_000

_INT32 = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class Command:
    """A command line template together with the parameter values to fill in."""

    expression: str
    name: Optional[str] = None
    parameters: tuple = field(default=())

    def __post_init__(self):
        object.__setattr__(
            self,
            "parameters",
            tuple((str(key), value) for key, value in self.parameters),
        )

    def _replace_parameters_in(self, original: str) -> str:
        # Every placeholder is replaced in a single left-to-right pass, so a
        # substituted value is never itself subject to further substitution.
        replacements = {f"{{{key}}}": str(value) for key, value in self.parameters}
        if not replacements:
            return original
        pattern = re.compile("|".join(re.escape(key) for key in sorted(replacements)))
        return pattern.sub(lambda match: replacements[match.group(0)], original)

    def get_name(self) -> str:
        """The display name, or the command line when no name was given."""
        if self.name is None:
            return self.get_command_line()
        return self._replace_parameters_in(self.name)

    def get_name_with_unused_parameters(self) -> str:
        """The display name followed by the parameters the template does not use."""
        unused = ", ".join(f"{key} = {value}" for key, value in self.unused_parameters())
        suffix = f" ({unused})" if unused else ""
        return f"{self.get_name()}{suffix}"

    def get_command_line(self) -> str:
        """The command line with all parameter values filled in."""
        return self._replace_parameters_in(self.expression)

    def get_argv(self) -> list:
        """Split the command line into program and arguments, without a shell."""
        command_line = self.get_command_line()
        try:
            words = shlex.split(command_line)
        except ValueError as error:
            raise BenchError(f"Failed to parse command '{command_line}': {error}") from error
        if not words:
            raise BenchError("Can not execute empty command")
        return words

    def unused_parameters(self) -> Iterator[tuple]:
        """Parameters whose placeholder does not occur in the command template."""
        for key, value in self.parameters:
            if f"{{{key}}}" not in self.expression:
                yield key, value

    def __str__(self) -> str:
        return self.get_command_line()


def tokenize(values: str) -> list:
    """Split a comma-separated list; '\\,' and '\\\\' escape a comma and a backslash."""
    tokens = []
    current = []
    escaped = False
    for char in values:
        if escaped:
            if char not in (",", "\\"):
                current.append("\\")
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ",":
            tokens.append("".join(current))
            current = []
        else:
            current.append(char)
    if escaped:
        current.append("\\")
    tokens.append("".join(current))
    return tokens


def range_step(start, end, step) -> Iterator:
    """Values from start up to and including end, in steps of step."""
    if end < start:
        raise EmptyRangeError()
    if step == 0:
        raise ZeroStepError()
    if step < 0:
        raise EmptyRangeError()
    if (end - start) / step > MAX_PARAMETERS:
        raise RangeTooLargeError()

    def values():
        current = start
        while current <= end:
            yield current
            current += step

    return values()


def find_duplicates(names: Iterable[str]) -> list:
    """All names that occur more than once, in sorted order."""
    return sorted(name for name, count in Counter(names).items() if count > 1)


def _name_for(command_names: list, index: int) -> Optional[str]:
    if index < len(command_names):
        return command_names[index]
    return command_names[0] if command_names else None


def build_parameter_scan_commands(
    param_name, param_min, param_max, step, command_names, command_strings
) -> list:
    """One command per scanned value and command template, values outermost."""
    command_names = list(command_names)
    commands = []
    for value in range_step(param_min, param_max, step):
        for expression in command_strings:
            commands.append(
                Command(
                    expression,
                    _name_for(command_names, len(commands)),
                    ((param_name, value),),
                )
            )
    if len(command_names) > 1 and len(command_names) != len(commands):
        raise UnexpectedCommandNameCountError(len(command_names), len(commands))
    return commands


def _parse_int32(text: str) -> Optional[int]:
    if not _INT32.fullmatch(text):
        return None
    number = int(text)
    if not _INT32_MIN <= number <= _INT32_MAX:
        return None
    return number


def _parse_decimal(text: str) -> Decimal:
    if not _DECIMAL.fullmatch(text):
        raise ParameterParseError(f"invalid decimal '{text}'")
    try:
        return Decimal(text)
    except InvalidOperation as error:
        raise ParameterParseError(f"invalid decimal '{text}'") from error


def parameter_scan_commands(command_names, command_strings, scan_args, step) -> list:
    """Commands for '--parameter-scan VAR MIN MAX' with an optional step size."""
    param_name, text_min, text_max = scan_args
    command_names = list(command_names or [])
    command_strings = list(command_strings)

    int_min = _parse_int32(text_min)
    int_max = _parse_int32(text_max)
    int_step = _parse_int32(step if step is not None else "1")
    if int_min is not None and int_max is not None and int_step is not None:
        return build_parameter_scan_commands(
            param_name, int_min, int_max, int_step, command_names, command_strings
        )

    decimal_min = _parse_decimal(text_min)
    decimal_max = _parse_decimal(text_max)
    if step is None:
        raise StepRequiredError()
    decimal_step = _parse_decimal(step)
    return build_parameter_scan_commands(
        param_name, decimal_min, decimal_max, decimal_step, command_names, command_strings
    )


def _parameter_list_commands(command_names, command_strings, parameter_list) -> list:
    names_and_values = [(name, tokenize(values)) for name, values in parameter_list]
    duplicates = find_duplicates(name for name, _ in names_and_values)
    if duplicates:
        raise OptionsError(f"Duplicate parameter names: {', '.join(duplicates)}")

    dimensions = [command_strings] + [values for _, values in names_and_values]
    space_size = math.prod(len(values) for values in dimensions)
    if space_size == 0:
        return []
    if len(command_names) > 1 and len(command_names) != space_size:
        raise UnexpectedOptionsCommandNameCountError(len(command_names), space_size)

    param_names = [name for name, _ in names_and_values]
    commands = []
    # The command list varies fastest, then the parameters in the order given.
    for combination in itertools.product(*reversed(dimensions)):
        expression, *values = reversed(combination)
        commands.append(
            Command(
                expression,
                _name_for(command_names, len(commands)),
                tuple(zip(param_names, values)),
            )
        )
    return commands


@dataclass
class Commands:
    """The commands that are benchmarked, in order."""

    commands: list = field(default_factory=list)

    @classmethod
    def from_arguments(cls, args) -> "Commands":
        """Build the command list from the namespace returned by parse_arguments."""
        command_strings = list(args.command or [])
        command_names = list(args.command_name or [])

        if args.parameter_scan:
            return cls(
                parameter_scan_commands(
                    command_names,
                    command_strings,
                    args.parameter_scan,
                    args.parameter_step_size,
                )
            )
        if args.parameter_list:
            return cls(
                _parameter_list_commands(command_names, command_strings, args.parameter_list)
            )
        if len(command_names) > len(command_strings):
            raise TooManyCommandNamesError(len(command_strings))
        return cls(
            [
                Command(expression, command_names[index] if index < len(command_names) else None)
                for index, expression in enumerate(command_strings)
            ]
        )

    def num_commands(self, has_reference_command) -> int:
        """Number of benchmarks, counting the reference command if there is one."""
        return len(self.commands) + (1 if has_reference_command else 0)

    def __iter__(self) -> Iterator[Command]:
        return iter(self.commands)

    def __len__(self) -> int:
        return len(self.commands)

    def __getitem__(self, index):
        return self.commands[index]