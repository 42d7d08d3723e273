"""Exception types raised while reading options and building benchmarks."""


class BenchError(Exception):
    """Base class for every error raised by this package."""


class ParameterScanError(BenchError):
    """A parameter scan or parameter list could not be turned into commands."""


class ParameterParseError(ParameterScanError):
    """A bound or step of a parameter scan is not a number."""

    def __init__(self, detail):
        self.detail = detail
        super().__init__(f"Error while parsing parameter scan arguments ({detail})")


class EmptyRangeError(ParameterScanError):
    """The parameter range holds no values."""

    def __init__(self):
        super().__init__("Empty parameter range")


class RangeTooLargeError(ParameterScanError):
    """The parameter range holds too many values."""

    def __init__(self):
        super().__init__("Parameter range is too large")


class ZeroStepError(ParameterScanError):
    """The step of a parameter scan is zero."""

    def __init__(self):
        super().__init__("Zero is not a valid parameter step")


class StepRequiredError(ParameterScanError):
    """A decimal parameter scan was given without a step size."""

    def __init__(self):
        super().__init__(
            "A step size is required when the range bounds are floating point numbers. "
            "The step size can be specified with the '-D/--parameter-step-size <DELTA>' "
            "parameter"
        )


def _command_name_count_message(given, expected):
    return (
        f"'--command-name' has been specified {given} times. It has to appear exactly "
        f"once, or exactly {expected} times (number of benchmarks)"
    )


class UnexpectedCommandNameCountError(ParameterScanError):
    """The number of command names does not match the number of scanned benchmarks."""

    def __init__(self, given, expected):
        self.given = given
        self.expected = expected
        super().__init__(_command_name_count_message(given, expected))


class OptionsError(BenchError):
    """The command line options are inconsistent or malformed."""


class EmptyRunsRangeError(OptionsError):
    """The minimum number of runs is larger than the maximum."""

    def __init__(self):
        super().__init__(
            "Conflicting requirements for the number of runs "
            "(empty range, min is larger than max)"
        )


class TooManyCommandNamesError(OptionsError):
    """More command names were given than commands."""

    def __init__(self, maximum):
        self.maximum = maximum
        super().__init__(f"Too many --command-name options: Expected {maximum} at most")


class UnexpectedOptionsCommandNameCountError(OptionsError):
    """The number of command names does not match the number of benchmarks."""

    def __init__(self, given, expected):
        self.given = given
        self.expected = expected
        super().__init__(_command_name_count_message(given, expected))


class IntParsingError(OptionsError):
    """An option that takes a whole number got something else."""

    def __init__(self, option, detail):
        self.option = option
        self.detail = detail
        super().__init__(
            f"Could not read numeric integer argument to '--{option}': {detail}"
        )


class FloatParsingError(OptionsError):
    """An option that takes a floating point number got something else."""

    def __init__(self, option, detail):
        self.option = option
        self.detail = detail
        super().__init__(
            f"Could not read numeric floating point argument to '--{option}': {detail}"
        )


class EmptyShellError(OptionsError):
    """The shell option names no program."""

    def __init__(self):
        super().__init__(
            "An empty command has been specified for the '--shell <command>' option"
        )


class ShellParseError(OptionsError):
    """The shell option is not a valid command line."""

    def __init__(self, detail):
        self.detail = detail
        super().__init__(
            f"Failed to parse '--shell <command>' expression as command line: {detail}"
        )


class UnknownOutputPolicyError(OptionsError):
    """The output option names neither a known policy nor a file path."""

    def __init__(self, policy):
        self.policy = policy
        super().__init__(
            f"Unknown output policy '{policy}'. "
            f"Use './{policy}' to output to a file named '{policy}'."
        )


class StdinDataFileDoesNotExistError(OptionsError):
    """The input option names a file that does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"The file '{path}' specified as '--input' does not exist")