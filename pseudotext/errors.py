"""
Error Types
===========
Exceptions raised by analysis and generation.

The CLI maps each family to its own exit code so scripts can tell a bad
invocation from a thin corpus from a generation failure.
"""


class PseudoTextError(Exception):
    """Base class for all pseudotext errors."""

    exit_code = 1


class ConfigurationError(PseudoTextError, ValueError):
    """Missing inputs, conflicting flags or out-of-range settings."""

    exit_code = 1


class ModelValidationError(PseudoTextError):
    """The learned model cannot support generation.

    All problems found by a validation pass are collected into ``problems``
    and reported together.
    """

    exit_code = 2

    def __init__(self, problems):
        self.problems = list(problems)
        detail = "\n  - ".join(self.problems)
        super().__init__(f"Model validation failed:\n  - {detail}")


class GenerationError(PseudoTextError):
    """Generation could not produce output."""

    exit_code = 3


class TokenExhaustedError(GenerationError):
    """No token data remained for a required position after every tier."""

    def __init__(self, eff_len: int, position: int, prev_type: str):
        self.eff_len = eff_len
        self.position = position
        self.prev_type = prev_type
        super().__init__(
            f"No token data for position {position} "
            f"(effective length {eff_len}, after {prev_type})"
        )
