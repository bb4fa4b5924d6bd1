"""
Error taxonomy for the MIPS scoring engine.

- InputError: malformed or missing identifiers; rejected synchronously, never retried.
- DataUnavailableError: no performance facts for a category; the category scores 0.
- ConfigurationError: missing/invalid year-scoped configuration; defaults are used
  and the fallback is logged.
- NotFoundError: a referenced catalog entry (PI measure, IA activity) does not exist.

Ineligibility and invalid measure selections are expected outcomes and are
returned as structured results, not raised.
"""

from typing import Iterable, Optional


MIN_PERFORMANCE_YEAR = 2017
MAX_PERFORMANCE_YEAR = 2100


class MIPSEngineError(Exception):
    """Base class for all engine errors."""


class InputError(MIPSEngineError, ValueError):
    """Raised when required identifiers are missing or malformed."""


class NotFoundError(MIPSEngineError, LookupError):
    """Raised when a referenced catalog entry does not exist for the year."""


class DataUnavailableError(MIPSEngineError):
    """Raised when a category has no performance facts for a provider/year."""

    def __init__(self, category: str, provider_id: str, performance_year: int):
        self.category = category
        self.provider_id = provider_id
        self.performance_year = performance_year
        super().__init__(
            f"No {category} performance data for provider {provider_id} in {performance_year}"
        )


class ConfigurationError(MIPSEngineError):
    """Raised when year-scoped configuration is missing or inconsistent."""

    def __init__(self, performance_year: int, keys: Iterable[str], detail: Optional[str] = None):
        self.performance_year = performance_year
        self.keys = list(keys)
        message = f"Invalid configuration for {performance_year}: {', '.join(self.keys)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


def validate_identifiers(provider_id: Optional[str], performance_year: Optional[int]) -> None:
    """
    Validate the (provider, year) key shared by every operation.

    Raises:
        InputError: If provider_id is blank or the year is missing/out of range.
    """
    if provider_id is None or not str(provider_id).strip():
        raise InputError("provider_id is required")
    validate_performance_year(performance_year)


def validate_performance_year(performance_year: Optional[int]) -> None:
    """Raise InputError unless performance_year is an int within the program range."""
    if performance_year is None or isinstance(performance_year, bool) or not isinstance(performance_year, int):
        raise InputError(f"performance_year must be an integer, got {performance_year!r}")
    if not MIN_PERFORMANCE_YEAR <= performance_year <= MAX_PERFORMANCE_YEAR:
        raise InputError(
            f"performance_year {performance_year} outside "
            f"{MIN_PERFORMANCE_YEAR}-{MAX_PERFORMANCE_YEAR}"
        )
