# src/errors.py

"""Exception types raised by the price tracker engine."""


class PriceTrackerError(Exception):
    """Base class for all price tracker errors."""


class StateDecodeError(PriceTrackerError):
    """The persisted state document could not be parsed."""


class ConfigError(PriceTrackerError, ValueError):
    """Invalid engine configuration supplied by the caller."""
