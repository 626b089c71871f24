"""Exceptions raised by the economy package.

Rule functions are total over numbers: bad numeric input falls back to a
neutral default instead of raising. Only configuration problems and day keys
that do not name a calendar day raise.
"""


class EconomyError(Exception):
    """Base class for economy errors."""


class ConfigError(EconomyError):
    """Economy configuration could not be read."""


class DateKeyError(EconomyError, ValueError):
    """A value that should name a calendar day could not be parsed."""
