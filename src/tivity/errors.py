"""Exceptions raised by tivity.

Every message carries the ``[react-tivity]`` prefix so errors from this
library are easy to pick out of application logs.
"""

PREFIX = "[react-tivity]"


class TivityError(Exception):
    """Base class for tivity errors."""

    def __init__(self, message: str) -> None:
        super().__init__(f"{PREFIX} {message}")


class ConfigurationError(TivityError, ValueError):
    """A store was constructed with an invalid combination of arguments."""
