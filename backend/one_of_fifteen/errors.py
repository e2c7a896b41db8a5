"""Errors raised by the game session when an intent is rejected.

A rejected intent never mutates shared state; the connection handler turns
the exception into an ``error`` message for the caller only.
"""


class GameError(ValueError):
    """Base class for every rejected game intent."""


class IllegalTransitionError(GameError):
    """The intent is not valid in the current phase or for the caller's role."""


class IdentityError(GameError):
    """The caller has no usable binding, or claims a role it cannot hold."""


class InvalidInputError(GameError):
    """The intent carries a malformed payload (name, age, target...)."""
