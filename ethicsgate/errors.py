"""Typed domain errors raised by the core and mapped by the CLI/API."""

from typing import Optional


class EthicsGateError(Exception):
    """Base class for every error the core raises on purpose."""


class PermissionDenied(EthicsGateError):
    """The actor may not perform the action on the target."""


class ValidationError(EthicsGateError):
    """Malformed input; ``field`` names the offending attribute when known."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidTransition(EthicsGateError):
    """The target is not in a state the operation supports.

    Also raised by stores when a conditional update loses a race, so callers
    can treat both cases the same way: re-read and retry.
    """


class NotFound(EthicsGateError):
    """Entity absent, or owned by another organization."""


class AuthenticationError(EthicsGateError):
    """The caller could not be identified."""


class CollaboratorError(EthicsGateError):
    """Failure inside an external collaborator such as the store."""
