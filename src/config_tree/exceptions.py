from __future__ import annotations

from typing import Dict


class NamingError(Exception):
    """Base namespace exception."""


class NotFoundError(NamingError):
    """Raised when a key has no bound entry and no resolvable document value."""


class AlreadyBoundError(NamingError):
    """Raised when binding a key that already has an entry. Use rebind() instead."""


class NotListableError(NamingError):
    """Raised when list() targets a value that is not a namespace."""


class UnsupportedProtocolError(NamingError):
    """Raised for a root whose protocol has no locator."""


class UnsupportedTypeError(NamingError):
    """Raised when a `.type` marker names an unknown converter."""


class ParseFailureError(NamingError):
    """Raised when a backing document or a typed value is malformed."""


class ResolutionTimeoutError(NamingError):
    """Raised when a remote fetch exceeds the configured timeout. Safe to retry."""


class InvalidNameError(NamingError):
    """Raised when a write operation receives an empty or reserved key."""


class ResourceAccessError(NamingError):
    """Raised when a backing resource exists but cannot be read."""


class NamespaceClosedError(NamingError):
    """Raised if operations are attempted after close()."""


class EnvironmentValidationError(NamingError):
    """Raised when validation fails for one or more environment parameters."""

    def __init__(
        self, errors: Dict[str, str], key: str | None = None, value: object | None = None
    ) -> None:
        self.errors = errors
        self.key = key
        self.value = value
        msg = f"Validation errors: {errors}"
        if key is not None and value is not None:
            msg += f" (key: {key}, value: {value})"
        super().__init__(msg)


class ParamDuplicateError(EnvironmentValidationError):
    """Raised when attempting to register a duplicate environment parameter."""
