"""
Error types shared by the provider adapter and the HTTP handlers.
"""

from __future__ import annotations

from typing import Iterable


class ConfigurationError(RuntimeError):
    """Required provider credentials are missing."""


class BackendError(RuntimeError):
    """A call to the external auth/database provider failed."""

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class ValidationError(ValueError):
    """Required request fields are missing or blank."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required field(s): {', '.join(self.missing)}."
        )
