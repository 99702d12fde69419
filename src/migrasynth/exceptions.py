"""
Exception classes for migrasynth.
"""

from typing import Any, Dict, Optional


class MigrasynthError(Exception):
    """Base exception for all migrasynth errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(MigrasynthError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(MigrasynthError):
    """Raised when a diff entry does not carry the entities its change type requires."""

    pass


class SnapshotError(MigrasynthError):
    """Raised when a schema snapshot file cannot be read or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details, cause)
        self.path = path


class MigrationStoreError(MigrasynthError):
    """Raised when there's an error with the migrations directory."""

    pass
