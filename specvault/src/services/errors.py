"""Exception types raised by the storage and graph services."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorType(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    GIT = "git"
    SYSTEM = "system"


class SpecVaultError(Exception):
    """Base error carrying a category plus optional details for display."""

    error_type: ErrorType = ErrorType.SYSTEM

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        *,
        error_type: Optional[ErrorType] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if error_type is not None:
            self.error_type = error_type

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class VaultValidationError(SpecVaultError):
    """Raised for malformed input such as self links or bad commit hashes."""

    error_type = ErrorType.VALIDATION


class VaultNotFoundError(SpecVaultError):
    """Raised when an id has no backing file or record."""

    error_type = ErrorType.NOT_FOUND


class VaultConflictError(SpecVaultError):
    """Raised when an operation would introduce a cycle or a duplicate."""

    error_type = ErrorType.CONFLICT


class VaultStorageError(SpecVaultError):
    """Raised for file-system and encoding failures."""

    error_type = ErrorType.STORAGE


class VaultGitError(SpecVaultError):
    """Raised when a repository path is not a git checkout."""

    error_type = ErrorType.GIT


__all__ = [
    "ErrorType",
    "SpecVaultError",
    "VaultValidationError",
    "VaultNotFoundError",
    "VaultConflictError",
    "VaultStorageError",
    "VaultGitError",
]
