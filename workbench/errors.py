"""
Exception types shared by the store, the services and the HTTP layer.
"""

from __future__ import annotations


class WorkbenchError(Exception):
    """Base class for errors raised by the workbench backend."""


class AuthenticationRequired(WorkbenchError):
    """The caller has no authenticated user bound to its session."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class IdentityProviderError(WorkbenchError):
    """The identity provider is unconfigured, unreachable or sent a bad response."""


class IdentityResolutionError(WorkbenchError):
    """A provider identity could not be mapped to a local user."""


class StoreError(WorkbenchError):
    """The record store failed to complete an operation."""


class PersistenceError(WorkbenchError):
    """A service-level operation failed because of the record store."""


class SubmissionError(PersistenceError):
    """A typing test submission failed part way through."""
