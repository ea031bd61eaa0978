"""
Exception hierarchy shared by the clients, stores and services.
"""

from typing import Optional


class CompanionError(Exception):
    """Base class for all companion errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(CompanionError):
    """The identity provider rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteStoreError(CompanionError):
    """A call against the hosted tables failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LocalStoreError(CompanionError):
    """The local key-value store could not be written."""


class DerivationError(CompanionError):
    """A generative-text call failed or produced nothing usable."""
