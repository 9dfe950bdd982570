"""
Exception hierarchy for the chat backend.

Every application error carries the HTTP status it maps to at
the API boundary, so route handlers and the global exception
handler never need to translate them by hand.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base application error.

    Attributes:
        message (str): Human-readable error message.
        details (dict): Extra context for logs (never sent
            to the client).
        http_status (int): Status code used by the API layer.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for an API error response."""
        return {"detail": self.message}


class ConfigurationError(AppError):
    """Required configuration (usually an env var) is missing."""

    http_status = 500


class CompletionError(AppError):
    """The LLM completion request itself failed."""

    http_status = 502


class OutputValidationError(AppError):
    """Model output did not validate against the declared schema."""

    http_status = 502


class TransportError(AppError):
    """An external endpoint answered with a non-success status."""

    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class AuthorizationError(AppError):
    """The caller is not allowed to perform the operation."""

    http_status = 401


class ChartGenerationError(AppError):
    """Chart configuration could not be generated."""

    http_status = 502
