"""Exception hierarchy for the car-rental backend."""

from __future__ import annotations


class CarRentalError(Exception):
    """Base exception for all backend errors."""


class ConfigurationError(CarRentalError):
    """Raised at startup when required configuration is missing or invalid."""


class CarApiValidationError(CarRentalError, ValueError):
    """Raised before any network call when a car-API query lacks a required parameter."""


class CarApiError(CarRentalError):
    """Raised when the car-data API cannot be reached or answers with an error.

    The message is safe to show to clients; ``status_code`` is kept for logs only.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseAlreadySentError(CarRentalError, RuntimeError):
    """Raised when a response is finalized more than once."""
