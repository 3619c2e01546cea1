"""
Error hierarchy for the recipe runner.

Every error carries an ``exit_code`` so the CLI entry point can map a
failure straight to a process status without inspecting messages.
"""

from __future__ import annotations

from typing import Any, Optional


class RecipeError(RuntimeError):
    exit_code: int = 1


class ConfigError(RecipeError):
    """A required environment variable is missing or malformed."""

    exit_code = 2


class ApiError(RecipeError):
    """
    Non-2xx response (or transport failure) from a remote API.

    Attributes:
        status_code: HTTP status, or None when no response was received
        body: Parsed JSON body when the server sent JSON, raw text otherwise
        method: HTTP method of the failed request
        path: Request path relative to the client's base URL
    """

    exit_code = 3

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        method: str = "",
        path: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path


class SigningError(RecipeError):
    """Payload could not be signed (malformed, wrong signer, unsupported format)."""

    exit_code = 4


class PipelineError(RecipeError):
    exit_code = 5


class PreparationError(PipelineError):
    """Transaction preparation still failing after the retry budget was spent."""


class TransactionFailedError(PipelineError):
    def __init__(self, message: str, transaction_id: str = "") -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


class ConfirmationTimeoutError(PipelineError):
    def __init__(self, message: str, transaction_id: str = "") -> None:
        super().__init__(message)
        self.transaction_id = transaction_id
