"""
Base exception classes for application-wide error handling.

Every domain error in the project derives from BaseApplicationError so that
views and Celery tasks can report failures with a stable, machine-readable
error code.

Domain hierarchies (settlement.exceptions, settlement.ledger.exceptions)
subclass BaseApplicationError and set their own default_error_code.

Usage:
    from core.exceptions import BaseApplicationError

    class OrderNotFound(BaseApplicationError):
        default_error_code = "ORDER_NOT_FOUND"

    raise OrderNotFound(
        "Order not found",
        details={"reference": reference},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (amounts, identifiers, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Insufficient balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"required": 5000, "available": 1200}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )

