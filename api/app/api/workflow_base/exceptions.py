"""
Custom exceptions for the registration flow system.
Provides a hierarchy of exceptions for better error handling.
"""

from typing import Any


class WorkflowException(Exception):
    """Base exception for all flow-related errors."""

    def __init__(
        self,
        message: str,
        step: str | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        """
        Initialize workflow exception.

        Args:
            message: Technical error message for logging
            step: Flow step where error occurred
            details: Additional error details
            user_message: User-friendly message to display
        """
        self.message = message
        self.step = step
        self.details = details or {}
        self.user_message = user_message or "An error occurred. Please try again."
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.user_message,
            "step": self.step,
            "details": self.details,
        }


class SessionException(WorkflowException):
    """Base exception for session-related errors."""


class SessionExpiredException(SessionException):
    """Raised when a flow session has expired."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session {session_id} has expired",
            user_message="Your session has expired. Please start over.",
            details={"session_id": session_id},
        )


class SessionNotFoundException(SessionException):
    """Raised when a flow session cannot be found."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session {session_id} not found",
            user_message="Session not found. Please start a new registration.",
            details={"session_id": session_id},
        )


class StepValidationException(WorkflowException):
    """Raised when a step's required data is missing."""

    def __init__(self, step: str, missing_fields: list[str]):
        super().__init__(
            message=f"Step {step} is missing required data: {', '.join(missing_fields)}",
            step=step,
            user_message="Please complete all required information before continuing.",
            details={"missing_fields": missing_fields},
        )
        self.missing_fields = missing_fields


class StepStateException(WorkflowException):
    """Raised when an operation is requested from the wrong step or stage."""

    def __init__(self, step: str, operation: str, reason: str):
        super().__init__(
            message=f"Cannot {operation} on step {step}: {reason}",
            step=step,
            user_message=reason,
            details={"operation": operation},
        )


class FlowBusyException(StepStateException):
    """Raised when navigation is attempted while a request is in flight."""

    def __init__(self, step: str, operation: str):
        super().__init__(step, operation, "Please wait for the current request to finish.")


class ExternalServiceException(WorkflowException):
    """Base exception for external service errors."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        user_message: str | None = None,
    ):
        super().__init__(
            message=f"{service} error: {message}",
            user_message=user_message or f"Service error: {service}. Please try again later.",
            details={"service": service, "status_code": status_code, "response": response},
        )
        self.service = service
        self.status_code = status_code


class RegistrationServiceException(ExternalServiceException):
    """Raised when registration API operations fail."""

    def __init__(
        self,
        operation: str,
        error_message: str,
        status_code: int | None = None,
        response: dict | None = None,
    ):
        super().__init__(
            service="Registration API",
            message=f"{operation} failed: {error_message}",
            status_code=status_code,
            response=response,
            user_message=error_message,
        )
        self.operation = operation


class PaymentException(ExternalServiceException):
    """Raised when payment operations fail."""

    def __init__(
        self,
        operation: str,
        error_message: str,
        status_code: int | None = None,
        response: dict | None = None,
    ):
        super().__init__(
            service="Payments",
            message=f"Payment {operation} failed: {error_message}",
            status_code=status_code,
            response=response,
            user_message=error_message,
        )
        self.operation = operation
