"""
Content negotiation for flow clients.

Browser clients get HTML fragments for the active step; API clients
(Accept: application/json, or ?format=json) get the standard JSON envelope.
"""

from collections.abc import Callable
from enum import Enum
from html import escape
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse

from app.api.common.schemas import ErrorCodes
from app.api.workflow_base.exceptions import (
    ExternalServiceException,
    FlowBusyException,
    PaymentException,
    RegistrationServiceException,
    SessionExpiredException,
    SessionNotFoundException,
    StepStateException,
    StepValidationException,
    WorkflowException,
)

# (status code, error code) per exception type, most specific first
_ERROR_MAPPING: list[tuple[type[WorkflowException], int, str]] = [
    (SessionNotFoundException, 404, ErrorCodes.SESSION_NOT_FOUND),
    (SessionExpiredException, 410, ErrorCodes.SESSION_EXPIRED),
    (StepValidationException, 422, ErrorCodes.STEP_INCOMPLETE),
    (FlowBusyException, 409, ErrorCodes.FLOW_BUSY),
    (StepStateException, 409, ErrorCodes.INVALID_STEP),
    (PaymentException, 502, ErrorCodes.PAYMENT_FAILED),
    (RegistrationServiceException, 502, ErrorCodes.REGISTRATION_SERVICE_ERROR),
    (ExternalServiceException, 502, ErrorCodes.SERVICE_ERROR),
]


class ClientType(str, Enum):
    """Client type determined from the request."""

    WEB = "web"
    API = "api"


def get_client_type(request: Request) -> ClientType:
    """
    Determine client type from the Accept header or format query parameter.

    Args:
        request: FastAPI request object

    Returns:
        ClientType.API for JSON clients, otherwise ClientType.WEB
    """
    if request.query_params.get("format") == "json":
        return ClientType.API
    accept = request.headers.get("accept", "text/html")
    if "application/json" in accept:
        return ClientType.API
    return ClientType.WEB


def wants_json(request: Request) -> bool:
    """Quick check if client wants a JSON response."""
    return get_client_type(request) == ClientType.API


def dual_response(
    request: Request,
    html_content: str | Callable[[], str],
    json_data: dict[str, Any],
    status_code: int = 200,
) -> HTMLResponse | JSONResponse:
    """
    Return HTML or JSON based on client type.

    Args:
        request: FastAPI request object
        html_content: HTML string or callable that returns HTML
        json_data: Dictionary to return as JSON
        status_code: HTTP status code (default 200)
    """
    if wants_json(request):
        return JSONResponse(content=json_data, status_code=status_code)

    content = html_content() if callable(html_content) else html_content
    return HTMLResponse(content=content, status_code=status_code)


def json_success(data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a standard success response envelope."""
    return {"success": True, "data": data, "error": None}


def json_error(
    code: str,
    message: str,
    field: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standard error response envelope.

    Args:
        code: Error code (e.g., "VALIDATION_ERROR", "SESSION_NOT_FOUND")
        message: Human-readable error message
        field: Optional field name for validation errors
        details: Optional additional error details
    """
    error = {"code": code, "message": message}
    if field:
        error["field"] = field
    if details:
        error["details"] = details
    return {"success": False, "data": None, "error": error}


def exception_response(request: Request, exc: WorkflowException) -> HTMLResponse | JSONResponse:
    """Render a flow exception as an error envelope or an inline error fragment."""
    status_code, code = 500, ErrorCodes.WORKFLOW_ERROR
    for exc_type, mapped_status, mapped_code in _ERROR_MAPPING:
        if isinstance(exc, exc_type):
            status_code, code = mapped_status, mapped_code
            break

    return dual_response(
        request,
        f'<div class="error-message">{escape(exc.user_message)}</div>',
        json_error(code, exc.user_message, details=exc.details or None),
        status_code=status_code,
    )
