"""
Common utilities shared across the application.
"""

from app.api.common.response_negotiator import (
    ClientType,
    dual_response,
    get_client_type,
    json_error,
    json_success,
    wants_json,
)
from app.api.common.schemas import (
    ErrorCodes,
    FlowStepData,
    PaymentIntentData,
    PaymentStageData,
    ProgramListData,
    StepIndicatorData,
)
from app.api.common.utils import get_session_or_ip

__all__ = [
    # Response negotiation
    "ClientType",
    "dual_response",
    "get_client_type",
    "json_error",
    "json_success",
    "wants_json",
    # Schemas
    "ErrorCodes",
    "FlowStepData",
    "PaymentIntentData",
    "PaymentStageData",
    "ProgramListData",
    "StepIndicatorData",
    # Utils
    "get_session_or_ip",
]
