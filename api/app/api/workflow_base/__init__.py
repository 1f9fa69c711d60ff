"""
Step-flow framework - reusable components for resumable multi-step flows.
"""

from .controller import FlowController, StatusSource
from .exceptions import (
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
from .flow_state import FlowState
from .models import FlowSnapshot, FlowStatus, RequestTicket, Step, StepCallbacks
from .resumability import build_resume_params, build_resume_url, parse_resume_params
from .step_registry import StepRegistry

__all__ = [
    "FlowController",
    "StatusSource",
    "FlowState",
    "FlowSnapshot",
    "FlowStatus",
    "RequestTicket",
    "Step",
    "StepCallbacks",
    "StepRegistry",
    "build_resume_params",
    "build_resume_url",
    "parse_resume_params",
    "WorkflowException",
    "SessionExpiredException",
    "SessionNotFoundException",
    "FlowBusyException",
    "StepStateException",
    "StepValidationException",
    "ExternalServiceException",
    "RegistrationServiceException",
    "PaymentException",
]
