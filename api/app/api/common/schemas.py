"""
Pydantic schemas for API responses.

These schemas define the structure of JSON responses for flow clients.
"""

from typing import Any

from pydantic import BaseModel, Field


class StepIndicatorData(BaseModel):
    """One entry of the step indicator."""

    index: int
    id: str
    title: str
    description: str
    completed: bool
    current: bool
    reachable: bool


class FlowStepData(BaseModel):
    """Flow position and current step view."""

    session_id: str
    variant: str
    current_step: str
    current_step_index: int
    steps: list[StepIndicatorData]
    flow_state: dict[str, Any]
    view: dict[str, Any]
    resume_query: dict[str, str]
    resume_url: str
    busy: bool = False
    moved: bool | None = None


class PaymentStageData(BaseModel):
    """Payment sub-flow response data."""

    session_id: str
    stage: str
    error: str | None = None
    amount_due: float = 0
    total_amount_due: float = 0
    program_name: str = ""
    result: dict[str, Any] | None = None
    resume_query: dict[str, str] = Field(default_factory=dict)


class PaymentIntentData(BaseModel):
    """Created payment intent response data."""

    client_secret: str
    payment_intent_id: str
    amount: float
    registration_id: str
    program_name: str


class ProgramListData(BaseModel):
    """Open program listing response data."""

    programs: list[dict[str, Any]]
    count: int


# Error code constants
class ErrorCodes:
    """Standard error codes for API responses."""

    # Session
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Flow
    INVALID_STEP = "INVALID_STEP"
    STEP_INCOMPLETE = "STEP_INCOMPLETE"
    FLOW_BUSY = "FLOW_BUSY"
    WORKFLOW_ERROR = "WORKFLOW_ERROR"

    # Collaborators
    REGISTRATION_SERVICE_ERROR = "REGISTRATION_SERVICE_ERROR"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    SERVICE_ERROR = "SERVICE_ERROR"
