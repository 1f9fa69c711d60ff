"""
Shared utilities for registration flow routes.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import Limiter

from app.api.common.response_negotiator import dual_response, json_success
from app.api.common.schemas import FlowStepData, PaymentStageData, StepIndicatorData
from app.api.common.utils import get_session_or_ip
from app.api.registration_flow.config import get_registration_config
from app.api.registration_flow.payment_service import PaymentApiClient
from app.api.registration_flow.payment_subflow import PAYMENT_STEP_ID, PaymentSubflow
from app.api.registration_flow.registration_api import RegistrationApiClient
from app.api.registration_flow.session_store import (
    RegistrationFlowSession,
    get_registration_session,
)
from app.api.registration_flow.validators import validate_session_id
from app.api.settings import get_settings
from app.api.workflow_base import build_resume_url
from app.api.workflow_base.exceptions import (
    FlowBusyException,
    SessionNotFoundException,
    StepStateException,
)

logger = logging.getLogger(__name__)

FLOW_PATH = "/registration/flow"

# Initialize templates
templates = Jinja2Templates(directory=str(Path(__file__).parent.parent.parent.parent / "templates"))

# Initialize limiter with custom key function
limiter = Limiter(key_func=get_session_or_ip)

RATE_LIMITS = get_registration_config().get_rate_limits()


@lru_cache
def get_registration_api() -> RegistrationApiClient:
    """Dependency providing the registration API client."""
    settings = get_settings()
    return RegistrationApiClient(
        settings.registration_api_base_url,
        api_token=settings.registration_api_token,
        timeout=settings.request_timeout_seconds,
    )


@lru_cache
def get_payment_api() -> PaymentApiClient:
    """Dependency providing the payment API client."""
    settings = get_settings()
    return PaymentApiClient(
        settings.registration_api_base_url,
        api_token=settings.registration_api_token,
        timeout=settings.request_timeout_seconds,
    )


def load_session(session_id: str) -> RegistrationFlowSession:
    """Validate the session id and return the active session."""
    validation = validate_session_id(session_id)
    if not validation["is_valid"]:
        logger.warning(f"Rejected session id {session_id!r}: {validation['error']}")
        raise SessionNotFoundException(session_id)
    return get_registration_session(session_id, get_settings().session_timeout_minutes)


def ensure_idle(session: RegistrationFlowSession, operation: str) -> None:
    """Refuse an operation while the session has a request in flight."""
    controller = session.controller
    if controller.busy:
        raise FlowBusyException(controller.current_step.id, operation)


def require_payment(session: RegistrationFlowSession) -> PaymentSubflow:
    """Return the active payment sub-flow for a session on the payment step."""
    current = session.controller.current_step.id
    if current != PAYMENT_STEP_ID or session.payment is None:
        raise StepStateException(current, "pay", "Payment has not been started for this step.")
    return session.payment


def build_flow_data(
    session: RegistrationFlowSession,
    moved: bool | None = None,
    extra_view: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the flow response payload for the session's current step."""
    controller = session.controller
    registry = controller.registry
    snapshot = controller.snapshot()

    steps = [
        StepIndicatorData(
            index=index,
            id=step.id,
            title=step.title,
            description=step.description,
            completed=index in snapshot.completed_steps,
            current=index == snapshot.current_step_index,
            reachable=controller.can_reach(index),
        )
        for index, step in enumerate(registry)
    ]

    extra = dict(extra_view or {})
    if snapshot.current_step == PAYMENT_STEP_ID and session.payment is not None:
        extra.setdefault("payment", session.payment.view())
    view = registry.renderer_at(snapshot.current_step_index).render(snapshot, extra)

    resume_query = controller.resume_params()
    url_params = dict(resume_query)
    if session.variant != get_registration_config().default_variant:
        url_params["variant"] = session.variant

    data = FlowStepData(
        session_id=session.session_id,
        variant=session.variant,
        current_step=snapshot.current_step,
        current_step_index=snapshot.current_step_index,
        steps=steps,
        flow_state=snapshot.model_dump(mode="json"),
        view=view,
        resume_query=resume_query,
        resume_url=build_resume_url(FLOW_PATH, url_params),
        busy=controller.busy,
        moved=moved,
    )
    return data.model_dump(mode="json")


def flow_response(
    request: Request,
    session: RegistrationFlowSession,
    moved: bool | None = None,
    extra_view: dict[str, Any] | None = None,
) -> HTMLResponse | JSONResponse:
    """Return the current step as JSON or as an HTML fragment."""
    data = build_flow_data(session, moved=moved, extra_view=extra_view)
    return dual_response(
        request,
        lambda: templates.get_template("registration_flow/step.html").render(data),
        json_success(data),
    )


def payment_response(
    request: Request, session: RegistrationFlowSession, payment: PaymentSubflow
) -> HTMLResponse | JSONResponse:
    """Return the payment sub-flow stage as JSON or as an HTML fragment."""
    data = PaymentStageData(
        session_id=session.session_id,
        resume_query=session.controller.resume_params(),
        **payment.view(),
    ).model_dump(mode="json")
    return dual_response(
        request,
        lambda: templates.get_template("registration_flow/payment.html").render(data),
        json_success(data),
    )
