"""
Payment routes for the registration flow.
Drives the payment sub-flow while the payment step is current.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.common.response_negotiator import json_success
from app.api.common.schemas import PaymentIntentData
from app.api.registration_flow.models import PaymentConfirmRequest, PaymentErrorRequest
from app.api.registration_flow.payment_service import PaymentApiClient
from app.api.registration_flow.registration_api import RegistrationApiClient
from app.api.workflow_base.exceptions import PaymentException, StepStateException

from .shared_utils import (
    RATE_LIMITS,
    ensure_idle,
    flow_response,
    get_payment_api,
    get_registration_api,
    limiter,
    load_session,
    payment_response,
    require_payment,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{session_id}/payment", response_model=None)
async def enter_payment(
    request: Request,
    session_id: str,
    api: RegistrationApiClient = Depends(get_registration_api),
):
    """Enter the payment sub-flow and load the balance due."""
    session = load_session(session_id)
    payment = await session.enter_payment(api)
    return payment_response(request, session, payment)


@router.post("/{session_id}/payment/intent", response_model=None)
@limiter.limit(RATE_LIMITS["payment_confirm"])
async def create_payment_intent(
    request: Request,
    session_id: str,
    payments: PaymentApiClient = Depends(get_payment_api),
):
    """Create a payment intent for the balance due."""
    session = load_session(session_id)
    payment = require_payment(session)
    payment_request = payment.payment_request()

    try:
        handle = await payments.create_intent(payment_request)
    except PaymentException as e:
        logger.error(f"Creating payment intent failed for session {session_id}: {e.message}")
        payment.on_payment_error(e.user_message)
        return payment_response(request, session, payment)

    data = PaymentIntentData(
        client_secret=handle.client_secret,
        payment_intent_id=handle.payment_intent_id,
        amount=payment_request.amount,
        registration_id=payment_request.registration_id,
        program_name=payment_request.program_name,
    )
    return JSONResponse(content=json_success(data.model_dump()))


@router.post("/{session_id}/payment/confirm", response_model=None)
@limiter.limit(RATE_LIMITS["payment_confirm"])
async def confirm_payment(
    request: Request,
    session_id: str,
    body: PaymentConfirmRequest,
    payments: PaymentApiClient = Depends(get_payment_api),
):
    """Confirm a payment the client has authorized with the provider."""
    session = load_session(session_id)
    payment = require_payment(session)
    await payment.confirm_payment(payments, body.payment_intent_id)
    return payment_response(request, session, payment)


@router.post("/{session_id}/payment/error", response_model=None)
async def report_payment_error(request: Request, session_id: str, body: PaymentErrorRequest):
    """Record a client-side payment failure."""
    session = load_session(session_id)
    payment = require_payment(session)
    payment.on_payment_error(body.message)
    return payment_response(request, session, payment)


@router.post("/{session_id}/payment/retry", response_model=None)
async def retry_payment(request: Request, session_id: str):
    """Return from the error stage to a payable state."""
    session = load_session(session_id)
    payment = require_payment(session)
    await payment.retry()
    return payment_response(request, session, payment)


@router.post("/{session_id}/payment/proceed", response_model=None)
async def proceed_from_payment(request: Request, session_id: str):
    """Leave the payment step after a successful payment."""
    session = load_session(session_id)
    payment = require_payment(session)
    ensure_idle(session, "continue")

    if not payment.proceed():
        raise StepStateException(
            payment.step_id, "continue", "Please complete payment before continuing."
        )
    session.payment = None
    return flow_response(request, session, moved=True)
