"""
Flow routes for the registration flow.
Handles opening and resuming flows, navigation, and step submissions.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.common.response_negotiator import dual_response, json_error, json_success
from app.api.common.schemas import ErrorCodes, ProgramListData
from app.api.registration_flow.config import get_registration_config
from app.api.registration_flow.models import JumpRequest, RegisterRequest, StepUpdateRequest
from app.api.registration_flow.payment_subflow import PAYMENT_STEP_ID, PaymentStage
from app.api.registration_flow.registration_api import (
    RegistrationApiClient,
    filter_open_programs,
)
from app.api.registration_flow.session_store import (
    cleanup_expired_sessions,
    get_registration_session,
    open_registration_session,
)
from app.api.registration_flow.steps import available_variants
from app.api.registration_flow.validators import resolve_jump_target, validate_session_id
from app.api.settings import get_settings
from app.api.workflow_base.exceptions import (
    SessionExpiredException,
    SessionNotFoundException,
    StepStateException,
    StepValidationException,
)
from app.api.workflow_base.models import REGISTRATION_ID_FIELD

from .shared_utils import (
    RATE_LIMITS,
    ensure_idle,
    flow_response,
    get_registration_api,
    limiter,
    load_session,
    templates,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REGISTRATION_RESOURCE = "registration"
FINALIZE_RESOURCE = "finalize"


@router.get("/flow", response_model=None)
async def open_flow(
    request: Request,
    api: RegistrationApiClient = Depends(get_registration_api),
):
    """Open a flow, positioned from the step and registration_id query parameters."""
    config = get_registration_config()
    settings = get_settings()

    # Clean up expired sessions periodically
    cleanup_expired_sessions(settings.session_timeout_minutes)

    # Continue an existing session when one is named
    session_id = request.query_params.get("session_id")
    if session_id and validate_session_id(session_id)["is_valid"]:
        try:
            session = get_registration_session(session_id, settings.session_timeout_minutes)
            return flow_response(request, session)
        except (SessionNotFoundException, SessionExpiredException):
            logger.info(f"Session {session_id} unavailable, opening a new flow")

    variant = request.query_params.get("variant") or config.default_variant
    if variant not in available_variants():
        message = config.get_error_messages()["unknown_variant"]
        return dual_response(
            request,
            f'<div class="error-message">{message}</div>',
            json_error(ErrorCodes.VALIDATION_ERROR, message, field="variant"),
            status_code=400,
        )

    session = await open_registration_session(request.query_params, api, variant)
    return flow_response(request, session)


@router.get("/programs", response_model=None)
async def list_programs(
    request: Request,
    search: str | None = None,
    season: str | None = None,
    api: RegistrationApiClient = Depends(get_registration_api),
):
    """List programs currently open for registration."""
    programs = filter_open_programs(await api.list_programs(), search=search, season=season)
    data = ProgramListData(
        programs=[program.model_dump() for program in programs],
        count=len(programs),
    ).model_dump(mode="json")
    return dual_response(
        request,
        lambda: templates.get_template("registration_flow/programs.html").render(data),
        json_success(data),
    )


@router.get("/{session_id}", response_model=None)
async def get_flow(request: Request, session_id: str):
    """Return the current step of a flow."""
    session = load_session(session_id)
    return flow_response(request, session)


@router.get("/{session_id}/summary", response_model=None)
async def get_flow_summary(session_id: str) -> JSONResponse:
    """Return a diagnostic summary of a flow session."""
    session = load_session(session_id)
    return JSONResponse(content=json_success(session.get_summary()))


@router.post("/{session_id}/next", response_model=None)
@limiter.limit(RATE_LIMITS["navigation"])
async def next_step(request: Request, session_id: str, body: StepUpdateRequest):
    """Complete the current step with the submitted data and move forward."""
    session = load_session(session_id)
    controller = session.controller
    step = controller.current_step
    ensure_idle(session, "continue")

    # Payment is completed through the payment sub-flow only
    if step.id == PAYMENT_STEP_ID:
        payment = session.payment
        if payment is None or payment.stage != PaymentStage.SUCCESS:
            raise StepStateException(
                step.id, "continue", "Please complete payment before continuing."
            )
        moved = payment.proceed()
        session.payment = None
        return flow_response(request, session, moved=moved)

    missing = controller.missing_requirements(body.data)
    if missing:
        raise StepValidationException(step.id, missing)

    moved = controller.callbacks().on_next(body.data)
    logger.info(f"Session {session_id} advanced from {step.id}: moved={moved}")
    return flow_response(request, session, moved=moved)


@router.post("/{session_id}/back", response_model=None)
@limiter.limit(RATE_LIMITS["navigation"])
async def previous_step(request: Request, session_id: str):
    """Move back one step."""
    session = load_session(session_id)
    ensure_idle(session, "go back")
    moved = session.controller.callbacks().on_back()
    return flow_response(request, session, moved=moved)


@router.post("/{session_id}/jump", response_model=None)
@limiter.limit(RATE_LIMITS["navigation"])
async def jump_to_step(request: Request, session_id: str, body: JumpRequest):
    """Jump to a step from the step indicator. Unreachable targets are ignored."""
    session = load_session(session_id)
    controller = session.controller
    ensure_idle(session, "jump")

    target = resolve_jump_target(controller.registry, index=body.index, step=body.step)
    moved = target is not None and controller.jump_to(target)
    return flow_response(request, session, moved=moved)


@router.post("/{session_id}/update", response_model=None)
@limiter.limit(RATE_LIMITS["navigation"])
async def update_flow(request: Request, session_id: str, body: StepUpdateRequest):
    """Merge data into the flow without leaving the current step."""
    session = load_session(session_id)
    session.controller.callbacks().on_update_flow_state(body.data)
    return flow_response(request, session)


@router.post("/{session_id}/restore/retry", response_model=None)
async def retry_restore(request: Request, session_id: str):
    """Retry restoring the flow from the backend after a failure."""
    session = load_session(session_id)
    ensure_idle(session, "retry")
    await session.controller.retry_restore()
    return flow_response(request, session)


@router.post("/{session_id}/reset", response_model=None)
async def reset_flow(request: Request, session_id: str):
    """Start a new registration in the same session."""
    session = load_session(session_id)
    session.reset()
    return flow_response(request, session)


@router.post("/{session_id}/register", response_model=None)
@limiter.limit(RATE_LIMITS["registration"])
async def register_player(
    request: Request,
    session_id: str,
    body: RegisterRequest,
    api: RegistrationApiClient = Depends(get_registration_api),
):
    """Create the player and registration, then advance with the new registration id."""
    config = get_registration_config()
    messages = config.get_error_messages()
    session = load_session(session_id)
    controller = session.controller
    step = controller.current_step

    if step.id not in config.get_registration_step_ids():
        raise StepStateException(step.id, "register", messages["not_registration_step"])
    ensure_idle(session, "register")

    program_id = body.program_id or controller.state.form_data.get("program_id")
    if not program_id:
        raise StepValidationException(step.id, ["program_id"])

    if controller.state.registration_id:
        # Already registered; keep the first durable id
        logger.info(
            f"Session {session_id} already has registration {controller.state.registration_id}"
        )
        moved = controller.advance(body.player.model_dump())
        return flow_response(request, session, moved=moved)

    ticket = controller.begin_request(REGISTRATION_RESOURCE)
    try:
        player_id = await api.create_player(body.player)
        registration_id = await api.create_registration(player_id, program_id, body.notes)
    finally:
        current = controller.finish_request(ticket)

    if not current:
        logger.warning(f"Discarding stale registration response for session {session_id}")
        return flow_response(request, session, moved=False)

    moved = controller.advance(
        {
            **body.player.model_dump(),
            "program_id": program_id,
            "notes": body.notes,
            "player_id": player_id,
            REGISTRATION_ID_FIELD: registration_id,
        }
    )
    return flow_response(request, session, moved=moved)


@router.post("/{session_id}/fees/finalize", response_model=None)
@limiter.limit(RATE_LIMITS["registration"])
async def finalize_fees(
    request: Request,
    session_id: str,
    api: RegistrationApiClient = Depends(get_registration_api),
):
    """Lock in the fee calculation and continue to payment."""
    config = get_registration_config()
    session = load_session(session_id)
    controller = session.controller
    step = controller.current_step

    if step.id not in config.get_fee_step_ids():
        raise StepStateException(step.id, "finalize", config.get_error_messages()["not_fee_step"])
    ensure_idle(session, "finalize")

    registration_id = controller.state.registration_id
    if not registration_id:
        raise StepValidationException(step.id, [REGISTRATION_ID_FIELD])

    ticket = controller.begin_request(FINALIZE_RESOURCE)
    try:
        result = await api.finalize(registration_id)
    finally:
        current = controller.finish_request(ticket)

    if not current:
        logger.warning(f"Discarding stale finalize response for {registration_id}")
        return flow_response(request, session, moved=False)

    moved = controller.advance(
        {"fees_confirmed": True, "registration_finalized": True, "finalization_result": result}
    )
    return flow_response(request, session, moved=moved)
