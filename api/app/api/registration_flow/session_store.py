"""
Session management for the registration flow.
"""

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from app.api.workflow_base import FlowController, StatusSource
from app.api.workflow_base.exceptions import SessionExpiredException, SessionNotFoundException

from .payment_subflow import PaymentStage, PaymentSubflow
from .steps import get_registry

logger = logging.getLogger(__name__)

# In-memory session storage
# Flow state is only durable through the resume URL and the backend registration
_sessions: dict[str, "RegistrationFlowSession"] = {}

DEFAULT_TIMEOUT_MINUTES = 30


class RegistrationFlowSession:
    """One active registration flow: its controller and payment sub-flow."""

    def __init__(self, controller: FlowController, variant: str, session_id: str | None = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.variant = variant
        self.controller = controller
        self.payment: PaymentSubflow | None = None
        self.created_at = datetime.now(UTC)
        self.updated_at = datetime.now(UTC)

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def is_expired(self, timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES) -> bool:
        return datetime.now(UTC) - self.updated_at > timedelta(minutes=timeout_minutes)

    async def enter_payment(self, status_source: StatusSource) -> PaymentSubflow:
        """Enter (or re-enter) the payment sub-flow for the current step."""
        if self.payment is not None and self.payment.stage == PaymentStage.PROCESSING:
            return self.payment

        payment = PaymentSubflow(self.controller, status_source)
        await payment.enter()
        if payment.stage == PaymentStage.LOADING:
            # Its status response was discarded; a newer entry or a reset owns the flow
            logger.info(f"Session {self.session_id} dropped a superseded payment entry")
            return self.payment or payment
        self.payment = payment
        self.touch()
        return payment

    def reset(self) -> None:
        """Start a new registration in the same session."""
        self.controller.reset()
        self.payment = None
        self.touch()
        logger.info(f"Session {self.session_id} restarted")

    def get_summary(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "variant": self.variant,
            "flow_state": self.controller.state.to_dict(),
            "payment_stage": self.payment.stage.value if self.payment else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


async def open_registration_session(
    params: Mapping[str, str],
    status_source: StatusSource,
    variant: str,
) -> RegistrationFlowSession:
    """Create a session positioned from the resume parameters."""
    registry = get_registry(variant)
    controller = await FlowController.open(registry, params, status_source=status_source)
    session = RegistrationFlowSession(controller, variant)
    _sessions[session.session_id] = session
    logger.info(
        f"Created {variant} registration session {session.session_id} "
        f"at step {controller.current_step.id}"
    )
    return session


def get_registration_session(
    session_id: str, timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
) -> RegistrationFlowSession:
    """Look up an active session."""
    session = _sessions.get(session_id)
    if session is None:
        raise SessionNotFoundException(session_id)
    if session.is_expired(timeout_minutes):
        logger.info(f"Session {session_id} expired")
        del _sessions[session_id]
        raise SessionExpiredException(session_id)
    session.touch()
    return session


def discard_session(session_id: str) -> bool:
    return _sessions.pop(session_id, None) is not None


def cleanup_expired_sessions(timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES) -> int:
    """Remove expired sessions from memory."""
    expired = [sid for sid, s in _sessions.items() if s.is_expired(timeout_minutes)]
    for session_id in expired:
        del _sessions[session_id]
        logger.info(f"Cleaned up expired session: {session_id}")
    return len(expired)
