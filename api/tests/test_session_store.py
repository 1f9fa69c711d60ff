"""
Tests for registration flow session management.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.api.registration_flow import session_store
from app.api.registration_flow.models import RegistrationStatus
from app.api.registration_flow.payment_subflow import PaymentStage
from app.api.registration_flow.session_store import (
    cleanup_expired_sessions,
    discard_session,
    get_registration_session,
    open_registration_session,
)
from app.api.registration_flow.steps import available_variants, get_registry
from app.api.registration_flow.validators import resolve_jump_target, validate_session_id
from app.api.workflow_base.exceptions import SessionExpiredException, SessionNotFoundException


@pytest.fixture(autouse=True)
def clear_sessions():
    session_store._sessions.clear()
    yield
    session_store._sessions.clear()


def make_source(balance_due=0):
    source = AsyncMock()
    source.get_status.return_value = RegistrationStatus.model_validate(
        {"program": {"id": "p1", "name": "Soccer"}, "balance_due": balance_due}
    )
    return source


class TestSessionLifecycle:
    """Test creating, loading and expiring sessions."""

    @pytest.mark.asyncio
    async def test_open_and_get_session(self):
        session = await open_registration_session({}, make_source(), "standard")

        assert get_registration_session(session.session_id) is session
        assert session.controller.current_step.id == "program"
        assert validate_session_id(session.session_id)["is_valid"] is True

    @pytest.mark.asyncio
    async def test_open_from_resume_params(self):
        source = make_source()

        session = await open_registration_session(
            {"step": "payment", "registration_id": "R123"}, source, "standard"
        )

        source.get_status.assert_awaited_once_with("R123")
        assert session.controller.current_step.id == "payment"
        assert session.controller.state.registration_id == "R123"

    @pytest.mark.asyncio
    async def test_legacy_variant(self):
        session = await open_registration_session({"step": "player"}, make_source(), "legacy")

        assert session.variant == "legacy"
        assert session.controller.registry.ids == ["programs", "player", "payment", "confirmation"]
        assert session.controller.current_step.id == "player"

    def test_unknown_session(self):
        with pytest.raises(SessionNotFoundException):
            get_registration_session("00000000-0000-4000-8000-000000000000")

    @pytest.mark.asyncio
    async def test_expired_session_is_removed(self):
        session = await open_registration_session({}, make_source(), "standard")
        session.updated_at = datetime.now(UTC) - timedelta(minutes=31)

        with pytest.raises(SessionExpiredException):
            get_registration_session(session.session_id, timeout_minutes=30)
        assert session.session_id not in session_store._sessions

    @pytest.mark.asyncio
    async def test_cleanup_expired_sessions(self):
        fresh = await open_registration_session({}, make_source(), "standard")
        stale = await open_registration_session({}, make_source(), "standard")
        stale.updated_at = datetime.now(UTC) - timedelta(hours=2)

        assert cleanup_expired_sessions(timeout_minutes=30) == 1
        assert fresh.session_id in session_store._sessions
        assert stale.session_id not in session_store._sessions

    @pytest.mark.asyncio
    async def test_discard_session(self):
        session = await open_registration_session({}, make_source(), "standard")

        assert discard_session(session.session_id) is True
        assert discard_session(session.session_id) is False


class TestSessionPayment:
    """Test the payment sub-flow owned by a session."""

    @pytest.mark.asyncio
    async def test_enter_payment_and_reset(self):
        source = make_source(balance_due=30)
        session = await open_registration_session(
            {"step": "payment", "registration_id": "R123"}, source, "standard"
        )

        payment = await session.enter_payment(source)
        assert payment.stage == PaymentStage.READY

        session.reset()
        assert session.payment is None
        assert session.controller.current_step.id == "program"
        assert session.controller.state.registration_id is None

    @pytest.mark.asyncio
    async def test_overlapping_payment_entries_keep_the_newest(self):
        """Test an older payment entry finishing last does not replace the newer one."""
        source = make_source(balance_due=30)
        session = await open_registration_session(
            {"step": "payment", "registration_id": "R123"}, source, "standard"
        )
        ready = source.get_status.return_value
        older_gate = asyncio.Event()

        async def slow_then_fast(registration_id):
            if source.get_status.await_count == 2:
                await older_gate.wait()
            return ready

        source.get_status.side_effect = slow_then_fast

        older = asyncio.create_task(session.enter_payment(source))
        await asyncio.sleep(0)
        newer = await session.enter_payment(source)
        older_gate.set()
        await older

        assert newer.stage == PaymentStage.READY
        assert session.payment is newer
        assert session.controller.busy is False

    @pytest.mark.asyncio
    async def test_summary(self):
        session = await open_registration_session({}, make_source(), "standard")

        summary = session.get_summary()

        assert summary["session_id"] == session.session_id
        assert summary["variant"] == "standard"
        assert summary["payment_stage"] is None
        assert summary["flow_state"]["current_step_index"] == 0


class TestValidators:
    """Test request validators."""

    def test_validate_session_id(self):
        assert validate_session_id(None)["error"] == "Session ID is required"
        assert validate_session_id("not-a-uuid")["is_valid"] is False

    def test_resolve_jump_target(self):
        registry = get_registry("standard")

        assert resolve_jump_target(registry, step="fee-summary") == 2
        assert resolve_jump_target(registry, step="unknown") is None
        assert resolve_jump_target(registry, index=4) == 4
        assert resolve_jump_target(registry, index=9) is None
        assert resolve_jump_target(registry) is None

    def test_variants(self):
        assert set(available_variants()) == {"standard", "legacy"}
