"""
Payment sub-flow: nested state machine used while the payment step is current.
"""

import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from app.api.workflow_base import FlowController, StatusSource
from app.api.workflow_base.exceptions import ExternalServiceException, StepStateException

from .models import (
    NO_PAYMENT_INTENT_ID,
    NO_PAYMENT_STATUS,
    PaymentIntent,
    PaymentRecord,
    PaymentRequest,
    PaymentResult,
    RegistrationStatus,
)

logger = logging.getLogger(__name__)

PAYMENT_STEP_ID = "payment"
PAYMENT_RESULT_KEY = "payment_result"
STATUS_RESOURCE = "payment-status"
CONFIRM_RESOURCE = "payment-confirm"


class PaymentStage(str, Enum):
    """Stages of the payment sub-flow."""

    LOADING = "loading"
    READY = "ready"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class PaymentGateway(Protocol):
    """Payment collaborator: confirms a payment the client has authorized."""

    async def confirm(self, payment_intent_id: str, registration_id: str) -> dict[str, Any]: ...


class PaymentSubflow:
    """
    Tracks loading/ready/processing/success/error for the payment step.

    Success is terminal and idempotent: once a result is stored in the
    flow's form data it is reused on re-entry and never re-charged.
    """

    def __init__(
        self,
        controller: FlowController,
        status_source: StatusSource,
        step_id: str = PAYMENT_STEP_ID,
        clock: Callable[[], float] = time.time,
    ):
        self.controller = controller
        self.status_source = status_source
        self.step_id = step_id
        self.clock = clock
        self.stage = PaymentStage.LOADING
        self.error: str | None = None
        self.registration_status: RegistrationStatus | None = None
        self.result: PaymentResult | None = None

    @property
    def amount_due(self) -> float:
        if self.registration_status is None:
            return 0
        return self.registration_status.balance_due

    async def enter(self) -> PaymentStage:
        """Enter the sub-flow, reusing a stored result when there is one."""
        self._require_payment_step("enter payment")

        stored = self.controller.state.form_data.get(PAYMENT_RESULT_KEY)
        if stored:
            self.result = PaymentResult.model_validate(stored)
            self.stage = PaymentStage.SUCCESS
            self.error = None
            logger.info(
                f"Payment already completed for registration "
                f"{self.controller.state.registration_id}, reusing stored result"
            )
            return self.stage

        return await self.load()

    async def load(self) -> PaymentStage:
        """Fetch the balance due and route to ready, success or error."""
        registration_id = self.controller.state.registration_id
        if not registration_id:
            self._fail("No registration ID available")
            return self.stage

        self.stage = PaymentStage.LOADING
        self.error = None
        ticket = self.controller.begin_request(STATUS_RESOURCE)

        failure: ExternalServiceException | None = None
        try:
            status = await self.status_source.get_status(registration_id)
        except ExternalServiceException as e:
            failure = e
        finally:
            current = self.controller.finish_request(ticket)

        if not current:
            logger.warning(f"Discarding stale payment status for {registration_id}")
            return self.stage

        if failure is not None:
            logger.error(f"Loading payment status failed: {failure.message}")
            self._fail(failure.user_message)
            return self.stage

        self.registration_status = status
        update = status.to_flow_update()
        self.controller.update(
            {key: update[key] for key in ("fee_calculation", "selected_program") if key in update}
        )

        if status.balance_due <= 0:
            logger.info(f"No balance due for registration {registration_id}")
            self._succeed(self._no_payment_result())
        else:
            self.stage = PaymentStage.READY
            logger.info(f"Registration {registration_id} ready for payment of {status.balance_due}")
        return self.stage

    def payment_request(self) -> PaymentRequest:
        """Input for the payment collaborator."""
        if self.stage != PaymentStage.READY:
            raise StepStateException(
                self.step_id, "start payment", "Payment is not ready. Please wait or retry."
            )
        return PaymentRequest(
            amount=self.amount_due,
            registration_id=self.controller.state.registration_id,
            program_name=self._program_name(),
        )

    async def confirm_payment(self, gateway: PaymentGateway, payment_intent_id: str) -> PaymentStage:
        """Confirm an authorized payment through the collaborator."""
        if self.stage != PaymentStage.READY:
            raise StepStateException(
                self.step_id, "confirm payment", "Payment is not ready. Please wait or retry."
            )

        registration_id = self.controller.state.registration_id
        self.stage = PaymentStage.PROCESSING
        ticket = self.controller.begin_request(CONFIRM_RESOURCE)

        failure: ExternalServiceException | None = None
        try:
            body = await gateway.confirm(payment_intent_id, registration_id)
        except ExternalServiceException as e:
            failure = e
        finally:
            current = self.controller.finish_request(ticket)

        if not current:
            logger.warning(f"Discarding stale payment confirmation for {payment_intent_id}")
            return self.stage

        if failure is not None:
            self.on_payment_error(failure.user_message)
            return self.stage

        try:
            result = PaymentResult(
                payment_intent=PaymentIntent(
                    id=payment_intent_id, created=self.clock(), status="succeeded"
                ),
                payment=PaymentRecord.model_validate(body["payment"]),
                message=body.get("message"),
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            logger.error(f"Malformed confirmation for payment {payment_intent_id}: {e}")
            self.on_payment_error("Payment confirmation failed")
            return self.stage

        self.on_payment_success(result)
        return self.stage

    def on_payment_success(self, result: PaymentResult | Mapping[str, Any]) -> bool:
        """Success callback from the payment collaborator."""
        if self.stage == PaymentStage.SUCCESS:
            logger.info("Ignoring payment success after sub-flow already succeeded")
            return False
        if self.stage not in (PaymentStage.READY, PaymentStage.PROCESSING):
            logger.warning(f"Ignoring payment success in stage {self.stage.value}")
            return False

        if not isinstance(result, PaymentResult):
            result = PaymentResult.model_validate(result)
        self._succeed(result)
        logger.info(f"Payment {result.payment_intent.id} succeeded")
        return True

    def on_payment_error(self, message: str) -> bool:
        """Error callback from the payment collaborator."""
        if self.stage == PaymentStage.SUCCESS:
            logger.info("Ignoring payment error after sub-flow already succeeded")
            return False
        if self.stage not in (PaymentStage.READY, PaymentStage.PROCESSING):
            logger.warning(f"Ignoring payment error in stage {self.stage.value}")
            return False

        logger.error(f"Payment failed: {message}")
        self._fail(message)
        return True

    async def retry(self) -> PaymentStage:
        """User-initiated retry from the error stage."""
        if self.stage != PaymentStage.ERROR:
            return self.stage
        # The balance may have changed since the failure
        return await self.load()

    def proceed(self) -> bool:
        """Leave the sub-flow by advancing the controller."""
        if self.stage != PaymentStage.SUCCESS or self.result is None:
            return False
        return self.controller.advance(
            {
                "payment_completed": True,
                PAYMENT_RESULT_KEY: self.result.model_dump(),
                "registration_completed": True,
            }
        )

    def view(self) -> dict[str, Any]:
        """Serializable view for the payment renderer."""
        return {
            "stage": self.stage.value,
            "error": self.error,
            "amount_due": self.amount_due,
            "total_amount_due": (
                self.registration_status.total_amount_due if self.registration_status else 0
            ),
            "program_name": self._program_name(),
            "result": self.result.model_dump() if self.result else None,
        }

    def _succeed(self, result: PaymentResult) -> None:
        self.result = result
        self.stage = PaymentStage.SUCCESS
        self.error = None
        self.controller.update(
            {
                "payment_intent": result.payment_intent.model_dump(),
                PAYMENT_RESULT_KEY: result.model_dump(),
            }
        )

    def _fail(self, message: str) -> None:
        self.stage = PaymentStage.ERROR
        self.error = message

    def _no_payment_result(self) -> PaymentResult:
        return PaymentResult(
            payment_intent=PaymentIntent(id=NO_PAYMENT_INTENT_ID, created=self.clock()),
            payment=PaymentRecord(amount=0, status=NO_PAYMENT_STATUS),
            message="Registration completed - no payment required",
        )

    def _program_name(self) -> str:
        if self.registration_status and self.registration_status.program:
            return self.registration_status.program.name
        program = self.controller.state.selected_program or {}
        return program.get("name", "")

    def _require_payment_step(self, operation: str) -> None:
        step = self.controller.current_step
        if step.id != self.step_id:
            raise StepStateException(
                step.id, operation, "Payment is only available on the payment step."
            )
