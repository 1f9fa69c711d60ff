"""
Payment API service for creating and confirming payment intents.
"""

import logging
from typing import Any

from pydantic import ValidationError

from app.api.workflow_base.exceptions import PaymentException

from .api_client import BackendApiClient
from .models import PaymentIntentHandle, PaymentRecord, PaymentRequest

logger = logging.getLogger(__name__)


class PaymentApiClient(BackendApiClient):
    """Client for the backend payment endpoints."""

    exception_class = PaymentException

    async def create_intent(self, request: PaymentRequest) -> PaymentIntentHandle:
        """Create a payment intent for the amount due."""
        body = await self._request(
            "POST",
            "/api/payments/create-intent",
            "create intent",
            {"amount": request.amount, "program_registration_id": request.registration_id},
        )
        if not isinstance(body, dict) or not (
            body.get("client_secret") and body.get("payment_intent_id")
        ):
            raise PaymentException("create intent", "Failed to initialize payment")
        return PaymentIntentHandle(
            client_secret=body["client_secret"],
            payment_intent_id=body["payment_intent_id"],
        )

    async def confirm(self, payment_intent_id: str, registration_id: str) -> dict[str, Any]:
        """Confirm a succeeded payment intent with the backend."""
        body = await self._request(
            "POST",
            "/api/payments/confirm",
            "confirm",
            {"payment_intent_id": payment_intent_id, "program_registration_id": registration_id},
        )
        if not isinstance(body, dict) or not body.get("payment"):
            raise PaymentException("confirm", "Payment confirmation failed")
        try:
            payment = PaymentRecord.model_validate(body["payment"])
        except ValidationError as e:
            logger.error(f"Malformed payment confirmation for {payment_intent_id}: {e}")
            raise PaymentException("confirm", "Payment confirmation failed") from e
        message = body.get("message")
        logger.info(f"Payment {payment_intent_id} confirmed for registration {registration_id}")
        return {
            "payment": payment.model_dump(),
            "message": message if isinstance(message, str) else None,
        }
