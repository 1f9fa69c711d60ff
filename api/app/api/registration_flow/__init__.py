"""
Registration flow module for program registration with payment.
"""

from .models import PlayerDetails, Program, RegistrationStatus
from .payment_subflow import PaymentStage, PaymentSubflow
from .routes import router as registration_router
from .session_store import RegistrationFlowSession, get_registration_session
from .steps import get_registry

__all__ = [
    "PlayerDetails",
    "Program",
    "RegistrationStatus",
    "PaymentStage",
    "PaymentSubflow",
    "registration_router",
    "RegistrationFlowSession",
    "get_registration_session",
    "get_registry",
]
