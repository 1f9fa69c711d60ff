"""
Configuration for the registration flow.
Centralizes step catalogs, rate limits and error messages.
"""

from functools import lru_cache

from app.api.workflow_base.config import BaseWorkflowConfig
from app.api.workflow_base.models import REGISTRATION_ID_FIELD, Step

STANDARD_VARIANT = "standard"
LEGACY_VARIANT = "legacy"

PLAYER_FIELDS = ("first_name", "last_name", "email")


class RegistrationFlowConfig(BaseWorkflowConfig):
    """Configuration specific to program registration."""

    # Override base settings
    app_name: str = "Program Registration Flow"
    default_variant: str = STANDARD_VARIANT

    def get_variants(self) -> dict[str, list[Step]]:
        """Return ordered step catalogs for each flow variant."""
        return {
            STANDARD_VARIANT: [
                Step(
                    id="program",
                    title="Select Program",
                    description="Choose from available programs",
                    required_fields=("program_id",),
                ),
                Step(
                    id="player-info",
                    title="Player Information",
                    description="Enter player details",
                    required_fields=(*PLAYER_FIELDS, REGISTRATION_ID_FIELD),
                ),
                Step(
                    id="fee-summary",
                    title="Review Fees",
                    description="Review your registration fees",
                    required_fields=(REGISTRATION_ID_FIELD,),
                ),
                Step(
                    id="payment",
                    title="Payment",
                    description="Complete your payment",
                    required_fields=(REGISTRATION_ID_FIELD, "payment_completed"),
                ),
                Step(
                    id="confirmation",
                    title="Confirmation",
                    description="Registration complete",
                ),
            ],
            LEGACY_VARIANT: [
                Step(
                    id="programs",
                    title="Select Program",
                    description="Choose from available programs",
                    required_fields=("program_id",),
                ),
                Step(
                    id="player",
                    title="Player Information",
                    description="Enter player details",
                    required_fields=(*PLAYER_FIELDS, REGISTRATION_ID_FIELD),
                ),
                Step(
                    id="payment",
                    title="Payment",
                    description="Complete your payment",
                    required_fields=(REGISTRATION_ID_FIELD, "payment_completed"),
                ),
                Step(
                    id="confirmation",
                    title="Confirmation",
                    description="Registration complete",
                ),
            ],
        }

    def get_registration_step_ids(self) -> set[str]:
        """Steps on which the player and registration records are created."""
        return {"player-info", "player"}

    def get_fee_step_ids(self) -> set[str]:
        """Steps on which fees are reviewed and finalized."""
        return {"fee-summary"}

    def get_rate_limits(self) -> dict[str, str]:
        """Return rate limiting configuration."""
        return {
            "navigation": "30/minute",
            "registration": "10/minute",
            "payment_confirm": "5/minute",
        }

    def get_error_messages(self) -> dict[str, str]:
        """Return custom error messages for the registration flow."""
        base_messages = super().get_error_messages()
        base_messages.update(
            {
                "unknown_variant": "Unknown registration flow.",
                "not_registration_step": "Player details can only be submitted on the player step.",
                "not_fee_step": "Fees can only be finalized on the fee summary step.",
            }
        )
        return base_messages


@lru_cache
def get_registration_config() -> RegistrationFlowConfig:
    """Get cached registration flow configuration."""
    return RegistrationFlowConfig()
