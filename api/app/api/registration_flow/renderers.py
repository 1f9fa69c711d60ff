"""
Step renderers - build the view context for each registration step.

A renderer only reads the flow snapshot; every change goes back through
the controller callbacks exposed by the routes.
"""

from abc import ABC, abstractmethod
from typing import Any

from app.api.workflow_base.models import FlowSnapshot


class StepRenderer(ABC):
    """Base class for step renderers."""

    kind: str = "step"
    prompt: str = ""
    can_go_back: bool = True

    def render(self, snapshot: FlowSnapshot, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return the view context for the step."""
        view = {
            "kind": self.kind,
            "prompt": self.prompt,
            "can_go_back": self.can_go_back and snapshot.current_step_index > 0,
        }
        view.update(self.context(snapshot))
        if extra:
            view.update(extra)
        return view

    @abstractmethod
    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        """Step-specific context."""


class ProgramSelectionRenderer(StepRenderer):
    kind = "program-selection"
    prompt = "Choose from available programs to register for"
    can_go_back = False

    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        return {
            "programs_url": "/registration/programs",
            "selected_program_id": snapshot.form_data.get("program_id"),
            "selected_program": snapshot.selected_program,
        }


class PlayerInfoRenderer(StepRenderer):
    kind = "player-info"
    prompt = "Enter the player's details"

    FIELDS = [
        ("first_name", "First Name"),
        ("last_name", "Last Name"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("date_of_birth", "Date of Birth"),
        ("gender", "Gender"),
        ("emergency_contact_name", "Emergency Contact Name"),
        ("emergency_contact_phone", "Emergency Contact Phone"),
        ("emergency_contact_relation", "Emergency Contact Relation"),
        ("medical_alerts", "Medical Alerts"),
        ("address", "Address"),
    ]

    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        return {
            "fields": [
                {"name": name, "label": label, "value": snapshot.form_data.get(name, "")}
                for name, label in self.FIELDS
            ],
            "registered": snapshot.registration_id is not None,
        }


class FeeSummaryRenderer(StepRenderer):
    kind = "fee-summary"
    prompt = "Review your registration fees"

    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        return {
            "fee_calculation": snapshot.fee_calculation,
            "fees_confirmed": bool(snapshot.form_data.get("fees_confirmed")),
        }


class PaymentRenderer(StepRenderer):
    kind = "payment"
    prompt = "Complete your payment"

    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        # Sub-flow stage and amounts are supplied as extra context by the routes
        return {
            "payment_completed": bool(snapshot.form_data.get("payment_completed")),
            "payment_intent": snapshot.payment_intent,
        }


class ConfirmationRenderer(StepRenderer):
    kind = "confirmation"
    prompt = "Registration complete"
    can_go_back = False

    def context(self, snapshot: FlowSnapshot) -> dict[str, Any]:
        form = snapshot.form_data
        name = f"{form.get('first_name', '')} {form.get('last_name', '')}".strip()
        return {
            "player_name": name or "Player",
            "contact": {"email": form.get("email"), "phone": form.get("phone")},
            "program": snapshot.selected_program,
            "payment_result": form.get("payment_result"),
            "registration_id": snapshot.registration_id,
        }


STEP_RENDERERS: dict[str, StepRenderer] = {
    "program": ProgramSelectionRenderer(),
    "programs": ProgramSelectionRenderer(),
    "player-info": PlayerInfoRenderer(),
    "player": PlayerInfoRenderer(),
    "fee-summary": FeeSummaryRenderer(),
    "payment": PaymentRenderer(),
    "confirmation": ConfirmationRenderer(),
}
