"""
Pydantic models for the registration flow collaborators and requests.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

NO_PAYMENT_INTENT_ID = "no-payment-required"
NO_PAYMENT_STATUS = "no_payment_required"


class Program(BaseModel):
    """Program a participant can register for."""

    id: str
    name: str
    description: str | None = None
    season: str | None = None
    base_fee: float = 0
    start_date: str | None = None
    end_date: str | None = None
    registration_open_date: str | None = None
    registration_close_date: str | None = None
    is_active: bool = True

    class Config:
        extra = "allow"


class FeeLine(BaseModel):
    """Additional fee or discount line."""

    name: str
    amount: float
    description: str | None = None


class FinancialSummary(BaseModel):
    """Fee calculation as computed by the backend."""

    base_fee: float = 0
    additional_fees: list[FeeLine] = Field(default_factory=list)
    discounts: list[FeeLine] = Field(default_factory=list)
    total_before_tax: float = 0
    tax_amount: float = 0
    total_amount_due: float = 0
    amount_paid: float = 0
    balance_due: float = 0


class RegistrationStatus(BaseModel):
    """Durable registration state returned by the status endpoint."""

    id: str | None = None
    status: str | None = None
    program: Program | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)
    financial_summary: FinancialSummary | None = None
    balance_due: float = 0
    total_amount_due: float = 0

    class Config:
        extra = "allow"

    @field_validator("form_data", mode="before")
    @classmethod
    def normalize_form_data(cls, value: Any) -> dict[str, Any]:
        """Accept either a mapping or a list of field_name/field_value entries."""
        if value is None:
            return {}
        if isinstance(value, list):
            return {
                entry["field_name"]: entry.get("field_value")
                for entry in value
                if isinstance(entry, dict) and entry.get("field_name")
            }
        return value

    def to_flow_update(self) -> dict[str, Any]:
        """Partial flow-state update seeded from this status."""
        update: dict[str, Any] = {"form_data": dict(self.form_data)}
        if self.financial_summary is not None:
            update["fee_calculation"] = self.financial_summary.model_dump()
        if self.program is not None:
            update["selected_program"] = self.program.model_dump()
        return update


class PaymentRequest(BaseModel):
    """Input handed to the payment collaborator."""

    amount: float
    registration_id: str
    program_name: str


class PaymentIntentHandle(BaseModel):
    """Client-side handle for a created payment intent."""

    client_secret: str
    payment_intent_id: str


class PaymentIntent(BaseModel):
    """Payment intent as reported by the payment provider."""

    id: str
    created: float | None = None
    status: str | None = None

    class Config:
        extra = "allow"


class PaymentRecord(BaseModel):
    """Payment record stored by the backend."""

    amount: float = 0
    status: str = "succeeded"

    class Config:
        extra = "allow"


class PaymentResult(BaseModel):
    """Successful outcome of the payment sub-flow."""

    payment_intent: PaymentIntent
    payment: PaymentRecord
    message: str | None = None


class PlayerDetails(BaseModel):
    """Participant details collected by the player step."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = ""
    date_of_birth: str = ""
    gender: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    emergency_contact_relation: str = ""
    medical_alerts: str = ""
    address: str = ""


# Request bodies


class StepUpdateRequest(BaseModel):
    """Partial flow-state update sent by a step."""

    data: dict[str, Any] = Field(default_factory=dict)


class JumpRequest(BaseModel):
    """Jump target, by index or by step id."""

    index: int | None = None
    step: str | None = None


class RegisterRequest(BaseModel):
    """Player and registration creation request."""

    player: PlayerDetails
    program_id: str | None = None
    notes: str | None = None


class PaymentConfirmRequest(BaseModel):
    payment_intent_id: str


class PaymentErrorRequest(BaseModel):
    message: str = "Payment failed"
