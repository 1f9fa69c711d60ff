"""
Base models for the step-flow framework.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Pseudo-field naming the durable registration identifier in required_fields
REGISTRATION_ID_FIELD = "registration_id"


class FlowStatus(str, Enum):
    """Status of the flow's durable-state synchronization."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Step(BaseModel):
    """A single stage of a flow. Identity is the id."""

    id: str
    title: str
    description: str = ""
    required_fields: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class FlowSnapshot(BaseModel):
    """Read-only view of flow state handed to renderers and API clients."""

    current_step_index: int
    current_step: str
    registration_id: str | None = None
    selected_program: dict[str, Any] | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)
    fee_calculation: Any = None
    payment_intent: Any = None
    completed_steps: list[int] = Field(default_factory=list)
    status: FlowStatus = FlowStatus.IDLE
    error: str | None = None
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class StepCallbacks:
    """Callbacks a step renderer uses to talk back to the controller."""

    on_next: Callable[[Mapping[str, Any] | None], bool]
    on_back: Callable[[], bool]
    on_update_flow_state: Callable[[Mapping[str, Any]], None]


@dataclass(frozen=True)
class RequestTicket:
    """Handle for one in-flight request."""

    resource: str
    token: int
    generation: int
    step_index: int | None = None
