"""
Mutable record of progress through a flow.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Fields replaced wholesale on merge
SECONDARY_FIELDS = ("fee_calculation", "payment_intent", "selected_program")


class FlowState:
    """Progress of one registration session. Mutated only by FlowController."""

    def __init__(self, current_step_index: int = 0, registration_id: str | None = None):
        self.current_step_index = current_step_index
        self.registration_id = registration_id
        self.selected_program: dict[str, Any] | None = None
        self.form_data: dict[str, Any] = {}
        self.fee_calculation: Any = None
        self.payment_intent: Any = None
        self.completed_steps: set[int] = set()
        self.created_at = datetime.now(UTC)
        self.updated_at = datetime.now(UTC)

    def set_registration_id(self, registration_id: Any) -> None:
        """Set the durable identifier once. Later values never replace it."""
        if isinstance(registration_id, int) and not isinstance(registration_id, bool):
            registration_id = str(registration_id)
        if not registration_id:
            return
        if not isinstance(registration_id, str):
            logger.warning(f"Ignoring registration id of type {type(registration_id).__name__}")
            return
        if self.registration_id is None:
            self.registration_id = registration_id
        elif registration_id != self.registration_id:
            logger.warning(
                f"Ignoring registration id {registration_id}; "
                f"session already bound to {self.registration_id}"
            )

    def merge(self, update: Mapping[str, Any], allow_completion: bool = False) -> None:
        """Merge a partial update into the state."""
        completed: set[int] = set()
        if "completed_steps" in update:
            if allow_completion:
                completed = _completion_indices(update["completed_steps"])
            else:
                logger.warning("completed_steps can only change by advancing")

        for key, value in update.items():
            if key == "form_data":
                if isinstance(value, Mapping):
                    self.form_data.update(value)
                else:
                    logger.warning(f"Ignoring non-mapping form_data update: {type(value)}")
            elif key in SECONDARY_FIELDS:
                setattr(self, key, value)
            elif key == "registration_id":
                self.set_registration_id(value)
            elif key == "completed_steps":
                # Steps ahead of the current position are never marked from an update
                self.completed_steps.update(i for i in completed if i <= self.current_step_index)
            elif key == "current_step_index":
                logger.warning("current_step_index can only change through navigation")
            else:
                self.form_data[key] = value

        self.updated_at = datetime.now(UTC)

    def mark_completed(self, index: int) -> None:
        self.completed_steps.add(index)
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Serialize state to dictionary."""
        return {
            "current_step_index": self.current_step_index,
            "registration_id": self.registration_id,
            "selected_program": self.selected_program,
            "form_data": dict(self.form_data),
            "fee_calculation": self.fee_calculation,
            "payment_intent": self.payment_intent,
            "completed_steps": sorted(self.completed_steps),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _completion_indices(value: Any) -> set[int]:
    """Step indices from a client-supplied list. Anything non-integer is dropped."""
    if not isinstance(value, (list, tuple, set, frozenset)):
        logger.warning(f"Ignoring non-list completed_steps update: {type(value).__name__}")
        return set()

    indices = set()
    for entry in value:
        if isinstance(entry, int) and not isinstance(entry, bool):
            indices.add(entry)
        else:
            logger.warning(f"Ignoring non-integer completed step: {entry!r}")
    return indices
