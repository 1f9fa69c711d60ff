"""
Flow controller - single authority over step sequencing and FlowState mutation.
"""

import itertools
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from .exceptions import ExternalServiceException
from .flow_state import FlowState
from .models import (
    REGISTRATION_ID_FIELD,
    FlowSnapshot,
    FlowStatus,
    RequestTicket,
    Step,
    StepCallbacks,
)
from .resumability import build_resume_params, parse_resume_params
from .step_registry import StepRegistry

logger = logging.getLogger(__name__)

RESTORE_RESOURCE = "restore"


class SupportsFlowUpdate(Protocol):
    def to_flow_update(self) -> dict[str, Any]: ...


class StatusSource(Protocol):
    """Read side of the registration status collaborator."""

    async def get_status(self, registration_id: str) -> SupportsFlowUpdate: ...


class FlowController:
    """Owns FlowState and exposes navigation over an injected StepRegistry."""

    def __init__(
        self,
        registry: StepRegistry,
        status_source: StatusSource | None = None,
        on_location_change: Callable[[dict[str, str]], None] | None = None,
        start_index: int = 0,
    ):
        self.registry = registry
        self.status_source = status_source
        self.on_location_change = on_location_change
        self.state = FlowState(current_step_index=self._clamp(start_index))
        self.status = FlowStatus.IDLE
        self.error: str | None = None
        self._last_restore_id: str | None = None
        self._inflight: dict[str, RequestTicket] = {}
        self._tokens = itertools.count(1)
        self._generation = 0
        self.location = build_resume_params(registry, self.state.current_step_index, None)

    @classmethod
    async def open(
        cls,
        registry: StepRegistry,
        params: Mapping[str, str],
        status_source: StatusSource | None = None,
        on_location_change: Callable[[dict[str, str]], None] | None = None,
    ) -> "FlowController":
        """Create a controller positioned from the resumability channel."""
        index, registration_id = parse_resume_params(params, registry)
        controller = cls(
            registry,
            status_source=status_source,
            on_location_change=on_location_change,
            start_index=index,
        )
        if registration_id:
            # The id from the URL must survive a failed status fetch
            controller.state.set_registration_id(registration_id)
            controller._sync_location()
            await controller.restore_from_identifier(registration_id)
        return controller

    # -- queries ---------------------------------------------------------

    @property
    def current_index(self) -> int:
        return self.state.current_step_index

    @property
    def current_step(self) -> Step:
        return self.registry.step_at(self.state.current_step_index)

    @property
    def busy(self) -> bool:
        """True while any request is outstanding."""
        return bool(self._inflight)

    def can_reach(self, target_index: int) -> bool:
        """Revisit anything already passed; skip ahead only over completed steps."""
        if target_index < 0 or target_index > self.registry.last_index:
            return False
        if target_index <= self.state.current_step_index:
            return True
        return all(i in self.state.completed_steps for i in range(target_index))

    def missing_requirements(self, partial_update: Mapping[str, Any] | None = None) -> list[str]:
        """Return required fields of the current step that are not present."""
        update = partial_update or {}
        nested = update.get("form_data")
        nested = nested if isinstance(nested, Mapping) else {}
        missing = []
        for field in self.current_step.required_fields:
            if field == REGISTRATION_ID_FIELD:
                present = self.state.registration_id or update.get(REGISTRATION_ID_FIELD)
            else:
                present = _has_value(update, field) or _has_value(nested, field)
                present = present or _has_value(self.state.form_data, field)
            if not present:
                missing.append(field)
        return missing

    def snapshot(self) -> FlowSnapshot:
        """Read-only view of the current state."""
        state = self.state
        return FlowSnapshot(
            current_step_index=state.current_step_index,
            current_step=self.current_step.id,
            registration_id=state.registration_id,
            selected_program=state.selected_program,
            form_data=dict(state.form_data),
            fee_calculation=state.fee_calculation,
            payment_intent=state.payment_intent,
            completed_steps=sorted(state.completed_steps),
            status=self.status,
            error=self.error,
            updated_at=state.updated_at,
        )

    def resume_params(self) -> dict[str, str]:
        return dict(self.location)

    def callbacks(self) -> StepCallbacks:
        """Callbacks handed to the active step renderer."""
        return StepCallbacks(
            on_next=self.advance,
            on_back=self.retreat,
            on_update_flow_state=self.update,
        )

    # -- navigation ------------------------------------------------------

    def advance(self, partial_update: Mapping[str, Any] | None = None) -> bool:
        """Merge the update, complete the current step and move forward."""
        if self._refuse_while_busy("advance"):
            return False

        if partial_update:
            self.state.merge(partial_update, allow_completion=True)

        completed = self.state.current_step_index
        self.state.mark_completed(completed)
        self.state.current_step_index = min(completed + 1, self.registry.last_index)

        logger.info(
            f"Advanced from {self.registry.step_at(completed).id} "
            f"to {self.current_step.id} in flow '{self.registry.name}'"
        )
        self._sync_location()
        return True

    def retreat(self) -> bool:
        """Move back one step. Completion marks are kept."""
        if self._refuse_while_busy("retreat"):
            return False

        self.state.current_step_index = max(self.state.current_step_index - 1, 0)
        logger.info(f"Retreated to {self.current_step.id} in flow '{self.registry.name}'")
        self._sync_location()
        return True

    def jump_to(self, target_index: int) -> bool:
        """Jump to a reachable step. Unreachable targets are silently refused."""
        if not self.can_reach(target_index):
            logger.info(f"Refused jump to step index {target_index} in flow '{self.registry.name}'")
            return False
        if self._refuse_while_busy("jump"):
            return False

        self.state.current_step_index = target_index
        logger.info(f"Jumped to {self.current_step.id} in flow '{self.registry.name}'")
        self._sync_location()
        return True

    def update(self, partial_update: Mapping[str, Any]) -> None:
        """Merge an update without leaving or completing the current step."""
        self.state.merge(partial_update)
        if REGISTRATION_ID_FIELD in partial_update:
            self._sync_location()

    def reset(self) -> None:
        """Start a new registration. Pending responses become stale."""
        self._generation += 1
        self._inflight.clear()
        self.state = FlowState()
        self.status = FlowStatus.IDLE
        self.error = None
        self._last_restore_id = None
        logger.info(f"Flow '{self.registry.name}' reset for a new registration")
        self._sync_location()

    # -- durable state ---------------------------------------------------

    async def restore_from_identifier(self, registration_id: str) -> bool:
        """Seed state from the registration status collaborator."""
        if self.status_source is None:
            raise RuntimeError("No status source configured for restore")

        self._last_restore_id = registration_id
        self.status = FlowStatus.LOADING
        self.error = None
        ticket = self.begin_request(RESTORE_RESOURCE, bind_to_step=False)
        logger.info(f"Restoring flow from registration {registration_id}")

        failure: ExternalServiceException | None = None
        try:
            status = await self.status_source.get_status(registration_id)
        except ExternalServiceException as e:
            failure = e
        finally:
            current = self.finish_request(ticket)

        if not current:
            logger.warning(f"Discarding stale restore response for {registration_id}")
            return False

        if failure is not None:
            self.status = FlowStatus.ERROR
            self.error = failure.user_message
            logger.error(f"Restore of registration {registration_id} failed: {failure.message}")
            return False

        self.state.set_registration_id(registration_id)
        self.state.merge(status.to_flow_update())
        self.status = FlowStatus.READY
        self._sync_location()
        return True

    async def retry_restore(self) -> bool:
        """User-initiated retry of the last failed restore."""
        if self.status != FlowStatus.ERROR or not self._last_restore_id:
            return False
        return await self.restore_from_identifier(self._last_restore_id)

    # -- in-flight tracking ----------------------------------------------

    def begin_request(self, resource: str, bind_to_step: bool = True) -> RequestTicket:
        """Register a request. A newer request for the same resource supersedes it."""
        ticket = RequestTicket(
            resource=resource,
            token=next(self._tokens),
            generation=self._generation,
            step_index=self.state.current_step_index if bind_to_step else None,
        )
        self._inflight[resource] = ticket
        return ticket

    def is_current(self, ticket: RequestTicket) -> bool:
        """Whether a response for this ticket may still be applied."""
        if ticket.generation != self._generation:
            return False
        if ticket.step_index is not None and ticket.step_index != self.state.current_step_index:
            return False
        return self._inflight.get(ticket.resource) == ticket

    def finish_request(self, ticket: RequestTicket) -> bool:
        """Release the ticket and report whether its response is still current."""
        current = self.is_current(ticket)
        if self._inflight.get(ticket.resource) == ticket:
            del self._inflight[ticket.resource]
        return current

    # -- helpers ---------------------------------------------------------

    def _refuse_while_busy(self, operation: str) -> bool:
        if self.busy:
            logger.warning(
                f"Refused {operation} while requests are in flight: {sorted(self._inflight)}"
            )
            return True
        return False

    def _sync_location(self) -> None:
        self.location = build_resume_params(
            self.registry, self.state.current_step_index, self.state.registration_id
        )
        if self.on_location_change:
            self.on_location_change(dict(self.location))

    def _clamp(self, index: int) -> int:
        return max(0, min(index, self.registry.last_index))


def _has_value(data: Mapping[str, Any], field: str) -> bool:
    value = data.get(field)
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None
