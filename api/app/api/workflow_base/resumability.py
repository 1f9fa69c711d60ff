"""
Query-parameter channel used to resume a flow across page reloads.
"""

import logging
from collections.abc import Mapping
from urllib.parse import urlencode

from .step_registry import StepRegistry

logger = logging.getLogger(__name__)

STEP_PARAM = "step"
REGISTRATION_ID_PARAM = "registration_id"


def parse_resume_params(
    params: Mapping[str, str], registry: StepRegistry
) -> tuple[int, str | None]:
    """
    Resolve the resumability parameters to a starting position.

    Args:
        params: Query parameters from the request URL
        registry: Registry used to resolve the step id

    Returns:
        Tuple of (step index, registration id). Index is 0 when the step
        is absent or not one of the registry's ids.
    """
    step_id = params.get(STEP_PARAM)
    index = 0
    if step_id:
        if registry.contains(step_id):
            index = registry.index_of(step_id)
        else:
            logger.warning(f"Unknown step '{step_id}' in resume params, starting at first step")

    registration_id = params.get(REGISTRATION_ID_PARAM) or None
    return index, registration_id


def build_resume_params(
    registry: StepRegistry, index: int, registration_id: str | None
) -> dict[str, str]:
    """Build the query parameters describing the given position."""
    params = {STEP_PARAM: registry.step_at(index).id}
    if registration_id:
        params[REGISTRATION_ID_PARAM] = registration_id
    return params


def build_resume_url(base_path: str, params: Mapping[str, str]) -> str:
    """Append resume parameters to a path."""
    if not params:
        return base_path
    return f"{base_path}?{urlencode(params)}"
