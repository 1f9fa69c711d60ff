"""
Request validators for the registration flow.
Only presence and shape are checked here; business rules belong to the backend.
"""

import logging
import re
from typing import Any

from app.api.workflow_base import StepRegistry

logger = logging.getLogger(__name__)

UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


def validate_session_id(session_id: str | None) -> dict[str, Any]:
    """
    Validate flow session ID format.

    Returns:
        Dict with validation result and details
    """
    result = {"is_valid": False, "error": None, "session_id": session_id}

    if not session_id:
        result["error"] = "Session ID is required"
        return result

    if not UUID4_PATTERN.match(session_id.lower()):
        result["error"] = "Invalid session ID format"
        return result

    result["is_valid"] = True
    return result


def resolve_jump_target(
    registry: StepRegistry, index: int | None = None, step: str | None = None
) -> int | None:
    """
    Resolve a jump request to a step index.

    Returns:
        The index, or None when the target names no step of this registry.
    """
    if step is not None:
        if not registry.contains(step):
            logger.info(f"Jump target '{step}' is not a step of '{registry.name}'")
            return None
        return registry.index_of(step)
    if index is None or not 0 <= index <= registry.last_index:
        return None
    return index
