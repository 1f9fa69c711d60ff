"""
Step registries for the registration flow variants.
"""

from functools import lru_cache

from app.api.workflow_base import StepRegistry

from .config import get_registration_config
from .renderers import STEP_RENDERERS


@lru_cache
def get_registry(variant: str) -> StepRegistry:
    """
    Build the registry for a flow variant, binding each step to its renderer.

    Raises:
        KeyError: If the variant is not configured
        ValueError: If a step has no renderer
    """
    steps = get_registration_config().get_variants()[variant]
    renderers = {step.id: STEP_RENDERERS[step.id] for step in steps if step.id in STEP_RENDERERS}
    return StepRegistry(variant, steps, renderers)


def available_variants() -> list[str]:
    return list(get_registration_config().get_variants())
