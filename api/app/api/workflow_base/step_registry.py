"""
Ordered, immutable catalog of flow steps.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from .models import Step


class StepRegistry:
    """
    Static lookup of steps in canonical order.

    Each step id is bound to a renderer reference once, at construction.
    An unknown or duplicate id, or a step without a renderer, fails here
    rather than at dispatch time.
    """

    def __init__(self, name: str, steps: Sequence[Step], renderers: Mapping[str, Any]):
        if not steps:
            raise ValueError(f"Step registry '{name}' needs at least one step")

        ids = [step.id for step in steps]
        duplicates = {step_id for step_id in ids if ids.count(step_id) > 1}
        if duplicates:
            raise ValueError(f"Duplicate step ids in '{name}': {sorted(duplicates)}")

        unknown = set(renderers) - set(ids)
        if unknown:
            raise ValueError(f"Renderers bound to unknown steps in '{name}': {sorted(unknown)}")

        missing = [step_id for step_id in ids if step_id not in renderers]
        if missing:
            raise ValueError(f"Steps without a renderer in '{name}': {missing}")

        self.name = name
        self._steps: tuple[Step, ...] = tuple(steps)
        self._index: dict[str, int] = {step_id: i for i, step_id in enumerate(ids)}
        self._renderers: tuple[Any, ...] = tuple(renderers[step_id] for step_id in ids)

    def step_at(self, index: int) -> Step:
        if index < 0:
            raise IndexError(f"Step index out of range: {index}")
        return self._steps[index]

    def index_of(self, step_id: str) -> int:
        return self._index[step_id]

    def renderer_at(self, index: int) -> Any:
        if index < 0:
            raise IndexError(f"Step index out of range: {index}")
        return self._renderers[index]

    def contains(self, step_id: str) -> bool:
        return step_id in self._index

    def count(self) -> int:
        return len(self._steps)

    @property
    def last_index(self) -> int:
        return len(self._steps) - 1

    @property
    def ids(self) -> list[str]:
        return [step.id for step in self._steps]

    def __iter__(self):
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        return f"StepRegistry({self.name!r}, {self.ids})"
