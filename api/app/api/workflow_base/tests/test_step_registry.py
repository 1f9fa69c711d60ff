"""
Unit tests for StepRegistry.
"""

import pytest

from app.api.workflow_base.models import Step
from app.api.workflow_base.step_registry import StepRegistry


def make_steps(*ids):
    return [Step(id=step_id, title=step_id.title()) for step_id in ids]


def test_registry_lookup():
    """Test index and id lookups in canonical order."""
    registry = StepRegistry(
        "test", make_steps("a", "b", "c"), {"a": "render-a", "b": "render-b", "c": "render-c"}
    )

    assert registry.count() == 3
    assert len(registry) == 3
    assert registry.last_index == 2
    assert registry.ids == ["a", "b", "c"]
    assert registry.step_at(1).id == "b"
    assert registry.index_of("c") == 2
    assert registry.renderer_at(0) == "render-a"
    assert registry.contains("b") is True
    assert registry.contains("z") is False
    assert [step.id for step in registry] == ["a", "b", "c"]


def test_out_of_range_access_raises():
    """Test out-of-range access is a programming error."""
    registry = StepRegistry("test", make_steps("a"), {"a": object()})

    with pytest.raises(IndexError):
        registry.step_at(1)
    with pytest.raises(IndexError):
        registry.step_at(-1)
    with pytest.raises(KeyError):
        registry.index_of("missing")


def test_empty_registry_rejected():
    with pytest.raises(ValueError, match="at least one step"):
        StepRegistry("empty", [], {})


def test_duplicate_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate step ids"):
        StepRegistry("dup", make_steps("a", "a"), {"a": object()})


def test_missing_renderer_rejected():
    """Test every step must be bound to a renderer at construction."""
    with pytest.raises(ValueError, match="without a renderer"):
        StepRegistry("partial", make_steps("a", "b"), {"a": object()})


def test_renderer_for_unknown_step_rejected():
    with pytest.raises(ValueError, match="unknown steps"):
        StepRegistry("extra", make_steps("a"), {"a": object(), "z": object()})
