from typing import Any

import pytest

from esikit.core.rules import ElementEngine, EsiPhase, HandlerRegistry, handles


def _make_handler(
    name: str, *, priority: int = 0, before: tuple[str, ...] = (), after: tuple[str, ...] = ()
):
    @handles(
        "include", phase=EsiPhase.INCLUDE, name=name, priority=priority, before=before, after=after
    )
    def handler(_node: Any, _context: Any) -> None:
        return None

    definition = handler.__esi_rule__
    return definition.bind(handler)


def test_rule_order_respects_priority_and_topology():
    registry = HandlerRegistry()
    registry.register(_make_handler("third", priority=1))
    registry.register(_make_handler("first", priority=0))
    registry.register(_make_handler("second", priority=1, after=("first",)))

    rules = registry.rules_for_phase(EsiPhase.INCLUDE)
    assert [rule.name for rule in rules] == ["first", "second", "third"]


def test_before_constraint_overrides_priority():
    registry = HandlerRegistry()
    registry.register(_make_handler("late", priority=0))
    registry.register(_make_handler("early", priority=5, before=("late",)))

    assert [rule.name for rule in registry.rules_for_phase(EsiPhase.INCLUDE)] == ["early", "late"]


def test_rule_order_cycle_detection():
    registry = HandlerRegistry()
    registry.register(_make_handler("a", priority=0, before=("b",)))
    with pytest.raises(RuntimeError, match="Cyclic handler rule dependencies"):
        registry.register(_make_handler("b", priority=0, before=("a",)))


def test_registry_describe_returns_sorted_entries():
    registry = HandlerRegistry()
    registry.register(_make_handler("alpha", priority=0))
    registry.register(_make_handler("beta", priority=1, after=("alpha",)))

    snapshot = registry.describe()
    assert snapshot[0]["name"] == "alpha"
    assert snapshot[0]["phase"] == "INCLUDE"
    assert snapshot[1]["name"] == "beta"
    assert snapshot[1]["after"] == ["alpha"]


def test_handles_requires_element_kinds():
    with pytest.raises(TypeError, match="at least one element kind"):
        handles(phase=EsiPhase.VARS)


def test_engine_rejects_undecorated_handler():
    engine = ElementEngine()
    with pytest.raises(TypeError, match="decorated with @handles"):
        engine.register(lambda _node, _context: None)
