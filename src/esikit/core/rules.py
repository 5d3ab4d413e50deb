"""Handler declaration and execution engine for the ESI interpreter.

Handlers declare their intent via the ``@handles`` decorator, which records
structural metadata (phase, priority, targeted element kinds, required
capability). At runtime the :class:`ElementEngine` collects those declarations,
organises them per :class:`EsiPhase`, and applies each rule to every matching
element of the document in document order.

Architecture

`Declaration layer`
: ``@handles`` stores a lightweight :class:`RuleDefinition` on every handler.

`Registry layer`
: :class:`HandlerRegistry` collates definitions into sortable
  :class:`HandlerRule` instances grouped by phase.

`Execution layer`
: :class:`ElementEngine` runs the phases in order. A rule handles the elements
  present when it starts. Rules declared with ``rescan=True`` keep rescanning
  the tree until no unhandled element of their kinds remains, so content they
  unwrap from the document (a ``when`` branch holding another ``choose``) is
  handled in the same phase. Rules substituting request-derived values never
  rescan: their output may contain markup they would match again.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, cast

from .markup import find_elements, is_attached


if TYPE_CHECKING:  # pragma: no cover - typing only
    from bs4.element import Tag

    from .context import ProcessingContext


class EsiPhase(Enum):
    """Ordered passes executed while rewriting the parsed document.

    ``EXTENSIONS``
    : assignment, evaluation, functions, dictionaries and debug output. Only
      runs for dialects with extensions enabled.

    ``INCLUDE``
    : inline fragment registration and fragment inclusion.

    ``CHOOSE``
    : conditional blocks.

    ``TRY``
    : error-handling blocks.

    ``VARS``
    : variable substitution blocks.

    ``CLEANUP``
    : comment and remove elements.
    """

    EXTENSIONS = auto()
    INCLUDE = auto()
    CHOOSE = auto()
    TRY = auto()
    VARS = auto()
    CLEANUP = auto()


RuleCallable = Callable[["Tag", "ProcessingContext"], None]


@dataclass
class HandlerRule:
    """Concrete rule registered in the engine."""

    priority: int
    phase: EsiPhase
    kinds: tuple[str, ...]
    name: str
    handler: RuleCallable
    capability: str | None = None
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()
    rescan: bool = False


@dataclass(frozen=True)
class RuleDefinition:
    """Descriptor installed on handler callables by the decorator."""

    phase: EsiPhase
    kinds: tuple[str, ...]
    priority: int = 0
    name: str | None = None
    capability: str | None = None
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()
    rescan: bool = False

    def bind(self, handler: RuleCallable) -> HandlerRule:
        """Create a concrete rule instance bound to the callable."""
        name = self.name or getattr(handler, "__name__", handler.__class__.__name__)
        return HandlerRule(
            phase=self.phase,
            kinds=self.kinds,
            priority=self.priority,
            name=name,
            handler=handler,
            capability=self.capability,
            before=self.before,
            after=self.after,
            rescan=self.rescan,
        )


class HandlerRegistry:
    """Container used to gather handler rules before execution."""

    def __init__(self) -> None:
        self._rules: dict[EsiPhase, list[HandlerRule]] = {}

    def register(self, rule: HandlerRule) -> None:
        """Register a rule for later execution."""
        bucket = self._rules.setdefault(rule.phase, [])
        bucket.append(rule)
        bucket[:] = self._sort_rules(bucket)

    def rules_for_phase(self, phase: EsiPhase) -> tuple[HandlerRule, ...]:
        """Return the ordered rules of a phase."""
        return tuple(self._rules.get(phase, ()))

    def describe(self) -> list[dict[str, object]]:
        """Return a serialisable snapshot of the registered rules."""
        entries: list[dict[str, object]] = []
        for phase in EsiPhase:
            for order, rule in enumerate(self.rules_for_phase(phase)):
                entries.append(
                    {
                        "phase": phase.name,
                        "elements": list(rule.kinds),
                        "name": rule.name,
                        "priority": rule.priority,
                        "capability": rule.capability,
                        "before": list(rule.before),
                        "after": list(rule.after),
                        "rescan": rule.rescan,
                        "order": order,
                    }
                )
        return entries

    def _sort_rules(self, rules: list[HandlerRule]) -> list[HandlerRule]:
        """Return rules ordered deterministically using before/after constraints."""
        if len(rules) <= 1:
            return list(rules)

        name_to_index: dict[str, int] = {}
        for index, rule in enumerate(rules):
            name_to_index.setdefault(rule.name, index)

        adjacency: dict[int, set[int]] = {index: set() for index in range(len(rules))}
        indegree: dict[int, int] = dict.fromkeys(range(len(rules)), 0)

        def _add_edge(source: int, target: int) -> None:
            if target in adjacency[source]:
                return
            adjacency[source].add(target)
            indegree[target] += 1

        for current_index, rule in enumerate(rules):
            for target_name in rule.before:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(current_index, target_index)
            for target_name in rule.after:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(target_index, current_index)

        def _key(idx: int) -> tuple[int, str, int]:
            return (rules[idx].priority, rules[idx].name, idx)

        queue: deque[int] = deque(
            sorted((index for index, count in indegree.items() if count == 0), key=_key)
        )
        ordered: list[int] = []

        while queue:
            current = queue.popleft()
            ordered.append(current)
            for neighbour in sorted(adjacency[current], key=_key):
                indegree[neighbour] -= 1
                if indegree[neighbour] == 0:
                    queue.append(neighbour)
            queue = deque(sorted(queue, key=_key))

        if len(ordered) != len(rules):
            cycle_names = sorted(
                rule.name for index, rule in enumerate(rules) if index not in ordered
            )
            raise RuntimeError(
                "Cyclic handler rule dependencies detected: " + ", ".join(cycle_names)
            )

        return [rules[index] for index in ordered]


def handles(
    *kinds: str,
    phase: EsiPhase,
    priority: int = 0,
    name: str | None = None,
    capability: str | None = None,
    before: Iterable[str] = (),
    after: Iterable[str] = (),
    rescan: bool = False,
) -> Callable[[RuleCallable], RuleCallable]:
    """Decorator used to register ESI element handlers.

    ``kinds`` are bare element names; ``esi:``-prefixed tags match as well.
    """
    if not kinds:
        raise TypeError("@handles requires at least one element kind")
    definition = RuleDefinition(
        phase=phase,
        kinds=tuple(kinds),
        priority=priority,
        name=name,
        capability=capability,
        before=tuple(before),
        after=tuple(after),
        rescan=rescan,
    )

    def decorator(handler: RuleCallable) -> RuleCallable:
        cast(Any, handler).__esi_rule__ = definition
        return handler

    return decorator


class ElementEngine:
    """Execution engine that orchestrates the registered rules."""

    def __init__(self, registry: HandlerRegistry | None = None) -> None:
        self.registry = registry or HandlerRegistry()

    def collect_from(self, owner: Any) -> None:
        """Collect decorated callables from an object or module."""
        for attribute in dir(owner):
            handler = getattr(owner, attribute)
            definition = getattr(handler, "__esi_rule__", None)
            if isinstance(definition, RuleDefinition):
                self.registry.register(definition.bind(handler))

    def register(self, handler: RuleCallable) -> None:
        """Register a standalone callable decorated with ``@handles``."""
        definition = getattr(handler, "__esi_rule__", None)
        if not isinstance(definition, RuleDefinition):
            msg = "Handler must be decorated with @handles"
            raise TypeError(msg)
        self.registry.register(definition.bind(handler))

    def run(self, root: Tag, context: ProcessingContext) -> None:
        """Execute all enabled rules against the provided document root."""
        capabilities = context.capabilities
        for phase in EsiPhase:
            if phase is EsiPhase.EXTENSIONS and not capabilities.extensions:
                continue
            context.enter_phase(phase)
            for rule in self.registry.rules_for_phase(phase):
                if capabilities.allows(rule.capability):
                    self._apply(rule, root, context)

    def _apply(self, rule: HandlerRule, root: Tag, context: ProcessingContext) -> None:
        while True:
            pending = [
                element
                for element in find_elements(root, rule.kinds)
                if not context.is_processed(element, rule.name)
            ]
            if not pending:
                return
            for element in pending:
                context.mark_processed(element, rule.name)
                if is_attached(element, root):
                    rule.handler(element, context)
            if not rule.rescan:
                return


__all__ = [
    "ElementEngine",
    "EsiPhase",
    "HandlerRegistry",
    "HandlerRule",
    "RuleDefinition",
    "handles",
]
