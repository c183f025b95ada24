"""Depth-first traversal engine that drives a :class:`ValidationRun`.

For every bean and group the walker asks the run whether the combination is
already handled, evaluates the bean's rules (skipping multi-group rules the
run has already seen at that exact path), reports failures, marks the bean
handled and only then cascades into the beans it references.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from cascadeval.checks import EvaluatorManager
from cascadeval.config import ValidatorSettings
from cascadeval.context import ValidationRun
from cascadeval.errors import TraversableResolverError, ValidationError
from cascadeval.path import NodeKind, PathBuilder, PathNode
from cascadeval.resolvers import TraverseAll, utc_clock
from cascadeval.violations import build_bean_violation, build_value_violation

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Iterator, Sequence

    from cascadeval.interpolation import MessageInterpolator
    from cascadeval.metadata import RuleMetadata, RuleSet
    from cascadeval.resolvers import ClockProvider, TraversableResolver
    from cascadeval.violations import Violation, ViolationBuilder

logger = logging.getLogger(__name__)

_SCALARS = (str, bytes, int, float, bool, type(None))


def is_bean(value: object) -> bool:
    """True for values the walker validates and cascades into."""
    if isinstance(value, _SCALARS):
        return False
    if isinstance(value, (Mapping, list, tuple)):
        return True
    return hasattr(value, "__dict__") and not isinstance(value, type) and not callable(value)


def iter_properties(bean: object) -> Iterator[tuple[PathNode, Any]]:
    """Yield ``(node, value)`` for each property, element or entry of *bean*."""
    if isinstance(bean, Mapping):
        for key, value in bean.items():
            kind = NodeKind.PROPERTY if isinstance(key, str) else NodeKind.KEY
            yield PathNode(kind, key), value
    elif isinstance(bean, (list, tuple)):
        for index, value in enumerate(bean):
            yield PathNode(NodeKind.INDEX, index), value
    else:
        for name, value in vars(bean).items():
            if not name.startswith("_"):
                yield PathNode(NodeKind.PROPERTY, name), value


def read_property(bean: object, name: str) -> Any:
    """Value of property *name* on *bean*, ``None`` when absent."""
    if isinstance(bean, Mapping):
        return bean.get(name)
    if isinstance(bean, (list, tuple)):
        return None
    return getattr(bean, name, None)


class GraphValidator:
    """Validates object graphs against a :class:`RuleSet`.

    The validator is long-lived and reusable; each call to :meth:`validate`,
    :meth:`validate_property` or :meth:`validate_value` builds a fresh
    :class:`ValidationRun`.
    """

    def __init__(
        self,
        rule_set: RuleSet,
        settings: ValidatorSettings | None = None,
        *,
        interpolator: MessageInterpolator | None = None,
        traversable_resolver: TraversableResolver | None = None,
        clock_provider: ClockProvider = utc_clock,
        validator_payload: Any = None,
        evaluator_manager: EvaluatorManager | None = None,
    ) -> None:
        self.rule_set = rule_set
        self.settings = settings if settings is not None else ValidatorSettings()
        self.interpolator = interpolator
        self.traversable_resolver = (
            traversable_resolver if traversable_resolver is not None else TraverseAll()
        )
        self.clock_provider = clock_provider
        self.validator_payload = validator_payload
        self.evaluator_manager = (
            evaluator_manager if evaluator_manager is not None else EvaluatorManager()
        )

    # -- public API ----------------------------------------------------------

    def validate(
        self, root: object, groups: Sequence[Hashable] | None = None
    ) -> frozenset[Violation]:
        """Validate *root* and every bean reachable from it."""
        start = time.monotonic()
        run = self._new_run(root, type(root), build_bean_violation)
        path = PathBuilder()
        for group in self._groups(groups):
            self._validate_bean(run, root, group, path)
            if self._should_stop(run):
                break
        results = run.results()
        logger.debug(
            "Validated %s in %.1fms: %d violation(s)",
            type(root).__name__,
            (time.monotonic() - start) * 1000,
            len(results),
        )
        return results

    def validate_property(
        self, bean: object, property_name: str, groups: Sequence[Hashable] | None = None
    ) -> frozenset[Violation]:
        """Evaluate the rules of one property of *bean*, without cascading."""
        run = self._new_run(bean, type(bean), build_bean_violation)
        path = PathBuilder()
        type_name = self.rule_set.type_of(bean)
        rules = self.rule_set.property_rules(type_name, property_name)
        for group in self._groups(groups):
            self._evaluate_property(run, bean, property_name, rules, group, path)
            if self._should_stop(run):
                break
        return run.results()

    def validate_value(
        self,
        bean_type: type | str,
        property_name: str,
        value: Any,
        groups: Sequence[Hashable] | None = None,
    ) -> frozenset[Violation]:
        """Check *value* against the rules of ``bean_type.property_name``.

        No bean instance exists, so violations carry no root or leaf bean.
        """
        type_name = bean_type if isinstance(bean_type, str) else bean_type.__name__
        root_type = bean_type if isinstance(bean_type, type) else None
        run = self._new_run(None, root_type, build_value_violation)
        path = PathBuilder()
        path.push_property(property_name)
        rules = self.rule_set.property_rules(type_name, property_name)
        for group in self._groups(groups):
            for rule in rules:
                if group in rule.groups:
                    self._evaluate(run, rule, None, value, group, path)
                if self._should_stop(run):
                    return run.results()
        return run.results()

    # -- traversal -----------------------------------------------------------

    def _validate_bean(
        self, run: ValidationRun, bean: object, group: Hashable, path: PathBuilder
    ) -> None:
        if run.already_handled(bean, group, path):
            return

        type_name = self.rule_set.type_of(bean)
        rules = [r for r in self.rule_set.rules_for_type(type_name) if group in r.groups]
        by_property: dict[str, list[RuleMetadata]] = {}
        for rule in rules:
            if rule.property_name is None:
                self._evaluate(run, rule, bean, bean, group, path)
                if self._should_stop(run):
                    return
            else:
                by_property.setdefault(rule.property_name, []).append(rule)

        for property_name, property_rules in by_property.items():
            self._evaluate_property(run, bean, property_name, property_rules, group, path)
            if self._should_stop(run):
                return

        run.mark_handled(bean, group, path)
        self._cascade(run, bean, group, path)

    def _evaluate_property(
        self,
        run: ValidationRun,
        bean: object,
        property_name: str,
        rules: Iterable[RuleMetadata],
        group: Hashable,
        path: PathBuilder,
    ) -> None:
        node = PathNode(NodeKind.PROPERTY, property_name)
        if not self._is_reachable(run, bean, node, path):
            return
        value = read_property(bean, property_name)
        path.push(node)
        try:
            for rule in rules:
                if group not in rule.groups:
                    continue
                self._evaluate(run, rule, bean, value, group, path)
                if self._should_stop(run):
                    return
        finally:
            path.pop()

    def _cascade(
        self, run: ValidationRun, bean: object, group: Hashable, path: PathBuilder
    ) -> None:
        for node, child in iter_properties(bean):
            if not is_bean(child):
                continue
            if not (
                self._is_reachable(run, bean, node, path)
                and self._is_cascadable(run, bean, node, path)
            ):
                continue
            path.push(node)
            try:
                self._validate_bean(run, child, group, path)
            finally:
                path.pop()
            if self._should_stop(run):
                return

    def _evaluate(
        self,
        run: ValidationRun,
        rule: RuleMetadata,
        bean: object,
        value: Any,
        group: Hashable,
        path: PathBuilder,
    ) -> None:
        if run.already_evaluated(bean, path, rule):
            return

        evaluator = self.evaluator_manager.get(rule)
        template = rule.message if rule.message is not None else evaluator.message_template()
        context = run.create_evaluation_context(rule, path, template)
        valid = evaluator.is_valid(value, context)
        run.mark_evaluated(bean, path, rule)
        if valid:
            return

        for draft in context.drafts():
            run.report_draft(group, draft, value, rule, leaf_bean=bean)

    # -- helpers -------------------------------------------------------------

    def _new_run(
        self, root: object, root_type: type | None, builder: ViolationBuilder
    ) -> ValidationRun:
        return ValidationRun(
            root_bean=root,
            root_type=root_type,
            root_metadata=self.rule_set,
            interpolator=self.interpolator,
            validator_manager=self.evaluator_manager,
            validator_factory=self.evaluator_manager.factory,
            traversable_resolver=self.traversable_resolver,
            clock_provider=self.clock_provider,
            validator_payload=self.validator_payload,
            fail_fast=self.settings.fail_fast,
            track_validated_beans=self.settings.track_validated_beans,
            violation_builder=builder,
        )

    def _groups(self, groups: Sequence[Hashable] | None) -> tuple[Hashable, ...]:
        if not groups:
            return tuple(self.settings.default_groups)
        return tuple(dict.fromkeys(groups))

    @staticmethod
    def _should_stop(run: ValidationRun) -> bool:
        return run.fail_fast and run.has_violations()

    @staticmethod
    def _is_reachable(run: ValidationRun, bean: object, node: PathNode, path: PathBuilder) -> bool:
        resolver = run.traversable_resolver
        if resolver is None:
            return True
        try:
            return resolver.is_reachable(bean, node, run.root_type, path.snapshot())
        except ValidationError:
            raise
        except Exception as exc:
            raise TraversableResolverError("is_reachable", exc) from exc

    @staticmethod
    def _is_cascadable(run: ValidationRun, bean: object, node: PathNode, path: PathBuilder) -> bool:
        resolver = run.traversable_resolver
        if resolver is None:
            return True
        try:
            return resolver.is_cascadable(bean, node, run.root_type, path.snapshot())
        except ValidationError:
            raise
        except Exception as exc:
            raise TraversableResolverError("is_cascadable", exc) from exc
