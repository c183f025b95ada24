"""Per-call validation state handed to the traversal engine.

A :class:`ValidationRun` is created at the start of one top-level validation
call and thrown away when it returns.  It fixes the root bean, its type and
metadata, forwards the collaborators the walker needs, and composes the bean
tracker, rule tracker and violation collector behind one object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cascadeval.interpolation import MessageRenderer, TemplateInterpolator
from cascadeval.path import as_path
from cascadeval.tracking import BeanTracker, RuleTracker
from cascadeval.violations import ViolationCollector, build_bean_violation

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Mapping
    from datetime import datetime

    from cascadeval.interpolation import MessageInterpolator
    from cascadeval.metadata import RuleMetadata
    from cascadeval.path import Path, PathBuilder, PathNode
    from cascadeval.resolvers import TraversableResolver
    from cascadeval.violations import Violation, ViolationBuilder

_module_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rule evaluation context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViolationDraft:
    """A failure a check asked for, before it is rendered and recorded."""

    message_template: str
    path: Path
    message_parameters: Mapping[str, Any] = field(default_factory=dict)
    expression_variables: Mapping[str, Any] = field(default_factory=dict)


class RuleEvaluationContext:
    """Handed to a check while it evaluates one rule against one value.

    Unless the check calls :meth:`disable_default_violation`, a failed check
    produces one draft with the rule's message at the current path.  Checks may
    add further drafts with :meth:`build_violation`.
    """

    def __init__(
        self,
        rule: RuleMetadata,
        path: Path,
        default_template: str,
        *,
        clock_provider: Callable[[], datetime] | None = None,
        payload: Any = None,
    ) -> None:
        self.rule = rule
        self.path = path
        self.clock_provider = clock_provider
        self.payload = payload
        self._default_template = default_template
        self._default_enabled = True
        self._parameters: dict[str, Any] = {}
        self._variables: dict[str, Any] = {}
        self._custom: list[ViolationDraft] = []

    @property
    def default_template(self) -> str:
        return self._default_template

    def disable_default_violation(self) -> None:
        self._default_enabled = False

    def add_message_parameter(self, name: str, value: Any) -> RuleEvaluationContext:
        self._parameters[name] = value
        return self

    def add_expression_variable(self, name: str, value: Any) -> RuleEvaluationContext:
        self._variables[name] = value
        return self

    def build_violation(self, template: str, *nodes: PathNode) -> ViolationDraft:
        """Add a custom draft, optionally below the current path."""
        path = self.path
        for node in nodes:
            path = path.child(node)
        draft = ViolationDraft(template, path, dict(self._parameters), dict(self._variables))
        self._custom.append(draft)
        return draft

    def drafts(self) -> list[ViolationDraft]:
        """Drafts to report for a failed check."""
        result: list[ViolationDraft] = []
        if self._default_enabled:
            result.append(
                ViolationDraft(
                    self._default_template,
                    self.path,
                    dict(self._parameters),
                    dict(self._variables),
                )
            )
        result.extend(self._custom)
        return result


# ---------------------------------------------------------------------------
# Run facade
# ---------------------------------------------------------------------------


class ValidationRun:
    """Coordination state for a single top-level validation call.

    Not thread-safe and not reusable: each call builds its own run.
    """

    def __init__(
        self,
        *,
        root_bean: Any,
        root_type: type | None,
        root_metadata: Any = None,
        interpolator: MessageInterpolator | None = None,
        validator_manager: Any = None,
        validator_factory: Any = None,
        traversable_resolver: TraversableResolver | None = None,
        clock_provider: Callable[[], datetime] | None = None,
        validator_payload: Any = None,
        fail_fast: bool = False,
        track_validated_beans: bool = True,
        violation_builder: ViolationBuilder = build_bean_violation,
        logger: logging.Logger | None = None,
    ) -> None:
        self._root_bean = root_bean
        self._root_type = root_type
        self._root_metadata = root_metadata
        self._validator_manager = validator_manager
        self._validator_factory = validator_factory
        self._traversable_resolver = traversable_resolver
        self._clock_provider = clock_provider
        self._validator_payload = validator_payload
        self._fail_fast = fail_fast
        self._logger = logger if logger is not None else _module_logger

        self._beans = BeanTracker(enabled=track_validated_beans, logger=self._logger)
        self._rules = RuleTracker(logger=self._logger)
        self._violations = ViolationCollector(
            MessageRenderer(
                interpolator if interpolator is not None else TemplateInterpolator(),
                root_type,
                logger=self._logger,
            ),
            builder=violation_builder,
            root_bean=root_bean,
            root_type=root_type,
            logger=self._logger,
        )

    # -- run-scoped fields ---------------------------------------------------

    @property
    def root_bean(self) -> Any:
        return self._root_bean

    @property
    def root_type(self) -> type | None:
        return self._root_type

    @property
    def root_metadata(self) -> Any:
        return self._root_metadata

    @property
    def fail_fast(self) -> bool:
        return self._fail_fast

    @property
    def tracking_enabled(self) -> bool:
        return self._beans.enabled

    @property
    def validator_manager(self) -> Any:
        return self._validator_manager

    @property
    def validator_factory(self) -> Any:
        return self._validator_factory

    @property
    def traversable_resolver(self) -> TraversableResolver | None:
        return self._traversable_resolver

    @property
    def clock_provider(self) -> Callable[[], datetime] | None:
        return self._clock_provider

    @property
    def validator_payload(self) -> Any:
        return self._validator_payload

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # -- bean tracking -------------------------------------------------------

    def already_handled(self, bean: object, group: Hashable, path: Path | PathBuilder) -> bool:
        return self._beans.already_handled(bean, group, path)

    def mark_handled(self, bean: object, group: Hashable, path: Path | PathBuilder) -> None:
        """Record that *bean* is being validated for *group* at *path*.

        Must be called before descending into the bean's own references so
        that re-entering it through a cycle is detected.
        """
        self._beans.mark_handled(bean, group, path)

    # -- rule deduplication --------------------------------------------------

    def already_evaluated(self, bean: object, path: Path | PathBuilder, rule: RuleMetadata) -> bool:
        return self._rules.already_evaluated(bean, path, rule)

    def mark_evaluated(self, bean: object, path: Path | PathBuilder, rule: RuleMetadata) -> None:
        self._rules.mark_evaluated(bean, path, rule)

    # -- failures ------------------------------------------------------------

    def report(
        self,
        group: Hashable,
        message_template: str,
        value: Any,
        path: Path | PathBuilder,
        rule: RuleMetadata | None,
        message_parameters: Mapping[str, Any] | None = None,
        expression_variables: Mapping[str, Any] | None = None,
        *,
        leaf_bean: Any = None,
    ) -> Violation:
        violation = self._violations.report(
            group,
            message_template,
            value,
            path,
            rule,
            message_parameters,
            expression_variables,
            leaf_bean=leaf_bean,
        )
        self._logger.debug("Violation at %s: %s", violation.path, violation.message)
        return violation

    def report_draft(
        self,
        group: Hashable,
        draft: ViolationDraft,
        value: Any,
        rule: RuleMetadata,
        *,
        leaf_bean: Any = None,
    ) -> Violation:
        return self.report(
            group,
            draft.message_template,
            value,
            draft.path,
            rule,
            draft.message_parameters,
            draft.expression_variables,
            leaf_bean=leaf_bean,
        )

    def has_violations(self) -> bool:
        return bool(self._violations)

    def results(self) -> frozenset[Violation]:
        return self._violations.results()

    # -- evaluation contexts -------------------------------------------------

    def create_evaluation_context(
        self, rule: RuleMetadata, path: Path | PathBuilder, default_template: str
    ) -> RuleEvaluationContext:
        return RuleEvaluationContext(
            rule,
            as_path(path),
            default_template,
            clock_provider=self._clock_provider,
            payload=self._validator_payload,
        )

    def __repr__(self) -> str:
        root = self._root_type.__name__ if self._root_type is not None else None
        return (
            f"ValidationRun(root_type={root}, fail_fast={self._fail_fast}, "
            f"tracking={self.tracking_enabled}, violations={len(self._violations)})"
        )
