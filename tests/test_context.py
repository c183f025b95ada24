"""Tests for cascadeval.context — the per-run facade and rule evaluation contexts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import pytest

from cascadeval.context import RuleEvaluationContext, ValidationRun
from cascadeval.errors import MessageInterpolationError, ValidationError
from cascadeval.path import NodeKind, Path, PathBuilder, PathNode
from cascadeval.resolvers import TraverseAll
from cascadeval.violations import build_value_violation

if TYPE_CHECKING:
    from collections.abc import Callable

    from cascadeval.interpolation import InterpolationContext
    from cascadeval.metadata import RuleMetadata


def _path(*names: str) -> Path:
    path = Path.root()
    for name in names:
        path = path.child(PathNode(NodeKind.PROPERTY, name))
    return path


def _run(**kwargs: object) -> ValidationRun:
    params: dict[str, object] = {"root_bean": {"root": True}, "root_type": dict}
    params.update(kwargs)
    return ValidationRun(**params)  # type: ignore[arg-type]


class TestRunScopedFields:
    def test_forwarded_unmodified(self) -> None:
        root = {"a": 1}
        manager, factory, payload, metadata = object(), object(), object(), object()
        resolver = TraverseAll()

        def clock() -> datetime:
            return datetime(2024, 1, 1, tzinfo=timezone.utc)

        run = ValidationRun(
            root_bean=root,
            root_type=dict,
            root_metadata=metadata,
            validator_manager=manager,
            validator_factory=factory,
            traversable_resolver=resolver,
            clock_provider=clock,
            validator_payload=payload,
            fail_fast=True,
        )
        assert run.root_bean is root
        assert run.root_type is dict
        assert run.root_metadata is metadata
        assert run.validator_manager is manager
        assert run.validator_factory is factory
        assert run.traversable_resolver is resolver
        assert run.clock_provider is clock
        assert run.validator_payload is payload
        assert run.fail_fast is True
        assert run.tracking_enabled is True

    def test_fail_fast_defaults_off(self) -> None:
        assert _run().fail_fast is False

    def test_default_logger(self) -> None:
        assert _run().logger.name == "cascadeval.context"

    def test_explicit_logger(self) -> None:
        sink = logging.getLogger("tests.sink")
        assert _run(logger=sink).logger is sink

    def test_explicit_logger_receives_all_run_messages(
        self, make_rule: Callable[..., RuleMetadata], caplog: pytest.LogCaptureFixture
    ) -> None:
        sink = logging.getLogger("tests.sink")
        run = _run(logger=sink)
        bean = {"x": 1}
        rule = make_rule(groups=("a", "b"))
        with caplog.at_level(logging.DEBUG, logger="tests.sink"):
            run.mark_handled(bean, "a", _path("x"))
            assert run.already_handled(bean, "a", _path("x"))
            run.mark_evaluated(bean, _path("x"), rule)
            assert run.already_evaluated(bean, _path("x"), rule)
            run.report("a", "bad", 1, _path("x"), rule)
            run.report("a", "bad", 1, _path("x"), rule)

        sink_messages = [r.getMessage() for r in caplog.records if r.name == "tests.sink"]
        assert any("already validated" in m for m in sink_messages)
        assert any("already evaluated" in m for m in sink_messages)
        assert any("Duplicate violation" in m for m in sink_messages)
        assert any("Violation at" in m for m in sink_messages)
        assert not [r for r in caplog.records if r.name.startswith("cascadeval.")]


class TestRunTracking:
    def test_mark_then_handled(self) -> None:
        run = _run()
        bean = {"x": 1}
        run.mark_handled(bean, "g", _path("a"))
        assert run.already_handled(bean, "g", _path("a", "b"))
        assert not run.already_handled(bean, "g", _path("c"))

    def test_tracking_disabled(self) -> None:
        run = _run(track_validated_beans=False)
        bean = {"x": 1}
        run.mark_handled(bean, "g", _path("a"))
        run.mark_handled(bean, "g", _path("a"))
        assert not run.already_handled(bean, "g", _path("a"))
        assert run.tracking_enabled is False

    def test_rule_dedup(self, make_rule: Callable[..., RuleMetadata]) -> None:
        run = _run()
        bean = {"x": 1}
        multi = make_rule(groups=("a", "b"))
        single = make_rule(groups=("a",))
        run.mark_evaluated(bean, _path("x"), multi)
        run.mark_evaluated(bean, _path("x"), single)
        assert run.already_evaluated(bean, _path("x"), multi)
        assert not run.already_evaluated(bean, _path("x"), single)


class TestRunReport:
    def test_results_deduplicated(self, make_rule: Callable[..., RuleMetadata]) -> None:
        run = _run()
        rule = make_rule()
        builder = PathBuilder()
        builder.push_property("x")
        run.report("g", "bad ${validatedValue}", 5, builder, rule)
        run.report("g", "bad ${validatedValue}", 5, builder.snapshot(), rule)
        results = run.results()
        assert len(results) == 1
        (violation,) = results
        assert violation.message == "bad 5"
        assert violation.root_bean == {"root": True}
        assert run.has_violations()

    def test_injected_builder(self, make_rule: Callable[..., RuleMetadata]) -> None:
        run = _run(violation_builder=build_value_violation)
        violation = run.report("g", "bad", 5, _path("x"), make_rule())
        assert violation.root_bean is None

    def test_custom_interpolator_failure_is_wrapped(
        self, make_rule: Callable[..., RuleMetadata]
    ) -> None:
        class Broken:
            def interpolate(self, template: str, context: InterpolationContext) -> str:
                raise ZeroDivisionError

        run = _run(interpolator=Broken())
        with pytest.raises(MessageInterpolationError) as excinfo:
            run.report("g", "bad", 5, _path("x"), make_rule())
        assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
        assert not run.has_violations()

    def test_falsy_interpolator_is_used(self, make_rule: Callable[..., RuleMetadata]) -> None:
        class Upper:
            def __len__(self) -> int:
                return 0

            def interpolate(self, template: str, context: InterpolationContext) -> str:
                return template.upper()

        run = _run(interpolator=Upper())
        assert run.report("g", "bad", 5, _path("x"), make_rule()).message == "BAD"

    def test_domain_error_from_interpolator_propagates(
        self, make_rule: Callable[..., RuleMetadata]
    ) -> None:
        run = _run()
        with pytest.raises(ValidationError) as excinfo:
            run.report("g", "unterminated {", 5, _path("x"), make_rule())
        assert type(excinfo.value) is ValidationError

    def test_report_draft(self, make_rule: Callable[..., RuleMetadata]) -> None:
        run = _run()
        rule = make_rule()
        context = run.create_evaluation_context(rule, _path("x"), "default {p}")
        context.add_message_parameter("p", "value")
        (draft,) = context.drafts()
        violation = run.report_draft("g", draft, 1, rule)
        assert violation.message == "default value"
        assert violation.path == _path("x")


class TestRuleEvaluationContext:
    def test_created_with_run_collaborators(self, make_rule: Callable[..., RuleMetadata]) -> None:
        def clock() -> datetime:
            return datetime(2024, 1, 1, tzinfo=timezone.utc)

        run = _run(clock_provider=clock, validator_payload={"tenant": "t1"})
        builder = PathBuilder()
        builder.push_property("x")
        context = run.create_evaluation_context(make_rule(), builder, "tmpl")
        builder.pop()
        assert context.clock_provider is clock
        assert context.payload == {"tenant": "t1"}
        assert context.path == _path("x")

    def test_default_draft(self, make_rule: Callable[..., RuleMetadata]) -> None:
        context = RuleEvaluationContext(make_rule(), _path("x"), "tmpl")
        drafts = context.drafts()
        assert [d.message_template for d in drafts] == ["tmpl"]

    def test_custom_violation_replaces_default(
        self, make_rule: Callable[..., RuleMetadata]
    ) -> None:
        context = RuleEvaluationContext(make_rule(), _path("x"), "tmpl")
        context.disable_default_violation()
        context.add_expression_variable("v", 1)
        context.build_violation("custom", PathNode(NodeKind.PROPERTY, "inner"))
        (draft,) = context.drafts()
        assert draft.message_template == "custom"
        assert draft.path == _path("x", "inner")
        assert draft.expression_variables == {"v": 1}

    def test_custom_violation_in_addition(self, make_rule: Callable[..., RuleMetadata]) -> None:
        context = RuleEvaluationContext(make_rule(), _path("x"), "tmpl")
        context.build_violation("extra")
        assert [d.message_template for d in context.drafts()] == ["tmpl", "extra"]
