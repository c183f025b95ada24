"""cascadeval - cycle-safe, group-aware validation of object graphs."""

from cascadeval.checks import CheckFactory, EvaluatorManager
from cascadeval.config import ValidatorSettings, load_settings
from cascadeval.context import RuleEvaluationContext, ValidationRun, ViolationDraft
from cascadeval.errors import (
    ConfigError,
    MessageInterpolationError,
    TraversableResolverError,
    ValidationError,
)
from cascadeval.interpolation import (
    InterpolationContext,
    MessageInterpolator,
    MessageRenderer,
    TemplateInterpolator,
)
from cascadeval.metadata import RuleMetadata, RuleSet, load_rules, parse_rules
from cascadeval.path import NodeKind, Path, PathBuilder, PathNode
from cascadeval.resolvers import SkipProperties, TraversableResolver, TraverseAll
from cascadeval.tracking import BeanTracker, IdentityKey, RuleTracker
from cascadeval.violations import (
    Violation,
    ViolationCollector,
    build_bean_violation,
    build_value_violation,
    parameter_violation_builder,
    return_value_violation_builder,
)
from cascadeval.walker import GraphValidator

__version__ = "0.1.0"

__all__ = [
    "BeanTracker",
    "CheckFactory",
    "ConfigError",
    "EvaluatorManager",
    "GraphValidator",
    "IdentityKey",
    "InterpolationContext",
    "MessageInterpolationError",
    "MessageInterpolator",
    "MessageRenderer",
    "NodeKind",
    "Path",
    "PathBuilder",
    "PathNode",
    "RuleEvaluationContext",
    "RuleMetadata",
    "RuleSet",
    "RuleTracker",
    "SkipProperties",
    "TemplateInterpolator",
    "TraversableResolver",
    "TraversableResolverError",
    "TraverseAll",
    "ValidationError",
    "ValidationRun",
    "ValidatorSettings",
    "Violation",
    "ViolationCollector",
    "ViolationDraft",
    "__version__",
    "build_bean_violation",
    "build_value_violation",
    "load_rules",
    "load_settings",
    "parameter_violation_builder",
    "return_value_violation_builder",
]
