"""Exception kinds raised while validating an object graph."""

from __future__ import annotations


class ValidationError(Exception):
    """Base class for deliberate validation-domain failures.

    Collaborators (interpolators, resolvers, checks) raise this or a subclass
    when they are misconfigured or fed a malformed expression.  Instances
    propagate unchanged to the caller of a top-level validation.
    """


class MessageInterpolationError(ValidationError):
    """Raised when a message interpolator fails with an unexpected exception.

    The original exception is chained as ``__cause__`` and kept on
    :attr:`original`.
    """

    def __init__(self, template: str, original: BaseException) -> None:
        super().__init__(f"An exception occurred during message interpolation of {template!r}")
        self.template = template
        self.original = original


class TraversableResolverError(ValidationError):
    """Raised when a traversable resolver fails with an unexpected exception."""

    def __init__(self, method: str, original: BaseException) -> None:
        super().__init__(f"Call to TraversableResolver.{method}() threw an exception")
        self.method = method
        self.original = original


class ConfigError(ValueError):
    """Raised when a rules or settings file contains invalid configuration."""
