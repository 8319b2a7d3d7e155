"""
Error kinds raised by the feature toolkit.

Every error subclasses both ``FeatureToolkitError`` and the closest built-in
exception, so callers that only catch ``ValueError`` or ``RuntimeError`` keep
working.
"""


class FeatureToolkitError(Exception):
    """Base class for all toolkit errors."""


class InvalidParameterError(FeatureToolkitError, ValueError):
    """Bad constructor or call arguments (ranges, sizes, column indices)."""


class DimensionMismatchError(FeatureToolkitError, ValueError):
    """Buffer length or column count inconsistent with the declared shape."""


class EmptyInputError(FeatureToolkitError, ValueError):
    """Zero rows where statistics need at least one."""


class NotFittedError(FeatureToolkitError, RuntimeError):
    """transform / inverse_transform / encode called before fit."""


class NumericalInstabilityError(FeatureToolkitError, ArithmeticError):
    """Division against a near-zero eigenvalue or variance."""
