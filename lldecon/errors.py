"""Exception types raised by lldecon."""

__all__ = ["DeconError", "ConfigurationError", "PlanError", "ShapeMismatchError"]


class DeconError(Exception):
    """Base class for all lldecon errors."""


class ConfigurationError(DeconError, ValueError):
    """Invalid or missing configuration value."""


class PlanError(DeconError, RuntimeError):
    """A transform plan or compute device could not be acquired."""


class ShapeMismatchError(DeconError, ValueError):
    """A volume does not match the extents a plan or context is bound to."""
