"""
Exception hierarchy for the topology engine.

Structural store operations never raise for unknown ids; these exceptions
cover the failure modes that must reach the caller.
"""


class TopologyError(Exception):
    """Base exception for topology engine errors."""
    pass


class IdGenerationError(TopologyError):
    """Raised when a unique id cannot be produced within the attempt limit."""
    pass


class UnknownCommandError(TopologyError, ValueError):
    """Raised when dispatch is asked for a command that is not registered."""
    pass


class LayoutError(TopologyError):
    """Raised when a layout cannot be computed."""
    pass


class UnknownLayoutAlgorithmError(LayoutError, ValueError):
    """Raised when the requested layout algorithm does not exist."""
    pass


class DeviceConfigError(TopologyError, ValueError):
    """Raised when a device configuration template cannot be parsed."""
    pass
