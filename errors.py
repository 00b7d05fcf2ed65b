"""Error types raised by the convolution and gradient-descent engines."""


class VisualizerError(Exception):
    """Base class for every recoverable engine failure."""


class InvalidDimensions(VisualizerError, ValueError):
    """Kernel and input shapes cannot form a valid-mode convolution."""


class UnknownObjective(VisualizerError, LookupError):
    """Objective name is not in the registry."""

    def __init__(self, name, known=()):
        self.name = name
        self.known = tuple(known)
        msg = f"Unknown objective {name!r}"
        if self.known:
            msg += f" (expected one of: {', '.join(self.known)})"
        super().__init__(msg)


class InvalidArgument(VisualizerError, ValueError):
    """A numeric setting is out of its allowed range."""


class NotRunnable(VisualizerError, RuntimeError):
    """A descent step was requested while the engine is stopped."""
