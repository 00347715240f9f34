from __future__ import annotations


class DistanceError(Exception):
    """Base class for every error raised by pairdist_cuda."""


class ConfigurationError(DistanceError, ValueError):
    """Invalid test configuration or call arguments (programmer error)."""


class UnsupportedMetricError(ConfigurationError):
    def __init__(self, metric):
        super().__init__(f"Unsupported distance type {metric!r}")
        self.metric = metric


class ResourceError(DistanceError, RuntimeError):
    """Allocation of an input, output or scratch buffer failed."""


class ExecutionError(DistanceError, RuntimeError):
    """A distance computation failed while running on the device."""

    def __init__(self, context: str, cause: BaseException | None = None):
        msg = f"{context} failed"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
        self.context = context
