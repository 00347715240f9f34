from __future__ import annotations

import logging

import torch

from .distances import workspace_bytes
from .errors import ConfigurationError, ResourceError
from .metrics import DistanceType

logger = logging.getLogger(__name__)


def required_workspace_bytes(metric, m: int, n: int, k: int, dtype: torch.dtype = torch.float32) -> int:
    """Scratch bytes the tiled `distance` needs for an (m,k) x (n,k) problem."""
    metric = DistanceType.parse(metric)
    if m <= 0 or n <= 0 or k <= 0:
        raise ConfigurationError(f"m, n, k must be > 0. Got m={m}, n={n}, k={k}")
    return workspace_bytes(metric, m, n, dtype)


def allocate_workspace(nbytes: int, device: str | torch.device) -> torch.Tensor | None:
    """Provision exactly `nbytes` of scratch on `device`; None when nothing is needed."""
    nbytes = int(nbytes)
    if nbytes < 0:
        raise ConfigurationError(f"workspace size must be >= 0, got {nbytes}")
    if nbytes == 0:
        return None
    try:
        ws = torch.empty(nbytes, dtype=torch.uint8, device=device)
    except RuntimeError as exc:
        raise ResourceError(f"could not allocate {nbytes} workspace bytes on {device}: {exc}") from exc
    logger.debug("allocated %d workspace bytes on %s", nbytes, device)
    return ws
