from __future__ import annotations

import torch

from .distances import distance, get_workspace_size
from .metrics import DistanceType
from .utils.checks import check_vector_sets
from .workspace import allocate_workspace


def pairwise_distance(
    x: torch.Tensor,
    y: torch.Tensor,
    metric="l2",
    *,
    fin_op=None,
) -> torch.Tensor:
    """
    Convenience functional API.

    x: (M,K), y: (N,K)
    metric: DistanceType, its name, or an alias ("sqeuclidean", "l2", "l1", "cosine")
    fin_op: optional callable (tile_values, tile_flat_indices) -> tile_values
    returns: (M,N)
    """
    metric = DistanceType.parse(metric)
    m, n, _ = check_vector_sets(x, y)

    out = torch.empty((m, n), device=x.device, dtype=x.dtype)
    worksize = get_workspace_size(metric, x, y)
    workspace = allocate_workspace(worksize, x.device)
    distance(metric, x, y, out, workspace, worksize, fin_op)
    return out
