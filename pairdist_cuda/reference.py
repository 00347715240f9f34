from __future__ import annotations

import torch

from .metrics import DistanceType
from .utils.checks import check_vector_sets
from .cuda.launcher import naive_distance_cuda, naive_distance_cpu


def compute_reference(x: torch.Tensor, y: torch.Tensor, metric) -> torch.Tensor:
    """
    Brute-force distance matrix used as the correctness oracle.

    x: (M,K), y: (N,K)
    metric: DistanceType or anything DistanceType.parse accepts
    returns: (M,N) with dist[i,j] = metric(x[i], y[j])

    Every cell is computed independently with a plain accumulation over K.
    CUDA inputs run the numba CUDA kernels, CPU inputs the numba prange loops.
    """
    metric = DistanceType.parse(metric)
    check_vector_sets(x, y)

    if x.is_cuda:
        return naive_distance_cuda(x, y, metric)
    return naive_distance_cpu(x, y, metric)
