from __future__ import annotations

import logging

import numpy as np
import torch
from numba import cuda
from numba import jit, prange

from ..errors import ExecutionError, UnsupportedMetricError
from ..metrics import DistanceType
from .kernels import naive_distance_kernel, naive_l1_distance_kernel
from .kernels import naive_cosine_distance_kernel

logger = logging.getLogger(__name__)

# GLOBALS
# threads per block along (m, n); one thread per output cell
TPB = (16, 32)


# HELPERS
def _ceildiv(a: int, b: int) -> int:
    return (a + b - 1) // b


def _blocks(m: int, n: int) -> tuple[int, int]:
    return _ceildiv(m, TPB[0]), _ceildiv(n, TPB[1])


def _context(metric: DistanceType, m: int, n: int, k: int) -> str:
    return f"naive_distance[{metric.name}](m={m}, n={n}, k={k})"


def _launch_l2(nblks, dist, x, y, m, n, k, metric):
    naive_distance_kernel[nblks, TPB](dist, x, y, m, n, k, metric.is_sqrt)


def _launch_l1(nblks, dist, x, y, m, n, k, metric):
    naive_l1_distance_kernel[nblks, TPB](dist, x, y, m, n, k)


def _launch_cosine(nblks, dist, x, y, m, n, k, metric):
    naive_cosine_distance_kernel[nblks, TPB](dist, x, y, m, n, k)


_CUDA_LAUNCHERS = {
    "l2": _launch_l2,
    "l1": _launch_l1,
    "cosine": _launch_cosine,
}


# MAIN - CUDA reference
def naive_distance_cuda(x: torch.Tensor, y: torch.Tensor, metric: DistanceType) -> torch.Tensor:
    """
    Brute-force reference on the GPU.

    x: (M,K), y: (N,K) CUDA tensors
    Returns: dist (M,N), same dtype/device as x
    """
    if not (x.is_cuda and y.is_cuda):
        raise ValueError("Expected CUDA tensors x and y")

    x_ = x.detach().contiguous()
    y_ = y.detach().contiguous()
    m, k = x_.shape
    n = y_.shape[0]

    dist = torch.empty((m, n), device=x_.device, dtype=x_.dtype)

    x_ca = cuda.as_cuda_array(x_)
    y_ca = cuda.as_cuda_array(y_)
    d_ca = cuda.as_cuda_array(dist)
    nblks = _blocks(m, n)
    launch = _CUDA_LAUNCHERS.get(metric.family)
    if launch is None:
        raise UnsupportedMetricError(metric)

    logger.debug("launching %s on grid=%s tpb=%s", _context(metric, m, n, k), nblks, TPB)
    try:
        launch(nblks, d_ca, x_ca, y_ca, m, n, k, metric)
        cuda.synchronize()
    except Exception as exc:
        raise ExecutionError(_context(metric, m, n, k), exc) from exc

    return dist


# ---- CPU reference ----

@jit(nopython=True, parallel=True, error_model="numpy")
def _naive_distance_cpu_np(x: np.ndarray, y: np.ndarray, dist: np.ndarray, take_sqrt: bool):
    m, k = x.shape
    n = y.shape[0]
    for midx in prange(m):
        for nidx in range(n):
            # float64 accumulator, same as the CUDA kernels
            acc = 0.0
            for i in range(k):
                diff = x[midx, i] - y[nidx, i]
                acc += diff * diff
            if take_sqrt:
                acc = np.sqrt(acc) if acc > 0 else 0.0
            dist[midx, nidx] = acc
    return dist


@jit(nopython=True, parallel=True, error_model="numpy")
def _naive_l1_distance_cpu_np(x: np.ndarray, y: np.ndarray, dist: np.ndarray):
    m, k = x.shape
    n = y.shape[0]
    for midx in prange(m):
        for nidx in range(n):
            acc = 0.0
            for i in range(k):
                a = x[midx, i]
                b = y[nidx, i]
                if a > b:
                    acc += a - b
                else:
                    acc += b - a
            dist[midx, nidx] = acc
    return dist


@jit(nopython=True, parallel=True, error_model="numpy")
def _naive_cosine_distance_cpu_np(x: np.ndarray, y: np.ndarray, dist: np.ndarray):
    m, k = x.shape
    n = y.shape[0]
    for midx in prange(m):
        for nidx in range(n):
            acc_a = 0.0
            acc_b = 0.0
            acc_ab = 0.0
            for i in range(k):
                a = x[midx, i]
                b = y[nidx, i]
                acc_a += a * a
                acc_b += b * b
                acc_ab += a * b
            norm_a = np.sqrt(acc_a) if acc_a > 0 else 0.0
            norm_b = np.sqrt(acc_b) if acc_b > 0 else 0.0
            dist[midx, nidx] = acc_ab / (norm_a * norm_b)
    return dist


_CPU_KERNELS = {
    "l2": lambda x, y, dist, metric: _naive_distance_cpu_np(x, y, dist, metric.is_sqrt),
    "l1": lambda x, y, dist, metric: _naive_l1_distance_cpu_np(x, y, dist),
    "cosine": lambda x, y, dist, metric: _naive_cosine_distance_cpu_np(x, y, dist),
}


def naive_distance_cpu(x: torch.Tensor, y: torch.Tensor, metric: DistanceType) -> torch.Tensor:
    x_np = x.detach().cpu().contiguous().numpy()
    y_np = y.detach().cpu().contiguous().numpy()
    m, k = x_np.shape
    n = y_np.shape[0]
    dist_np = np.empty((m, n), dtype=x_np.dtype)
    run = _CPU_KERNELS.get(metric.family)
    if run is None:
        raise UnsupportedMetricError(metric)

    try:
        run(x_np, y_np, dist_np, metric)
    except Exception as exc:
        raise ExecutionError(_context(metric, m, n, k), exc) from exc

    return torch.from_numpy(dist_np).to(x.device)
