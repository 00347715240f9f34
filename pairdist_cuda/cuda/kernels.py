from __future__ import annotations

import math
from numba import cuda


@cuda.jit(device=True, inline=True)
def _my_sqrt(x):
    # guards against negative accumulations from fp cancellation
    if x > 0:
        return math.sqrt(x)
    return 0.0


@cuda.jit
def naive_distance_kernel(dist, x, y, m, n, k, take_sqrt):
    """
    dist: (M,N), x: (M,K), y: (N,K)
    One thread per output cell; squared L2, or L2 when take_sqrt.
    """
    midx = cuda.threadIdx.x + cuda.blockIdx.x * cuda.blockDim.x
    nidx = cuda.threadIdx.y + cuda.blockIdx.y * cuda.blockDim.y
    if midx >= m or nidx >= n:
        return

    # accumulate in float64 whatever the input dtype
    acc = 0.0
    for i in range(k):
        diff = x[midx, i] - y[nidx, i]
        acc += diff * diff

    if take_sqrt:
        acc = _my_sqrt(acc)
    dist[midx, nidx] = acc


@cuda.jit
def naive_l1_distance_kernel(dist, x, y, m, n, k):
    midx = cuda.threadIdx.x + cuda.blockIdx.x * cuda.blockDim.x
    nidx = cuda.threadIdx.y + cuda.blockIdx.y * cuda.blockDim.y
    if midx >= m or nidx >= n:
        return

    acc = 0.0
    for i in range(k):
        a = x[midx, i]
        b = y[nidx, i]
        if a > b:
            acc += a - b
        else:
            acc += b - a

    dist[midx, nidx] = acc


@cuda.jit
def naive_cosine_distance_kernel(dist, x, y, m, n, k):
    midx = cuda.threadIdx.x + cuda.blockIdx.x * cuda.blockDim.x
    nidx = cuda.threadIdx.y + cuda.blockIdx.y * cuda.blockDim.y
    if midx >= m or nidx >= n:
        return

    acc_a = 0.0
    acc_b = 0.0
    acc_ab = 0.0
    for i in range(k):
        a = x[midx, i]
        b = y[nidx, i]
        acc_a += a * a
        acc_b += b * b
        acc_ab += a * b

    # no epsilon: zero-norm rows propagate nan/inf
    dist[midx, nidx] = acc_ab / (_my_sqrt(acc_a) * _my_sqrt(acc_b))
