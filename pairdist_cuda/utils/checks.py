from __future__ import annotations

import torch

_SUPPORTED_DTYPES = (torch.float32, torch.float64)


def check_dtype(dtype: torch.dtype) -> None:
    if dtype not in _SUPPORTED_DTYPES:
        raise TypeError(f"Unsupported dtype {dtype}")


def check_vector_sets(x: torch.Tensor, y: torch.Tensor) -> tuple[int, int, int]:
    """Validate X (m,k) and Y (n,k); returns (m, n, k)."""
    if not isinstance(x, torch.Tensor) or not isinstance(y, torch.Tensor):
        raise TypeError("x and y must be torch.Tensor")
    if x.dim() != 2 or y.dim() != 2:
        raise ValueError(f"Expected x,y as (M,K)/(N,K). Got {tuple(x.shape)} and {tuple(y.shape)}")
    if x.shape[1] != y.shape[1]:
        raise ValueError(f"Feature dims must match. Got x.shape[-1]={x.shape[1]}, y.shape[-1]={y.shape[1]}")
    if x.dtype != y.dtype:
        raise TypeError(f"dtype mismatch: {x.dtype} vs {y.dtype}")
    check_dtype(x.dtype)
    if x.device != y.device:
        raise ValueError(f"x and y must live on the same device. Got {x.device} and {y.device}")
    m, k = x.shape
    n = y.shape[0]
    if m == 0 or n == 0 or k == 0:
        raise ValueError(f"Shapes must be non-empty. Got m={m}, n={n}, k={k}")
    return m, n, k


def check_output(out: torch.Tensor, m: int, n: int, like: torch.Tensor) -> None:
    if not isinstance(out, torch.Tensor):
        raise TypeError("out must be a torch.Tensor")
    if tuple(out.shape) != (m, n):
        raise ValueError(f"Expected out shape {(m, n)}, got {tuple(out.shape)}")
    if out.dtype != like.dtype or out.device != like.device:
        raise ValueError(f"out must be {like.dtype} on {like.device}, got {out.dtype} on {out.device}")
    if not out.is_contiguous():
        raise ValueError("out must be contiguous")
