from __future__ import annotations

import torch

from .errors import ResourceError
from .metrics import DistanceType
from .utils.checks import check_dtype, check_vector_sets, check_output

# GLOBALS
# output tile (rows, cols) handled per step
OUTPUT_TILE = (64, 64)


class ThresholdFinalizer:
    """
    Finalization op: fin_op(d_val, idx) -> d_val

    Writes `0 if d < threshold else d` into out.view(-1)[idx] and returns the
    value untouched, so the caller's own output keeps the raw distances.
    d_val and idx are tensors of equal shape (a tile and its flat indices).
    """

    def __init__(self, threshold: float, out: torch.Tensor):
        self.threshold = float(threshold)
        self.out = out

    def __call__(self, d_val: torch.Tensor, idx: torch.Tensor) -> torch.Tensor:
        finalized = torch.where(d_val < self.threshold, torch.zeros_like(d_val), d_val)
        self.out.view(-1)[idx] = finalized
        return d_val

    def __repr__(self) -> str:
        return f"ThresholdFinalizer(threshold={self.threshold})"


def _itemsize(dtype: torch.dtype) -> int:
    return torch.finfo(dtype).bits // 8


def workspace_bytes(metric: DistanceType, m: int, n: int, dtype: torch.dtype) -> int:
    check_dtype(dtype)
    # expanded forms keep the squared row norms of x and y as scratch
    if metric.is_expanded:
        return (m + n) * _itemsize(dtype)
    return 0


def get_workspace_size(metric, x: torch.Tensor, y: torch.Tensor) -> int:
    """Scratch bytes `distance` needs for (x, y, metric). Zero means none."""
    metric = DistanceType.parse(metric)
    m, n, _ = check_vector_sets(x, y)
    return workspace_bytes(metric, m, n, x.dtype)


# ---- per-tile math ----

def _expanded_l2_tile(xt, yt, xn, yn, metric):
    d = xn.unsqueeze(1) + yn.unsqueeze(0) - 2.0 * (xt @ yt.T)
    # fp roundoff can produce tiny negatives
    d = d.clamp_min(0.0)
    return d.sqrt() if metric.is_sqrt else d


def _unexpanded_l2_tile(xt, yt, xn, yn, metric):
    diff = xt.unsqueeze(1) - yt.unsqueeze(0)
    d = (diff * diff).sum(dim=-1)
    return d.clamp_min(0.0).sqrt() if metric.is_sqrt else d


def _l1_tile(xt, yt, xn, yn, metric):
    return (xt.unsqueeze(1) - yt.unsqueeze(0)).abs().sum(dim=-1)


def _cosine_tile(xt, yt, xn, yn, metric):
    # no epsilon: zero-norm rows give nan/inf like the reference
    return (xt @ yt.T) / (xn.sqrt().unsqueeze(1) * yn.sqrt().unsqueeze(0))


_TILE_FNS = {
    ("l2", True): _expanded_l2_tile,
    ("l2", False): _unexpanded_l2_tile,
    ("l1", False): _l1_tile,
    ("cosine", True): _cosine_tile,
}


# MAIN
def distance(
    metric,
    x: torch.Tensor,
    y: torch.Tensor,
    out: torch.Tensor,
    workspace: torch.Tensor | None = None,
    worksize: int = 0,
    fin_op=None,
) -> None:
    """
    Tiled pairwise distance.

    x: (M,K), y: (N,K), out: (M,N) preallocated
    workspace: uint8 tensor of at least get_workspace_size(...) bytes, or None when that is 0
    fin_op: optional callable (tile_values, tile_flat_indices) -> tile_values
    """
    metric = DistanceType.parse(metric)
    m, n, k = check_vector_sets(x, y)
    check_output(out, m, n, x)

    needed = workspace_bytes(metric, m, n, x.dtype)
    if needed:
        if workspace is None or worksize < needed or workspace.numel() < needed:
            raise ResourceError(
                f"distance[{metric.name}] needs {needed} workspace bytes, got {worksize}"
            )
        if workspace.dtype != torch.uint8 or workspace.device != x.device:
            raise ResourceError(f"workspace must be uint8 on {x.device}")

    x_ = x.detach().contiguous()
    y_ = y.detach().contiguous()

    xn = yn = None
    if metric.is_expanded:
        norms = workspace[:needed].view(x_.dtype)
        xn = norms[:m]
        yn = norms[m:]
        xn.copy_((x_ * x_).sum(dim=1))
        yn.copy_((y_ * y_).sum(dim=1))

    tile_fn = _TILE_FNS[(metric.family, metric.is_expanded)]
    tm, tn = OUTPUT_TILE
    cols_all = torch.arange(n, device=x_.device)

    for i0 in range(0, m, tm):
        i1 = min(i0 + tm, m)
        rows = torch.arange(i0, i1, device=x_.device)
        for j0 in range(0, n, tn):
            j1 = min(j0 + tn, n)
            tile = tile_fn(
                x_[i0:i1],
                y_[j0:j1],
                None if xn is None else xn[i0:i1],
                None if yn is None else yn[j0:j1],
                metric,
            )
            if fin_op is not None:
                idx = rows.unsqueeze(1) * n + cols_all[j0:j1].unsqueeze(0)
                tile = fin_op(tile, idx)
            out[i0:i1, j0:j1] = tile
