from __future__ import annotations

import torch
from torch import nn

from .functional import pairwise_distance
from .metrics import DistanceType
from .reference import compute_reference


class PairwiseDistance(nn.Module):
    """
    User-facing module.

    - metric: any DistanceType (or name/alias accepted by DistanceType.parse)
    - reference:
        False -> tiled implementation (default)
        True  -> brute-force reference, one independent computation per cell
    - threshold: if set, distances below it are replaced by 0 in the output
    """

    def __init__(self, metric="l2", *, reference: bool = False, threshold: float | None = None):
        super().__init__()
        self.metric = DistanceType.parse(metric)
        self.reference = bool(reference)
        self.threshold = None if threshold is None else float(threshold)

    def extra_repr(self) -> str:
        return f"metric={self.metric.name}, reference={self.reference}, threshold={self.threshold}"

    def forward(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        # Accept (K,) single vectors as (1,K)
        if x.dim() == 1:
            x = x.unsqueeze(0)
        if y.dim() == 1:
            y = y.unsqueeze(0)

        if self.reference:
            out = compute_reference(x, y, self.metric)
        else:
            out = pairwise_distance(x, y, self.metric)

        if self.threshold is not None:
            out = torch.where(out < self.threshold, torch.zeros_like(out), out)
        return out
