"""
Distance metric catalog.

Every metric reduces two k-dimensional vectors to one scalar:

  EucExpandedL2 / EucUnexpandedL2          sum_i (x_i - y_i)^2
  EucExpandedL2Sqrt / EucUnexpandedL2Sqrt  my_sqrt(sum_i (x_i - y_i)^2)
  EucUnexpandedL1                          sum_i |x_i - y_i|
  EucExpandedCosine                        sum_i x_i*y_i / (|x| * |y|)

"Expanded" and "Unexpanded" are two computation strategies for the same value.
The cosine denominator carries no epsilon: a zero-norm row gives NaN/inf.
"""

from __future__ import annotations

import enum
import math
from typing import Callable

import numpy as np

from .errors import UnsupportedMetricError


class DistanceType(enum.IntEnum):
    EucExpandedL2 = 0
    EucExpandedL2Sqrt = 1
    EucExpandedCosine = 2
    EucUnexpandedL1 = 3
    EucUnexpandedL2 = 4
    EucUnexpandedL2Sqrt = 5

    @property
    def is_sqrt(self) -> bool:
        return self in (DistanceType.EucExpandedL2Sqrt, DistanceType.EucUnexpandedL2Sqrt)

    @property
    def is_expanded(self) -> bool:
        return self in (
            DistanceType.EucExpandedL2,
            DistanceType.EucExpandedL2Sqrt,
            DistanceType.EucExpandedCosine,
        )

    @property
    def family(self) -> str:
        return _FAMILY[self]

    @classmethod
    def parse(cls, metric) -> "DistanceType":
        """Accept a DistanceType, its integer value, its name or a common alias."""
        if isinstance(metric, cls):
            return metric
        if isinstance(metric, str):
            key = metric.strip()
            if key in cls.__members__:
                return cls[key]
            alias = _ALIASES.get(key.lower())
            if alias is not None:
                return alias
            raise UnsupportedMetricError(metric)
        if isinstance(metric, (int, np.integer)) and not isinstance(metric, bool):
            try:
                return cls(int(metric))
            except ValueError:
                raise UnsupportedMetricError(metric) from None
        raise UnsupportedMetricError(metric)


_FAMILY = {
    DistanceType.EucExpandedL2: "l2",
    DistanceType.EucExpandedL2Sqrt: "l2",
    DistanceType.EucUnexpandedL2: "l2",
    DistanceType.EucUnexpandedL2Sqrt: "l2",
    DistanceType.EucUnexpandedL1: "l1",
    DistanceType.EucExpandedCosine: "cosine",
}

_ALIASES = {
    # names used by the distance-testing literature
    "squaredl2expanded": DistanceType.EucExpandedL2,
    "l2expanded": DistanceType.EucExpandedL2Sqrt,
    "squaredl2unexpanded": DistanceType.EucUnexpandedL2,
    "l2unexpanded": DistanceType.EucUnexpandedL2Sqrt,
    "l1unexpanded": DistanceType.EucUnexpandedL1,
    "cosineexpanded": DistanceType.EucExpandedCosine,
    # short names
    "sqeuclidean": DistanceType.EucExpandedL2,
    "sq_euclidean": DistanceType.EucExpandedL2,
    "squared_euclidean": DistanceType.EucExpandedL2,
    "l2": DistanceType.EucExpandedL2Sqrt,
    "euclidean": DistanceType.EucExpandedL2Sqrt,
    "l1": DistanceType.EucUnexpandedL1,
    "manhattan": DistanceType.EucUnexpandedL1,
    "cityblock": DistanceType.EucUnexpandedL1,
    "cosine": DistanceType.EucExpandedCosine,
}


def my_sqrt(x: float) -> float:
    # accumulations can round slightly below zero
    return math.sqrt(x) if x > 0 else 0.0


def sq_euclidean(x, y) -> float:
    acc = 0.0
    for a, b in zip(x, y):
        diff = float(a) - float(b)
        acc += diff * diff
    return acc


def euclidean(x, y) -> float:
    return my_sqrt(sq_euclidean(x, y))


def l1(x, y) -> float:
    acc = 0.0
    for a, b in zip(x, y):
        a = float(a)
        b = float(b)
        acc += (a - b) if a > b else (b - a)
    return acc


def cosine(x, y) -> float:
    acc_a = 0.0
    acc_b = 0.0
    acc_ab = 0.0
    for a, b in zip(x, y):
        a = float(a)
        b = float(b)
        acc_a += a * a
        acc_b += b * b
        acc_ab += a * b
    # IEEE semantics on purpose: 0/0 -> nan, x/0 -> +-inf
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(acc_ab) / (np.float64(my_sqrt(acc_a)) * np.float64(my_sqrt(acc_b))))


_FORMULAS: dict[DistanceType, Callable[..., float]] = {
    DistanceType.EucExpandedL2: sq_euclidean,
    DistanceType.EucUnexpandedL2: sq_euclidean,
    DistanceType.EucExpandedL2Sqrt: euclidean,
    DistanceType.EucUnexpandedL2Sqrt: euclidean,
    DistanceType.EucUnexpandedL1: l1,
    DistanceType.EucExpandedCosine: cosine,
}


def metric_formula(metric) -> Callable[..., float]:
    """Return the scalar formula reducing two equal-length vectors for `metric`."""
    return _FORMULAS[DistanceType.parse(metric)]
