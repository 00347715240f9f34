from __future__ import annotations

import math
import pytest

from pairdist_cuda.errors import UnsupportedMetricError
from pairdist_cuda.metrics import DistanceType, metric_formula, my_sqrt


def test_my_sqrt_guards_non_positive():
    assert my_sqrt(4.0) == 2.0
    assert my_sqrt(0.0) == 0.0
    assert my_sqrt(-1e-7) == 0.0


def test_formulas_on_small_vectors():
    x = [1.0, -2.0, 0.5]
    y = [0.0, 1.0, 0.5]

    assert metric_formula(DistanceType.EucUnexpandedL2)(x, y) == pytest.approx(10.0)
    assert metric_formula(DistanceType.EucExpandedL2)(x, y) == pytest.approx(10.0)
    assert metric_formula(DistanceType.EucExpandedL2Sqrt)(x, y) == pytest.approx(math.sqrt(10.0))
    assert metric_formula(DistanceType.EucUnexpandedL2Sqrt)(x, y) == pytest.approx(math.sqrt(10.0))
    assert metric_formula(DistanceType.EucUnexpandedL1)(x, y) == pytest.approx(4.0)

    dot = -2.0 + 0.25
    expected = dot / (math.sqrt(5.25) * math.sqrt(1.25))
    assert metric_formula(DistanceType.EucExpandedCosine)(x, y) == pytest.approx(expected)


def test_cosine_zero_norm_is_not_guarded():
    cos = metric_formula(DistanceType.EucExpandedCosine)
    assert math.isnan(cos([0.0, 0.0], [1.0, 2.0]))
    assert math.isnan(cos([0.0, 0.0], [0.0, 0.0]))


def test_l1_is_symmetric():
    l1 = metric_formula("l1")
    assert l1([3.0, -1.0], [-2.0, 4.0]) == l1([-2.0, 4.0], [3.0, -1.0]) == 10.0


@pytest.mark.parametrize(
    "name, expected",
    [
        ("SquaredL2Expanded", DistanceType.EucExpandedL2),
        ("L2Expanded", DistanceType.EucExpandedL2Sqrt),
        ("SquaredL2Unexpanded", DistanceType.EucUnexpandedL2),
        ("L2Unexpanded", DistanceType.EucUnexpandedL2Sqrt),
        ("L1Unexpanded", DistanceType.EucUnexpandedL1),
        ("CosineExpanded", DistanceType.EucExpandedCosine),
        ("EucExpandedCosine", DistanceType.EucExpandedCosine),
        ("sqeuclidean", DistanceType.EucExpandedL2),
        ("cosine", DistanceType.EucExpandedCosine),
        (3, DistanceType.EucUnexpandedL1),
    ],
)
def test_parse_names_and_aliases(name, expected):
    assert DistanceType.parse(name) is expected


@pytest.mark.parametrize("bad", ["hamming", 42, None, 1.5, True])
def test_parse_unknown_raises(bad):
    with pytest.raises(UnsupportedMetricError, match="Unsupported distance type"):
        DistanceType.parse(bad)


def test_families_and_flags():
    assert {t.family for t in DistanceType} == {"l2", "l1", "cosine"}
    assert [t for t in DistanceType if t.is_sqrt] == [
        DistanceType.EucExpandedL2Sqrt,
        DistanceType.EucUnexpandedL2Sqrt,
    ]
    assert not DistanceType.EucUnexpandedL1.is_expanded
    assert DistanceType.EucExpandedCosine.is_expanded
