from .metrics import DistanceType, metric_formula
from .reference import compute_reference
from .distances import distance, get_workspace_size, ThresholdFinalizer
from .workspace import required_workspace_bytes, allocate_workspace
from .functional import pairwise_distance
from .module import PairwiseDistance
from .harness import DistanceInputs, DistanceTestCase, run_cases, compare_approx

__all__ = [
    "DistanceType",
    "metric_formula",
    "compute_reference",
    "distance",
    "get_workspace_size",
    "ThresholdFinalizer",
    "required_workspace_bytes",
    "allocate_workspace",
    "pairwise_distance",
    "PairwiseDistance",
    "DistanceInputs",
    "DistanceTestCase",
    "run_cases",
    "compare_approx",
]
