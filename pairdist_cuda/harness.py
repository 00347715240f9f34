"""
Differential test harness.

Runs the brute-force reference and a candidate distance implementation on the
same seeded random inputs and compares them cell by cell:

    SETUP -> EXECUTE_REFERENCE -> EXECUTE_CANDIDATE -> COMPARE -> TEARDOWN

Configuration, resource and execution errors abort the case (buffers are still
released). Accuracy mismatches are collected on the result and never raised,
so `run_cases` always moves on to the next configuration.

Example:
    >>> params = DistanceInputs(tolerance=1e-2, m=4, n=8, k=32, seed=1234)
    >>> result = DistanceTestCase("EucUnexpandedL2", params).run()
    >>> result.passed
    True
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

import torch

from .distances import ThresholdFinalizer, distance, get_workspace_size
from .errors import ConfigurationError, DistanceError, ExecutionError, ResourceError
from .metrics import DistanceType
from .reference import compute_reference
from .workspace import allocate_workspace

logger = logging.getLogger(__name__)

# the finalizer is a pass-through for uniform [-1, 1) inputs at this threshold
DEFAULT_THRESHOLD = -10000.0
# mismatching cells spelled out in logs and assertion messages
MAX_REPORTED = 5


def default_device() -> torch.device:
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


@dataclass(frozen=True)
class DistanceInputs:
    tolerance: float
    m: int
    n: int
    k: int
    seed: int

    def __post_init__(self):
        if self.m <= 0 or self.n <= 0 or self.k <= 0:
            raise ConfigurationError(f"m, n, k must be > 0. Got m={self.m}, n={self.n}, k={self.k}")
        if not self.tolerance >= 0:
            raise ConfigurationError(f"tolerance must be >= 0, got {self.tolerance}")
        if not 0 <= self.seed < 2 ** 64:
            raise ConfigurationError(f"seed must fit in 64 unsigned bits, got {self.seed}")


class Rng:
    """Seeded generator filling buffers in place; same seed, same values."""

    def __init__(self, seed: int, device: str | torch.device = "cpu"):
        self.seed = int(seed)
        self.generator = torch.Generator(device=device)
        self.generator.manual_seed(self.seed)

    def uniform(self, buf: torch.Tensor, low: float, high: float) -> torch.Tensor:
        # continuous uniform over [low, high)
        return buf.uniform_(low, high, generator=self.generator)


class Stage(enum.Enum):
    SETUP = "setup"
    EXECUTE_REFERENCE = "execute_reference"
    EXECUTE_CANDIDATE = "execute_candidate"
    COMPARE = "compare"
    TEARDOWN = "teardown"


@dataclass(frozen=True)
class Mismatch:
    i: int
    j: int
    expected: float
    actual: float

    def __str__(self) -> str:
        return f"({self.i}, {self.j}): expected {self.expected!r}, got {self.actual!r}"


@dataclass
class CaseResult:
    metric: DistanceType
    params: DistanceInputs
    mismatches: list[Mismatch] = field(default_factory=list)
    error: DistanceError | None = None
    failed_stage: Stage | None = None

    @property
    def passed(self) -> bool:
        return self.error is None and not self.mismatches


def compare_approx(expected: torch.Tensor, actual: torch.Tensor, eps: float) -> list[Mismatch]:
    """
    Cell-wise comparison of two (M,N) matrices.

    A cell passes when both values are nan, when they are equal (including equal
    infinities), or when ratio <= eps with
        diff  = |a - b|
        ratio = diff / max(|a|, |b|) if diff >= eps else diff
    i.e. relative error for large values and absolute error near zero.
    """
    if expected.shape != actual.shape:
        raise ValueError(f"Shape mismatch: {tuple(expected.shape)} vs {tuple(actual.shape)}")

    a = expected.detach().to(device="cpu", dtype=torch.float64)
    b = actual.detach().to(device="cpu", dtype=torch.float64)

    diff = (a - b).abs()
    scale = torch.maximum(a.abs(), b.abs())
    ratio = torch.where(diff >= eps, diff / scale, diff)
    ok = (ratio <= eps) | (a == b) | (a.isnan() & b.isnan())

    bad = (~ok).nonzero(as_tuple=False).tolist()
    return [Mismatch(i, j, a[i, j].item(), b[i, j].item()) for i, j in bad]


class DistanceTestCase:
    """
    One differential test case.

    metric: DistanceType (or a name DistanceType.parse accepts)
    params: DistanceInputs
    candidate: callable with the signature of `distances.distance`
    workspace_size_fn: callable(metric, x, y) -> bytes
    """

    def __init__(
        self,
        metric,
        params: DistanceInputs,
        *,
        device: str | torch.device | None = None,
        dtype: torch.dtype = torch.float32,
        threshold: float = DEFAULT_THRESHOLD,
        candidate: Callable = distance,
        workspace_size_fn: Callable = get_workspace_size,
    ):
        self.metric = DistanceType.parse(metric)
        self.params = params
        self.device = torch.device(device) if device is not None else default_device()
        if dtype not in (torch.float32, torch.float64):
            raise ConfigurationError(f"Unsupported dtype {dtype}")
        self.dtype = dtype
        self.threshold = float(threshold)
        self.candidate = candidate
        self.workspace_size_fn = workspace_size_fn

        self.stage: Stage | None = None
        self.failed_stage: Stage | None = None
        self.x = self.y = None
        self.dist_ref = self.dist = self.dist2 = None
        self.workspace = None
        self.worksize = 0

    def __repr__(self) -> str:
        p = self.params
        return (
            f"DistanceTestCase({self.metric.name}, m={p.m}, n={p.n}, k={p.k}, "
            f"seed={p.seed}, tol={p.tolerance}, device={self.device})"
        )

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        logger.debug("%r: %s", self, stage.value)

    def _allocate(self, *shape: int) -> torch.Tensor:
        try:
            return torch.empty(shape, dtype=self.dtype, device=self.device)
        except RuntimeError as exc:
            raise ResourceError(f"could not allocate {shape} {self.dtype} on {self.device}: {exc}") from exc

    def _sync(self) -> None:
        if self.device.type == "cuda":
            torch.cuda.synchronize(self.device)

    def _call_context(self) -> str:
        p = self.params
        return f"distance[{self.metric.name}](m={p.m}, n={p.n}, k={p.k}, worksize={self.worksize})"

    # ---- stages ----

    def setup(self) -> None:
        self._enter(Stage.SETUP)
        p = self.params
        rng = Rng(p.seed, self.device)

        self.x = self._allocate(p.m, p.k)
        self.y = self._allocate(p.n, p.k)
        self.dist_ref = self._allocate(p.m, p.n)
        self.dist = self._allocate(p.m, p.n)
        self.dist2 = self._allocate(p.m, p.n)

        rng.uniform(self.x, -1.0, 1.0)
        rng.uniform(self.y, -1.0, 1.0)

    def execute_reference(self) -> torch.Tensor:
        self._enter(Stage.EXECUTE_REFERENCE)
        try:
            self.dist_ref.copy_(compute_reference(self.x, self.y, self.metric))
            self._sync()
        except DistanceError:
            raise
        except Exception as exc:
            p = self.params
            raise ExecutionError(f"compute_reference[{self.metric.name}](m={p.m}, n={p.n}, k={p.k})", exc) from exc
        return self.dist_ref

    def execute_candidate(self) -> torch.Tensor:
        self._enter(Stage.EXECUTE_CANDIDATE)
        try:
            self.worksize = int(self.workspace_size_fn(self.metric, self.x, self.y))
            self.workspace = allocate_workspace(self.worksize, self.device)

            fin_op = ThresholdFinalizer(self.threshold, self.dist2)
            self.candidate(self.metric, self.x, self.y, self.dist, self.workspace, self.worksize, fin_op)
            self._sync()
        except DistanceError:
            raise
        except Exception as exc:
            raise ExecutionError(self._call_context(), exc) from exc
        return self.dist2

    def compare(self) -> list[Mismatch]:
        self._enter(Stage.COMPARE)
        mismatches = compare_approx(self.dist_ref, self.dist2, self.params.tolerance)
        if mismatches:
            logger.warning(
                "%r: %d/%d cells beyond tolerance, first: %s",
                self,
                len(mismatches),
                self.params.m * self.params.n,
                "; ".join(str(mm) for mm in mismatches[:MAX_REPORTED]),
            )
        return mismatches

    def teardown(self) -> None:
        self._enter(Stage.TEARDOWN)
        self.x = self.y = None
        self.dist_ref = self.dist = self.dist2 = None
        self.workspace = None
        if self.device.type == "cuda":
            torch.cuda.empty_cache()

    def __enter__(self) -> "DistanceTestCase":
        try:
            self.setup()
        except BaseException:
            self.failed_stage = self.stage
            self.teardown()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.failed_stage = self.stage
        self.teardown()
        return False

    def run(self) -> CaseResult:
        """Run every stage; fatal errors end up on the result instead of propagating."""
        result = CaseResult(self.metric, self.params)
        try:
            with self:
                self.execute_reference()
                self.execute_candidate()
                result.mismatches = self.compare()
        except DistanceError as exc:
            stage = self.failed_stage or self.stage
            logger.error("%r aborted during %s: %s", self, stage.value if stage else "init", exc)
            result.error = exc
            result.failed_stage = stage

        logger.info(
            "%r: %s",
            self,
            "passed" if result.passed else ("error" if result.error else f"{len(result.mismatches)} mismatches"),
        )
        return result


def run_cases(metric, inputs: Iterable[DistanceInputs], **kwargs) -> list[CaseResult]:
    """Run one case per configuration; a failing case never stops the others."""
    return [DistanceTestCase(metric, params, **kwargs).run() for params in inputs]


def assert_case_passes(result: CaseResult) -> None:
    if result.error is not None:
        raise AssertionError(f"{result.metric.name} {result.params}: {result.error}") from result.error
    if result.mismatches:
        shown = "\n  ".join(str(mm) for mm in result.mismatches[:MAX_REPORTED])
        raise AssertionError(
            f"{result.metric.name} {result.params}: {len(result.mismatches)} cells beyond "
            f"tolerance {result.params.tolerance}\n  {shown}"
        )
