import pytest
import torch

from pairdist_cuda import (
    DistanceType,
    ThresholdFinalizer,
    allocate_workspace,
    compute_reference,
    distance,
    get_workspace_size,
    required_workspace_bytes,
)
from pairdist_cuda.errors import ConfigurationError, ResourceError

DEVICES = ["cpu"] + (["cuda"] if torch.cuda.is_available() else [])


def _run(metric, x, y, fin_op=None):
    out = torch.empty((x.shape[0], y.shape[0]), dtype=x.dtype, device=x.device)
    worksize = get_workspace_size(metric, x, y)
    distance(metric, x, y, out, allocate_workspace(worksize, x.device), worksize, fin_op)
    return out


@pytest.mark.parametrize("device", DEVICES)
@pytest.mark.parametrize("metric", list(DistanceType))
def test_tiled_matches_reference(metric, device):
    torch.manual_seed(0)
    # spans several 64 x 64 output tiles
    x = torch.rand(70, 24, device=device) * 2 - 1
    y = torch.rand(130, 24, device=device) * 2 - 1

    D = _run(metric, x, y)
    D_ref = compute_reference(x, y, metric)
    assert torch.allclose(D, D_ref, atol=1e-4, rtol=1e-4)


def test_expanded_and_unexpanded_agree():
    torch.manual_seed(0)
    x = torch.randn(12, 8, dtype=torch.float64)
    y = torch.randn(10, 8, dtype=torch.float64)

    assert torch.allclose(_run("SquaredL2Expanded", x, y), _run("SquaredL2Unexpanded", x, y))
    assert torch.allclose(_run("L2Expanded", x, y), _run("L2Unexpanded", x, y))


def test_expanded_l2_never_negative():
    torch.manual_seed(0)
    x = torch.randn(8, 16)
    D = _run(DistanceType.EucExpandedL2Sqrt, x, x.clone())
    assert (D >= 0).all()
    assert torch.allclose(D.diagonal(), torch.zeros(8), atol=1e-2)


def test_cosine_zero_row_is_nan():
    torch.manual_seed(0)
    x = torch.randn(4, 32)
    y = torch.randn(8, 32)
    x[2].zero_()
    D = _run(DistanceType.EucExpandedCosine, x, y)
    assert torch.isnan(D[2]).all()
    assert torch.isfinite(D[[0, 1, 3]]).all()


@pytest.mark.parametrize(
    "metric, expected",
    [
        (DistanceType.EucExpandedL2, (4 + 8) * 4),
        (DistanceType.EucExpandedL2Sqrt, (4 + 8) * 4),
        (DistanceType.EucExpandedCosine, (4 + 8) * 4),
        (DistanceType.EucUnexpandedL2, 0),
        (DistanceType.EucUnexpandedL2Sqrt, 0),
        (DistanceType.EucUnexpandedL1, 0),
    ],
)
def test_workspace_size(metric, expected):
    x = torch.zeros(4, 32)
    y = torch.zeros(8, 32)
    assert get_workspace_size(metric, x, y) == expected
    assert required_workspace_bytes(metric, 4, 8, 32) == expected


def test_workspace_size_scales_with_dtype():
    assert required_workspace_bytes("cosine", 3, 5, 7, torch.float64) == 8 * 8
    assert required_workspace_bytes("cosine", 3, 5, 7, torch.float32) == 8 * 4


def test_required_workspace_bytes_rejects_bad_shapes():
    with pytest.raises(ConfigurationError):
        required_workspace_bytes("l2", 0, 5, 7)


def test_allocate_workspace_zero_is_none():
    assert allocate_workspace(0, "cpu") is None
    ws = allocate_workspace(48, "cpu")
    assert ws.dtype == torch.uint8 and ws.numel() == 48


def test_missing_workspace_raises():
    x = torch.randn(4, 3)
    y = torch.randn(5, 3)
    out = torch.empty(4, 5)
    with pytest.raises(ResourceError, match="needs 36 workspace bytes"):
        distance(DistanceType.EucExpandedL2, x, y, out, None, 0)


def test_unexpanded_needs_no_workspace():
    x = torch.randn(4, 3)
    y = torch.randn(5, 3)
    out = torch.empty(4, 5)
    distance(DistanceType.EucUnexpandedL1, x, y, out, None, 0)
    assert torch.allclose(out, compute_reference(x, y, "l1"))


def test_bad_output_shape_raises():
    x = torch.randn(4, 3)
    y = torch.randn(5, 3)
    with pytest.raises(ValueError, match="Expected out shape"):
        distance(DistanceType.EucUnexpandedL1, x, y, torch.empty(5, 4), None, 0)


def test_fin_op_sees_every_flat_index_once():
    torch.manual_seed(0)
    m, n = 70, 67
    x = torch.randn(m, 5)
    y = torch.randn(n, 5)
    seen = []

    def fin_op(d_val, idx):
        assert d_val.shape == idx.shape
        seen.append(idx.reshape(-1))
        return d_val

    _run(DistanceType.EucUnexpandedL2, x, y, fin_op)
    flat = torch.cat(seen).sort().values
    assert torch.equal(flat, torch.arange(m * n))


def test_threshold_finalizer_writes_second_buffer():
    x = torch.tensor([[0.0], [1.0], [3.0]])
    y = torch.tensor([[0.0], [2.0]])
    dist2 = torch.full((3, 2), -1.0)

    D = _run(DistanceType.EucUnexpandedL1, x, y, ThresholdFinalizer(1.5, dist2))

    assert torch.equal(D, torch.tensor([[0.0, 2.0], [1.0, 1.0], [3.0, 1.0]]))
    assert torch.equal(dist2, torch.tensor([[0.0, 2.0], [0.0, 0.0], [3.0, 0.0]]))


def test_threshold_finalizer_pass_through_at_sentinel():
    torch.manual_seed(0)
    x = torch.randn(6, 4)
    y = torch.randn(9, 4)
    dist2 = torch.empty(6, 9)
    D = _run(DistanceType.EucExpandedCosine, x, y, ThresholdFinalizer(-10000.0, dist2))
    assert torch.equal(D, dist2)


@pytest.mark.parametrize("dtype", [torch.float16, torch.int64])
def test_required_workspace_bytes_rejects_unsupported_dtype(dtype):
    with pytest.raises(TypeError, match="Unsupported dtype"):
        required_workspace_bytes("cosine", 3, 5, 7, dtype)
    with pytest.raises(TypeError, match="Unsupported dtype"):
        required_workspace_bytes("l1", 3, 5, 7, dtype)
