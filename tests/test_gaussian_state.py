import math

import pytest
import torch

from swerling_kf import GaussianState, SingularMatrixError


def _spd_matrix(dim: int) -> torch.Tensor:
    # Construct a symmetric positive definite covariance.
    cov = torch.randn(dim, dim, dtype=torch.float64)
    return cov @ cov.mT + 1e-2 * torch.eye(dim, dtype=torch.float64)


def test_clone_is_deep_copy():
    mean = torch.randn(4, 1, dtype=torch.float64)
    cov = _spd_matrix(4)

    s = GaussianState(mean, cov, cov.inverse())
    s.cholesky()
    c = s.clone()

    assert c is not s
    assert c.precision is not None
    assert c.cholesky_factor is not None
    assert torch.allclose(c.mean, s.mean)
    assert torch.allclose(c.covariance, s.covariance)
    assert torch.allclose(c.cholesky_factor, s.cholesky())

    # Mutate original, clone must not change
    s.mean.add_(1.0)
    s.covariance.mul_(2.0)
    assert not torch.allclose(c.mean, s.mean)
    assert not torch.allclose(c.covariance, s.covariance)


def test_to_dtype():
    s = GaussianState(torch.randn(3, 1), torch.eye(3))

    s64 = s.to(torch.float64)
    assert s64.mean.dtype == torch.float64
    assert s64.covariance.dtype == torch.float64
    assert s64.precision is None

    s64.precision = s64.covariance.inverse()

    s32 = s64.to(torch.float32)
    assert s32.mean.dtype == torch.float32
    assert s32.covariance.dtype == torch.float32
    assert s32.precision is not None
    assert s32.precision.dtype == torch.float32


def test_cholesky_is_cached():
    s = GaussianState(torch.zeros(3, 1, dtype=torch.float64), _spd_matrix(3))

    chol = s.cholesky()

    assert s.cholesky_factor is chol
    assert s.cholesky() is chol
    assert torch.allclose(chol @ chol.mT, s.covariance)


def test_cholesky_of_singular_covariance_raises():
    s = GaussianState(torch.zeros(2, 1), torch.tensor([[1.0, 1.0], [1.0, 1.0]]))

    with pytest.raises(SingularMatrixError) as info:
        s.cholesky()

    assert info.value.matrix == "covariance"
    assert info.value.step is None


def test_mahalanobis_matches_manual():
    dim = 4
    cov = _spd_matrix(dim)
    mean = torch.randn(dim, 1, dtype=torch.float64)
    s = GaussianState(mean, cov)

    x = torch.randn(dim, 1, dtype=torch.float64)
    maha = s.mahalanobis(x)

    # Manual: (x-mean)^T inv(cov) (x-mean)
    diff = mean - x
    manual = (diff.mT @ cov.inverse() @ diff)[0, 0].sqrt()
    assert torch.allclose(maha, manual)


def test_mahalanobis_uses_precision_when_available():
    cov = _spd_matrix(3)
    mean = torch.randn(3, 1, dtype=torch.float64)
    x = torch.randn(3, 1, dtype=torch.float64)

    with_cholesky = GaussianState(mean, cov).mahalanobis_squared(x)
    with_precision = GaussianState(mean, cov, precision=cov.inverse()).mahalanobis_squared(x)

    assert torch.allclose(with_cholesky, with_precision)


def test_mahalanobis_specific():
    s = GaussianState(torch.zeros(1, 1), torch.tensor([[16.0]]))

    assert torch.allclose(s.mahalanobis(torch.tensor([[2.0]])), torch.tensor(0.5))


def test_log_det_matches_torch():
    cov = _spd_matrix(5)
    s = GaussianState(torch.zeros(5, 1, dtype=torch.float64), cov)

    assert torch.allclose(s.log_det(), torch.logdet(cov))


def test_log_likelihood_scalar():
    s = GaussianState(torch.tensor([[1.0]], dtype=torch.float64), torch.tensor([[4.0]], dtype=torch.float64))

    ll = s.log_likelihood(torch.tensor([[3.0]], dtype=torch.float64))

    expected = -0.5 * (math.log(2 * math.pi) + math.log(4.0) + 1.0)
    assert ll.item() == pytest.approx(expected, rel=1e-12)


def test_log_likelihood_consistency():
    s = GaussianState(torch.zeros(3, 1, dtype=torch.float64), _spd_matrix(3))
    x = torch.randn(3, 1, dtype=torch.float64)

    ll = s.log_likelihood(x)
    p = s.likelihood(x)

    assert torch.allclose(p.log(), ll)
    assert torch.isfinite(ll)
    assert p > 0
