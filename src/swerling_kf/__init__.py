"""Swerling-KF: Kalman filtering with a Swerling (inverse-covariance) measurement update in PyTorch.

swerling-kf computes the filtered state trajectory and the negative log-likelihood of a
time-invariant linear Gaussian state-space model:

    x_k = F x_{k-1} + G w_k,   w_k ~ N(0, Q)
    z_k = H x_k     + v_k,     v_k ~ N(0, R)

The measurement update follows Swerling (1959): the posterior covariance is obtained by
inverting the sum of the prior information matrix and the measurement information,

    P'_k = (P_k^{-1} + Hᵀ R^{-1} H)^{-1},   K = P'_k Hᵀ R^{-1}

rather than through the usual gain/covariance form. The negative log-likelihood is a natural
objective for fitting the model matrices with an external optimizer.

Getting started
---------------
The core API consists of:
- :class:`~swerling_kf.StateSpaceModel` holding the named system matrices ``F, G, Q, H, R``.
- :class:`~swerling_kf.GaussianState` to represent Gaussian means/covariances (e.g. ``X0, P0``).
- :class:`~swerling_kf.SwerlingKalmanFilter` with :meth:`~swerling_kf.SwerlingKalmanFilter.predict`,
  :meth:`~swerling_kf.SwerlingKalmanFilter.update` and :meth:`~swerling_kf.SwerlingKalmanFilter.filter`.
- :func:`~swerling_kf.riccati_kf_swerling`, the functional entry point returning
  ``(neg_log_likelihood, means, covariance_diagonals)``.

:mod:`swerling_kf.ckf` builds ready-to-use constant velocity / acceleration models.

Numerical notes
---------------
All inversions go through Cholesky factorizations. A matrix that is not positive definite raises
:class:`~swerling_kf.SingularMatrixError` with the offending step. Positive definiteness is only
judged by the factorization: there is no conditioning threshold, so an ill-conditioned matrix that
still factorizes is accepted and its inverse may be inaccurate. Covariance inputs (``Q, R, P0``) must
be symmetric up to rounding, otherwise :class:`~swerling_kf.NonSymmetricMatrixError` is raised.
Prefer ``float64``: the double inversion of the Swerling update is more sensitive to rounding than
the gain form.

Notes on shapes
---------------
Internally, vectors are column vectors ``(dim, 1)``. Measurements are given as a ``(dim_z, T)``
tensor (one column per time step) and histories are returned as ``(dim_x, T + 1)`` tensors,
column 0 holding the initial condition.
"""

import logging

from .errors import (
    NonFiniteResultError,
    NonSymmetricMatrixError,
    ShapeMismatchError,
    SingularMatrixError,
    SwerlingFilterError,
)
from .kalman_filter import (
    FilterResult,
    GaussianState,
    StateSpaceModel,
    SwerlingKalmanFilter,
    SwerlingUpdate,
    riccati_kf_swerling,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "FilterResult",
    "GaussianState",
    "NonFiniteResultError",
    "NonSymmetricMatrixError",
    "ShapeMismatchError",
    "SingularMatrixError",
    "StateSpaceModel",
    "SwerlingFilterError",
    "SwerlingKalmanFilter",
    "SwerlingUpdate",
    "riccati_kf_swerling",
]
__version__ = "0.1.0"
