from __future__ import annotations

import contextlib
import dataclasses
import functools
import logging
import math
from typing import Iterator, NamedTuple, overload

import torch
import torch.linalg

from .errors import NonFiniteResultError, NonSymmetricMatrixError, ShapeMismatchError, SingularMatrixError

logger = logging.getLogger(__name__)

# Note on inversions:
# Every matrix inverted by the filter (R, P, the summed information matrix and the residual covariance)
# should be symmetric positive definite. They are all inverted through a Cholesky factorization:
# a failed `cholesky_ex` raises `SingularMatrixError`. The Swerling update still performs two inversions per step
# (P^{-1} and (P^{-1} + Hᵀ R^{-1} H)^{-1}).


if hasattr(torch._tensor_str, "printoptions"):  # noqa: SLF001
    printoptions = torch._tensor_str.printoptions  # noqa: SLF001
else:

    @contextlib.contextmanager
    def printoptions(**kwargs):
        """Change pytorch printoptions temporarily. From the future of pytorch."""
        old_printoptions = torch._tensor_str.PRINT_OPTS  # noqa: SLF001
        torch.set_printoptions(**kwargs)
        try:
            yield
        finally:
            torch._tensor_str.PRINT_OPTS = old_printoptions  # noqa: SLF001


def _symmetrize(matrix: torch.Tensor) -> torch.Tensor:
    return (matrix + matrix.mT) / 2


def _cholesky(matrix: torch.Tensor, name: str) -> torch.Tensor:
    """Lower Cholesky factor of a symmetric positive definite matrix.

    Only the factorization is checked: there is no conditioning threshold.

    Raises:
        SingularMatrixError: If the factorization fails (non positive definite matrix).
    """
    chol, info = torch.linalg.cholesky_ex(matrix)
    if info.any():
        raise SingularMatrixError(name)
    return chol


def _check_symmetric(matrix: torch.Tensor, name: str) -> None:
    """Check that a covariance input is symmetric up to rounding (same tolerance as `torch.allclose`).

    Raises:
        NonSymmetricMatrixError: If the matrix is not symmetric.
    """
    if not torch.allclose(matrix, matrix.mT, equal_nan=True):
        raise NonSymmetricMatrixError(name, (matrix - matrix.mT).abs().max().item())


@dataclasses.dataclass
class GaussianState:
    """Gaussian state for Kalman filtering.

    This dataclass stores a multivariate Gaussian distribution:

        x ~ N(mean, covariance)

    Conventions:
    - State/measurement vectors are **column vectors** with shape ``(dim, 1)``.
      This avoids ambiguity with matrix multiplications.

    Two optional caches can be stored with the distribution. The precision matrix (inverse covariance,
    i.e. the information matrix) is filled by the Swerling update which computes it anyway. The Cholesky
    factor of the covariance is computed lazily by `cholesky` and re-used for Mahalanobis distances
    and log-determinants.

    Attributes:
        mean: Mean of the distribution.
            Shape: ``(dim, 1)``
        covariance: Covariance matrix of the distribution.
            Shape: ``(dim, dim)``
        precision: Optional precision matrix (inverse covariance).
            Shape: ``(dim, dim)``
        cholesky_factor: Optional lower Cholesky factor of the covariance.
            Shape: ``(dim, dim)``
    """

    mean: torch.Tensor
    covariance: torch.Tensor
    precision: torch.Tensor | None = None
    cholesky_factor: torch.Tensor | None = None

    def _apply(self, function) -> GaussianState:
        return GaussianState(
            function(self.mean),
            function(self.covariance),
            function(self.precision) if self.precision is not None else None,
            function(self.cholesky_factor) if self.cholesky_factor is not None else None,
        )

    def clone(self) -> GaussianState:
        """Return a deep copy of the state.

        Uses ``Tensor.clone()`` on all stored tensors.

        Returns:
            GaussianState: The cloned state
        """
        return self._apply(torch.Tensor.clone)

    @overload
    def to(self, dtype: torch.dtype) -> GaussianState: ...

    @overload
    def to(self, device: torch.device) -> GaussianState: ...

    def to(self, fmt):
        """Convert a GaussianState to a specific device or dtype.

        Args:
            fmt (torch.dtype | torch.device): Memory format to send the state to.

        Returns:
            GaussianState: The GaussianState with the right format
        """
        return self._apply(lambda tensor: tensor.to(fmt))

    def cholesky(self) -> torch.Tensor:
        """Lower Cholesky factor L of the covariance (covariance = L Lᵀ).

        The factor is computed once and cached in ``cholesky_factor``.

        Returns:
            torch.Tensor: Lower triangular factor.
                Shape: ``(dim, dim)``

        Raises:
            SingularMatrixError: If the covariance is not positive definite.
        """
        if self.cholesky_factor is None:
            self.cholesky_factor = _cholesky(self.covariance, "covariance")
        return self.cholesky_factor

    def mahalanobis_squared(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute squared Mahalanobis distance to a measure.

        Computes:

            MAHA^2 = (x - μ)^T P^{-1} (x - μ)

        The stored precision is used when available, otherwise a Cholesky solve.

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(dim, 1)``

        Returns:
            torch.Tensor: Squared Mahalanobis distance (0-d tensor)
        """
        diff = self.mean - measure
        if self.precision is not None:
            return (diff.mT @ self.precision @ diff)[..., 0, 0]
        return (diff.mT @ torch.cholesky_solve(diff, self.cholesky()))[..., 0, 0]

    def mahalanobis(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute Mahalanobis distance to a measure.

        It takes the square root of the squared Mahalanobis distance.

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(dim, 1)``

        Returns:
            torch.Tensor: Mahalanobis distance (0-d tensor)
        """
        return self.mahalanobis_squared(measure).sqrt()

    def log_det(self) -> torch.Tensor:
        """Log-determinant of the covariance, computed from its Cholesky factor: ln|Σ| = 2 Σ ln L_ii."""
        return 2 * self.cholesky().diagonal(dim1=-2, dim2=-1).log().sum(dim=-1)

    def log_likelihood(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute the log-likelihood of the given measure under the Gaussian distribution.

        For dimension ``dim``:

            log p(x) = -1/2 * ( dim*log(2π) + log|Σ| + MAHA^2 )

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(dim, 1)``

        Returns:
            torch.Tensor: Log-likelihood (0-d tensor)
        """
        dim = self.covariance.shape[-1]
        return -0.5 * (dim * math.log(2 * math.pi) + self.log_det() + self.mahalanobis_squared(measure))

    def likelihood(self, measure: torch.Tensor) -> torch.Tensor:
        """Compute the likelihood of the given measure under the Gaussian distribution.

        It takes the exponential of the log-likelihood.

        Args:
            measure (torch.Tensor): Measure to evaluate (column vector).
                Shape: ``(dim, 1)``

        Returns:
            torch.Tensor: Likelihood (0-d tensor)
        """
        return self.log_likelihood(measure).exp()


@dataclasses.dataclass
class StateSpaceModel:
    """Time-invariant linear Gaussian state-space model.

        x_k = F x_{k-1} + G w_k,   w_k ~ N(0, Q)
        z_k = H x_k     + v_k,     v_k ~ N(0, R)

    Inputs are converted with ``torch.as_tensor`` and cast to their common floating dtype.
    Dimensions are checked once, at construction.

    Attributes:
        process_matrix (torch.Tensor): Transition matrix ``F``.
            Shape: ``(dim_x, dim_x)``
        noise_input_matrix (torch.Tensor): Noise input matrix ``G``.
            Shape: ``(dim_x, dim_w)``
        process_noise (torch.Tensor): Process noise covariance ``Q``.
            Shape: ``(dim_w, dim_w)``
        measurement_matrix (torch.Tensor): Observation matrix ``H``.
            Shape: ``(dim_z, dim_x)``
        measurement_noise (torch.Tensor): Measurement noise covariance ``R``. Must be invertible.
            Shape: ``(dim_z, dim_z)``

    Raises:
        ShapeMismatchError: If a matrix is not 2D or if dimensions disagree between matrices.
        NonSymmetricMatrixError: If Q or R is not symmetric.
    """

    process_matrix: torch.Tensor
    noise_input_matrix: torch.Tensor
    process_noise: torch.Tensor
    measurement_matrix: torch.Tensor
    measurement_noise: torch.Tensor

    def __post_init__(self) -> None:
        fields = dataclasses.fields(self)
        tensors = [torch.as_tensor(getattr(self, field.name)) for field in fields]

        dtype = functools.reduce(torch.promote_types, (tensor.dtype for tensor in tensors))
        if not dtype.is_floating_point:
            dtype = torch.get_default_dtype()

        for field, tensor in zip(fields, tensors):
            if tensor.ndim != 2:  # noqa: PLR2004
                raise ShapeMismatchError(field.name, (None, None), tuple(tensor.shape))
            setattr(self, field.name, tensor.to(dtype=dtype, device=tensors[0].device))

        dim_x, dim_w, dim_z = self.state_dim, self.noise_dim, self.measure_dim
        expected = {
            "process_matrix": (dim_x, dim_x),
            "noise_input_matrix": (dim_x, dim_w),
            "process_noise": (dim_w, dim_w),
            "measurement_matrix": (dim_z, dim_x),
            "measurement_noise": (dim_z, dim_z),
        }
        for name, shape in expected.items():
            actual = tuple(getattr(self, name).shape)
            if actual != shape:
                raise ShapeMismatchError(name, shape, actual)

        _check_symmetric(self.process_noise, "process_noise")
        _check_symmetric(self.measurement_noise, "measurement_noise")

    @property
    def state_dim(self) -> int:
        """Dimension of the state variable."""
        return self.process_matrix.shape[-1]

    @property
    def noise_dim(self) -> int:
        """Dimension of the process noise."""
        return self.noise_input_matrix.shape[-1]

    @property
    def measure_dim(self) -> int:
        """Dimension of the measured variable."""
        return self.measurement_matrix.shape[-2]

    @property
    def device(self) -> torch.device:
        """Device of the model."""
        return self.process_matrix.device

    @property
    def dtype(self) -> torch.dtype:
        """Dtype of the model."""
        return self.process_matrix.dtype

    @property
    def effective_process_noise(self) -> torch.Tensor:
        """Process noise covariance in state space: G Q Gᵀ.

        Shape: ``(dim_x, dim_x)``
        """
        return self.noise_input_matrix @ self.process_noise @ self.noise_input_matrix.mT

    @overload
    def to(self, dtype: torch.dtype) -> StateSpaceModel: ...

    @overload
    def to(self, device: torch.device) -> StateSpaceModel: ...

    def to(self, fmt):
        """Convert the model to a specific device or dtype.

        Args:
            fmt (torch.dtype | torch.device): Memory format to send the model to.

        Returns:
            StateSpaceModel: The model with the right format
        """
        return StateSpaceModel(*(getattr(self, field.name).to(fmt) for field in dataclasses.fields(self)))


class SwerlingUpdate(NamedTuple):
    """Outputs of a Swerling measurement update."""

    state: GaussianState
    residual: torch.Tensor
    residual_covariance: torch.Tensor


@dataclasses.dataclass
class FilterResult:
    """Outputs of a full filtering recursion.

    Column 0 of the histories holds the initial condition, column k the posterior after the k-th measurement.
    Unpacks as ``neg_log_likelihood, means, covariance_diagonals``.

    Attributes:
        neg_log_likelihood (torch.Tensor): Negative log-likelihood of the measurements (0-d tensor).
        means (torch.Tensor): Filtered state means.
            Shape: ``(dim_x, T + 1)``
        covariance_diagonals (torch.Tensor): Diagonals of the filtered error covariances.
            Shape: ``(dim_x, T + 1)``
    """

    neg_log_likelihood: torch.Tensor
    means: torch.Tensor
    covariance_diagonals: torch.Tensor

    def __iter__(self) -> Iterator[torch.Tensor]:
        return iter((self.neg_log_likelihood, self.means, self.covariance_diagonals))


class SwerlingKalmanFilter:
    """Kalman filter with a Swerling (inverse-covariance) measurement update, in PyTorch.

    This class estimates the latent state of a linear dynamical system under Gaussian noise:

        x_k = F x_{k-1} + G w_k,   w_k ~ N(0, Q)
        z_k = H x_k     + v_k,     v_k ~ N(0, R)

    The time update is the usual one: mu_k = F mu_{k-1} and P_k = F P_{k-1} Fᵀ + G Q Gᵀ.
    The measurement update follows Swerling (1959): instead of the gain/covariance form
    P'_k = (I - K H) P_k, the posterior covariance is obtained in information form

        P'_k = (P_k^{-1} + Hᵀ R^{-1} H)^{-1}
        K = P'_k Hᵀ R^{-1}
        mu'_k = mu_k + K (z_k - H mu_k)

    The innovation covariance S_k = H P_k Hᵀ + R is not used to build the gain. It is only used
    to accumulate the negative log-likelihood of the measurements.

    Numerical notes:
    - Every inversion goes through a Cholesky factorization. A non positive definite matrix raises
      `SingularMatrixError` rather than propagating NaN/Inf.
    - The double inversion of the Swerling update is more sensitive than the gain form:
      prefer float64, in particular for likelihood evaluation.

    Attributes:
        model (StateSpaceModel): System matrices ``F, G, Q, H, R``.
        check_finite (bool): If True, check after each step that the posterior state and the likelihood are finite.
            Disabling it is a diagnostic bypass only: NaN/Inf values then propagate silently to the outputs.
            Default: True
    """

    _REPR_SPLIT_LENGTH = 110

    def __init__(self, model: StateSpaceModel, *, check_finite=True) -> None:
        self.model = model
        self.check_finite = check_finite

    @property
    def state_dim(self) -> int:
        """Dimension of the state variable."""
        return self.model.state_dim

    @property
    def noise_dim(self) -> int:
        """Dimension of the process noise."""
        return self.model.noise_dim

    @property
    def measure_dim(self) -> int:
        """Dimension of the measured variable."""
        return self.model.measure_dim

    @property
    def device(self) -> torch.device:
        """Device of the Kalman filter."""
        return self.model.device

    @property
    def dtype(self) -> torch.dtype:
        """Dtype of the Kalman filter."""
        return self.model.dtype

    @overload
    def to(self, dtype: torch.dtype) -> SwerlingKalmanFilter: ...

    @overload
    def to(self, device: torch.device) -> SwerlingKalmanFilter: ...

    def to(self, fmt):
        """Convert a Kalman filter to a specific device or dtype.

        Args:
            fmt (torch.dtype | torch.device): Memory format to send the filter to.

        Returns:
            SwerlingKalmanFilter: The filter with the right format
        """
        return SwerlingKalmanFilter(self.model.to(fmt), check_finite=self.check_finite)

    def predict(self, state: GaussianState, *, process_noise: torch.Tensor | None = None) -> GaussianState:
        """Compute the predicted (prior) state.

        From a state x_{k-1} | ... ~ N(mu_{k-1}, P_{k-1}), it applies the process model
        and returns x_k | ... ~ N(mu_k, P_k) with:

            mu_k = F mu_{k-1}
            P_k = F P_{k-1} Fᵀ + G Q Gᵀ

        The predicted covariance is explicitly symmetrized.

        Args:
            state (GaussianState): Current posterior state estimate.
                Shape (mean): ``(dim_x, 1)``
                Shape (covariance): ``(dim_x, dim_x)``
            process_noise (torch.Tensor | None): Optional precomputed ``G Q Gᵀ``.
                Shape: ``(dim_x, dim_x)``

        Returns:
            GaussianState: Predicted prior state on the next time frame.
        """
        if process_noise is None:
            process_noise = self.model.effective_process_noise

        process_matrix = self.model.process_matrix

        mean = process_matrix @ state.mean
        covariance = process_matrix @ state.covariance @ process_matrix.mT + process_noise

        return GaussianState(mean, _symmetrize(covariance))

    def project(self, state: GaussianState) -> GaussianState:
        """Project a state into measurement space (usually the predicted state).

        From a state x_k | ... ~ N(mu_k, P_k), it returns z_k | ... ~ N(H mu_k, S_k) with the
        innovation (residual) covariance S_k = R + H P_k Hᵀ.

        Args:
            state (GaussianState): Current state estimation, typically the result of `predict`.
                Shape (mean): ``(dim_x, 1)``
                Shape (covariance): ``(dim_x, dim_x)``

        Returns:
            GaussianState: Projected state in the measurement space.
                Shape (mean): ``(dim_z, 1)``
                Shape (covariance): ``(dim_z, dim_z)``
        """
        measurement_matrix = self.model.measurement_matrix

        mean = measurement_matrix @ state.mean
        covariance = self.model.measurement_noise + measurement_matrix @ state.covariance @ measurement_matrix.mT

        return GaussianState(mean, _symmetrize(covariance))

    def update(
        self, state: GaussianState, measure: torch.Tensor, *, projection: GaussianState | None = None
    ) -> SwerlingUpdate:
        """Update a state estimate with a new measure using Swerling's formula.

        1. residual = z - H mu
        2. S = R + H P Hᵀ (returned, but not used for the gain)
        3. Hᵀ R^{-1}
        4. P' = (P^{-1} + Hᵀ R^{-1} H)^{-1}
        5. K = P' Hᵀ R^{-1}
        6. mu' = mu + K residual

        The summed information matrix P^{-1} + Hᵀ R^{-1} H is stored as the precision of the posterior state.

        Args:
            state (GaussianState): Prior state, typically the result of `predict`.
                Shape (mean): ``(dim_x, 1)``
                Shape (covariance): ``(dim_x, dim_x)``
            measure (torch.Tensor): Measure of the state `z_k` (column vector).
                Shape: ``(dim_z, 1)``
            projection (GaussianState | None): Optional precomputed projection from `project`.

        Returns:
            SwerlingUpdate: Posterior state, residual ``(dim_z, 1)`` and residual covariance ``(dim_z, dim_z)``.

        Raises:
            SingularMatrixError: If R, P or the summed information matrix is not positive definite.
        """
        if projection is None:
            projection = self.project(state)

        measurement_matrix = self.model.measurement_matrix

        residual = measure - projection.mean

        # Hᵀ R^{-1} = (R^{-1} H)ᵀ as R is symmetric
        information_term = torch.cholesky_solve(
            measurement_matrix, _cholesky(self.model.measurement_noise, "measurement_noise")
        ).mT

        prior_precision = torch.cholesky_inverse(_cholesky(state.covariance, "covariance"))
        precision = _symmetrize(prior_precision + information_term @ measurement_matrix)
        covariance = _symmetrize(torch.cholesky_inverse(_cholesky(precision, "information")))

        kalman_gain = covariance @ information_term
        mean = state.mean + kalman_gain @ residual

        return SwerlingUpdate(GaussianState(mean, covariance, precision), residual, projection.covariance)

    def filter(self, initial_state: GaussianState, measurements: torch.Tensor) -> FilterResult:
        """Run the predict/update recursion over a sequence of measurements.

        The negative log-likelihood starts at the Gaussian normalization term (dim_z / 2) ln(2π) T and each
        step adds the negative log-density of its innovation: 1/2 ln|S_k| + 1/2 e_kᵀ S_k^{-1} e_k.

        A failure at any step aborts the whole recursion.

        Args:
            initial_state (GaussianState): Prior on the state before the first measurement (X0, P0).
                Shape (mean): ``(dim_x, 1)`` or ``(dim_x,)``
                Shape (covariance): ``(dim_x, dim_x)``
            measurements (torch.Tensor): Measurements, one column per time step.
                Shape: ``(dim_z, T)`` (``(T,)`` is accepted when dim_z = 1)

        Returns:
            FilterResult: Negative log-likelihood, state means and covariance diagonals.
                Shape (histories): ``(dim_x, T + 1)``

        Raises:
            ShapeMismatchError: If the initial state or the measurements do not match the model, before any computation.
            NonSymmetricMatrixError: If the initial covariance is not symmetric.
            SingularMatrixError: If a matrix cannot be inverted at some step.
            NonFiniteResultError: If ``check_finite`` and some output is NaN/Inf at some step.
        """
        state, measurements = self._prepare(initial_state, measurements)
        length = measurements.shape[1]

        logger.debug(
            "Filtering %d measurements (dim_x=%d, dim_w=%d, dim_z=%d)",
            length,
            self.state_dim,
            self.noise_dim,
            self.measure_dim,
        )
        if not self.check_finite:
            logger.warning("Non-finite checks are disabled: NaN/Inf outputs will not raise")

        neg_log_likelihood = torch.tensor(
            0.5 * self.measure_dim * math.log(2 * math.pi) * length, dtype=self.dtype, device=self.device
        )

        means = torch.empty((self.state_dim, length + 1), dtype=self.dtype, device=self.device)
        covariance_diagonals = torch.empty((self.state_dim, length + 1), dtype=self.dtype, device=self.device)
        means[:, 0] = state.mean[:, 0]
        covariance_diagonals[:, 0] = state.covariance.diagonal()

        process_noise = self.model.effective_process_noise  # Time invariant

        for k in range(1, length + 1):
            try:
                state, residual, residual_covariance = self.update(
                    self.predict(state, process_noise=process_noise), measurements[:, k - 1 : k]
                )
                term = self._neg_log_density(residual, residual_covariance)
            except SingularMatrixError as error:
                logger.error("Matrix '%s' cannot be inverted at step %d/%d", error.matrix, k, length)
                raise error.at_step(k) from error

            neg_log_likelihood = neg_log_likelihood + term
            logger.debug("Step %d: negative log-likelihood term %.6g", k, term)

            if self.check_finite:
                self._check_finite(state, neg_log_likelihood, k)

            means[:, k] = state.mean[:, 0]
            covariance_diagonals[:, k] = state.covariance.diagonal()

        return FilterResult(neg_log_likelihood, means, covariance_diagonals)

    def _prepare(self, initial_state: GaussianState, measurements: torch.Tensor) -> tuple[GaussianState, torch.Tensor]:
        """Convert inputs to the model dtype/device and check their shapes."""
        dim_x, dim_z = self.state_dim, self.measure_dim

        mean = torch.as_tensor(initial_state.mean, dtype=self.dtype, device=self.device)
        if mean.ndim == 1:
            mean = mean[:, None]
        if mean.shape != (dim_x, 1):
            raise ShapeMismatchError("initial_state.mean", (dim_x, 1), tuple(mean.shape))

        covariance = torch.as_tensor(initial_state.covariance, dtype=self.dtype, device=self.device)
        if covariance.shape != (dim_x, dim_x):
            raise ShapeMismatchError("initial_state.covariance", (dim_x, dim_x), tuple(covariance.shape))
        _check_symmetric(covariance, "initial_state.covariance")

        measurements = torch.as_tensor(measurements, dtype=self.dtype, device=self.device)
        if measurements.ndim == 1 and dim_z == 1:
            measurements = measurements[None]
        if measurements.ndim != 2 or measurements.shape[0] != dim_z:
            raise ShapeMismatchError("measurements", (dim_z, None), tuple(measurements.shape))

        return GaussianState(mean, covariance), measurements

    @staticmethod
    def _neg_log_density(residual: torch.Tensor, residual_covariance: torch.Tensor) -> torch.Tensor:
        """Negative log-density of the residual, without the (dim_z / 2) ln(2π) normalization."""
        innovation = GaussianState(
            torch.zeros_like(residual),
            residual_covariance,
            cholesky_factor=_cholesky(residual_covariance, "residual_covariance"),
        )
        return 0.5 * innovation.log_det() + 0.5 * innovation.mahalanobis_squared(residual)

    @staticmethod
    def _check_finite(state: GaussianState, neg_log_likelihood: torch.Tensor, step: int) -> None:
        for quantity, value in (
            ("mean", state.mean),
            ("covariance", state.covariance),
            ("neg_log_likelihood", neg_log_likelihood),
        ):
            if not torch.isfinite(value).all():
                logger.error("Non-finite %s at step %d", quantity, step)
                raise NonFiniteResultError(quantity, step)

    def __repr__(self) -> str:
        """Convert the Kalman filter model into a readable string."""
        header = (
            f"Swerling Kalman Filter (State dimension: {self.state_dim}, "
            f"Noise dimension: {self.noise_dim}, Measure dimension: {self.measure_dim})"
        )

        process = self._repr_section(
            "Process",
            [
                ("F", self.model.process_matrix),
                ("G", self.model.noise_input_matrix),
                ("Q", self.model.process_noise),
            ],
            linewidth=80,
        )
        measurement = self._repr_section(
            "Measurement",
            [("H", self.model.measurement_matrix), ("R", self.model.measurement_noise)],
            linewidth=100,
        )

        n_char = max(len(line) for line in (process + "\n" + measurement).split("\n"))
        return ("\n" + "-" * n_char + "\n").join([header, process, measurement])

    def _repr_section(self, title: str, matrices: list[tuple[str, torch.Tensor]], linewidth: int) -> str:
        """Format named matrices side by side, or one below the other when too wide."""
        with printoptions(profile="short", sci_mode=False, linewidth=linewidth):
            blocks = [str(matrix).split("\n") for _, matrix in matrices]

        widths = [max(len(line) for line in block) for block in blocks]
        indent = " " * len(f"{title}: ")

        if sum(widths) <= self._REPR_SPLIT_LENGTH:  # Single line
            height = max(len(block) for block in blocks)
            lines = []
            for row in range(height):
                parts = []
                for index, ((name, _), block, width) in enumerate(zip(matrices, blocks, widths)):
                    if index == 0:
                        prefix = f"{title}: {name} = " if row == 0 else indent + "    "
                    else:
                        prefix = f"  &  {name} = " if row == 0 else "         "
                    line = block[row] if row < len(block) else ""
                    parts.append(prefix + line + " " * (width - len(line)))
                lines.append("".join(parts).rstrip())
            return "\n".join(lines)

        # One matrix below the other
        lines = []
        for index, ((name, _), block) in enumerate(zip(matrices, blocks)):
            if index:
                lines.append("")
            first = f"{title}: {name} = " if index == 0 else f"{indent}{name} = "
            lines.extend((first if row == 0 else indent + "    ") + line for row, line in enumerate(block))
        return "\n".join(lines)


def riccati_kf_swerling(
    model: StateSpaceModel,
    initial_state: GaussianState,
    measurements: torch.Tensor,
    *,
    check_finite=True,
) -> FilterResult:
    """Filter a sequence of measurements with the Swerling Kalman filter.

    Functional entry point, equivalent to ``SwerlingKalmanFilter(model).filter(initial_state, measurements)``.
    Each call is independent: it can be used as an objective in an external parameter search.

    Example:
    ```python
        model = StateSpaceModel(
            process_matrix=torch.tensor([[1.0, 1.0], [0.0, 1.0]], dtype=torch.float64),
            noise_input_matrix=torch.eye(2, dtype=torch.float64),
            process_noise=torch.eye(2, dtype=torch.float64) * 0.01,
            measurement_matrix=torch.tensor([[1.0, 0.0]], dtype=torch.float64),
            measurement_noise=torch.tensor([[0.1]], dtype=torch.float64),
        )
        initial_state = GaussianState(torch.zeros(2, 1), torch.eye(2))
        neg_llf, hat_x, hat_dp = riccati_kf_swerling(model, initial_state, torch.tensor([[1.0, 2.1, 2.9]]))
        hat_x.shape  # (2, 4)
    ```

    Args:
        model (StateSpaceModel): System matrices.
        initial_state (GaussianState): Initial estimate (X0, P0).
        measurements (torch.Tensor): Measurements, one column per time step.
            Shape: ``(dim_z, T)``
        check_finite (bool): Check that every step produces finite outputs.
            Only disable it for diagnostics: NaN/Inf values then propagate silently to the outputs.
            Default: True

    Returns:
        FilterResult: Negative log-likelihood, state means and covariance diagonals.
    """
    return SwerlingKalmanFilter(model, check_finite=check_finite).filter(initial_state, measurements)
