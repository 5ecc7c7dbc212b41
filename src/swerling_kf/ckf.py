"""Helpers for building constant-derivative state-space models.

This module provides utilities to construct the system matrices (F, G, Q, H, R)
of *constant-derivative motion models* such as:

- constant position (order = 0),
- constant velocity (order = 1),
- constant acceleration (order = 2),
- constant jerk, etc.

The state is composed of a value and its derivatives up to a given order.
The highest-order derivative is assumed either:
- constant with additive noise, or
- driven by a zero-mean Gaussian noise on the next derivative.

In both cases a single scalar noise per spatial dimension enters the state through the
noise input matrix ``G``, so that ``G Q Gᵀ`` is the classical (rank deficient) discrete
white noise covariance.

These helpers are designed to integrate seamlessly with :class:`SwerlingKalmanFilter`.
"""

from __future__ import annotations

import torch

from .kalman_filter import StateSpaceModel, SwerlingKalmanFilter


def interleave(x: torch.Tensor, size: int) -> torch.Tensor:
    """Interleave tensor along the first dimension.

    This utility reshuffles a tensor along its first dimension by grouping
    consecutive elements of size ``size`` and interleaving them.

    Notes:
        Indices ``0, 1, ..., k*size-1`` are remapped as:
        ``0, size, 2*size, ..., (k-1)*size,
          1, 1+size, ..., 1 + (k-1)*size,
          ...,
          size-1, 2*size-1, ..., k*size-1``

    Example:
        >>> x = torch.tensor([[1, 1], [2, 2], [3, 3], [4, 4], [5, 5], [6, 6]])
        >>> interleave(x, 3)
        tensor([
            [1, 1],
            [4, 4],
            [2, 2],
            [5, 5],
            [3, 3],
            [6, 6],
        ])

    Args:
        x (torch.Tensor): Tensor to interleave.
            Shape: ``(B, ...)``
        size: Block size used for interleaving.
            Must divide ``B`` exactly (``B = k * size``).

    Returns:
        torch.Tensor: Interleaved tensor with the same shape as ``x``.
            Shape: ``(B, ...)``

    """
    shape = list(x.shape)
    return x.reshape([-1, size, *shape[1:]]).transpose(0, 1).reshape([-1, *shape[1:]])


def constant_state_space_model(
    measurement_std: float | torch.Tensor,
    process_std: float | torch.Tensor,
    *,
    dim=2,
    order=1,
    dt=1.0,
    expected_model=False,
    order_by_dim=False,
    approximate=False,
) -> StateSpaceModel:
    r"""Create a constant-derivative state-space model.

    The state consists of values and their derivatives up to a given order,
    for each spatial dimension. The full state dimension is ``(order + 1) * dim``
    and the process noise has one component per spatial dimension.

    Two process models are supported:

    **1. Constant order-th derivative (default)**
    The highest derivative is assumed constant over a time step, with additive noise:
    \forall 0 < h \le dt, x^{(order)}(t_k+h) = x^{(order)}(t_k) + w_k, where w_k \sim N(0, process_std**2).

    **2. Zero-mean (order+1)-th derivative (expected model)**
    The (order+1)-th derivative is modeled as white Gaussian noise over the interval:
    \forall 0 < h \le dt, x^{(order + 1)}(t_k+h) = w_k, where w_k \sim N(0, process_std**2)

    In both cases, ``F`` is derived from a Taylor expansion and the models only differ by ``G``.

    Args:
        measurement_std (float | torch.Tensor): Measurement noise standard deviation.
            Shape: broadcastable to ``(dim,)``.
        process_std (float | torch.Tensor): Process noise standard deviation.
            Homogeneous to the order-th derivative (constant model) or to the (order+1)-th derivative
            (expected model).
            Shape: broadcastable to ``(dim,)``.
        dim (int): Number of independent dimensions (1D, 2D, 3D, …).
            Default: 2.
        order (int): Highest derivative order included in the state (which is modeled as ~constant).
            Default: 1 (constant velocity).
        dt (float): Time step duration.
            Default: 1.0.
        expected_model (bool): If True, use the zero-mean (order+1)-th derivative model.
            Default: False.
        order_by_dim (bool): State ordering convention.
            - True: group by dimension (e.g. ``x, x', y, y'``),
            - False: group by derivative order (e.g. ``x, y, x', y'``).
            Default: False.
        approximate (bool): Use a first-order approximation of the model.
            Only the highest derivative receives process noise.
            Default: ``False``.

    Returns:
        StateSpaceModel: Model with F ``(n, n)``, G ``(n, dim)``, Q ``(dim, dim)``, H ``(dim, n)``
            and R ``(dim, dim)`` where ``n = (order + 1) * dim``.

    """
    measurement_std = torch.broadcast_to(torch.as_tensor(measurement_std), (dim,))
    process_std = torch.broadcast_to(torch.as_tensor(process_std), (dim,))

    state_dim = (order + 1) * dim

    # Measurement model
    # We only measure the values (not the derivatives)
    # Measurement noise is independent between the different dimensions.
    measurement_matrix = torch.eye(dim, state_dim)
    measurement_noise = torch.diag(measurement_std**2)

    # Process model
    # Block matrix for each dimension, with a single noise source per dimension
    process_matrix = torch.block_diag(*(create_ckf_process_matrix(order, dt, approximate) for _ in range(dim)))
    noise_input_matrix = torch.block_diag(
        *(create_ckf_noise_input(order, dt, expected_model, approximate) for _ in range(dim))
    )
    process_noise = torch.diag(process_std**2)

    if order_by_dim:
        measurement_matrix = interleave(measurement_matrix.T, dim).T
    else:
        process_matrix = interleave(interleave(process_matrix, order + 1).T, order + 1).T
        noise_input_matrix = interleave(noise_input_matrix, order + 1)

    return StateSpaceModel(
        process_matrix=process_matrix.contiguous(),
        noise_input_matrix=noise_input_matrix.contiguous(),
        process_noise=process_noise,
        measurement_matrix=measurement_matrix.contiguous(),
        measurement_noise=measurement_noise,
    )


def constant_kalman_filter(
    measurement_std: float | torch.Tensor,
    process_std: float | torch.Tensor,
    *,
    dim=2,
    order=1,
    dt=1.0,
    expected_model=False,
    order_by_dim=False,
    approximate=False,
    check_finite=True,
) -> SwerlingKalmanFilter:
    """Create a Swerling Kalman filter for a constant-derivative model.

    See `constant_state_space_model` for the model arguments.

    Returns:
        SwerlingKalmanFilter: Filter configured for constant velocity/acceleration/jerk models.
    """
    model = constant_state_space_model(
        measurement_std,
        process_std,
        dim=dim,
        order=order,
        dt=dt,
        expected_model=expected_model,
        order_by_dim=order_by_dim,
        approximate=approximate,
    )
    return SwerlingKalmanFilter(model, check_finite=check_finite)


def create_ckf_process_matrix(order: int, dt=1.0, approximate=False) -> torch.Tensor:
    r"""Create the process (transition) matrix ``F`` for constant-derivative models.

    The state contains derivatives up to order ``order``. Assuming the expected
    (order+1)-th derivative and above are zero, the Taylor expansion yields:

    x^{(i)}(t + dt) = \sum_{k=0}^{order - i} \frac{dt^k}{k!} x^{(i+k)}(t)

    Examples:
        - First order (constant velocity) with ``dt = 1``::

            [
                [1.0, 1.0],
                [0.0, 1.0],
            ]

        - Second order (constant acceleration) with ``dt = 0.5``::

            [
                [1, 0.5, 0.125],
                [0, 1.0, 0.5],
                [0, 0.0, 1.0],
            ]

    Args:
        order (int): Highest derivative order included in the state.
        dt (float): Time step duration.
            Default: 1.0.
        approximate (bool): If True, keep only first-order terms:
            ``x^{(i)}(t+dt) = x^{(i)}(t) + dt * x^{(i+1)}(t)``.
            Default: False.

    Returns:
        torch.Tensor: Process matrix ``F``
            Shape: ``(order + 1, order + 1)``

    """
    coefficients = _taylor_coefficients(order + 1, dt)
    if approximate:
        coefficients[2:] = 0  # Keep only 1 and dt

    # Compute the process matrix by summing diagonal tensors
    process_matrix = torch.zeros(order + 1, order + 1)
    for k, coef in enumerate(coefficients):
        process_matrix += torch.diag(torch.full((order + 1 - k,), coef.item()), k)
    return process_matrix


def create_ckf_noise_input(order: int, dt=1.0, expected_model=False, approximate=False) -> torch.Tensor:
    r"""Create the noise input column ``g`` of a single spatial dimension.

    The scalar noise w_k ~ N(0, process_std**2) enters the state as ``g w_k``:

    **1. Constant order-th derivative (default)**
    g = (dt^order / order!, ..., dt, 1)ᵀ: the noise is a jump of the highest derivative,
    integrated through the Taylor-expanded dynamics.

    **2. Zero-mean (order+1)-th derivative (expected model)**
    g = (dt^{order+1} / (order+1)!, ..., dt^2 / 2, dt)ᵀ: the noise is a constant (order+1)-th
    derivative over the interval.

    ``process_std**2 * g gᵀ`` is the usual discrete white noise covariance of these models.

    Args:
        order (int): Highest derivative order included in the state.
        dt (float): Time step duration.
            Default: 1.0.
        expected_model (bool): Use the zero-mean (order+1)-th derivative model.
            Default: False.
        approximate (bool): If True, keep only first order terms.
            Only the highest derivative receives noise.
            Default: False.

    Returns:
        torch.Tensor: Noise input column ``g``.
            Shape: ``(order + 1, 1)``.

    """
    coefficients = _taylor_coefficients(order + 1 + expected_model, dt)
    if approximate:
        coefficients[1 + expected_model :] = 0

    # For the expected model, we drop the first element (shifted by 1)
    return coefficients[expected_model:].flip(0)[:, None]


def _taylor_coefficients(size: int, dt: float) -> torch.Tensor:
    """Taylor coefficients (1, dt, dt^2 / 2, ..., dt^(size-1) / (size-1)!)."""
    range_ = torch.arange(size)
    range_[0] = 1
    return torch.tensor([dt**k for k in range(size)]) / range_.cumprod(0)
