"""Errors raised by the Swerling Kalman filter.

Every error is unrecoverable for the current invocation: the recursion stops at the
offending step and no partial result is returned.
"""

from __future__ import annotations

import torch.linalg


class SwerlingFilterError(Exception):
    """Base class of all the filter errors."""


class ShapeMismatchError(SwerlingFilterError, ValueError):
    """Inconsistent dimensions between the model, the initial state and the measurements.

    Attributes:
        name (str): Name of the offending input (e.g. ``"measurement_noise"``).
        expected (tuple[int | None, ...]): Expected shape (``None`` for a free dimension).
        actual (tuple[int, ...]): Received shape.
    """

    def __init__(self, name: str, expected: tuple[int | None, ...], actual: tuple[int, ...]) -> None:
        self.name = name
        self.expected = expected
        self.actual = actual
        expected_str = "(" + ", ".join("*" if dim is None else str(dim) for dim in expected) + ")"
        super().__init__(f"Invalid shape for {name}: expected {expected_str}, got {tuple(actual)}")


class SingularMatrixError(SwerlingFilterError, torch.linalg.LinAlgError):
    """A matrix that must be inverted is not positive definite to working precision.

    Attributes:
        matrix (str): Name of the matrix that could not be factorized.
        step (int | None): 1-based index of the filtering step (None outside of a recursion).
    """

    def __init__(self, matrix: str, step: int | None = None) -> None:
        self.matrix = matrix
        self.step = step
        location = f" at step {step}" if step is not None else ""
        super().__init__(f"Matrix '{matrix}' is singular or not positive definite{location}")

    def at_step(self, step: int) -> SingularMatrixError:
        """Return the same error located at the given step."""
        return SingularMatrixError(self.matrix, step)


class NonFiniteResultError(SwerlingFilterError, ArithmeticError):
    """A filter output contains NaN or Inf values.

    Attributes:
        quantity (str): Name of the non-finite output (``"mean"``, ``"covariance"``, ``"neg_log_likelihood"``).
        step (int): 1-based index of the filtering step.
    """

    def __init__(self, quantity: str, step: int) -> None:
        self.quantity = quantity
        self.step = step
        super().__init__(f"Non-finite {quantity} at step {step}")


class NonSymmetricMatrixError(SwerlingFilterError, ValueError):
    """A covariance input is not symmetric.

    Only the lower triangle of a covariance is read by its Cholesky factorization: an asymmetric input
    would be used inconsistently by the update and the likelihood.

    Attributes:
        name (str): Name of the offending input (e.g. ``"measurement_noise"``).
        asymmetry (float): Largest absolute difference between the matrix and its transpose.
    """

    def __init__(self, name: str, asymmetry: float) -> None:
        self.name = name
        self.asymmetry = asymmetry
        super().__init__(f"Matrix '{name}' is not symmetric (max |A - Aᵀ| = {asymmetry:.3g})")
