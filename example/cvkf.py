"""Constant velocity example: compare the Swerling Kalman filter with filterpy.

filterpy implements the usual gain/covariance update. Both filters should produce the same
estimates and the same negative log-likelihood. Run times are reported as a function of the
sequence length.

Requires the ``examples`` extra (numpy, filterpy, tqdm, pyyaml).
"""

import dataclasses
import time

import filterpy.kalman  # type: ignore[import-untyped]
import numpy as np
import torch
import tqdm.auto as tqdm
import yaml

import swerling_kf
import swerling_kf.ckf

FP_DTYPE = np.float64


def convert_to_filterpy(
    kf: swerling_kf.SwerlingKalmanFilter, x0: np.ndarray, p0: np.ndarray
) -> filterpy.kalman.KalmanFilter:
    """Convert a SwerlingKalmanFilter into a filterpy one.

    Args:
        kf (swerling_kf.SwerlingKalmanFilter): The kalman filter to convert
        x0 (np.ndarray): Initial state
        p0 (np.ndarray): Initial covariance

    Returns:
        filterpy.kalman.KalmanFilter
    """
    model = kf.model.to(torch.device("cpu"))
    kf_fp = filterpy.kalman.KalmanFilter(dim_x=kf.state_dim, dim_z=kf.measure_dim)
    kf_fp.F = model.process_matrix.numpy().astype(FP_DTYPE)
    kf_fp.Q = model.effective_process_noise.numpy().astype(FP_DTYPE)
    kf_fp.H = model.measurement_matrix.numpy().astype(FP_DTYPE)
    kf_fp.R = model.measurement_noise.numpy().astype(FP_DTYPE)
    kf_fp.x = x0
    kf_fp.P = p0
    kf_fp._I = kf_fp._I.astype(FP_DTYPE)  # noqa: SLF001

    return kf_fp


def simulate_trajectory(
    measurement_std: float, process_std: float, n=1000, dt=1.0, dim=2
) -> tuple[torch.Tensor, torch.Tensor]:
    """Create a trajectory and its observations following a constant velocity model.

    Returns:
        tuple[torch.Tensor, torch.Tensor]: True positions and measurements, one column per time step.
            Shape: ``(dim, n)``
    """
    position, velocity = torch.zeros(dim), torch.zeros(dim)
    traj, measurements = torch.empty((dim, n)), torch.empty((dim, n))
    for t in range(n):
        noise = torch.randn(dim) * process_std  # Jump of velocity (the noise enters with G = (dt, 1))
        position = position + (velocity + noise) * dt
        velocity = velocity + noise
        traj[:, t] = position
        measurements[:, t] = position + torch.randn(dim) * measurement_std
    return traj, measurements


def filter_filterpy(
    kf: swerling_kf.SwerlingKalmanFilter, initial_state: swerling_kf.GaussianState, measurements: torch.Tensor
) -> swerling_kf.FilterResult:
    """Filter a sequence with filterpy, with the same outputs as `SwerlingKalmanFilter.filter`."""
    x0 = initial_state.mean.numpy().astype(FP_DTYPE)
    p0 = initial_state.covariance.numpy().astype(FP_DTYPE)
    kf_fp = convert_to_filterpy(kf, x0, p0)

    means = np.empty((kf.state_dim, measurements.shape[1] + 1), dtype=FP_DTYPE)
    covariance_diagonals = np.empty((kf.state_dim, measurements.shape[1] + 1), dtype=FP_DTYPE)
    means[:, 0] = x0[:, 0]
    covariance_diagonals[:, 0] = np.diag(p0)

    neg_log_likelihood = 0.0
    for t, z in enumerate(measurements.numpy().astype(FP_DTYPE).T):
        kf_fp.predict()
        kf_fp.update(z[:, None])
        neg_log_likelihood -= kf_fp.log_likelihood
        means[:, t + 1] = kf_fp.x[:, 0]
        covariance_diagonals[:, t + 1] = np.diag(kf_fp.P)

    return swerling_kf.FilterResult(
        torch.tensor(neg_log_likelihood), torch.tensor(means), torch.tensor(covariance_diagonals)
    )


@dataclasses.dataclass
class RunTimeConfig:
    """Run time config."""

    dtype: torch.dtype = torch.float64
    device: str = "cpu"

    def reset(self, kf: swerling_kf.SwerlingKalmanFilter) -> swerling_kf.SwerlingKalmanFilter:
        """Return the filter with the right config."""
        return kf.to(torch.device(self.device)).to(self.dtype)


def main():
    """Check that filterpy and our code produces the same results and compare run times."""
    process_std = 0.5
    measurement_std = 3.0
    dim = 2  # 2D
    order = 1  # CVKF
    lengths = [10**i for i in range(1, 5)]

    kf = swerling_kf.ckf.constant_kalman_filter(measurement_std, process_std, dim=dim, order=order)

    configs: dict[str, RunTimeConfig] = {
        "cpu32": RunTimeConfig(dtype=torch.float32, device="cpu"),
        "cpu64": RunTimeConfig(dtype=torch.float64, device="cpu"),
    }
    if torch.cuda.is_available():
        configs["cuda64"] = RunTimeConfig(dtype=torch.float64, device="cuda")

    timings: dict[str, list[float]] = {name: [] for name in configs}
    timings["filterpy"] = []

    initial_state = swerling_kf.GaussianState(  # Initial state with large covariance (unknown position)
        torch.zeros(kf.state_dim, 1), torch.eye(kf.state_dim) * 500
    )

    for length in tqdm.tqdm(lengths):
        _, measurements = simulate_trajectory(measurement_std, process_std, n=length, dim=dim)

        for name, config in tqdm.tqdm(configs.items(), leave=False):
            kf_config = config.reset(kf)
            t = time.time()
            kf_config.filter(initial_state, measurements)
            timings[name].append(time.time() - t)

        t = time.time()
        filter_filterpy(kf, initial_state, measurements)
        timings["filterpy"].append(time.time() - t)

    print(yaml.dump({"lengths": lengths, "timings": timings}))

    print("Running with 2000 timesteps to ensure methods are equivalent")
    _, measurements = simulate_trajectory(measurement_std, process_std, n=2000, dim=dim)
    measurements = measurements.to(torch.float64)
    initial_state = initial_state.to(torch.float64)

    kf = kf.to(torch.float64)
    result = kf.filter(initial_state, measurements)
    result_filterpy = filter_filterpy(kf, initial_state, measurements)

    print(
        yaml.dump(
            {
                "neg_log_likelihood": {
                    "swerling": result.neg_log_likelihood.item(),
                    "filterpy": result_filterpy.neg_log_likelihood.item(),
                },
                "mean_abs_diff": {
                    "means": (result.means - result_filterpy.means).abs().mean().item(),
                    "covariance_diagonals": (
                        (result.covariance_diagonals - result_filterpy.covariance_diagonals).abs().mean().item()
                    ),
                },
            }
        )
    )


if __name__ == "__main__":
    main()
