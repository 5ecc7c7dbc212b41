import pytest
import torch

from swerling_kf import GaussianState, StateSpaceModel, SwerlingKalmanFilter
from swerling_kf.ckf import (
    constant_kalman_filter,
    constant_state_space_model,
    create_ckf_noise_input,
    create_ckf_process_matrix,
    interleave,
)


def test_interleave_matches_expected():
    x = torch.tensor([[1, 1], [2, 2], [3, 3], [4, 4], [5, 5], [6, 6], [7, 7], [8, 8], [9, 9]])
    y = interleave(x, 3)
    expected = torch.tensor([[1, 1], [4, 4], [7, 7], [2, 2], [5, 5], [8, 8], [3, 3], [6, 6], [9, 9]])
    assert torch.equal(y, expected)


def test_create_ckf_process_matrix_order1_dt1():
    process_matrix = create_ckf_process_matrix(order=1, dt=1.0, approximate=False)
    expected = torch.tensor([[1.0, 1.0], [0.0, 1.0]])
    assert torch.allclose(process_matrix, expected)


def test_create_ckf_process_matrix_order2_dt05():
    process_matrix = create_ckf_process_matrix(order=2, dt=0.5, approximate=False)
    expected = torch.tensor(
        [
            [1.0, 0.5, 0.125],
            [0.0, 1.0, 0.5],
            [0.0, 0.0, 1.0],
        ]
    )
    assert torch.allclose(process_matrix, expected)


def test_create_ckf_process_matrix_approximate_drops_higher_terms():
    process_matrix = create_ckf_process_matrix(order=2, dt=0.5, approximate=True)
    expected = torch.tensor(
        [
            [1.0, 0.5, 0.0],
            [0.0, 1.0, 0.5],
            [0.0, 0.0, 1.0],
        ]
    )
    assert torch.allclose(process_matrix, expected)


def test_create_ckf_noise_input_order1():
    noise_input = create_ckf_noise_input(order=1, dt=0.5)
    assert noise_input.shape == (2, 1)
    assert torch.allclose(noise_input, torch.tensor([[0.5], [1.0]]))

    noise_input = create_ckf_noise_input(order=1, dt=0.5, expected_model=True)
    assert torch.allclose(noise_input, torch.tensor([[0.125], [0.5]]))


def test_noise_input_yields_white_noise_covariance_order_3():
    noise_input = create_ckf_noise_input(order=3, dt=1.0, expected_model=False, approximate=False)
    process_noise = 1.5**2 * noise_input @ noise_input.mT

    expected = torch.tensor(
        [
            [0.0625, 0.1875, 0.3750, 0.3750],
            [0.1875, 0.5625, 1.1250, 1.1250],
            [0.3750, 1.1250, 2.2500, 2.2500],
            [0.3750, 1.1250, 2.2500, 2.2500],
        ]
    )

    assert torch.allclose(process_noise, expected)


def test_create_ckf_noise_input_expected_model():
    noise_input = create_ckf_noise_input(order=5, dt=0.5, expected_model=False, approximate=False)
    noise_input_expected = create_ckf_noise_input(order=5, dt=0.5, expected_model=True, approximate=False)

    # The expected model is shifted by one order
    assert torch.allclose(noise_input[:-1], noise_input_expected[1:])


@pytest.mark.parametrize(
    ("order", "dt", "expected"),
    [
        (3, 1.0, False),
        (3, 0.5, True),
        (2, 0.5, True),
        (0, 2.0, False),
    ],
)
def test_create_ckf_noise_input_approximate(order: int, dt: float, expected: bool):
    noise_input = create_ckf_noise_input(order=order, dt=dt, expected_model=expected, approximate=True)
    assert noise_input[-1, 0] == (dt if expected else 1)
    noise_input[-1, 0] = 0

    assert (noise_input == 0).all()


def test_constant_state_space_model_shapes_default_ordering():
    model = constant_state_space_model(
        measurement_std=3.0,
        process_std=1.5,
        dim=2,
        order=1,
        dt=1.0,
        expected_model=False,
        order_by_dim=False,
        approximate=False,
    )

    # state_dim = (order+1)*dim = 4, noise_dim = measure_dim = dim = 2
    assert isinstance(model, StateSpaceModel)
    assert model.process_matrix.shape == (4, 4)
    assert model.noise_input_matrix.shape == (4, 2)
    assert model.process_noise.shape == (2, 2)
    assert model.measurement_matrix.shape == (2, 4)
    assert model.measurement_noise.shape == (2, 2)

    assert torch.allclose(model.process_noise, torch.eye(2) * 1.5**2)
    assert torch.allclose(model.measurement_noise, torch.eye(2) * 9.0)

    assert (
        model.measurement_matrix
        == torch.tensor(
            [
                # x, y, dx, dy
                [1, 0, 0, 0],
                [0, 1, 0, 0],
            ]
        )
    ).all()
    assert (
        model.noise_input_matrix
        == torch.tensor(
            [
                # w_x, w_y
                [1, 0],
                [0, 1],
                [1, 0],
                [0, 1],
            ]
        )
    ).all()


def test_constant_state_space_model_keeps_float64_stds():
    model = constant_state_space_model(
        torch.tensor(0.1, dtype=torch.float64), torch.tensor(0.3, dtype=torch.float64), dim=1
    )

    assert model.dtype == torch.float64
    assert model.measurement_noise.item() == pytest.approx(0.01, rel=1e-12)
    assert model.process_noise.item() == pytest.approx(0.09, rel=1e-12)


def test_constant_state_space_model_promotes_integer_stds():
    model = constant_state_space_model(2, 1, dim=2)

    assert model.dtype == torch.get_default_dtype()
    assert torch.equal(model.measurement_noise, torch.eye(2) * 4)


def test_constant_state_space_model_order_by_dim_changes_layout_but_not_shapes():
    model_1 = constant_state_space_model(3.0, 1.5, dim=3, order=2, order_by_dim=False)
    model_2 = constant_state_space_model(3.0, 1.5, dim=3, order=2, order_by_dim=True)

    assert model_1.process_matrix.shape == model_2.process_matrix.shape
    assert model_1.noise_input_matrix.shape == model_2.noise_input_matrix.shape
    assert model_1.measurement_matrix.shape == model_2.measurement_matrix.shape

    assert not torch.allclose(model_1.process_matrix, model_2.process_matrix)
    assert not torch.allclose(model_1.measurement_matrix, model_2.measurement_matrix)

    assert (
        model_2.measurement_matrix
        == torch.tensor(
            [
                # x,dx,ddx,y,dy,ddy,z,dz,ddz
                [1, 0, 0, 0, 0, 0, 0, 0, 0],
                [0, 0, 0, 1, 0, 0, 0, 0, 0],
                [0, 0, 0, 0, 0, 0, 1, 0, 0],
            ]
        )
    ).all()

    # Same model up to a permutation of the state
    permutation = interleave(torch.arange(9), 3)
    assert torch.allclose(model_1.process_matrix, model_2.process_matrix[permutation][:, permutation])
    assert torch.allclose(model_1.effective_process_noise, model_2.effective_process_noise[permutation][:, permutation])


def test_constant_kalman_filter_tracks_a_constant_velocity_target():
    kf = constant_kalman_filter(0.5, 0.01, dim=1, order=1).to(torch.float64)
    assert isinstance(kf, SwerlingKalmanFilter)

    # Target moving at speed 2.0 starting at 1.0
    times = torch.arange(1, 51, dtype=torch.float64)
    measurements = (1.0 + 2.0 * times + 0.5 * torch.randn(50, dtype=torch.float64))[None]

    initial_state = torch.zeros(2, 1, dtype=torch.float64)
    result = kf.filter(GaussianState(initial_state, torch.eye(2, dtype=torch.float64) * 100), measurements)

    assert abs(result.means[1, -1].item() - 2.0) < 0.1
    assert result.covariance_diagonals[1, -1] < result.covariance_diagonals[1, 1]
