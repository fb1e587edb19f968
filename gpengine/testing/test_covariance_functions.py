import numpy as np
import pytest

from gpengine.covariance_functions import (
    AbstractKernel,
    SquaredExponentialIsotropic,
    ZeroKernel,
)
from test_utils import central_difference


def test_squared_exponential_isotropic_sanity_checks():
    with pytest.raises(ValueError) as execinfo:
        SquaredExponentialIsotropic(np.ones(3))
    assert (
        "Expected 2 covariance function hyperparameters"
        in execinfo.value.args[0]
    )
    with pytest.raises(ValueError) as execinfo:
        SquaredExponentialIsotropic()
    assert (
        "Expected 2 covariance function hyperparameters"
        in execinfo.value.args[0]
    )
    with pytest.raises(ValueError) as execinfo:
        SquaredExponentialIsotropic(np.ones((2, 1)))
    assert (
        "Covariance function hyperparameters need to be a 1D array"
        in execinfo.value.args[0]
    )


def test_abstract_kernel_cannot_be_instantiated():
    with pytest.raises(TypeError):
        AbstractKernel(np.ones(2))


def test_kernel_parameters_are_immutable():
    pars = np.array([1.5, 0.7])
    kernel = SquaredExponentialIsotropic(pars)
    pars[0] = 100.0
    assert kernel.npars == 2
    assert np.all(kernel.parameters == [1.5, 0.7])

    copy = kernel.parameters
    copy[1] = -1.0
    assert kernel.scale == 0.7

    other = kernel.with_parameters([2.0, 3.0])
    assert isinstance(other, SquaredExponentialIsotropic)
    assert np.all(other.parameters == [2.0, 3.0])
    assert np.all(kernel.parameters == [1.5, 0.7])


def test_hyperparameter_info():
    kernel = SquaredExponentialIsotropic([1.0, 1.0])
    info = kernel.hyperparameter_info()
    assert [name for name, _ in info] == [
        "covariance_amplitude",
        "covariance_scale",
    ]
    assert sum(count for _, count in info) == kernel.npars


def test_kernel_symmetry():
    rng = np.random.default_rng(0)
    kernels = [
        SquaredExponentialIsotropic(np.exp(rng.normal(size=2))),
        ZeroKernel([1.0, 2.0, 3.0]),
    ]
    for kernel in kernels:
        for _ in range(0, 10):
            D = rng.integers(1, 5)
            x1 = rng.normal(size=D)
            x2 = rng.normal(size=D)
            assert kernel.evaluate(x1, x2) == kernel.evaluate(x2, x1)
            assert np.all(kernel.gradient(x1, x2) == kernel.gradient(x2, x1))


def test_squared_exponential_isotropic_zero_distance():
    rng = np.random.default_rng(1)
    for amplitude in [0.1, 1.0, 3.7]:
        kernel = SquaredExponentialIsotropic([amplitude, rng.uniform(0.1, 5)])
        x = rng.normal(size=3)
        assert kernel.evaluate(x, x) == amplitude
        assert np.all(kernel.gradient(x, x) == [1.0, 0.0])


def test_squared_exponential_isotropic_values():
    kernel = SquaredExponentialIsotropic([2.0, 0.5])
    x1 = np.array([0.0, 0.0])
    x2 = np.array([1.0, 1.0])
    # |x1 - x2|^2 = 2, chi2 = 4
    assert np.isclose(kernel.evaluate(x1, x2), 2.0 * np.exp(-2.0))
    grad = kernel.gradient(x1, x2)
    assert np.isclose(grad[0], np.exp(-2.0))
    assert np.isclose(grad[1], 2.0 / 0.5 * 2.0 * np.exp(-2.0))


def test_sqr_exp_iso_kernel_gradient():
    rng = np.random.default_rng(2)
    h = 1e-4
    for _ in range(0, 20):
        D = rng.integers(1, 4)
        x1 = rng.normal(scale=0.5, size=D)
        x2 = rng.normal(scale=0.5, size=D)
        pars = np.exp(rng.normal(scale=0.5, size=2))
        kernel = SquaredExponentialIsotropic(pars)
        f = lambda p: SquaredExponentialIsotropic(p).evaluate(x1, x2)

        grad = kernel.gradient(x1, x2)
        for k in range(0, kernel.npars):
            finite_diff = central_difference(f, pars, k, h * pars[k])
            assert np.isclose(grad[k], finite_diff, rtol=1e-5, atol=1e-9)


def test_zero_kernel():
    kernel = ZeroKernel([1.0, 2.0])
    x1 = np.array([0.3, -1.0])
    x2 = np.array([2.0, 0.5])
    assert kernel.npars == 2
    assert kernel.evaluate(x1, x2) == 0.0
    assert np.all(kernel.gradient(x1, x2) == np.zeros(2))

    K, dK = kernel.compute(np.stack([x1, x2]), compute_grad=True)
    assert np.all(K == 0.0)
    assert dK.shape == (2, 2, 2)
    assert np.all(dK == 0.0)

    assert ZeroKernel().npars == 0


def test_sqr_exp_iso_compute_matches_pairwise():
    rng = np.random.default_rng(3)
    N = 15
    D = 3
    X = rng.normal(size=(N, D))
    kernel = SquaredExponentialIsotropic([1.3, 0.8])

    K, dK = kernel.compute(X, compute_grad=True)
    # Pairwise assembly from the base class.
    K_pair, dK_pair = AbstractKernel.compute(kernel, X, compute_grad=True)

    assert K.shape == (N, N)
    assert dK.shape == (N, N, 2)
    assert np.allclose(K, K_pair)
    assert np.allclose(dK, dK_pair)
    assert np.all(K == K.T)
    assert np.allclose(np.diag(K), 1.3)

    assert np.allclose(kernel.compute(X), K)
    assert np.allclose(kernel.compute(X[:1]), [[1.3]])


def test_sqr_exp_iso_compute_gradient():
    """
    Test the gradient of the covariance matrix via the five-point stencil
    difference method.
    """
    rng = np.random.default_rng(4)
    N = 20
    D = 3
    X = rng.normal(scale=np.sqrt(0.2), size=(N, D))
    pars = np.exp(rng.normal(scale=np.sqrt(0.2), size=2))
    h = 1e-5
    eps = 1e-4

    K, dK = SquaredExponentialIsotropic(pars).compute(X, compute_grad=True)
    finite_diff = np.zeros((N, N, len(pars)))
    for idx in range(0, len(pars)):
        f = []
        for step in [2.0, 1.0, -1.0, -2.0]:
            pars_new = pars.copy()
            pars_new[idx] += step * h
            f.append(SquaredExponentialIsotropic(pars_new).compute(X))
        finite_diff[:, :, idx] = (-f[0] + 8.0 * f[1] - 8.0 * f[2] + f[3]) / (
            12 * h
        )

    assert np.all(np.abs(finite_diff - dK) <= eps)


def test_degenerate_parameters_do_not_raise():
    kernel = SquaredExponentialIsotropic([1.0, 0.0])
    X = np.array([[0.0], [1.0]])
    with np.errstate(all="ignore"):
        K = kernel.compute(X)
    assert not np.all(np.isfinite(K))
