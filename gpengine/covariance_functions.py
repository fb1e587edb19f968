"""Module for covariance functions used by the Gaussian process engine."""

from abc import ABC, abstractmethod

import numpy as np
from scipy.spatial.distance import pdist, squareform


class AbstractKernel(ABC):
    """
    Abstract base class for covariance kernels.

    A kernel is an immutable function object: it holds an ordered vector of
    hyperparameters and maps a pair of input vectors to their prior
    covariance, and to the partial derivatives of that covariance with
    respect to each hyperparameter.

    Parameters
    ----------
    parameters : array_like, shape (npars,)
        The hyperparameters of the kernel.

    Raises
    ------
    ValueError
        Raised when `parameters` is not a 1D array.
    ValueError
        Raised when `parameters` has not the expected number of
        hyperparameters.
    """

    def __init__(self, parameters=()):
        parameters = np.array(parameters, dtype=float)
        if parameters.ndim != 1:
            raise ValueError(
                "Covariance function hyperparameters need to be a 1D array."
            )
        expected = self.hyperparameter_count()
        if expected is not None and parameters.size != expected:
            raise ValueError(
                f"Expected {expected} covariance function hyperparameters, "
                f"{parameters.size} passed instead."
            )
        parameters.setflags(write=False)
        self._parameters = parameters

    def __repr__(self):
        return f"{self.__class__.__name__}({self._parameters.tolist()})"

    @property
    def parameters(self):
        """A copy of the hyperparameter vector."""
        return self._parameters.copy()

    @property
    def npars(self):
        """The number of hyperparameters of the kernel."""
        return self._parameters.size

    def hyperparameter_count(self):
        """
        Return the number of hyperparameters this covariance function
        expects, or ``None`` if any number is accepted.

        Returns
        -------
        count : int or None
            The number of hyperparameters.
        """
        return None

    def hyperparameter_info(self):
        """
        Return information on the names of hyperparameters.

        Returns
        -------
        hyper_info : array_like
            A list of tuples of hyperparameter names and their number,
            in the order they are in the hyperparameter array.
        """
        return [("covariance_parameter", self.npars)]

    def with_parameters(self, parameters):
        """
        Return a new kernel of the same family with other hyperparameters.

        Parameters
        ----------
        parameters : array_like, shape (npars,)
            The new hyperparameters.

        Returns
        -------
        kernel : AbstractKernel
            The new kernel. ``self`` is left unchanged.
        """
        return self.__class__(parameters)

    @abstractmethod
    def evaluate(self, x1: np.ndarray, x2: np.ndarray):
        """
        Compute the prior covariance between two input vectors.

        Parameters
        ----------
        x1 : ndarray, shape (D,)
            The first input vector.
        x2 : ndarray, shape (D,)
            The second input vector.

        Returns
        -------
        k : float
            The covariance between `x1` and `x2`.
        """

    @abstractmethod
    def gradient(self, x1: np.ndarray, x2: np.ndarray):
        """
        Compute the gradient of the covariance between two input vectors
        with respect to the hyperparameters.

        Parameters
        ----------
        x1 : ndarray, shape (D,)
            The first input vector.
        x2 : ndarray, shape (D,)
            The second input vector.

        Returns
        -------
        dk : ndarray, shape (npars,)
            The partial derivative of ``evaluate(x1, x2)`` with respect to
            each hyperparameter.
        """

    def compute(self, X: np.ndarray, compute_grad: bool = False):
        """
        Compute the covariance matrix of a set of training points.

        Only the pairs ``(i, j)`` with ``i <= j`` are evaluated, the lower
        triangle is filled in by symmetry. When the gradient is requested,
        the matrices of all hyperparameters are built in the same pass.

        Parameters
        ----------
        X : ndarray, shape (N, D)
            A 2D array where each row is a training point.
        compute_grad : bool, defaults to False
            Whether to compute the gradient with respect to the
            hyperparameters.

        Returns
        -------
        K : ndarray, shape (N, N)
            The covariance matrix.
        dK : ndarray, shape (N, N, npars), optional
            The gradient of the covariance matrix with respect to the
            hyperparameters.
        """
        N = X.shape[0]
        K = np.zeros((N, N))
        if compute_grad:
            dK = np.zeros((N, N, self.npars))

        for i in range(0, N):
            for j in range(i, N):
                K[i, j] = K[j, i] = self.evaluate(X[i], X[j])
                if compute_grad:
                    dK[i, j, :] = dK[j, i, :] = self.gradient(X[i], X[j])

        if compute_grad:
            return K, dK

        return K


class ZeroKernel(AbstractKernel):
    """
    Kernel with zero covariance everywhere.

    It accepts any number of hyperparameters and its gradient is zero with
    respect to each of them.
    """

    def evaluate(self, x1: np.ndarray, x2: np.ndarray):
        return 0.0

    def gradient(self, x1: np.ndarray, x2: np.ndarray):
        return np.zeros(self.npars)


class SquaredExponentialIsotropic(AbstractKernel):
    """
    Isotropic squared exponential (Gaussian) kernel.

    .. math::

        k(x_1, x_2) = A \\exp\\left(-\\frac{\\|x_1 - x_2\\|^2}{2 S}\\right)

    The kernel does not check the sign of its hyperparameters. A negative
    amplitude or a non-positive scale yields a covariance matrix which is
    not positive semi-definite, and this is reported when the matrix is
    factorized.

    Parameters
    ----------
    parameters : array_like, shape (2,)
        The amplitude ``A`` and the squared length scale ``S``.
    """

    def hyperparameter_count(self):
        return 2

    def hyperparameter_info(self):
        return [
            ("covariance_amplitude", 1),
            ("covariance_scale", 1),
        ]

    @property
    def amplitude(self):
        return self._parameters[0]

    @property
    def scale(self):
        return self._parameters[1]

    def evaluate(self, x1: np.ndarray, x2: np.ndarray):
        d = np.asarray(x1, dtype=float) - np.asarray(x2, dtype=float)
        chi2 = np.dot(d, d) / self.scale
        return float(self.amplitude * np.exp(-0.5 * chi2))

    def gradient(self, x1: np.ndarray, x2: np.ndarray):
        d = np.asarray(x1, dtype=float) - np.asarray(x2, dtype=float)
        e = -0.5 * np.dot(d, d) / self.scale
        value = np.exp(e)
        grad = np.zeros(2)
        grad[0] = value
        grad[1] = -e / self.scale * self.amplitude * value
        return grad

    # Overriding the pairwise assembly
    def compute(self, X: np.ndarray, compute_grad: bool = False):
        N = X.shape[0]
        if N == 1:
            sq_dist = np.zeros((1, 1))
        else:
            sq_dist = squareform(pdist(X, "sqeuclidean"))

        E = np.exp(-0.5 * sq_dist / self.scale)
        K = self.amplitude * E

        if compute_grad:
            dK = np.zeros((self.npars, N, N))
            # Gradient of amplitude
            dK[0, :, :] = E
            # Gradient of scale
            dK[1, :, :] = 0.5 * sq_dist / self.scale**2 * K
            return K, dK.transpose(1, 2, 0)

        return K
