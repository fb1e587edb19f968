"""Module for the Gaussian process likelihood engine."""

import logging
import math
from textwrap import indent

import numpy as np
import scipy as sp
import scipy.linalg

from gpengine.covariance_functions import AbstractKernel
from gpengine.linalg import AbstractFactorization, LDLFactorization

SUCCESS = 0
FACTORIZATION_FAILED = -1
NOT_COMPUTED = -1
SOLVE_FAILED = -2

_LOG_2PI = math.log(2 * math.pi)


class _Factorized:
    """A valid factorization together with the training inputs it was
    computed for."""

    def __init__(self, factor: AbstractFactorization, X: np.ndarray):
        self.factor = factor
        self.X = X

    @property
    def n(self):
        return self.X.shape[0]


class GP:
    """
    A Gaussian process (GP) with zero mean and a fixed covariance function.

    The GP caches a factorization of the covariance matrix of the training
    inputs, so that the log marginal likelihood and its gradient can be
    evaluated for several target vectors at the cost of a single
    factorization.

    Numerical failures are not raised. `compute` returns a status code,
    `log_likelihood` returns ``-inf`` and `grad_log_likelihood` sets
    :attr:`info`, so that an optimizer can treat infeasible
    hyperparameters as ordinary points.

    The GP is not safe for concurrent use.

    Parameters
    ==========
    kernel : AbstractKernel
        The covariance function, one of the objects from
        :py:mod:`gpengine.covariance_functions`.
    options : dict, optional
        A dictionary of options. The possible options are:

            **display** : {'off', 'summary', 'full'}, defaults to 'off'
                Defines the level of display.
            **factorization** : type, defaults to ``LDLFactorization``
                The :class:`gpengine.linalg.AbstractFactorization`
                subclass used to factorize the covariance matrix.
            **rtol** : float, optional
                Relative tolerance under which a pivot of the
                factorization is considered zero.

    Raises
    ------
    ValueError
        Raised when `kernel` is not an ``AbstractKernel``.
    ValueError
        Raised when an option has an unsupported value.
    """

    def __init__(self, kernel: AbstractKernel, options: dict = None):
        if not isinstance(kernel, AbstractKernel):
            raise ValueError("The kernel needs to be an AbstractKernel.")
        self._kernel = kernel
        self._factorized = None
        self._stale = False
        self._info = SUCCESS

        if options is None:
            options = {}
        self.display = options.get("display", "off")
        self.factorization = options.get("factorization", LDLFactorization)
        self.rtol = options.get("rtol", None)

        if not (
            isinstance(self.factorization, type)
            and issubclass(self.factorization, AbstractFactorization)
        ):
            raise ValueError(
                "The factorization option needs to be an "
                "AbstractFactorization subclass."
            )

        # Logging
        self.logger = logging.getLogger("GP")
        # Remember to only add the handler once.
        if len(self.logger.handlers) == 0:
            self.logger.addHandler(logging.StreamHandler())
        if self.display == "off":
            self.logger.setLevel(logging.WARN)
        elif self.display == "summary":
            self.logger.setLevel(logging.INFO)
        elif self.display == "full":
            self.logger.setLevel(logging.DEBUG)
        else:
            raise ValueError(f"Unknown display option {self.display!r}.")

    def __repr__(self):
        return (
            f"GP(kernel={self._kernel!r}, state={self.state!r}, "
            f"n={self.n}, info={self._info})"
        )

    def __str__(self):
        kernel = "Covariance function: " + self._kernel.__class__.__name__
        if self._kernel.npars == 1:
            kernel += ", 1 parameter\n"
        else:
            kernel += ", " + str(self._kernel.npars) + " parameters\n"
        for name, value in zip(
            self.__parameter_names(), self._kernel.parameters
        ):
            kernel += "    " + name + ": " + str(value) + "\n"

        state = "State: " + self.state + "\n"
        training = "Training points: " + str(self.n)

        title = "GP:\n"
        body = kernel + state + training
        return title + indent(body, "    ")

    def __parameter_names(self):
        names = []
        for name, count in self._kernel.hyperparameter_info():
            if count == 1:
                names.append(name)
            else:
                names += [name + "_" + str(i) for i in range(count)]
        return names

    @property
    def kernel(self):
        """The covariance function of the GP.

        Setting a new kernel discards the cached factorization, the GP
        needs to be computed again.
        """
        return self._kernel

    @kernel.setter
    def kernel(self, kernel: AbstractKernel):
        if not isinstance(kernel, AbstractKernel):
            raise ValueError("The kernel needs to be an AbstractKernel.")
        self._kernel = kernel
        self._factorized = None
        self._stale = False

    @property
    def info(self):
        """The status code of the last `compute` or
        `grad_log_likelihood` call."""
        return self._info

    @property
    def computed(self):
        """Whether a valid factorization is available."""
        return self._factorized is not None

    @property
    def state(self):
        """One of ``'uninitialized'``, ``'ready'`` or ``'stale'``."""
        if self._factorized is not None:
            return "ready"
        if self._stale:
            return "stale"
        return "uninitialized"

    @property
    def X(self):
        """The training inputs of the last successful `compute`."""
        if self._factorized is None:
            return None
        return self._factorized.X.copy()

    @property
    def n(self):
        """The number of training points, zero if not computed."""
        if self._factorized is None:
            return 0
        return self._factorized.n

    def compute(self, X: np.ndarray, yerr: np.ndarray):
        """
        Assemble and factorize the covariance matrix of the training
        inputs.

        Any previously cached factorization is discarded, whatever the
        outcome. Invalid inputs raise and leave the GP stale, like a failed
        factorization.

        Parameters
        ==========
        X : ndarray, shape (N, D)
            A 2D array where each row is a training point. A 1D array is
            read as ``N`` one-dimensional points.
        yerr : ndarray, shape (N,)
            The standard deviation of the observation noise of each
            training point.

        Returns
        =======
        info : int
            ``SUCCESS`` (0), or ``FACTORIZATION_FAILED`` (-1) when the
            covariance matrix is not numerically positive semi-definite.

        Raises
        ------
        ValueError
            Raised when `X` is not a 1D or 2D array with at least one
            point.
        ValueError
            Raised when `yerr` does not hold one finite, non-negative value
            per training point.
        """
        self._factorized = None
        self._stale = True

        X = np.array(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape((-1, 1))
        if X.ndim != 2 or X.shape[0] == 0:
            raise ValueError(
                "Training inputs need to be a 1D or 2D array with at least "
                "one point."
            )
        N = X.shape[0]

        yerr = np.asarray(yerr, dtype=float).ravel()
        if yerr.size != N:
            raise ValueError(
                f"Expected {N} noise standard deviations, {yerr.size} "
                "passed instead."
            )
        if np.any(~np.isfinite(yerr)) or np.any(yerr < 0):
            raise ValueError(
                "Noise standard deviations need to be finite and "
                "non-negative."
            )

        # Degenerate hyperparameters give non-finite entries, which the
        # factorization rejects.
        with np.errstate(all="ignore"):
            K = self._kernel.compute(X)
            K[np.diag_indices(N)] += yerr**2

        try:
            if self.rtol is None:
                factor = self.factorization(K)
            else:
                factor = self.factorization(K, rtol=self.rtol)
        except sp.linalg.LinAlgError as err:
            self._stale = True
            self._info = FACTORIZATION_FAILED
            self.logger.debug(
                "Factorization of the %d x %d covariance matrix failed "
                "for %r: %s",
                N,
                N,
                self._kernel,
                err,
            )
            return FACTORIZATION_FAILED

        self._factorized = _Factorized(factor, X)
        self._stale = False
        self._info = SUCCESS
        self.logger.debug(
            "Factorized the %d x %d covariance matrix for %r.",
            N,
            N,
            self._kernel,
        )
        return SUCCESS

    def __check_targets(self, y):
        y = np.asarray(y, dtype=float)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y[:, 0]
        if (
            self._factorized is None
            or y.ndim != 1
            or y.size != self._factorized.n
        ):
            return None
        return y

    def log_likelihood(self, y: np.ndarray):
        """
        Compute the log marginal likelihood of the targets.

        Parameters
        ==========
        y : ndarray, shape (N,) or (N, 1)
            The observed values at the training points.

        Returns
        =======
        lZ : float
            The log marginal likelihood, or ``-inf`` when the GP has not
            been successfully computed, when `y` is not a vector of one value
            per training point or when the linear system cannot be solved.
        """
        y = self.__check_targets(y)
        if y is None:
            return -np.inf

        factor = self._factorized.factor
        try:
            alpha = factor.solve(y)
        except sp.linalg.LinAlgError as err:
            self.logger.debug("Log-likelihood solve failed: %s", err)
            return -np.inf

        N = y.size
        return float(
            -0.5 * (np.dot(y, alpha) + factor.log_determinant() + N * _LOG_2PI)
        )

    def grad_log_likelihood(self, y: np.ndarray):
        """
        Compute the gradient of the log marginal likelihood of the targets
        with respect to the hyperparameters of the kernel.

        Unlike `log_likelihood`, failures are reported through
        :attr:`info` and the returned vector is then all zeros. It must
        be checked before the result is used.

        Parameters
        ==========
        y : ndarray, shape (N,) or (N, 1)
            The observed values at the training points.

        Returns
        =======
        dlZ : ndarray, shape (npars,)
            The gradient with respect to the kernel hyperparameters.
            :attr:`info` is set to ``SUCCESS`` (0), ``NOT_COMPUTED`` (-1)
            when the GP has not been successfully computed or `y` has the
            wrong shape, or ``SOLVE_FAILED`` (-2) when the linear systems
            cannot be solved.
        """
        npars = self._kernel.npars
        dlZ = np.zeros(npars)

        y = self.__check_targets(y)
        if y is None:
            self._info = NOT_COMPUTED
            return dlZ

        factor = self._factorized.factor
        try:
            alpha = factor.solve(y)
        except sp.linalg.LinAlgError as err:
            self.logger.debug("Gradient solve failed: %s", err)
            self._info = SOLVE_FAILED
            return dlZ

        with np.errstate(all="ignore"):
            _, dK = self._kernel.compute(self._factorized.X, compute_grad=True)

        for k in range(0, npars):
            dK_k = dK[:, :, k]
            try:
                tr = np.trace(factor.solve(dK_k))
            except sp.linalg.LinAlgError as err:
                self.logger.debug("Gradient solve failed: %s", err)
                self._info = SOLVE_FAILED
                return np.zeros(npars)
            dlZ[k] = -0.5 * (tr - np.dot(alpha, np.dot(dK_k, alpha)))

        self._info = SUCCESS
        return dlZ
