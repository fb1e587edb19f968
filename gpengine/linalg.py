"""Module for the symmetric factorizations of covariance matrices."""

from abc import ABC, abstractmethod

import numpy as np
import scipy as sp
import scipy.linalg


class AbstractFactorization(ABC):
    """
    Abstract base class for factorizations of a symmetric positive
    semi-definite matrix.

    Constructing a factorization raises :class:`scipy.linalg.LinAlgError`
    when the matrix cannot be factorized.
    """

    @property
    @abstractmethod
    def n(self):
        """The order of the factorized matrix."""

    @property
    @abstractmethod
    def pivots(self):
        """The pivots of the factorization, whose product is the
        determinant of the matrix."""

    @abstractmethod
    def solve(self, b: np.ndarray):
        """
        Solve ``K x = b`` for ``x``.

        Parameters
        ----------
        b : ndarray, shape (N,) or (N, M)
            The right-hand side.

        Returns
        -------
        x : ndarray
            The solution, of the same shape as `b`.

        Raises
        ------
        LinAlgError
            Raised when the system cannot be solved.
        """

    def log_determinant(self):
        """
        Return the log-determinant of the factorized matrix.

        Returns
        -------
        logdet : float
            ``sum(log(pivots))``, ``-inf`` when a pivot is zero.
        """
        with np.errstate(divide="ignore"):
            return float(np.sum(np.log(self.pivots)))


class LDLFactorization(AbstractFactorization):
    """
    Symmetric indefinite LDL^T factorization with Bunch-Kaufman pivoting.

    ``P K P^T = L D L^T`` where ``L`` is unit lower triangular and ``D`` is
    block diagonal with 1x1 and 2x2 blocks. The pivots are the eigenvalues
    of ``D``. Unlike a Cholesky decomposition the factorization goes through
    for rank deficient matrices, in which case the pivots that vanish
    (up to the tolerance) are set to zero and make `solve` fail instead.

    Parameters
    ----------
    K : ndarray, shape (N, N)
        The symmetric matrix to factorize. Only its lower triangle is read.
    rtol : float, optional
        Pivots smaller in absolute value than ``rtol * max(abs(diag(K)))``
        are considered zero. Defaults to ``N * eps``.

    Raises
    ------
    ValueError
        Raised when `K` is not a square matrix.
    LinAlgError
        Raised when `K` has non-finite entries or is not positive
        semi-definite.
    """

    def __init__(self, K: np.ndarray, rtol: float = None):
        K = np.asarray(K, dtype=float)
        if K.ndim != 2 or K.shape[0] != K.shape[1] or K.shape[0] == 0:
            raise ValueError("The matrix to factorize needs to be square.")
        if not np.all(np.isfinite(K)):
            raise sp.linalg.LinAlgError("Matrix contains non-finite entries.")

        N = K.shape[0]
        lu, d, perm = sp.linalg.ldl(
            K, lower=True, hermitian=True, check_finite=False
        )
        self._N = N
        self._perm = perm
        # lu[perm] is unit lower triangular.
        self._L = lu[perm]
        self._d = np.diag(d).copy()
        # Nonzero entries mark 2x2 blocks.
        self._e = np.diag(d, -1).copy()

        if np.any(self._e != 0):
            pivots = sp.linalg.eigvalsh_tridiagonal(
                self._d, self._e, check_finite=False
            )
        else:
            pivots = self._d.copy()

        if rtol is None:
            rtol = N * np.finfo(float).eps
        self.tol = rtol * np.max(np.abs(np.diag(K)))

        if np.any(pivots < -self.tol):
            raise sp.linalg.LinAlgError(
                "Matrix is not positive semi-definite."
            )
        pivots[pivots <= self.tol] = 0.0
        self._pivots = pivots
        self.rank = int(np.sum(pivots > 0))

    @property
    def n(self):
        return self._N

    @property
    def pivots(self):
        return self._pivots.copy()

    @property
    def singular(self):
        """Whether the factorized matrix has a zero pivot."""
        return self.rank < self._N

    def solve(self, b: np.ndarray):
        b = np.asarray(b, dtype=float)
        if b.shape[0] != self._N:
            raise ValueError(
                f"Right-hand side has {b.shape[0]} rows, expected {self._N}."
            )
        # A Bunch-Kaufman 2x2 block always has a negative eigenvalue, so a
        # nonsingular factor of a positive semi-definite matrix has a
        # diagonal D.
        if self.singular:
            raise sp.linalg.LinAlgError(
                f"Singular matrix: rank {self.rank} out of {self._N}."
            )

        z = sp.linalg.solve_triangular(
            self._L,
            b[self._perm],
            lower=True,
            unit_diagonal=True,
            check_finite=False,
        )
        if z.ndim == 1:
            w = z / self._d
        else:
            w = z / self._d[:, None]
        u = sp.linalg.solve_triangular(
            self._L,
            w,
            trans="T",
            lower=True,
            unit_diagonal=True,
            check_finite=False,
        )
        x = np.empty_like(u)
        x[self._perm] = u

        if not np.all(np.isfinite(x)):
            raise sp.linalg.LinAlgError(
                "Solution contains non-finite entries."
            )
        return x
