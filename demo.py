import numpy as np
import scipy as sp
import scipy.optimize

import gpengine as gpe
from gpengine.covariance_functions import SquaredExponentialIsotropic
from gpengine.gaussian_process import SUCCESS

# Create example data in 1D
np.random.seed(1234)
N = 31
X = -5 + np.random.rand(N, 1) * 10
yerr = 0.1 + 0.1 * np.random.rand(N)
y = np.sin(X[:, 0]) + yerr * np.random.standard_normal(N)

# Define the GP model
gp = gpe.GP(SquaredExponentialIsotropic([1.0, 1.0]), {"display": "full"})
gp.compute(X, yerr)
print(gp)
print("Log-likelihood:", gp.log_likelihood(y))
print("Gradient:", gp.grad_log_likelihood(y))


# Fit the hyperparameters in log space.
def neg_log_likelihood(log_pars):
    gp.kernel = gp.kernel.with_parameters(np.exp(log_pars))
    if gp.compute(X, yerr) != SUCCESS:
        return np.inf, np.zeros(log_pars.size)
    lZ = gp.log_likelihood(y)
    dlZ = gp.grad_log_likelihood(y)
    if gp.info != SUCCESS:
        return np.inf, np.zeros(log_pars.size)
    return -lZ, -dlZ * np.exp(log_pars)


result = sp.optimize.minimize(
    neg_log_likelihood, np.zeros(2), jac=True, method="L-BFGS-B"
)
print("Fitted amplitude and scale:", np.exp(result.x))
print("Log-likelihood:", -result.fun)
