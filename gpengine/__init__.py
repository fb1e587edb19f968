"""Gaussian process log marginal likelihood and its gradient."""

import gpengine.covariance_functions
import gpengine.linalg
from gpengine.gaussian_process import GP
