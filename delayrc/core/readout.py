# core/readout.py
# this module trains and evaluates the linear readout on virtual node state matrices

import logging
import warnings

import numpy as np
from scipy import linalg
from sklearn.metrics import mean_squared_error

from delayrc.core.exceptions import ConfigError, NumericInstabilityWarning, ShapeError, SingularSystemError

logger = logging.getLogger(__name__)


def _as_system(state_matrix, targets):
    S = np.asarray(state_matrix, dtype=float)
    y = np.asarray(targets, dtype=float)
    if y.ndim == 2 and y.shape[1] == 1:
        y = y.ravel()

    if S.ndim != 2:
        raise ShapeError(f"State matrix must be two-dimensional, got shape {S.shape}.")
    if y.ndim != 1:
        raise ShapeError(f"Targets must be one-dimensional, got shape {y.shape}.")
    if S.shape[0] != y.shape[0]:
        raise ShapeError(f"State matrix has {S.shape[0]} rows but {y.shape[0]} targets were given.")
    if S.shape[0] == 0:
        raise ShapeError("Cannot fit a readout on an empty state matrix.")
    return S, y


def fit_linear(state_matrix, targets):
    """Exact least squares readout. Rank-deficient systems raise SingularSystemError."""
    S, y = _as_system(state_matrix, targets)
    if not (np.all(np.isfinite(S)) and np.all(np.isfinite(y))):
        raise SingularSystemError("State matrix or targets contain non-finite values.")

    # same rank tolerance as numpy.linalg.matrix_rank
    cond = np.finfo(float).eps * max(S.shape)
    weights, _, rank, _ = linalg.lstsq(S, y, cond=cond)
    if rank < S.shape[1]:
        raise SingularSystemError(
            f"State matrix is rank deficient (rank {rank} < {S.shape[1]} columns). Use ridge regression instead.")
    return weights


def fit_ridge(state_matrix, targets, alpha):
    """Tikhonov regularized readout, (S^T S + alpha I)^-1 S^T y."""
    try:
        alpha = float(alpha)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Ridge parameter must be numeric, got {alpha!r}.") from exc
    if not alpha >= 0:
        raise ConfigError(f"Ridge parameter must be non-negative, got {alpha}.")

    S, y = _as_system(state_matrix, targets)
    gram = S.T @ S + alpha * np.eye(S.shape[1])
    try:
        return linalg.solve(gram, S.T @ y, assume_a="sym")
    except (linalg.LinAlgError, ValueError) as exc:
        raise SingularSystemError(f"Ridge normal equations are singular for alpha={alpha}.") from exc


def fit_readout(state_matrix, targets, ridge_alpha=None):
    if ridge_alpha is None:
        logger.info("training output layer using linear regression")
        return fit_linear(state_matrix, targets)
    logger.info("training output layer using ridge regression (alpha=%g)", ridge_alpha)
    return fit_ridge(state_matrix, targets, ridge_alpha)


def predict(state_matrix, weights):
    S = np.asarray(state_matrix, dtype=float)
    w = np.asarray(weights, dtype=float).ravel()
    if S.ndim != 2 or S.shape[1] != w.shape[0]:
        raise ShapeError(f"State matrix shape {S.shape} does not match {w.shape[0]} readout weights.")

    predictions = S @ w
    if not np.all(np.isfinite(predictions)):
        warnings.warn("Readout produced non-finite predictions.", NumericInstabilityWarning)
    return predictions


def nrmse(predictions, targets):
    """Root mean square error between predictions and targets.

    Kept under its historical name; no normalization by range or variance is applied.
    """
    p = np.asarray(predictions, dtype=float).ravel()
    y = np.asarray(targets, dtype=float).ravel()
    if p.shape != y.shape:
        raise ShapeError(f"Got {p.shape[0]} predictions for {y.shape[0]} targets.")
    if p.shape[0] == 0:
        raise ShapeError("Cannot compute an error over empty sequences.")
    if not (np.all(np.isfinite(p)) and np.all(np.isfinite(y))):
        # sklearn rejects non-finite input, report the propagated value instead
        warnings.warn("Error computed over non-finite values.", NumericInstabilityWarning)
        return float(np.sqrt(np.mean((p - y) ** 2)))
    return float(np.sqrt(mean_squared_error(y, p)))
