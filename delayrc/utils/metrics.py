# utils/metrics.py
# this module provides metrics for evaluating the readout predictions

import numpy as np
from sklearn.metrics import mean_squared_error, mean_absolute_error

from delayrc.core.readout import nrmse


def calculate_metrics(actuals, predictions, original_test_target=None):
    """Metric dictionary for one prediction run.

    ``nrmse`` is the unnormalized RMSE used throughout the core, ``nrmse_range``
    divides it by the peak-to-peak range of the target.
    """
    if actuals is None or predictions is None or len(actuals) == 0:
        return {'mse': np.nan, 'rmse': np.nan, 'mae': np.nan, 'nrmse': np.nan, 'nrmse_range': np.nan}

    actuals = np.asarray(actuals, dtype=float).ravel()
    predictions = np.asarray(predictions, dtype=float).ravel()

    rmse = nrmse(predictions, actuals)
    if not np.isfinite(rmse):
        return {'mse': np.nan, 'rmse': rmse, 'mae': np.nan, 'nrmse': rmse, 'nrmse_range': np.nan}

    mse = mean_squared_error(actuals, predictions)
    mae = mean_absolute_error(actuals, predictions)
    target_data_for_range = original_test_target if original_test_target is not None else actuals

    target_range = float(np.ptp(np.asarray(target_data_for_range, dtype=float)))
    if target_range == 0 or not np.isfinite(target_range):
        target_range = float(np.ptp(actuals))

    metrics = {
        'mse': float(mse),
        'rmse': rmse,
        'mae': float(mae),
        'nrmse': rmse,
        'nrmse_range': rmse / target_range if target_range > 1e-9 else np.inf
    }

    return metrics
