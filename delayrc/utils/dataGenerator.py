# utils/dataGenerator.py
# this module provides the Mackey-Glass benchmark series and splits it into reservoir phases

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from delayrc.core.exceptions import ShapeError


def mackeyGlassGenerator(length, tau=17, delta_t=0.1, sample_every=10, beta=0.2, gamma=0.1, n=10, x0=1.2):
    """
    Generate Mackey-Glass time series using Euler method for numerical integration.
    The history before t=0 is held at x0, one sample is kept every `sample_every` steps.
    """
    tau_steps = int(round(tau / delta_t))
    total_steps = length * sample_every
    x = np.empty(total_steps)
    x[0] = x0
    for t in range(1, total_steps):
        x_tau = x[t - 1 - tau_steps] if t - 1 - tau_steps >= 0 else x0
        dx_dt = beta * x_tau / (1 + x_tau**n) - gamma * x[t - 1]
        x[t] = x[t - 1] + dx_dt * delta_t
    return x[::sample_every]


def load_series(filename):
    # one value per line, no header
    frame = pd.read_csv(filename, header=None)
    return frame.iloc[:, 0].to_numpy(dtype=float)


def normalize_series(series):
    series = np.asarray(series, dtype=float).reshape(-1, 1)
    return StandardScaler().fit_transform(series).ravel()


def split_phases(series, pred_steps, init_length, train_length, test_length):
    """Cut a series into init input, (train input, target) and (test input, target).

    Targets lead the inputs by `pred_steps` samples.
    """
    series = np.asarray(series, dtype=float).ravel()
    needed = init_length + train_length + test_length + pred_steps
    if len(series) < needed:
        raise ShapeError(f"Series has {len(series)} samples, {needed} are needed for the requested phases.")

    u_t = series[:init_length + train_length + test_length]
    y_t = series[pred_steps:pred_steps + len(u_t)]

    train_end = init_length + train_length
    u_init = u_t[:init_length]
    train = (u_t[init_length:train_end], y_t[init_length:train_end])
    test = (u_t[train_end:], y_t[train_end:])

    return u_init, train, test
