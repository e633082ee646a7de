# utils/plotting.py
# this module provides functions for visualizing virtual node states and prediction analysis.

import numpy as np
import matplotlib.pyplot as plt

from delayrc.core.readout import nrmse


def plot_state_matrix(states, filename=None, max_steps=200, drop_bias=True):
    if states is None or len(states) == 0:
        return

    states = np.asarray(states)
    if drop_bias:
        states = states[:, :-1]
    states = states[:max_steps]

    fig, ax = plt.subplots(figsize=(10, 5))
    image = ax.imshow(states.T, aspect='auto', origin='lower', cmap='viridis', interpolation='nearest')
    fig.colorbar(image, ax=ax, label='Node state')
    ax.set_xlabel('Input Time Step')
    ax.set_ylabel('Virtual Node')
    plt.tight_layout()

    if filename:
        fig.savefig(filename)
        plt.close(fig)
    else:
        plt.show()


def plot_prediction(predictions, actuals, filename=None, nrmse_train=None, zoom_limit=500):
    """Prediction against target on top, residuals with the +/- NRMSE band below.

    The figure title carries the test NRMSE, and the training one when given.
    """
    if predictions is None or actuals is None or len(predictions) == 0:
        return None

    predictions = np.ravel(predictions)
    actuals = np.ravel(actuals)
    error = nrmse(predictions, actuals)
    residuals = predictions - actuals
    time_steps = np.arange(len(actuals))

    fig, axes = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    title = f'Test NRMSE = {error:.4g}'
    if nrmse_train is not None:
        title = f'Train NRMSE = {nrmse_train:.4g}, {title}'
    fig.suptitle(title)

    shown = min(zoom_limit, len(actuals))
    axes[0].plot(time_steps[:shown], actuals[:shown], label='Target signal', color='steelblue', alpha=0.8)
    axes[0].plot(time_steps[:shown], predictions[:shown], label='Reservoir output', color='mediumpurple', linestyle='--', alpha=0.9)
    axes[0].set_ylabel('y(t)')
    axes[0].legend()
    axes[0].grid(True, linestyle='--', alpha=0.5)

    axes[1].axhspan(-error, error, color='lightgray', alpha=0.6, label='±NRMSE')
    axes[1].plot(time_steps[:shown], residuals[:shown], label='Residual', color='firebrick', alpha=0.8)
    axes[1].axhline(0.0, color='black', linewidth=0.8)
    axes[1].set_ylabel('y_pred - y')
    axes[1].set_xlabel(f'Test Time Step (first {shown})')
    axes[1].legend()
    axes[1].grid(True, linestyle='--', alpha=0.5)

    fig.tight_layout()

    if filename:
        fig.savefig(filename)
        plt.close(fig)
    else:
        plt.show()
    return fig
