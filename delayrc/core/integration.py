# core/integration.py
# this module drives a delay reservoir: Euler-Maruyama steps, input masking and virtual node sampling

import math
import warnings

import numpy as np

from delayrc.core.exceptions import ConfigError, NumericInstabilityWarning, ShapeError

MASK_POLICIES = ("uniform", "binary")


def make_rng(seed=None):
    """Noise source handle. Accepts a seed, an existing Generator or None."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def generate_mask(num_nodes, rng=None, policy="uniform", scale=0.1):
    rng = make_rng(rng)
    if policy == "uniform":
        return rng.random(num_nodes) - 0.5
    if policy == "binary":
        return rng.choice([-scale, scale], num_nodes)
    raise ConfigError(f"Unknown mask policy {policy!r}, expected one of {MASK_POLICIES}.")


def draw_noise(model, rng, steps):
    """Standard normal noise for `steps` integration steps, in per-step draw order.

    Complex models consume three draws per step and keep the last two as the
    real and imaginary parts.
    """
    if model.is_complex:
        draws = rng.standard_normal((steps, 3))
        return (draws[:, 1] + 1j * draws[:, 2]).tolist()
    return rng.standard_normal(steps).tolist()


def euler_maruyama(model, u_t, rng=None, noise=None):
    """Advance `model` by one integration step and push the new state into its delay line.

    `noise` is a pre-drawn standard normal sample; when omitted one is drawn from `rng`.
    """
    if noise is None:
        noise = draw_noise(model, make_rng(rng), 1)[0]

    z_t = model.z_t
    dzdt = model.dynamics(z_t, model.z_tau.front(), u_t)
    z_next = z_t + model.integ_step * dzdt + model.noise_amp * noise * math.sqrt(model.integ_step)

    model.z_t = z_next
    model.z_tau.push(z_next)
    return z_next


def integrate(model, input_sequence, mask, rng=None):
    """Drive `model` with the masked input and sample each virtual node.

    Returns a ``(len(input_sequence), num_nodes + 1)`` state matrix whose last
    column is the bias. The model keeps its state between calls, so successive
    calls continue the same trajectory.
    """
    inputs = np.asarray(input_sequence, dtype=float)
    mask = np.asarray(mask, dtype=float)

    if inputs.ndim != 1:
        raise ShapeError(f"Input sequence must be one-dimensional, got shape {inputs.shape}.")
    if mask.ndim != 1 or mask.shape[0] != model.num_nodes:
        raise ShapeError(f"Mask shape mismatch: expected ({model.num_nodes},), got {mask.shape}.")
    if model.z_tau is None:
        raise RuntimeError("Delay line must be initialized (init_delay) before integration.")

    rng = make_rng(rng)
    steps_per_node = model.steps_per_node
    mask_values = mask.tolist()

    states = np.ones((inputs.shape[0], model.num_nodes + 1))
    for k, u_k in enumerate(inputs.tolist()):
        for n, m_n in enumerate(mask_values):
            u_t = m_n * u_k
            for noise in draw_noise(model, rng, steps_per_node):
                euler_maruyama(model, u_t, noise=noise)
            states[k, n] = model.readout()

    if not np.all(np.isfinite(states)):
        warnings.warn(f"Reservoir {model.name} produced non-finite virtual node states.",
                      NumericInstabilityWarning)
    return states
