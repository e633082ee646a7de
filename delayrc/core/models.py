# core/models.py
# this module implements delay-based reservoirs: one nonlinear node with delayed feedback,
# time-multiplexed into virtual nodes. Reservoir computing based on delay-dynamical systems by Lennert Appeltant.

import logging
import math
from collections import namedtuple

import numpy as np
from scipy.optimize import brentq

from delayrc.core.exceptions import ConfigError
from delayrc.core.integration import make_rng

logger = logging.getLogger(__name__)

LONG_LINE = "_" * 22
STEP_ROUNDING = ("round", "truncate")

ReservoirState = namedtuple("ReservoirState", ["z_t", "buffer", "head"])


def steps_from_ratio(duration, integ_step, rounding="round"):
    """Number of integration steps that make up `duration`."""
    ratio = duration / integ_step
    if rounding == "round":
        return int(round(ratio))
    if rounding == "truncate":
        return int(ratio)
    raise ConfigError(f"Unknown step rounding policy {rounding!r}, expected one of {STEP_ROUNDING}.")


# - delay line as a ring buffer, oldest entry under the head -
class DelayLine:
    def __init__(self, values, dtype=float, head=0):
        self._buffer = np.array(values, dtype=dtype)
        if self._buffer.ndim != 1 or len(self._buffer) == 0:
            raise ConfigError(f"Delay line needs a non-empty 1-D history, got shape {self._buffer.shape}.")
        self._head = int(head) % len(self._buffer)

    def __len__(self):
        return len(self._buffer)

    def front(self):
        return self._buffer[self._head]

    def push(self, value):
        # newest overwrites oldest, head then points at the next oldest
        self._buffer[self._head] = value
        self._head += 1
        if self._head == len(self._buffer):
            self._head = 0

    def to_array(self):
        return np.roll(self._buffer, -self._head)

    def snapshot(self):
        return self._buffer.copy(), self._head


# - base delay reservoir, variants override dynamics/readout/init_delay -
class DDEReservoir:
    """Single-node delay reservoir integrated with a fixed step.

    The base model uses linear decay dynamics and the noisy delay-line
    initialization. `dtype` may be ``complex`` for complex-valued node states,
    in which case the integrator draws complex noise.
    """

    name = "dde_reservoir"
    dtype = float
    init_value = 0.0

    general_parameters = ("delay", "num_nodes", "theta", "integ_step", "noise_amp")
    model_parameters = ()

    def __init__(self, config=None, step_rounding="round"):
        self.delay = 80.0
        self.num_nodes = 50
        self.theta = 1.4 # time per virtual node
        self.integ_step = 0.01
        self.noise_amp = 1e-3
        self.step_rounding = step_rounding

        self.z_t = self.dtype(self.init_value)
        self.z_tau = None

        self._validate(self.parameters(), step_rounding)
        if config:
            self.set_parameters(config)

    @property
    def is_complex(self):
        return self.dtype is complex

    @property
    def steps_per_delay(self):
        return steps_from_ratio(self.delay, self.integ_step, self.step_rounding)

    @property
    def steps_per_node(self):
        return steps_from_ratio(self.theta, self.integ_step, self.step_rounding)

    def parameters(self):
        names = self.general_parameters + self.model_parameters
        return {name: getattr(self, name) for name in names}

    def set_parameters(self, config, rng=None):
        """Apply the known keys of `config`, ignoring the rest.

        If the delay line exists and its length changes, it is rebuilt with
        `init_delay(rng)`, so the feedback always spans the configured delay.
        """
        known = self.general_parameters + self.model_parameters
        updates = {}
        step_rounding = self.step_rounding

        for key, value in config.items():
            if key == "step_rounding":
                step_rounding = value
                continue
            if key not in known:
                logger.debug("Ignoring unknown parameter %r for reservoir %s", key, self.name)
                continue
            updates[key] = self._coerce(key, value)

        candidate = self.parameters()
        candidate.update(updates)
        self._validate(candidate, step_rounding)

        previous_length = self.steps_per_delay
        for key, value in updates.items():
            setattr(self, key, value)
        self.step_rounding = step_rounding

        if self.z_tau is not None and self.steps_per_delay != previous_length:
            logger.info("Delay line length changed from %d to %d steps, reinitializing",
                        previous_length, self.steps_per_delay)
            self.init_delay(rng)

    def _coerce(self, key, value):
        if isinstance(value, (str, bytes)):
            raise ConfigError(f"Parameter {key!r} must be numeric, got {value!r}.")
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Parameter {key!r} must be numeric, got {value!r}.") from exc
        if not math.isfinite(number):
            raise ConfigError(f"Parameter {key!r} must be finite, got {value!r}.")
        if key == "num_nodes":
            if not number.is_integer():
                raise ConfigError(f"num_nodes must be an integer, got {value!r}.")
            return int(number)
        return number

    def _validate(self, params, step_rounding):
        if step_rounding not in STEP_ROUNDING:
            raise ConfigError(f"Unknown step rounding policy {step_rounding!r}, expected one of {STEP_ROUNDING}.")
        for key in ("delay", "theta", "integ_step"):
            if params[key] <= 0:
                raise ConfigError(f"{key} must be positive, got {params[key]}.")
        if params["num_nodes"] < 1:
            raise ConfigError(f"num_nodes must be at least 1, got {params['num_nodes']}.")
        if params["noise_amp"] < 0:
            raise ConfigError(f"noise_amp must be non-negative, got {params['noise_amp']}.")

        if steps_from_ratio(params["delay"], params["integ_step"], step_rounding) < 1:
            raise ConfigError("delay is shorter than one integration step.")
        if steps_from_ratio(params["theta"], params["integ_step"], step_rounding) < 1:
            raise ConfigError("theta is shorter than one integration step.")

    def init_delay(self, rng=None):
        # transient stochastic history around the seed value
        rng = make_rng(rng)
        steps_per_delay = self.steps_per_delay
        noise = rng.standard_normal(steps_per_delay)
        if self.is_complex:
            noise = noise + 1j * rng.standard_normal(steps_per_delay)

        self.z_t = self.dtype(self.init_value)
        self.z_tau = DelayLine(self.init_value + self.noise_amp * noise, dtype=self.dtype)

    def checkpoint(self):
        if self.z_tau is None:
            raise RuntimeError("Delay line must be initialized before taking a checkpoint.")
        buffer, head = self.z_tau.snapshot()
        return ReservoirState(self.z_t, buffer, head)

    def restore(self, state):
        self.z_t = state.z_t
        self.z_tau = DelayLine(state.buffer, dtype=self.dtype, head=state.head)

    def dynamics(self, z_t, z_delayed, u_t):
        return -z_t

    def readout(self):
        return float(np.real(self.z_t))

    def parameter_report(self):
        blocks = []
        if self.model_parameters:
            blocks.append(self._format_block(
                f"{self.name.capitalize()} RC parameters:",
                [(name, getattr(self, name)) for name in self.model_parameters]))

        general = [
            ("delay", self.delay),
            ("num_nodes", self.num_nodes),
            ("theta", self.theta),
            ("input time", self.theta * self.num_nodes),
            ("integ_step", self.integ_step),
            ("noise_amp", self.noise_amp),
        ]
        blocks.append(self._format_block("General RC parameters:", general))
        return "\n".join(blocks)

    @staticmethod
    def _format_block(title, items):
        lines = [LONG_LINE, title]
        lines.extend(f"{name} = {value}" for name, value in items)
        lines.append(LONG_LINE)
        return "\n".join(lines)

    def describe_parameters(self):
        report = self.parameter_report()
        print(report)
        return report

    def csv_header(self):
        if not self.model_parameters:
            return "\n"
        names = ",".join(self.model_parameters)
        values = ",".join(str(getattr(self, name)) for name in self.model_parameters)
        return f"{names}\n{values}\n"


# - Ikeda, sin^2 nonlinearity as in electro-optic delay oscillators -
class Ikeda(DDEReservoir):
    name = "ikeda"
    init_value = 0.1

    model_parameters = ("beta", "gamma", "epsilon", "phi")

    def __init__(self, config=None, step_rounding="round"):
        self.beta = 1.6 # feedback gain
        self.gamma = 0.9 # input gain
        self.epsilon = 1.0 # loss coefficient
        self.phi = 0.2 # phase offset
        super().__init__(config=config, step_rounding=step_rounding)

    def init_delay(self, rng=None):
        # deterministic constant history, rng accepted for a uniform interface
        self.z_t = self.init_value
        self.z_tau = DelayLine(np.full(self.steps_per_delay, self.init_value))

    def dynamics(self, z_t, z_delayed, u_t):
        sin_term = math.sin(z_delayed + self.gamma * u_t + self.phi)
        return -self.epsilon * z_t + self.beta * sin_term * sin_term

    def readout(self):
        return float(self.z_t)

    def fixed_point(self, u_t=0.0):
        """Steady state under constant input, where the delayed state equals the current one.

        Solves ``epsilon * z = beta * sin(z + gamma * u_t + phi)**2``. The right-hand
        side lies between 0 and ``beta / epsilon``, which brackets a root.
        """
        if self.epsilon <= 0:
            raise ConfigError("Fixed point requires a positive loss coefficient epsilon.")
        gain = self.beta / self.epsilon

        def residual(z):
            return gain * math.sin(z + self.gamma * u_t + self.phi) ** 2 - z

        low, high = min(0.0, gain), max(0.0, gain)
        for bound in (low, high):
            if residual(bound) == 0.0:
                return bound
        return brentq(residual, low, high)


RESERVOIRS = {
    DDEReservoir.name: DDEReservoir,
    Ikeda.name: Ikeda,
}


def make_reservoir(name, config=None, **kwargs):
    try:
        reservoir_cls = RESERVOIRS[name]
    except KeyError:
        raise ConfigError(f"Unknown reservoir {name!r}, available: {sorted(RESERVOIRS)}.") from None
    return reservoir_cls(config=config, **kwargs)
