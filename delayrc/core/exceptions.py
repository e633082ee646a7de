# core/exceptions.py
# this module defines the errors and warnings raised by the delay-based reservoir core

import numpy as np


class DelayRCError(Exception):
    pass


class ConfigError(DelayRCError, ValueError):
    """Invalid or unparseable reservoir parameter."""


class ShapeError(DelayRCError, ValueError):
    """Mismatched lengths between inputs, masks, state matrices or targets."""


class SingularSystemError(DelayRCError, np.linalg.LinAlgError):
    """The readout regression has no exact solution."""


class NumericInstabilityWarning(RuntimeWarning):
    """Reservoir states or predictions became non-finite."""
