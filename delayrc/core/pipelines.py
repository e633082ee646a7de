# core/pipelines.py
# this module sequences the init, training and testing phases of a delay-based reservoir run

import logging

from delayrc.core.integration import generate_mask, integrate, make_rng
from delayrc.core.readout import fit_readout, nrmse, predict
from delayrc.utils.metrics import calculate_metrics

logger = logging.getLogger(__name__)


# - delay pipeline, phases must run init -> train -> test on one continuous trajectory -
class DelayPipeline:
    """Owns the reservoir, its mask and the noise source for one run.

    The mask is drawn from the seeded generator first, then every integration
    step consumes from the same generator, so a run is reproducible from `seed`.
    Each phase continues the reservoir trajectory left by the previous one and a
    checkpoint of the reservoir state is kept after every phase.
    """

    def __init__(self, reservoir, seed=0, mask_policy="uniform", mask_scale=0.1):
        self.reservoir = reservoir
        self.seed = seed
        self.rng = make_rng(seed)
        self.mask = generate_mask(reservoir.num_nodes, self.rng, policy=mask_policy, scale=mask_scale)

        if self.reservoir.z_tau is None:
            self.reservoir.init_delay(self.rng)

        self.weights = None
        self.ridge_alpha = None
        self.states_train = None
        self.states_test = None
        self.nrmse_train = None
        self.nrmse_test = None
        self.checkpoints = {}
        self._phase = "created"

    @property
    def phase(self):
        return self._phase

    def _require(self, allowed, action):
        if self._phase not in allowed:
            raise RuntimeError(f"Cannot {action} while pipeline is '{self._phase}', expected one of {allowed}.")

    def _integrate(self, inputs):
        return integrate(self.reservoir, inputs, self.mask, self.rng)

    def initialize(self, u_init):
        self._require(("created",), "run the initial phase")
        logger.info("running initial phase (%d steps)", len(u_init))
        self._integrate(u_init)
        self.checkpoints["initialized"] = self.reservoir.checkpoint()
        self._phase = "initialized"
        return self

    def train(self, u_train, y_train, ridge_alpha=None):
        self._require(("initialized",), "train")
        logger.info("running training phase (%d steps)", len(u_train))
        self.states_train = self._integrate(u_train)
        self.checkpoints["trained"] = self.reservoir.checkpoint()

        self.weights = fit_readout(self.states_train, y_train, ridge_alpha)
        self.ridge_alpha = ridge_alpha
        self._phase = "trained"

        y_pred_train = predict(self.states_train, self.weights)
        self.nrmse_train = nrmse(y_pred_train, y_train)
        logger.info("Training NRMSE = %g", self.nrmse_train)
        return y_pred_train

    def test(self, u_test, y_test=None):
        self._require(("trained", "tested"), "test")
        logger.info("running testing phase (%d steps)", len(u_test))
        self.states_test = self._integrate(u_test)
        self.checkpoints["tested"] = self.reservoir.checkpoint()
        self._phase = "tested"

        y_pred = predict(self.states_test, self.weights)
        if y_test is not None:
            self.nrmse_test = nrmse(y_pred, y_test)
            logger.info("Testing NRMSE = %g", self.nrmse_test)
        return y_pred

    def run(self, u_init, train, test, ridge_alpha=None):
        u_train, y_train = train
        u_test, y_test = test

        self.initialize(u_init)
        y_pred_train = self.train(u_train, y_train, ridge_alpha=ridge_alpha)
        y_pred_test = self.test(u_test, y_test)

        return {
            'nrmse_train': self.nrmse_train,
            'nrmse_test': self.nrmse_test,
            'y_pred_train': y_pred_train,
            'y_pred_test': y_pred_test,
            'y_test': y_test,
            'weights': self.weights,
            'metrics_test': calculate_metrics(y_test, y_pred_test),
        }
