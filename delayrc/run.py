# run.py
# command line driver: Mackey-Glass one-step-ahead prediction with a delay-based reservoir

import argparse
import logging
import os
import sys

from delayrc.core.exceptions import ConfigError, DelayRCError
from delayrc.core.models import RESERVOIRS, make_reservoir
from delayrc.core.pipelines import DelayPipeline
from delayrc.utils.dataGenerator import load_series, mackeyGlassGenerator, normalize_series, split_phases
from delayrc.utils.exporting import export_predictions, export_results

logger = logging.getLogger("delayrc")

DEFAULTS = {
    'seed': 0,
    'pred_steps': 17,
    'init_length': 1000,
    'train_length': 5000,
    'test_length': 1000,
}

STRING_PARAMETERS = ("step_rounding",)


def parse_parameter_args(args):
    """Parse ``-key=value`` overrides into a dict of floats.

    Keys listed in ``STRING_PARAMETERS`` keep their value as a string.
    """
    params = {}
    for arg in args:
        if not arg.startswith("-") or "=" not in arg:
            raise ConfigError(f"Expected an override of the form -key=value, got {arg!r}.")
        key, _, value = arg.lstrip("-").partition("=")
        if key in STRING_PARAMETERS:
            params[key] = value
            continue
        try:
            params[key] = float(value)
        except ValueError as exc:
            raise ConfigError(f"Value for {key!r} is not a number: {value!r}.") from exc
    return params


def _int_param(params, key):
    if key not in params:
        logger.info("No %s parameter found, using default %s=%d", key, key, DEFAULTS[key])
        return DEFAULTS[key]
    value = params[key]
    if not float(value).is_integer() or value < 0:
        raise ConfigError(f"{key} must be a non-negative integer, got {value}.")
    return int(value)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Delay-based reservoir computer, Mackey-Glass prediction. "
                    "Reservoir and experiment parameters are given as -key=value (e.g. -beta=1.4 -ridge_alpha=1e-6).",
        allow_abbrev=False)
    parser.add_argument('--data', default=None, help="CSV file with one sample per line (default: generated Mackey-Glass)")
    parser.add_argument('--output-dir', default='.', help="directory for the CSV outputs and figures")
    parser.add_argument('--model', default='ikeda', choices=sorted(RESERVOIRS), help="reservoir variant")
    parser.add_argument('--plot', action='store_true', help="save prediction and state figures")
    return parser


def main(argv=None):
    parser = build_parser()
    options, overrides = parser.parse_known_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        params = parse_parameter_args(overrides)
        seed = _int_param(params, 'seed')
        pred_steps = _int_param(params, 'pred_steps')
        lengths = [_int_param(params, key) for key in ('init_length', 'train_length', 'test_length')]
        reservoir = make_reservoir(options.model, params)
    except ConfigError as exc:
        parser.error(str(exc))

    total_length = sum(lengths) + pred_steps
    try:
        if options.data:
            series = load_series(options.data)
        else:
            logger.info("No data file given, generating %d Mackey-Glass samples", total_length)
            series = mackeyGlassGenerator(total_length)
        series = normalize_series(series)

        logger.info("Splitting data into training and testing sets")
        u_init, train, test = split_phases(series, pred_steps, *lengths)

        logger.info("Selected reservoir: %s", reservoir.name)
        reservoir.describe_parameters()

        pipeline = DelayPipeline(reservoir, seed=seed)
        results = pipeline.run(u_init, train, test, ridge_alpha=params.get('ridge_alpha'))
    except (DelayRCError, OSError) as exc:
        parser.error(str(exc))

    os.makedirs(options.output_dir, exist_ok=True)
    export_results(reservoir, results['nrmse_train'], results['nrmse_test'],
                   filename=os.path.join(options.output_dir, 'delay_rc_output.csv'))
    export_predictions(results['y_pred_test'], results['y_test'],
                       pred_filename=os.path.join(options.output_dir, 'y_pred.csv'),
                       test_filename=os.path.join(options.output_dir, 'y_test.csv'))

    if options.plot:
        from delayrc.utils.plotting import plot_prediction, plot_state_matrix
        plot_prediction(results['y_pred_test'], results['y_test'], nrmse_train=results['nrmse_train'],
                        filename=os.path.join(options.output_dir, 'prediction.png'))
        plot_state_matrix(pipeline.states_test, filename=os.path.join(options.output_dir, 'states.png'))

    return 0


if __name__ == "__main__":
    sys.exit(main())
