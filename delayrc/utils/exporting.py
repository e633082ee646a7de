# utils/exporting.py
# this module writes the run log and the test predictions to CSV files

import pandas as pd
import numpy as np


def export_results(reservoir, nrmse_train, nrmse_test, filename='delay_rc_output.csv'):
    general = pd.DataFrame([{
        'reservoir': reservoir.name,
        'delay': reservoir.delay,
        'num_nodes': reservoir.num_nodes,
        'theta': reservoir.theta,
        'integ_step': reservoir.integ_step,
        'noise_amp': reservoir.noise_amp,
    }])
    errors = pd.DataFrame([{'Training NRMSE': nrmse_train, 'Testing NRMSE': nrmse_test}])

    with open(filename, 'w', newline='') as log:
        general.to_csv(log, index=False)
        log.write(reservoir.csv_header())
        errors.to_csv(log, index=False)

    return errors


def export_predictions(predictions, actuals, pred_filename='y_pred.csv', test_filename='y_test.csv'):
    if predictions is None or actuals is None or len(predictions) == 0:
        return None

    pd.Series(np.ravel(predictions)).to_csv(pred_filename, header=False, index=False)
    pd.Series(np.ravel(actuals)).to_csv(test_filename, header=False, index=False)

    return pd.DataFrame({
        'Step': np.arange(len(np.ravel(predictions))),
        'Prediction': np.ravel(predictions),
        'Actual': np.ravel(actuals)
    })
