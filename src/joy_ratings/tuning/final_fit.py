import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict

import pandas as pd
from sklearn.exceptions import ConvergenceWarning

from joy_ratings.models.evaluation import baseline_rmse, evaluate_predictions
from joy_ratings.tuning.workflows import FittedWorkflow, Workflow

logger = logging.getLogger(__name__)


class FinalFitError(RuntimeError):
    """The chosen workflow could not be refitted on the full training set."""


@dataclass
class FinalFit:
    workflow_id: str
    params: Dict[str, Any]
    fitted: FittedWorkflow
    predictions: pd.DataFrame
    metrics: pd.DataFrame
    baseline_rmse: float

    def metric(self, name: str) -> float:
        return float(self.metrics.set_index("metric").loc[name, "estimate"])


def last_fit(
    workflow: Workflow,
    params: Dict[str, Any],
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_test: pd.DataFrame,
    y_test: pd.Series,
) -> FinalFit:
    """
    Refit ``workflow`` with ``params`` on the whole training set and score it once on the test set.

    Raises:
        FinalFitError: if fitting or predicting fails; no other workflow is tried.
    """
    logger.info(f"Final fit of '{workflow.id}' with {params}")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            fitted = workflow.fit(X_train, y_train, params)
            pred = fitted.predict(X_test)
    except Exception as e:
        raise FinalFitError(f"Final fit of '{workflow.id}' failed: {e}") from e

    predictions = pd.DataFrame({"truth": y_test.to_numpy(), "pred": pred}, index=y_test.index)
    metrics = evaluate_predictions(y_test, pred, label=workflow.id)
    baseline = baseline_rmse(y_train, y_test)
    logger.info(f"Mean-predictor baseline RMSE on test: {baseline:.4f}")

    return FinalFit(workflow.id, dict(params), fitted, predictions, metrics, baseline)
