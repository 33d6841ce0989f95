import logging

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score, mean_absolute_error

logger = logging.getLogger(__name__)


def rmse(y_true, y_pred) -> float:
    """Root mean squared error, zero only for exact predictions."""
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def rsq(y_true, y_pred) -> float:
    """Coefficient of determination."""
    return float(r2_score(y_true, y_pred))


def baseline_rmse(y_train: pd.Series, y_eval: pd.Series | None = None) -> float:
    """
    RMSE of the null model that always predicts the training mean.

    Evaluated on the training target itself this is the population standard
    deviation, sqrt(sum((y - mean)^2) / n).
    """
    y_eval = y_train if y_eval is None else y_eval
    return rmse(y_eval, np.full(len(y_eval), float(np.mean(y_train))))


def evaluate_predictions(y_true: pd.Series, y_pred: np.ndarray, label: str = "model") -> pd.DataFrame:
    """
    Score predictions with the reported regression metrics.

    Returns:
    pd.DataFrame: one row per metric with columns ``metric`` and ``estimate``.
    """
    metrics = {
        "rmse": rmse(y_true, y_pred),
        "rsq": rsq(y_true, y_pred),
    }

    logger.info(f"RMSE {label}: {metrics['rmse']:.4f}")
    logger.info(f"R2 {label}: {metrics['rsq']:.4f}")
    logger.debug(f"MAE {label}: {mean_absolute_error(y_true, y_pred):.4f}")

    return pd.DataFrame({"metric": list(metrics), "estimate": list(metrics.values())})
