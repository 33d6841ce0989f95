import logging

import pandas as pd

from joy_ratings.tuning.racing import WorkflowSetResults

logger = logging.getLogger(__name__)

RANK_COLUMNS = ["rank", "wflow_id", "preprocessor", "model", "config", "mean", "std_err", "n"]


def rank_results(results: WorkflowSetResults) -> pd.DataFrame:
    """
    Order workflows by the mean cross-validated RMSE of their best candidate.

    Ties on the mean are broken by workflow id. Failed workflows are left out.
    """
    rows = []
    for result in results:
        if result.failed:
            logger.warning(f"Workflow '{result.workflow_id}' excluded from ranking: {result.error or 'no usable metric'}")
            continue
        best = result.best_summary()
        preprocessor, _, model = result.workflow_id.partition("_")
        rows.append({
            "wflow_id": result.workflow_id,
            "preprocessor": preprocessor,
            "model": model,
            "config": result.best_config,
            "mean": float(best["mean"]),
            "std_err": float(best["std_err"]),
            "n": int(best["n"]),
        })

    if not rows:
        return pd.DataFrame(columns=RANK_COLUMNS)

    ranking = pd.DataFrame(rows).sort_values(["mean", "wflow_id"], kind="mergesort").reset_index(drop=True)
    ranking.insert(0, "rank", range(1, len(ranking) + 1))

    for _, row in ranking.head(5).iterrows():
        logger.info(f"  #{row['rank']} {row['wflow_id']}: rmse={row['mean']:.4f} (se {row['std_err']:.4f}, n={row['n']})")
    return ranking
