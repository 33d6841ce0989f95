"""
Racing hyperparameter search with repeated-measures ANOVA elimination.

For one workflow the candidate grid is evaluated fold by fold. Candidates of a
fold are independent and run through a joblib pool; the fold is a barrier,
after which (once ``burn_in`` folds are done) an additive model

    rmse ~ config + fold

is fitted by least squares to all successful evaluations of the alive
candidates, the folds acting as blocks. A candidate is eliminated when the
one-sided (1 - alpha) lower confidence bound of its difference from the best
candidate is above zero. Candidates without a single successful evaluation are
eliminated at the same point. When only two candidates have been left for
``num_ties`` folds in a row, the one with the worse mean is dropped.

Elimination is final: an eliminated candidate is never scheduled again, and its
metrics from earlier folds are kept.
"""
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import stats
from sklearn.exceptions import ConvergenceWarning
from tqdm.auto import tqdm

from joy_ratings.models.evaluation import rmse
from joy_ratings.tuning.params import EmptyDomainError, grid_assignments, latin_hypercube_grid
from joy_ratings.tuning.resampling import Fold
from joy_ratings.tuning.workflows import Workflow, WorkflowSet

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ["config", "fold", "rmse", "error"]

# differences below this are treated as ties whatever the test says
MIN_DIFFERENCE = 1e-10


@dataclass(frozen=True)
class RaceControl:
    burn_in: int = 3
    alpha: float = 0.05
    num_ties: int = 10
    n_jobs: int = 1

    def __post_init__(self):
        if self.burn_in < 2:
            raise ValueError("burn_in must be at least 2 so the ANOVA has residual degrees of freedom")
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")


@dataclass
class TuningResult:
    workflow_id: str
    grid: pd.DataFrame
    metrics: pd.DataFrame
    eliminated_at: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failed_result(cls, workflow_id: str, error: str) -> "TuningResult":
        return cls(workflow_id, pd.DataFrame(columns=["config"]), pd.DataFrame(columns=METRIC_COLUMNS), error=error)

    def collect_metrics(self) -> pd.DataFrame:
        """Per-candidate summary over successful folds, best first."""
        ok = self.metrics.dropna(subset=["rmse"])
        summary = (
            ok.groupby("config")["rmse"]
            .agg(mean="mean", n="count", std="std")
            .reset_index()
        )
        summary["std_err"] = summary["std"] / np.sqrt(summary["n"])
        summary = summary.drop(columns="std")
        summary["eliminated_at"] = summary["config"].map(self.eliminated_at)
        summary = summary.merge(self.grid, on="config", how="left")
        return summary.sort_values(["mean", "config"]).reset_index(drop=True)

    @property
    def survivors(self) -> List[str]:
        return [c for c in self.grid["config"] if c not in self.eliminated_at]

    def _best_row(self) -> Optional[pd.Series]:
        summary = self.collect_metrics()
        summary = summary[summary["config"].isin(self.survivors)]
        return None if summary.empty else summary.iloc[0]

    @property
    def failed(self) -> bool:
        return self.error is not None or self._best_row() is None

    @property
    def best_config(self) -> str:
        row = self._best_row()
        if row is None:
            raise ValueError(f"Workflow '{self.workflow_id}' has no usable tuning result: {self.error}")
        return row["config"]

    @property
    def best_mean(self) -> float:
        return float(self.collect_metrics().set_index("config").loc[self.best_config, "mean"])

    @property
    def best_params(self) -> Dict[str, Any]:
        return grid_assignments(self.grid)[self.best_config]

    def best_summary(self) -> pd.Series:
        return self.collect_metrics().set_index("config").loc[self.best_config]


def evaluate_candidate(
    workflow: Workflow,
    config: str,
    assignment: Dict[str, Any],
    fold: Fold,
    X: pd.DataFrame,
    y: pd.Series,
) -> Dict[str, Any]:
    """Fit on the fold's analysis rows, score on its assessment rows; failures are recorded, not raised."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            fitted = workflow.fit(fold.analysis(X), fold.analysis(y), assignment)
            pred = fitted.predict(fold.assessment(X))
        value = rmse(fold.assessment(y), pred)
        if not np.isfinite(value):
            raise ValueError("non-finite predictions")
        error = None
    except Exception as e:
        value, error = np.nan, f"{type(e).__name__}: {e}"
    return {"config": config, "fold": fold.id, "rmse": value, "error": error}


def anova_eliminations(metrics: pd.DataFrame, alive: Sequence[str], alpha: float) -> List[str]:
    """Alive candidates that are significantly worse than the current best."""
    data = metrics[metrics["config"].isin(alive)].dropna(subset=["rmse"])
    without_data = [c for c in alive if c not in set(data["config"])]

    means = data.groupby("config")["rmse"].mean()
    if len(means) < 2:
        return without_data
    best = min(means.index, key=lambda c: (means[c], c))

    others = sorted(c for c in means.index if c != best)
    folds = sorted(data["fold"].unique())
    design = np.column_stack(
        [np.ones(len(data))]
        + [(data["config"] == c).to_numpy(float) for c in others]
        + [(data["fold"] == f).to_numpy(float) for f in folds[1:]]
    )
    coef, _, rank, _ = np.linalg.lstsq(design, data["rmse"].to_numpy(), rcond=None)
    df_resid = len(data) - rank
    if df_resid <= 0:
        return without_data

    resid = data["rmse"].to_numpy() - design @ coef
    sigma2 = float(resid @ resid) / df_resid
    cov = sigma2 * np.linalg.pinv(design.T @ design)
    t_crit = stats.t.ppf(1 - alpha, df_resid)

    losers = []
    for j, config in enumerate(others, start=1):
        lower = coef[j] - t_crit * np.sqrt(max(cov[j, j], 0.0))
        if lower > 0 and coef[j] > MIN_DIFFERENCE:
            losers.append(config)
    return without_data + losers


def tune_race_anova(
    workflow: Workflow,
    X: pd.DataFrame,
    y: pd.Series,
    folds: Sequence[Fold],
    grid_size: int = 25,
    seed: int = 42,
    control: Optional[RaceControl] = None,
) -> TuningResult:
    control = control or RaceControl()
    try:
        domains = workflow.finalized_domains(X)
    except EmptyDomainError as e:
        logger.warning(f"Workflow '{workflow.id}' cannot be tuned: {e}")
        return TuningResult.failed_result(workflow.id, str(e))

    grid = latin_hypercube_grid(domains, grid_size, seed)
    assignments = grid_assignments(grid)
    alive = list(assignments)
    racing = len(alive) > 1
    eliminated_at: Dict[str, str] = {}
    rows: List[Dict[str, Any]] = []
    tie_folds = 0

    logger.info(f"Racing {len(alive)} candidates for '{workflow.id}' over {len(folds)} folds")
    with Parallel(n_jobs=control.n_jobs) as parallel:
        for i, fold in enumerate(folds, start=1):
            fold_rows = parallel(
                delayed(evaluate_candidate)(workflow, config, assignments[config], fold, X, y)
                for config in alive
            )
            for row in fold_rows:
                if row["error"] is not None:
                    logger.warning(f"{workflow.id} {row['config']} {row['fold']} failed: {row['error']}")
            rows.extend(fold_rows)

            if not racing or i < control.burn_in:
                continue

            metrics = pd.DataFrame(rows, columns=METRIC_COLUMNS)
            losers = anova_eliminations(metrics, alive, control.alpha)

            if len(alive) - len(losers) == 2:
                tie_folds += 1
                if tie_folds >= control.num_ties:
                    remaining = [c for c in alive if c not in losers]
                    means = metrics[metrics["config"].isin(remaining)].groupby("config")["rmse"].mean()
                    losers.append(max(remaining, key=lambda c: (means.get(c, np.inf), c)))
                    logger.info(f"{workflow.id}: tie between {remaining} broken after {tie_folds} folds")
            else:
                tie_folds = 0

            for config in losers:
                eliminated_at[config] = fold.id
            alive = [c for c in alive if c not in set(losers)]
            if losers:
                logger.info(f"{workflow.id} {fold.id}: eliminated {len(losers)}, {len(alive)} remaining")

            if len(alive) <= 1:
                logger.info(f"{workflow.id}: race decided after {i} of {len(folds)} folds")
                break

    return TuningResult(workflow.id, grid, pd.DataFrame(rows, columns=METRIC_COLUMNS), eliminated_at)


class WorkflowSetResults:
    """Tuning results keyed by workflow id, in workflow set order."""

    def __init__(self, results: Dict[str, TuningResult]):
        self.results = dict(results)

    def __getitem__(self, workflow_id: str) -> TuningResult:
        return self.results[workflow_id]

    def __iter__(self) -> Iterator[TuningResult]:
        return iter(self.results.values())

    def __len__(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> List[str]:
        return [r.workflow_id for r in self if r.failed]

    def collect_metrics(self) -> pd.DataFrame:
        frames = [
            r.collect_metrics()[["config", "mean", "n", "std_err"]].assign(wflow_id=r.workflow_id)
            for r in self if not r.failed
        ]
        if not frames:
            return pd.DataFrame(columns=["wflow_id", "config", "mean", "n", "std_err"])
        return pd.concat(frames, ignore_index=True)[["wflow_id", "config", "mean", "n", "std_err"]]


def tune_workflow_set(
    wset: WorkflowSet,
    X: pd.DataFrame,
    y: pd.Series,
    folds: Sequence[Fold],
    grid_size: int = 25,
    seed: int = 42,
    control: Optional[RaceControl] = None,
) -> WorkflowSetResults:
    results = {}
    for workflow in tqdm(wset, desc="Workflows", leave=True):
        result = tune_race_anova(workflow, X, y, folds, grid_size=grid_size, seed=seed, control=control)
        if result.failed:
            logger.error(f"Workflow '{workflow.id}' failed: {result.error or 'every evaluation failed'}")
        results[workflow.id] = result
    return WorkflowSetResults(results)
