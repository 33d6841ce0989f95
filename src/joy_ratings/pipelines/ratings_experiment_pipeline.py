"""
End-to-end episode ratings experiment.

load -> split -> folds -> workflow set -> racing -> ranking -> final fit
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use("Agg")
import pandas as pd

from joy_ratings.io.writers import atomic_write_csv, save_figure, write_json, write_joblib
from joy_ratings.preprocessing.episodes import load_episode_dataset, split_features_target
from joy_ratings.settings import get_settings, TuningSettings
from joy_ratings.tuning.final_fit import FinalFit, last_fit
from joy_ratings.tuning.racing import RaceControl, WorkflowSetResults, tune_workflow_set
from joy_ratings.tuning.ranking import rank_results
from joy_ratings.tuning.resampling import initial_split, vfold_cv
from joy_ratings.tuning.workflows import WorkflowSet, default_workflow_set
from joy_ratings.utils.reproducibility import set_global_seed
from joy_ratings.utils.visualization import (
    plot_element_effects,
    plot_rating_distribution,
    plot_rating_vs_votes,
    plot_workflow_ranking,
)

logger = logging.getLogger(__name__)


@dataclass
class ExperimentReport:
    ranking: pd.DataFrame
    results: WorkflowSetResults
    final: FinalFit

    def summary(self) -> dict:
        return {
            "best_workflow": self.final.workflow_id,
            "best_params": self.final.params,
            "test_metrics": dict(zip(self.final.metrics["metric"], self.final.metrics["estimate"])),
            "baseline_rmse": self.final.baseline_rmse,
            "failed_workflows": self.results.failed,
            "ranking": self.ranking.to_dict(orient="records"),
        }


def run_ratings_experiment_on_frame(
    df: pd.DataFrame,
    tuning: Optional[TuningSettings] = None,
    random_seed: Optional[int] = None,
    wset: Optional[WorkflowSet] = None,
) -> ExperimentReport:
    """Run the experiment on an already loaded episode dataset."""
    cfg = get_settings()
    tuning = tuning or cfg.tuning
    if random_seed is None:
        random_seed = cfg.random_seed

    set_global_seed(random_seed)
    logger.info(f"Using random seed: {random_seed}")

    split = initial_split(df, prop=tuning.train_prop, seed=random_seed)
    X_train, y_train = split_features_target(split.training)
    X_test, y_test = split_features_target(split.testing)
    folds = vfold_cv(X_train, k=tuning.n_folds, seed=random_seed)

    if wset is None:
        wset = default_workflow_set(trees=tuning.forest_trees, random_state=random_seed)
    logger.info(f"Tuning {len(wset)} workflows: {wset.ids}")

    control = RaceControl(
        burn_in=tuning.burn_in, alpha=tuning.alpha, num_ties=tuning.num_ties, n_jobs=tuning.n_jobs
    )
    results = tune_workflow_set(wset, X_train, y_train, folds, grid_size=tuning.grid_size, seed=random_seed, control=control)

    ranking = rank_results(results)
    if ranking.empty:
        raise RuntimeError("Every workflow failed during tuning; nothing to evaluate")

    best_id = ranking.iloc[0]["wflow_id"]
    final = last_fit(wset[best_id], results[best_id].best_params, X_train, y_train, X_test, y_test)
    return ExperimentReport(ranking, results, final)


def run_ratings_experiment(
    elements_path: Optional[Path] = None,
    ratings_path: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    model_output_path: Optional[Path] = None,
    tuning: Optional[TuningSettings] = None,
    random_seed: Optional[int] = None,
) -> ExperimentReport:
    """
    Load both sources, run the experiment and write its outputs.

    Outputs in ``output_dir``: ranking.csv, tuning_metrics.csv, final_report.json
    and ranking.png. The refitted best workflow is saved with joblib when
    ``model_output_path`` is given.
    """
    cfg = get_settings()
    elements_path = elements_path or cfg.elements_csv
    ratings_path = ratings_path or cfg.ratings_csv
    output_dir = output_dir or cfg.reports_dir

    df = load_episode_dataset(elements_path, ratings_path)
    report = run_ratings_experiment_on_frame(df, tuning=tuning, random_seed=random_seed)

    atomic_write_csv(report.ranking, output_dir / "ranking.csv")
    all_metrics = pd.concat(
        [r.metrics.assign(wflow_id=r.workflow_id) for r in report.results if not r.metrics.empty],
        ignore_index=True,
    )
    atomic_write_csv(all_metrics, output_dir / "tuning_metrics.csv")
    write_json(report.summary(), output_dir / "final_report.json")

    fig, _ = plot_workflow_ranking(report.ranking)
    save_figure(fig, output_dir / "ranking.png")
    logger.info(f"Reports written to {output_dir}")

    if model_output_path:
        write_joblib(report.final.fitted, model_output_path)
        logger.info(f"Final workflow saved to {model_output_path}")

    return report


def run_exploration(
    elements_path: Optional[Path] = None,
    ratings_path: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    top_n: int = 15,
) -> list[Path]:
    """Save the exploratory plots of the joined dataset; returns the written files."""
    cfg = get_settings()
    df = load_episode_dataset(elements_path or cfg.elements_csv, ratings_path or cfg.ratings_csv)
    output_dir = output_dir or cfg.reports_dir

    written = []
    for name, plot in (
        ("rating_distribution", plot_rating_distribution),
        ("rating_vs_votes", plot_rating_vs_votes),
        ("element_effects", lambda d: plot_element_effects(d, top_n=top_n)),
    ):
        fig, _ = plot(df)
        out = save_figure(fig, output_dir / f"{name}.png")
        written.append(out)
        logger.info(f"Saved {out}")
    return written
