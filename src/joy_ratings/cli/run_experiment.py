"""
CLI for the episode ratings model comparison.
"""

import argparse
import logging
from pathlib import Path

from joy_ratings import logging_setup
from joy_ratings.pipelines.ratings_experiment_pipeline import run_ratings_experiment
from joy_ratings.settings import get_settings
from joy_ratings.preprocessing.episodes import EpisodeDataError

logger = logging.getLogger(__name__)

def main():
    cfg = get_settings()

    p = argparse.ArgumentParser(description="Compare preprocessing/model workflows for episode ratings")
    p.add_argument("--elements", type=Path, default=cfg.elements_csv, help="Path to the painting elements CSV")
    p.add_argument("--ratings", type=Path, default=cfg.ratings_csv, help="Path to the episode ratings CSV")
    p.add_argument("--out", type=Path, default=cfg.reports_dir, help="Directory for ranking and report files")
    p.add_argument("--model_output", type=Path, help="Path to save the refitted best workflow (optional)")
    p.add_argument("--log_level", default=cfg.log_level, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--random_state", type=int, default=cfg.random_seed, help="Random state for reproducibility")

    # Tuning overrides
    p.add_argument("--folds", type=int, default=cfg.tuning.n_folds, help="Number of cross-validation folds")
    p.add_argument("--grid_size", type=int, default=cfg.tuning.grid_size, help="Candidates per workflow")
    p.add_argument("--burn_in", type=int, default=cfg.tuning.burn_in, help="Folds evaluated before eliminating")
    p.add_argument("--alpha", type=float, default=cfg.tuning.alpha, help="Significance level for elimination")
    p.add_argument("--trees", type=int, default=cfg.tuning.forest_trees, help="Trees in the random forest")
    p.add_argument("--n_jobs", type=int, default=cfg.tuning.n_jobs, help="Parallel workers per fold")

    a = p.parse_args()

    logging_setup.setup_logging(a.log_level)

    tuning = cfg.tuning.model_copy(update={
        "n_folds": a.folds,
        "grid_size": a.grid_size,
        "burn_in": a.burn_in,
        "alpha": a.alpha,
        "forest_trees": a.trees,
        "n_jobs": a.n_jobs,
    })

    try:
        report = run_ratings_experiment(
            elements_path=a.elements,
            ratings_path=a.ratings,
            output_dir=a.out,
            model_output_path=a.model_output,
            tuning=tuning,
            random_seed=a.random_state,
        )
    except (EpisodeDataError, FileNotFoundError) as e:
        logger.error(f"Could not load the episode data: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid experiment settings: {e}")
        return 1
    except RuntimeError as e:
        # FinalFitError, or every workflow failed during tuning
        logger.error(f"Error: {e}", exc_info=True)
        return 1

    logger.info(f"Best workflow: {report.final.workflow_id}")
    logger.info(f"Test RMSE: {report.final.metric('rmse'):.4f}")
    logger.info(f"Test R²: {report.final.metric('rsq'):.4f}")
    return 0

if __name__ == "__main__":
    exit(main())
