"""
CLI for the exploratory plots of the episode ratings dataset.
"""

import argparse
import logging
from pathlib import Path

from joy_ratings import logging_setup
from joy_ratings.pipelines.ratings_experiment_pipeline import run_exploration
from joy_ratings.settings import get_settings
from joy_ratings.preprocessing.episodes import EpisodeDataError

logger = logging.getLogger(__name__)

def main():
    cfg = get_settings()

    p = argparse.ArgumentParser(description="Plot rating distribution and element effects")
    p.add_argument("--elements", type=Path, default=cfg.elements_csv, help="Path to the painting elements CSV")
    p.add_argument("--ratings", type=Path, default=cfg.ratings_csv, help="Path to the episode ratings CSV")
    p.add_argument("--out", type=Path, default=cfg.reports_dir, help="Directory for the PNG files")
    p.add_argument("--top_n", type=int, default=15, help="Number of elements in the effects plot")
    p.add_argument("--log_level", default=cfg.log_level, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    a = p.parse_args()

    logging_setup.setup_logging(a.log_level)

    try:
        written = run_exploration(a.elements, a.ratings, a.out, top_n=a.top_n)
    except (EpisodeDataError, FileNotFoundError) as e:
        logger.error(f"Could not load the episode data: {e}")
        return 1
    logger.info(f"Wrote {len(written)} plots to {a.out}")
    return 0

if __name__ == "__main__":
    exit(main())
