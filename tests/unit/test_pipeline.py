"""End-to-end tests of the ratings experiment on a small synthetic dataset."""
import numpy as np
import pandas as pd
import pytest

from joy_ratings.io.readers import read_csv, read_json, read_joblib
from joy_ratings.pipelines.ratings_experiment_pipeline import (
    run_exploration,
    run_ratings_experiment,
    run_ratings_experiment_on_frame,
)
from joy_ratings.preprocessing.episodes import EpisodeDataError, load_episode_dataset
from joy_ratings.settings import TuningSettings
from joy_ratings.tuning.model_specs import default_models
from joy_ratings.tuning.preprocessors import default_preprocessors
from joy_ratings.tuning.workflows import finalize_mtry, workflow_set


def _write_sources(tmp_path, n=48, seed=0):
    rng = np.random.default_rng(seed)
    seasons, episodes = np.divmod(np.arange(n), 13)
    elements = pd.DataFrame({
        'EPISODE': [f'S{s + 1:02d}E{e + 1:02d}' for s, e in zip(seasons, episodes)],
        'TITLE': [f'"EPISODE {i}"' for i in range(n)],
    })
    for name in ['TREES', 'MOUNTAIN', 'LAKE', 'CLOUDS', 'BARN']:
        elements[name] = rng.integers(0, 2, n)
    elements['AURORA_BOREALIS'] = (np.arange(n) == 0).astype(int)

    ratings = pd.DataFrame({
        'season': seasons + 1,
        'episode': episodes + 1,
        'rating': 8.0 + 0.4 * elements['TREES'] - 0.3 * elements['BARN'] + rng.normal(0, 0.1, n),
        'votes': rng.integers(50, 300, n),
    })
    elements_path, ratings_path = tmp_path / 'elements.csv', tmp_path / 'ratings.csv'
    elements.to_csv(elements_path, index=False)
    ratings.to_csv(ratings_path, index=False)
    return elements_path, ratings_path


def _small_tuning(**overrides):
    return TuningSettings(**{'n_folds': 3, 'grid_size': 2, 'burn_in': 3, 'forest_trees': 10, **overrides})


class TestRunRatingsExperiment:
    """Test suite for the end-to-end ratings experiment."""

    def test_writes_reports(self, tmp_path):
        """Test that the experiment writes ranking, metrics, report, plot and model."""
        elements_path, ratings_path = _write_sources(tmp_path)
        out = tmp_path / 'reports'
        model_path = tmp_path / 'models' / 'final.joblib'

        report = run_ratings_experiment(
            elements_path, ratings_path, out, model_output_path=model_path,
            tuning=_small_tuning(), random_seed=1,
        )

        ranking = read_csv(out / 'ranking.csv')
        assert len(ranking) == len(report.ranking) > 0
        assert ranking['mean'].is_monotonic_increasing
        summary = read_json(out / 'final_report.json')
        assert summary['best_workflow'] == ranking.loc[0, 'wflow_id']
        assert set(summary['test_metrics']) == {'rmse', 'rsq'}
        assert (out / 'ranking.png').exists()
        assert set(read_csv(out / 'tuning_metrics.csv').columns) >= {'wflow_id', 'config', 'fold', 'rmse'}

        fitted = read_joblib(model_path)
        assert fitted.workflow_id == report.final.workflow_id

    def test_same_seed_same_results(self, tmp_path):
        """Test that two runs with the same seed give identical results."""
        df = load_episode_dataset(*_write_sources(tmp_path))
        models = [m for m in default_models(trees=10) if m.name in ('glmnet', 'rf')]
        wset = workflow_set(default_preprocessors(), models).option_add(['basic_rf', 'pca_rf', 'corr_rf'], finalize_mtry)

        a = run_ratings_experiment_on_frame(df, tuning=_small_tuning(), random_seed=5, wset=wset)
        b = run_ratings_experiment_on_frame(df, tuning=_small_tuning(), random_seed=5, wset=wset)

        pd.testing.assert_frame_equal(a.ranking, b.ranking)
        pd.testing.assert_frame_equal(a.final.metrics, b.final.metrics)
        for wid in wset.ids:
            pd.testing.assert_frame_equal(a.results[wid].grid, b.results[wid].grid)

    def test_bad_source_aborts(self, tmp_path):
        """Test that a malformed source aborts the run."""
        elements_path, ratings_path = _write_sources(tmp_path)
        pd.DataFrame({'season': [1], 'episode': [1], 'rating': [8.0]}).to_csv(ratings_path, index=False)

        with pytest.raises(EpisodeDataError):
            run_ratings_experiment(elements_path, ratings_path, tmp_path / 'out', tuning=_small_tuning())


class TestRunExploration:
    """Test suite for run_exploration."""

    def test_saves_plots(self, tmp_path):
        """Test that the exploration writes its three plots."""
        elements_path, ratings_path = _write_sources(tmp_path)
        written = run_exploration(elements_path, ratings_path, tmp_path / 'plots', top_n=3)

        assert [p.name for p in written] == ['rating_distribution.png', 'rating_vs_votes.png', 'element_effects.png']
        assert all(p.exists() for p in written)
