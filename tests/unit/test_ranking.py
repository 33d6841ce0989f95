"""Unit tests for ranking workflows by cross-validated RMSE."""
import numpy as np
import pandas as pd

from joy_ratings.tuning.racing import TuningResult, WorkflowSetResults
from joy_ratings.tuning.ranking import rank_results


def _result(workflow_id, rmses_by_config, eliminated_at=None):
    configs = list(rmses_by_config)
    grid = pd.DataFrame({'config': configs, 'p': range(len(configs))})
    rows = [
        {'config': c, 'fold': f'Fold{i:02d}', 'rmse': v, 'error': None if np.isfinite(v) else 'boom'}
        for c, values in rmses_by_config.items()
        for i, v in enumerate(values, start=1)
    ]
    return TuningResult(workflow_id, grid, pd.DataFrame(rows), eliminated_at or {})


class TestRankResults:
    """Test suite for rank_results."""

    def test_ascending_by_best_mean(self):
        """Test that workflows are ranked by ascending best mean."""
        results = WorkflowSetResults({
            'basic_rf': _result('basic_rf', {'Config01': [0.5, 0.7], 'Config02': [0.4, 0.4]}),
            'pca_svm': _result('pca_svm', {'Config01': [0.2, 0.4]}),
            'corr_mlp': _result('corr_mlp', {'Config01': [0.9, 1.1]}),
        })
        ranking = rank_results(results)

        assert ranking['wflow_id'].tolist() == ['pca_svm', 'basic_rf', 'corr_mlp']
        assert ranking['rank'].tolist() == [1, 2, 3]
        assert ranking.loc[1, 'config'] == 'Config02'
        assert ranking.loc[1, 'mean'] == 0.4
        assert ranking.loc[0, 'preprocessor'] == 'pca'
        assert ranking.loc[0, 'model'] == 'svm'

    def test_ties_broken_by_workflow_id(self):
        """Test that equal means are ordered by workflow id."""
        results = WorkflowSetResults({
            'pca_rf': _result('pca_rf', {'Config01': [0.5, 0.5]}),
            'basic_rf': _result('basic_rf', {'Config01': [0.5, 0.5]}),
            'corr_rf': _result('corr_rf', {'Config01': [0.5, 0.5]}),
        })
        assert rank_results(results)['wflow_id'].tolist() == ['basic_rf', 'corr_rf', 'pca_rf']

    def test_best_is_taken_among_survivors(self):
        """Test that eliminated candidates never count as the best."""
        result = _result('basic_knn', {'Config01': [0.1], 'Config02': [0.6, 0.6, 0.6]},
                         eliminated_at={'Config01': 'Fold01'})
        ranking = rank_results(WorkflowSetResults({'basic_knn': result}))
        assert ranking.loc[0, 'config'] == 'Config02'

    def test_failed_workflows_excluded(self):
        """Test that failed workflows are left out of the ranking."""
        results = WorkflowSetResults({
            'basic_rf': TuningResult.failed_result('basic_rf', 'mtry domain empty'),
            'basic_svm': _result('basic_svm', {'Config01': [np.nan, np.nan]}),
            'pca_svm': _result('pca_svm', {'Config01': [0.3, np.nan]}),
        })
        ranking = rank_results(results)

        assert ranking['wflow_id'].tolist() == ['pca_svm']
        assert ranking.loc[0, 'n'] == 1
        assert sorted(results.failed) == ['basic_rf', 'basic_svm']

    def test_all_failed_gives_empty_table(self):
        """Test that an all-failed result gives an empty ranking."""
        results = WorkflowSetResults({'basic_rf': TuningResult.failed_result('basic_rf', 'x')})
        assert rank_results(results).empty
