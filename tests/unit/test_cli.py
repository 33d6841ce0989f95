"""Unit tests for the command line entry points."""
import pytest
import numpy as np
import pandas as pd
from unittest.mock import patch

from joy_ratings.cli import run_experiment


def _write_sources(tmp_path, n=24):
    """Write a small elements/ratings pair and return both paths."""
    seasons, episodes = np.divmod(np.arange(n), 13)
    elements = pd.DataFrame({
        'EPISODE': [f'S{s + 1:02d}E{e + 1:02d}' for s, e in zip(seasons, episodes)],
        'TITLE': [f'"EPISODE {i}"' for i in range(n)],
        'TREES': np.arange(n) % 2,
        'LAKE': (np.arange(n) // 2) % 2,
    })
    ratings = pd.DataFrame({
        'season': seasons + 1,
        'episode': episodes + 1,
        'rating': np.linspace(7.5, 8.5, n),
        'votes': np.arange(n) + 50,
    })
    elements.to_csv(tmp_path / 'elements.csv', index=False)
    ratings.to_csv(tmp_path / 'ratings.csv', index=False)
    return tmp_path / 'elements.csv', tmp_path / 'ratings.csv'


class TestRunExperimentCli:
    """Test suite for the joy-run-experiment entry point."""

    @pytest.mark.parametrize('flag, value', [('--burn_in', '1'), ('--folds', '1')])
    def test_invalid_tuning_argument_exits_with_error(self, tmp_path, flag, value):
        """Test that a bad tuning argument gives exit code 1 instead of a traceback."""
        elements, ratings = _write_sources(tmp_path)
        argv = [
            'joy-run-experiment', '--elements', str(elements), '--ratings', str(ratings),
            '--out', str(tmp_path / 'out'), flag, value,
        ]
        with patch('sys.argv', argv):
            assert run_experiment.main() == 1

    def test_missing_source_exits_with_error(self, tmp_path):
        """Test that a missing input file gives exit code 1."""
        argv = [
            'joy-run-experiment', '--elements', str(tmp_path / 'nope.csv'),
            '--ratings', str(tmp_path / 'nope.csv'), '--out', str(tmp_path / 'out'),
        ]
        with patch('sys.argv', argv):
            assert run_experiment.main() == 1
