"""Unit tests for the train/test split and K-fold resampling."""
import numpy as np
import pandas as pd
import pytest

from joy_ratings.tuning.resampling import initial_split, vfold_cv


def _frame(n):
    return pd.DataFrame({'x': np.arange(n), 'y': np.arange(n) * 2.0})


class TestInitialSplit:
    """Test suite for initial_split."""

    def test_partition(self):
        """Test that training and test are disjoint and cover the dataset."""
        df = _frame(20)
        split = initial_split(df, prop=0.75, seed=1)

        train, test = set(split.training['x']), set(split.testing['x'])
        assert len(train) == 15
        assert train.isdisjoint(test)
        assert train | test == set(df['x'])

    def test_deterministic(self):
        """Test that the same seed gives the same split."""
        df = _frame(30)
        a = initial_split(df, seed=7)
        b = initial_split(df, seed=7)
        assert np.array_equal(a.train_idx, b.train_idx)

    @pytest.mark.parametrize('prop', [0, 1, 1.5])
    def test_invalid_prop(self, prop):
        """Test that a train fraction outside (0, 1) is rejected."""
        with pytest.raises(ValueError):
            initial_split(_frame(10), prop=prop)


class TestVfoldCv:
    """Test suite for vfold_cv."""

    def test_ten_records_five_folds(self):
        """Test that 10 records in 5 folds give 2 assessment rows each."""
        training = _frame(10)
        folds = vfold_cv(training, k=5, seed=3)

        assessed = [fold.assessment(training)['x'].tolist() for fold in folds]
        assert all(len(a) == 2 for a in assessed)
        flat = [x for a in assessed for x in a]
        assert len(flat) == len(set(flat)) == 10

    @pytest.mark.parametrize('n,k', [(10, 2), (23, 4), (50, 10), (7, 7)])
    def test_coverage(self, n, k):
        """Test that every row is assessed exactly once across folds."""
        training = _frame(n)
        folds = vfold_cv(training, k=k, seed=0)

        counts = np.zeros(n, dtype=int)
        analysis_counts = np.zeros(n, dtype=int)
        for fold in folds:
            counts[fold.assessment_idx] += 1
            analysis_counts[fold.analysis_idx] += 1
            assert set(fold.analysis_idx).isdisjoint(fold.assessment_idx)

        assert (counts == 1).all()
        assert (analysis_counts == k - 1).all()

    def test_fold_ids(self):
        """Test that folds are labelled Fold01 onwards."""
        folds = vfold_cv(_frame(20), k=10)
        assert [f.id for f in folds][:2] == ['Fold01', 'Fold02']
        assert folds[-1].id == 'Fold10'

    def test_deterministic(self):
        """Test that the same seed gives the same folds."""
        a = vfold_cv(_frame(30), k=5, seed=11)
        b = vfold_cv(_frame(30), k=5, seed=11)
        assert all(np.array_equal(fa.assessment_idx, fb.assessment_idx) for fa, fb in zip(a, b))

    def test_k_below_two(self):
        """Test that fewer than two folds are rejected."""
        with pytest.raises(ValueError, match='at least 2'):
            vfold_cv(_frame(10), k=1)

    def test_fewer_rows_than_folds(self):
        """Test that fewer rows than folds are rejected."""
        with pytest.raises(ValueError, match='Cannot make'):
            vfold_cv(_frame(4), k=5)
