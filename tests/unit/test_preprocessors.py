"""Unit tests for the preprocessing steps and preprocessor specs."""
import numpy as np
import pandas as pd
import pytest

from joy_ratings.tuning.params import Tunable
from joy_ratings.tuning.preprocessors import (
    CorrelationFilter,
    NearZeroVarianceFilter,
    PreprocessorSpec,
    StepSpec,
    default_preprocessors,
)


def _features(n=100, seed=0):
    rng = np.random.default_rng(seed)
    rare = np.zeros(n, dtype=int)
    rare[0] = 1
    return pd.DataFrame({
        'votes': rng.normal(100, 20, n),
        'trees': rng.integers(0, 2, n),
        'rare': rare,
        'const': np.ones(n, dtype=int),
        'clouds': rng.integers(0, 2, n),
    })


def _spec(name):
    return {p.name: p for p in default_preprocessors()}[name]


class TestNearZeroVarianceFilter:
    """Test suite for NearZeroVarianceFilter."""

    def test_removes_constant_and_rare_columns(self):
        """Test that constant and rare columns are removed."""
        nzv = NearZeroVarianceFilter().fit(_features())

        assert set(nzv.removed_) == {'rare', 'const'}
        assert nzv.keep_ == ['votes', 'trees', 'clouds']

    def test_marked_columns_dropped_from_other_subsets(self):
        """Test that columns marked at fit are dropped from other subsets."""
        nzv = NearZeroVarianceFilter().fit(_features())
        other = _features(seed=1)
        other['rare'] = np.arange(len(other)) % 2  # varies here, still dropped

        out = nzv.transform(other)
        assert list(out.columns) == ['votes', 'trees', 'clouds']


class TestCorrelationFilter:
    """Test suite for CorrelationFilter."""

    def test_drops_one_of_a_correlated_pair(self):
        """Test that one member of a highly correlated pair is dropped."""
        rng = np.random.default_rng(3)
        x = rng.normal(size=200)
        df = pd.DataFrame({
            'x': x,
            'x_copy': 2 * x + rng.normal(scale=0.01, size=200),
            'z': rng.normal(size=200),
        })
        cf = CorrelationFilter(threshold=0.9).fit(df)

        assert len(cf.removed_) == 1
        assert cf.removed_[0] in {'x', 'x_copy'}
        assert 'z' in cf.keep_

    def test_threshold_one_keeps_everything(self):
        """Test that a threshold of one keeps every column."""
        df = _features()[['votes', 'trees', 'clouds']]
        assert CorrelationFilter(threshold=1.0).fit(df).keep_ == ['votes', 'trees', 'clouds']


class TestPreprocessorSpec:
    """Test suite for PreprocessorSpec fitting and output widths."""

    def test_normalization_statistics_frozen_after_fit(self):
        """Test that normalization uses only the fitting subset statistics."""
        A = _features(seed=0)
        B = _features(seed=1) * 3 + 7
        fitted = _spec('corr').fit(A, {'threshold': 1.0})

        scaler = fitted.step('normalize')
        mean_before = scaler.mean_.copy()
        out = fitted.transform(B)

        assert np.allclose(scaler.mean_, mean_before)
        kept = ['votes', 'trees', 'clouds']
        assert np.allclose(mean_before, A[kept].mean().to_numpy())
        expected = (B[kept] - A[kept].mean()) / A[kept].std(ddof=0)
        assert np.allclose(out[kept].to_numpy(), expected.to_numpy())

    def test_pca_components_capped_at_columns(self):
        """Test that num_comp is capped at the available columns."""
        fitted = _spec('pca').fit(_features(), {'num_comp': 4})
        out = fitted.transform(_features(seed=2))

        assert list(out.columns) == ['PC1', 'PC2', 'PC3']
        assert fitted.feature_names == ['PC1', 'PC2', 'PC3']

    def test_all_columns_filtered_fails_on_later_step(self):
        """Test that a later step fails when every column is filtered."""
        X = pd.DataFrame({'a': np.ones(20), 'b': np.zeros(20)})

        assert _spec('basic').fit(X).transform(X).shape == (20, 0)
        with pytest.raises(ValueError):
            _spec('pca').fit(X, {'num_comp': 2})

    def test_max_output_features(self):
        """Test the maximum output width of each default preprocessor."""
        X = _features()
        assert _spec('basic').max_output_features(X) == 3
        assert _spec('pca').max_output_features(X) == 3
        assert _spec('corr').max_output_features(X) == 3

        wide = pd.concat([X, X.add_suffix('_2') + 1], axis=1)
        assert _spec('pca').max_output_features(wide) == 4
        assert _spec('corr').max_output_features(wide) == 6

    def test_max_output_features_all_filtered(self):
        """Test that the maximum width is zero when every column is filtered."""
        X = pd.DataFrame({'a': np.ones(20)})
        assert _spec('corr').max_output_features(X) == 0

    def test_tunable_without_domain_rejected(self):
        """Test that a tunable step without a domain is rejected."""
        with pytest.raises(ValueError, match='no domain'):
            PreprocessorSpec('bad', (StepSpec('corr', CorrelationFilter, {'threshold': Tunable('threshold')}),))

    def test_default_set(self):
        """Test the names and tunables of the default preprocessors."""
        specs = default_preprocessors()
        assert [p.name for p in specs] == ['basic', 'pca', 'corr']
        assert specs[1].tunable_names() == ['num_comp']
        assert specs[2].tunable_names() == ['threshold']
