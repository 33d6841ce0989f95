"""
Preprocessor specs for the workflow grid.

A ``PreprocessorSpec`` is a named, ordered list of steps. Each step is built
from a factory and keyword arguments that may hold ``Tunable`` placeholders.
Fitting resolves the placeholders and fits an sklearn ``Pipeline`` on the
subset it is given only; the fitted pipeline is then applied unchanged to any
other subset (assessment folds, test set), so no statistics leak from them.

Filter steps
------------
- NearZeroVarianceFilter: drops columns that are constant, or whose most
  common value is much more frequent than the second one (``freq_cut``) while
  having few distinct values (``unique_cut`` percent of rows).
- CorrelationFilter: repeatedly looks at the most correlated pair above
  ``threshold`` and drops the member with the larger mean absolute
  correlation to all other columns.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.decomposition import PCA
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.utils.validation import check_is_fitted

from joy_ratings.tuning.params import Domain, FloatRange, IntRange, Tunable, resolve_params, tunable_names

logger = logging.getLogger(__name__)


class NearZeroVarianceFilter(BaseEstimator, TransformerMixin):

    def __init__(self, freq_cut: float = 95 / 5, unique_cut: float = 10.0):
        self.freq_cut = freq_cut
        self.unique_cut = unique_cut

    def fit(self, X: pd.DataFrame, y=None):
        X = pd.DataFrame(X)
        n = len(X)
        removed = []
        for col in X.columns:
            counts = X[col].value_counts(dropna=True)
            if len(counts) <= 1:
                removed.append(col)
                continue
            freq_ratio = counts.iloc[0] / counts.iloc[1]
            pct_unique = 100.0 * len(counts) / n
            if freq_ratio > self.freq_cut and pct_unique <= self.unique_cut:
                removed.append(col)

        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        self.removed_ = removed
        self.keep_ = [c for c in X.columns if c not in set(removed)]
        logger.debug(f"Near-zero variance filter removed {len(removed)} of {X.shape[1]} columns")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "keep_")
        return pd.DataFrame(X).drop(columns=self.removed_, errors="ignore")[self.keep_]

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "keep_")
        return np.asarray(self.keep_, dtype=object)


class CorrelationFilter(BaseEstimator, TransformerMixin):

    def __init__(self, threshold: float = 0.9):
        self.threshold = threshold

    def fit(self, X: pd.DataFrame, y=None):
        X = pd.DataFrame(X)
        corr = X.corr().abs().fillna(0.0).to_numpy(copy=True)
        np.fill_diagonal(corr, 0.0)

        active = list(range(X.shape[1]))
        removed = []
        while len(active) > 1:
            sub = corr[np.ix_(active, active)]
            i, j = np.unravel_index(np.argmax(sub), sub.shape)
            if sub[i, j] <= self.threshold:
                break
            mean_i = sub[i].sum() / (len(active) - 1)
            mean_j = sub[j].sum() / (len(active) - 1)
            drop = active[i] if mean_i >= mean_j else active[j]
            removed.append(X.columns[drop])
            active.remove(drop)

        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        self.removed_ = removed
        self.keep_ = [X.columns[k] for k in active]
        logger.debug(f"Correlation filter (threshold={self.threshold:.3f}) removed {len(removed)} columns")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "keep_")
        return pd.DataFrame(X)[self.keep_]

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "keep_")
        return np.asarray(self.keep_, dtype=object)


class PrincipalComponents(BaseEstimator, TransformerMixin):
    """PCA projection; ``num_comp`` is capped at what the fitting data supports."""

    def __init__(self, num_comp: int = 5):
        self.num_comp = num_comp

    def fit(self, X: pd.DataFrame, y=None):
        X = pd.DataFrame(X)
        n_comp = min(int(self.num_comp), X.shape[1], X.shape[0])
        if n_comp < int(self.num_comp):
            logger.debug(f"num_comp={self.num_comp} capped to {n_comp}")
        # PCA itself rejects zero columns
        self.pca_ = PCA(n_components=max(n_comp, 1)).fit(X.to_numpy())
        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        width = len(str(self.pca_.n_components_))
        self.names_ = [f"PC{i:0{width}d}" for i in range(1, self.pca_.n_components_ + 1)]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "pca_")
        X = pd.DataFrame(X)[list(self.feature_names_in_)]
        return pd.DataFrame(self.pca_.transform(X.to_numpy()), columns=self.names_, index=X.index)

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "pca_")
        return np.asarray(self.names_, dtype=object)


@dataclass(frozen=True)
class StepSpec:
    """
    One preprocessing step.

    ``max_features`` bounds the number of output columns of a tunable step given
    its input width and the domains of its placeholders; steps without
    placeholders are measured by fitting instead.
    """
    name: str
    factory: Callable[..., TransformerMixin]
    params: Dict[str, Any] = field(default_factory=dict)
    max_features: Optional[Callable[[int, Dict[str, Domain]], int]] = None

    def build(self, assignment: Dict[str, Any]) -> TransformerMixin:
        return self.factory(**resolve_params(self.params, assignment))


class FittedPreprocessor:
    """A preprocessing pipeline frozen after fitting on one subset."""

    def __init__(self, name: str, pipeline: Pipeline):
        self.name = name
        self.pipeline = pipeline

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return self.pipeline.transform(X)

    @property
    def feature_names(self) -> List[str]:
        return list(self.pipeline.get_feature_names_out())

    def step(self, name: str):
        return self.pipeline.named_steps[name]


@dataclass(frozen=True)
class PreprocessorSpec:
    name: str
    steps: Tuple[StepSpec, ...]
    domains: Dict[str, Domain] = field(default_factory=dict)

    def __post_init__(self):
        if not self.steps:
            raise ValueError(f"Preprocessor '{self.name}' needs at least one step")
        missing = set(self.tunable_names()) - set(self.domains)
        if missing:
            raise ValueError(f"Preprocessor '{self.name}' has no domain for {sorted(missing)}")

    def tunable_names(self) -> List[str]:
        return [n for step in self.steps for n in tunable_names(step.params)]

    def tunable_domains(self) -> Dict[str, Domain]:
        return {n: self.domains[n] for n in self.tunable_names()}

    def fit(self, X: pd.DataFrame, assignment: Optional[Dict[str, Any]] = None) -> FittedPreprocessor:
        pipeline = Pipeline([(step.name, step.build(assignment or {})) for step in self.steps])
        pipeline.set_output(transform="pandas")
        pipeline.fit(X)
        return FittedPreprocessor(self.name, pipeline)

    def max_output_features(self, X: pd.DataFrame) -> int:
        """
        Largest number of columns this preprocessor can hand to a model.

        Leading steps without placeholders are fitted on ``X``; from the first
        tunable step on, each step's ``max_features`` bound is applied.
        """
        current = pd.DataFrame(X)
        n_features = current.shape[1]
        fitting = True
        for step in self.steps:
            tunable = bool(tunable_names(step.params))
            if fitting and not tunable:
                if current.shape[1] == 0:
                    return 0
                current = step.build({}).fit(current).transform(current)
                n_features = pd.DataFrame(current).shape[1]
                continue
            fitting = False
            if step.max_features is not None:
                n_features = step.max_features(n_features, self.domains)
        return n_features


def _pca_bound(n_in: int, domains: Dict[str, Domain]) -> int:
    return min(n_in, domains["num_comp"].high)


def nzv_step() -> StepSpec:
    return StepSpec("nzv", NearZeroVarianceFilter)


def normalize_step() -> StepSpec:
    return StepSpec("normalize", StandardScaler)


def default_preprocessors() -> List[PreprocessorSpec]:
    """The three preprocessing pipelines compared in the experiment."""
    basic = PreprocessorSpec("basic", (nzv_step(),))

    pca = PreprocessorSpec(
        "pca",
        (
            nzv_step(),
            normalize_step(),
            StepSpec("pca", PrincipalComponents, {"num_comp": Tunable("num_comp")}, max_features=_pca_bound),
        ),
        domains={"num_comp": IntRange(1, 4)},
    )

    corr = PreprocessorSpec(
        "corr",
        (
            nzv_step(),
            normalize_step(),
            StepSpec("corr", CorrelationFilter, {"threshold": Tunable("threshold")}),
        ),
        domains={"threshold": FloatRange(0.0, 1.0)},
    )

    return [basic, pca, corr]
