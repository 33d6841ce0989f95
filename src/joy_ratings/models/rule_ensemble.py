"""
Committee rule regressor with instance-based correction.

Each committee member is a regression tree whose leaves act as rules (at most
``max_rules`` of them), with a ridge model fitted to the rows covered by each
rule. Member m+1 is trained on the adjusted target ``y + (y - pred_m)`` so that
later members push against the errors of earlier ones; predictions are the
average over members.

With ``neighbors > 0`` a prediction is corrected using the closest training
rows: each neighbor contributes ``y_i + pred(x) - pred(x_i)`` weighted by
``1 / (0.5 + distance)``, with distances measured on standardized features.
"""
import logging
from typing import Dict, List, Optional, Union

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.linear_model import Ridge
from sklearn.neighbors import NearestNeighbors
from sklearn.tree import DecisionTreeRegressor
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

logger = logging.getLogger(__name__)


class _RuleSet:
    """One committee member: tree leaves as rules, a linear model per rule."""

    def __init__(self, max_rules: int, min_cases: int, ridge_alpha: float, random_state):
        self.max_rules = max_rules
        self.min_cases = min_cases
        self.ridge_alpha = ridge_alpha
        self.random_state = random_state

    def fit(self, X: np.ndarray, y: np.ndarray) -> "_RuleSet":
        if self.max_rules >= 2:
            self.tree_ = DecisionTreeRegressor(
                max_leaf_nodes=self.max_rules,
                min_samples_leaf=self.min_cases,
                random_state=self.random_state,
            ).fit(X, y)
            leaves = self.tree_.apply(X)
        else:
            self.tree_ = None
            leaves = np.zeros(len(X), dtype=int)

        self.rules_: Dict[int, Union[Ridge, float]] = {}
        for leaf in np.unique(leaves):
            mask = leaves == leaf
            if mask.sum() < 2:
                self.rules_[leaf] = float(y[mask].mean())
            else:
                self.rules_[leaf] = Ridge(alpha=self.ridge_alpha).fit(X[mask], y[mask])
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        leaves = self.tree_.apply(X) if self.tree_ is not None else np.zeros(len(X), dtype=int)
        out = np.empty(len(X), dtype=float)
        for leaf in np.unique(leaves):
            mask = leaves == leaf
            rule = self.rules_[leaf]
            out[mask] = rule if isinstance(rule, float) else rule.predict(X[mask])
        return out


class RuleEnsembleRegressor(BaseEstimator, RegressorMixin):

    def __init__(
        self,
        committees: int = 1,
        neighbors: int = 0,
        max_rules: int = 100,
        min_cases: int = 5,
        ridge_alpha: float = 1.0,
        random_state: Optional[int] = None,
    ):
        self.committees = committees
        self.neighbors = neighbors
        self.max_rules = max_rules
        self.min_cases = min_cases
        self.ridge_alpha = ridge_alpha
        self.random_state = random_state

    def fit(self, X, y):
        X, y = check_X_y(X, y, y_numeric=True)
        y = y.astype(float)
        if not 0 <= self.neighbors <= 9:
            raise ValueError(f"neighbors must be in [0, 9], got {self.neighbors}")

        self.members_: List[_RuleSet] = []
        target = y.copy()
        for _ in range(max(1, int(self.committees))):
            member = _RuleSet(int(self.max_rules), self.min_cases, self.ridge_alpha, self.random_state).fit(X, target)
            self.members_.append(member)
            target = y + (y - member.predict(X))

        self.n_features_in_ = X.shape[1]
        if self.neighbors > 0:
            self.center_ = X.mean(axis=0)
            scale = X.std(axis=0)
            self.scale_ = np.where(scale > 0, scale, 1.0)
            self.train_scaled_ = (X - self.center_) / self.scale_
            self.train_y_ = y
            self.train_pred_ = self._committee_predict(X)
            n_neighbors = min(int(self.neighbors), len(X))
            self.nn_ = NearestNeighbors(n_neighbors=n_neighbors).fit(self.train_scaled_)
        return self

    def _committee_predict(self, X: np.ndarray) -> np.ndarray:
        return np.mean([m.predict(X) for m in self.members_], axis=0)

    def predict(self, X):
        check_is_fitted(self, "members_")
        X = check_array(X)
        pred = self._committee_predict(X)
        if self.neighbors == 0:
            return pred

        dist, idx = self.nn_.kneighbors((X - self.center_) / self.scale_)
        weights = 1.0 / (0.5 + dist)
        corrected = self.train_y_[idx] + pred[:, None] - self.train_pred_[idx]
        return (weights * corrected).sum(axis=1) / weights.sum(axis=1)
