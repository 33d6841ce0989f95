"""
Model specs for the workflow grid.

Each spec names an estimator family, the factory that builds it from
tidy argument names, and the domain of every tunable argument.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.base import RegressorMixin
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNet
from sklearn.neural_network import MLPRegressor
from sklearn.svm import SVR

from joy_ratings.models.kernel_knn import KernelKNNRegressor, WEIGHT_FUNCTIONS
from joy_ratings.models.rule_ensemble import RuleEnsembleRegressor
from joy_ratings.tuning.params import Categorical, Domain, FloatRange, IntRange, Tunable, resolve_params, tunable_names

logger = logging.getLogger(__name__)


class FittedModel:

    def __init__(self, name: str, estimator: RegressorMixin, feature_names: List[str]):
        self.name = name
        self.estimator = estimator
        self.feature_names = feature_names

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        X = pd.DataFrame(X)[self.feature_names]
        return np.asarray(self.estimator.predict(X.to_numpy()), dtype=float)


@dataclass(frozen=True)
class ModelSpec:
    """
    ``adjust`` receives the resolved arguments and the training features and
    may return corrected arguments (e.g. clamping a value to the column count).
    """
    name: str
    factory: Callable[..., RegressorMixin]
    params: Dict[str, Any]
    domains: Dict[str, Domain] = field(default_factory=dict)
    adjust: Optional[Callable[[Dict[str, Any], pd.DataFrame], Dict[str, Any]]] = None

    def __post_init__(self):
        missing = set(self.tunable_names()) - set(self.domains)
        if missing:
            raise ValueError(f"Model '{self.name}' has no domain for {sorted(missing)}")

    def tunable_names(self) -> List[str]:
        return tunable_names(self.params)

    def tunable_domains(self) -> Dict[str, Domain]:
        return {n: self.domains[n] for n in self.tunable_names()}

    def fit(self, X: pd.DataFrame, y: pd.Series, assignment: Optional[Dict[str, Any]] = None) -> FittedModel:
        X = pd.DataFrame(X)
        if X.shape[1] == 0:
            raise ValueError(f"Model '{self.name}' cannot be fitted on zero feature columns")
        args = resolve_params(self.params, assignment or {})
        if self.adjust is not None:
            args = self.adjust(args, X)
        estimator = self.factory(**args)
        estimator.fit(X.to_numpy(), np.asarray(y, dtype=float))
        return FittedModel(self.name, estimator, list(X.columns))


def make_elastic_net(penalty: float, mixture: float) -> ElasticNet:
    return ElasticNet(alpha=penalty, l1_ratio=mixture, max_iter=10_000)


def make_mlp(hidden_units: int, penalty: float, epochs: int, random_state: int = 42) -> MLPRegressor:
    # single hidden layer trained with a quasi-Newton optimizer
    return MLPRegressor(
        hidden_layer_sizes=(int(hidden_units),),
        alpha=penalty,
        max_iter=int(epochs),
        solver="lbfgs",
        random_state=random_state,
    )


def make_forest(mtry: int, min_n: int, trees: int = 500, random_state: int = 42, n_jobs: int = 1) -> RandomForestRegressor:
    return RandomForestRegressor(
        n_estimators=trees,
        max_features=int(mtry),
        min_samples_split=int(min_n),
        random_state=random_state,
        n_jobs=n_jobs,
    )


def make_svm(cost: float, rbf_sigma: float, margin: float) -> SVR:
    return SVR(kernel="rbf", C=cost, gamma=rbf_sigma, epsilon=margin)


def make_rules(committees: int, neighbors: int, max_rules: int, random_state: int = 42) -> RuleEnsembleRegressor:
    return RuleEnsembleRegressor(
        committees=int(committees),
        neighbors=int(neighbors),
        max_rules=int(max_rules),
        random_state=random_state,
    )


def make_knn(neighbors: int, weight_func: str, dist_power: float) -> KernelKNNRegressor:
    return KernelKNNRegressor(neighbors=int(neighbors), weight_func=weight_func, dist_power=dist_power)


def clamp_mtry(args: Dict[str, Any], X: pd.DataFrame) -> Dict[str, Any]:
    if args["mtry"] > X.shape[1]:
        logger.debug(f"mtry={args['mtry']} exceeds {X.shape[1]} columns; using {X.shape[1]}")
        args = {**args, "mtry": X.shape[1]}
    return args


def default_models(trees: int = 500, random_state: int = 42) -> List[ModelSpec]:
    """The six regression families compared in the experiment."""
    return [
        ModelSpec(
            "cubist",
            make_rules,
            {"committees": Tunable("committees"), "neighbors": Tunable("neighbors"),
             "max_rules": Tunable("max_rules"), "random_state": random_state},
            {"committees": IntRange(1, 100), "neighbors": IntRange(0, 9), "max_rules": IntRange(1, 500)},
        ),
        ModelSpec(
            "glmnet",
            make_elastic_net,
            {"penalty": Tunable("penalty"), "mixture": Tunable("mixture")},
            {"penalty": FloatRange(-10, 0, log_base=10), "mixture": FloatRange(0.05, 1.0)},
        ),
        ModelSpec(
            "mlp",
            make_mlp,
            {"hidden_units": Tunable("hidden_units"), "penalty": Tunable("penalty"),
             "epochs": Tunable("epochs"), "random_state": random_state},
            {"hidden_units": IntRange(1, 10), "penalty": FloatRange(-10, 0, log_base=10), "epochs": IntRange(10, 1000)},
        ),
        ModelSpec(
            "kknn",
            make_knn,
            {"neighbors": Tunable("neighbors"), "weight_func": Tunable("weight_func"), "dist_power": Tunable("dist_power")},
            {"neighbors": IntRange(1, 15), "weight_func": Categorical(WEIGHT_FUNCTIONS), "dist_power": FloatRange(1.0, 2.0)},
        ),
        ModelSpec(
            "rf",
            make_forest,
            {"mtry": Tunable("mtry"), "min_n": Tunable("min_n"), "trees": trees, "random_state": random_state},
            {"mtry": IntRange(1, None), "min_n": IntRange(2, 40)},
            adjust=clamp_mtry,
        ),
        ModelSpec(
            "svm",
            make_svm,
            {"cost": Tunable("cost"), "rbf_sigma": Tunable("rbf_sigma"), "margin": Tunable("margin")},
            {"cost": FloatRange(-10, 5, log_base=2), "rbf_sigma": FloatRange(-10, 0, log_base=10), "margin": FloatRange(0.0, 0.2)},
        ),
    ]
