"""
Kernel weighted k-nearest-neighbor regressor.

Distances to the k nearest training rows are divided by the distance to the
(k+1)-th one, so they fall in [0, 1), and a kernel turns them into weights.
Features are standardized with the training mean and standard deviation.
"""
import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.neighbors import NearestNeighbors
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

_EPS = 1e-6


def _optimal_weights(k: int, d: int) -> np.ndarray:
    i = np.arange(1, k + 1, dtype=float)
    a = 1 + 2 / d
    w = (1 / k) * (1 + d / 2 - d / (2 * k ** (2 / d)) * (i ** a - (i - 1) ** a))
    return np.clip(w, 0.0, None)


KERNELS = {
    "rectangular": lambda u: np.full_like(u, 0.5),
    "triangular": lambda u: 1 - u,
    "epanechnikov": lambda u: 0.75 * (1 - u ** 2),
    "biweight": lambda u: 15 / 16 * (1 - u ** 2) ** 2,
    "triweight": lambda u: 35 / 32 * (1 - u ** 2) ** 3,
    "cos": lambda u: np.pi / 4 * np.cos(np.pi / 2 * u),
    "inv": lambda u: 1 / u,
    "gaussian": lambda u: np.exp(-(u ** 2) / 2) / np.sqrt(2 * np.pi),
}

WEIGHT_FUNCTIONS = tuple(KERNELS) + ("rank", "optimal")


class KernelKNNRegressor(BaseEstimator, RegressorMixin):

    def __init__(self, neighbors: int = 7, weight_func: str = "optimal", dist_power: float = 2.0):
        self.neighbors = neighbors
        self.weight_func = weight_func
        self.dist_power = dist_power

    def fit(self, X, y):
        X, y = check_X_y(X, y, y_numeric=True)
        if self.weight_func not in WEIGHT_FUNCTIONS:
            raise ValueError(f"Unknown weight_func '{self.weight_func}'")

        self.center_ = X.mean(axis=0)
        scale = X.std(axis=0, ddof=1) if len(X) > 1 else np.ones(X.shape[1])
        self.scale_ = np.where(scale > 0, scale, 1.0)
        self.train_y_ = y.astype(float)
        self.n_features_in_ = X.shape[1]
        self.nn_ = NearestNeighbors(p=float(self.dist_power)).fit((X - self.center_) / self.scale_)
        return self

    def predict(self, X):
        check_is_fitted(self, "nn_")
        X = check_array(X)
        n_train = len(self.train_y_)
        k = max(1, min(int(self.neighbors), n_train - 1)) if n_train > 1 else 1

        dist, idx = self.nn_.kneighbors((X - self.center_) / self.scale_, n_neighbors=min(k + 1, n_train))
        maxdist = np.maximum(dist[:, -1] if dist.shape[1] > k else dist[:, k - 1], _EPS)
        u = np.clip(dist[:, :k] / maxdist[:, None], _EPS, 1 - _EPS)

        if self.weight_func == "rank":
            w = np.tile(np.arange(k, 0, -1, dtype=float), (len(X), 1))
        elif self.weight_func == "optimal":
            w = np.tile(_optimal_weights(k, self.n_features_in_), (len(X), 1))
        else:
            w = KERNELS[self.weight_func](u)
        w = np.maximum(w, _EPS)

        return (w * self.train_y_[idx[:, :k]]).sum(axis=1) / w.sum(axis=1)
