"""
Train/test split and K-fold resampling.

Both are defined by row positions into the frame they were made from and are
fully determined by the seed.
"""
import logging
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, train_test_split

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Split:
    data: pd.DataFrame
    train_idx: np.ndarray
    test_idx: np.ndarray

    @property
    def training(self) -> pd.DataFrame:
        return self.data.iloc[self.train_idx]

    @property
    def testing(self) -> pd.DataFrame:
        return self.data.iloc[self.test_idx]


@dataclass(frozen=True)
class Fold:
    id: str
    analysis_idx: np.ndarray
    assessment_idx: np.ndarray

    def analysis(self, training: pd.DataFrame) -> pd.DataFrame:
        return training.iloc[self.analysis_idx]

    def assessment(self, training: pd.DataFrame) -> pd.DataFrame:
        return training.iloc[self.assessment_idx]


def initial_split(df: pd.DataFrame, prop: float = 0.75, seed: int = 42) -> Split:
    """Random split with ``prop`` of the rows in training."""
    if not 0 < prop < 1:
        raise ValueError(f"prop must be in (0, 1), got {prop}")
    positions = np.arange(len(df))
    train_idx, test_idx = train_test_split(positions, train_size=prop, random_state=seed)
    logger.info(f"Initial split: {len(train_idx)} training / {len(test_idx)} test rows")
    return Split(df, np.sort(train_idx), np.sort(test_idx))


def vfold_cv(training: pd.DataFrame, k: int = 10, seed: int = 42) -> List[Fold]:
    """
    K-fold partition of ``training``: every row is in exactly one assessment set
    and in the analysis set of the other k-1 folds.
    """
    if k < 2:
        raise ValueError(f"k must be at least 2, got {k}")
    if len(training) < k:
        raise ValueError(f"Cannot make {k} folds from {len(training)} rows")

    kfold = KFold(n_splits=k, shuffle=True, random_state=seed)
    width = max(2, len(str(k)))
    folds = [
        Fold(f"Fold{i:0{width}d}", analysis_idx, assessment_idx)
        for i, (analysis_idx, assessment_idx) in enumerate(kfold.split(np.arange(len(training))), start=1)
    ]
    logger.debug(f"Made {k} folds over {len(training)} rows")
    return folds
