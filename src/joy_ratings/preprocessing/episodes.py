"""
Loading and joining of the painting elements and episode ratings tables.

The elements table has one row per episode with a ``SxxEyy`` code, a quoted
title and one 0/1 column per painting element. The ratings table has one row
per (season, episode) with the average rating and the vote count. Both are
validated on load and any problem aborts the run.
"""
import logging
from pathlib import Path
from typing import Tuple

import pandas as pd

from joy_ratings.io.readers import read_csv
from joy_ratings.features.schemas import (
    ELEMENTS_EPISODE_COLUMN,
    ELEMENTS_TITLE_COLUMN,
    EPISODE_CODE_PATTERN,
    RATINGS_COLUMNS,
    JOIN_KEYS,
    ID_COLUMNS,
    TARGET_FEATURE,
    POPULARITY_FEATURE,
)

logger = logging.getLogger(__name__)


class EpisodeDataError(ValueError):
    """Raised when an input table cannot be turned into a valid dataset."""


def _require_columns(df: pd.DataFrame, required, source: str) -> None:
    missing = set(required) - set(df.columns)
    if missing:
        raise EpisodeDataError(f"Missing expected {source} columns: {sorted(missing)}")


def _to_numeric(df: pd.DataFrame, columns, source: str) -> pd.DataFrame:
    df = df.copy()
    for col in columns:
        converted = pd.to_numeric(df[col], errors="coerce")
        if converted.isna().any():
            examples = df.loc[converted.isna(), col].head(3).tolist()
            raise EpisodeDataError(
                f"Malformed numeric values in {source} column '{col}': {examples}"
            )
        df[col] = converted
    return df


def _check_unique_keys(df: pd.DataFrame, source: str) -> None:
    dup = df.duplicated(subset=list(JOIN_KEYS), keep=False)
    if dup.any():
        keys = df.loc[dup, list(JOIN_KEYS)].drop_duplicates().head(5).values.tolist()
        raise EpisodeDataError(f"Duplicate (season, episode) keys in {source}: {keys}")


def parse_episode_codes(codes: pd.Series) -> pd.DataFrame:
    """Split ``SxxEyy`` codes into integer season and episode columns."""
    parts = codes.astype(str).str.strip().str.upper().str.extract(EPISODE_CODE_PATTERN)
    bad = parts.isna().any(axis=1)
    if bad.any():
        raise EpisodeDataError(f"Malformed episode codes: {codes[bad].head(3).tolist()}")
    return parts.astype(int)


def clean_title(title: str) -> str:
    return str(title).strip().strip('"').strip().title()


def load_elements(path: Path) -> pd.DataFrame:
    df = read_csv(path)
    _require_columns(df, (ELEMENTS_EPISODE_COLUMN, ELEMENTS_TITLE_COLUMN), "elements")

    keys = parse_episode_codes(df[ELEMENTS_EPISODE_COLUMN])
    element_cols = [c for c in df.columns if c not in (ELEMENTS_EPISODE_COLUMN, ELEMENTS_TITLE_COLUMN)]
    if not element_cols:
        raise EpisodeDataError("Elements table has no painting element columns")

    elements = _to_numeric(df[element_cols], element_cols, "elements")
    not_binary = [c for c in element_cols if not elements[c].isin([0, 1]).all()]
    if not_binary:
        raise EpisodeDataError(f"Element columns must be 0/1 indicators: {not_binary[:5]}")

    out = pd.concat([keys, df[ELEMENTS_TITLE_COLUMN].map(clean_title).rename("title"), elements.astype(int)], axis=1)
    out.columns = [c.lower() for c in out.columns]
    _check_unique_keys(out, "elements")
    logger.info(f"Loaded {len(out)} episodes with {len(element_cols)} painting elements from {path}")
    return out


def load_ratings(path: Path) -> pd.DataFrame:
    df = read_csv(path)
    df.columns = [c.strip().lower() for c in df.columns]
    _require_columns(df, RATINGS_COLUMNS, "ratings")

    df = _to_numeric(df[list(RATINGS_COLUMNS)], RATINGS_COLUMNS, "ratings")
    for key in JOIN_KEYS:
        fractional = df[key] % 1 != 0
        if fractional.any():
            examples = df.loc[fractional, key].head(3).tolist()
            raise EpisodeDataError(f"Non-integer values in ratings column '{key}': {examples}")
    df[list(JOIN_KEYS)] = df[list(JOIN_KEYS)].astype(int)
    _check_unique_keys(df, "ratings")
    logger.info(f"Loaded {len(df)} episode ratings from {path}")
    return df


def join_episode_ratings(elements: pd.DataFrame, ratings: pd.DataFrame) -> pd.DataFrame:
    """
    Inner join of elements and ratings on (season, episode).

    Returns:
    pd.DataFrame: id columns, target, vote count, then the element columns,
    sorted by (season, episode).
    """
    joined = elements.merge(ratings, on=list(JOIN_KEYS), how="inner", validate="one_to_one")
    if joined.empty:
        raise EpisodeDataError("No (season, episode) keys matched between elements and ratings")

    unmatched = len(elements) - len(joined)
    if unmatched:
        logger.warning(f"{unmatched} episodes have no rating and were dropped")

    element_cols = [c for c in elements.columns if c not in ID_COLUMNS]
    ordered = list(ID_COLUMNS) + [TARGET_FEATURE, POPULARITY_FEATURE] + element_cols
    return joined[ordered].sort_values(list(JOIN_KEYS)).reset_index(drop=True)


def load_episode_dataset(elements_path: Path, ratings_path: Path) -> pd.DataFrame:
    df = join_episode_ratings(load_elements(elements_path), load_ratings(ratings_path))
    logger.info(f"Episode dataset shape: {df.shape}")
    logger.info(f"Target distribution: mean={df[TARGET_FEATURE].mean():.3f}, std={df[TARGET_FEATURE].std():.3f}")
    return df


def split_features_target(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
    """Predictors are every column except the identifiers and the target."""
    X = df.drop(columns=[c for c in ID_COLUMNS if c in df.columns] + [TARGET_FEATURE])
    y = df[TARGET_FEATURE]
    return X, y
