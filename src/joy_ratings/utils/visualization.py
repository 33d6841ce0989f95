"""
Plotting utilities for the episode ratings exploration and the model comparison.

Every function returns ``(fig, ax)`` and leaves showing or saving to the caller.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
from typing import Optional, Tuple

from joy_ratings.features.schemas import TARGET_FEATURE, POPULARITY_FEATURE, ID_COLUMNS


def freedman_diaconis_bins(x: np.ndarray) -> int:
    """
    Calculate optimal number of bins using Freedman-Diaconis rule.

    The Freedman-Diaconis rule is robust to outliers and works well
    for a wide range of distributions.

    Args:
        x: Data array

    Returns:
        Optimal number of bins
    """
    x = np.asarray(x, dtype=float)
    x = x[np.isfinite(x)]
    n = x.size
    if n < 2:
        return 1

    q75, q25 = np.percentile(x, [75, 25])
    iqr = q75 - q25

    if iqr == 0:
        return min(30, max(1, int(np.sqrt(n))))

    h = 2 * iqr * n**(-1/3)
    if h <= 0:
        return min(30, max(1, int(np.sqrt(n))))

    return max(1, int(np.ceil((x.max() - x.min()) / h)))


def plot_rating_distribution(df: pd.DataFrame, figsize: Tuple[int, int] = (8, 5)) -> Tuple[plt.Figure, plt.Axes]:
    """Histogram of the average episode rating with mean and median markers."""
    x = df[TARGET_FEATURE].to_numpy(dtype=float)
    fig, ax = plt.subplots(figsize=figsize)
    ax.hist(x, bins=freedman_diaconis_bins(x), alpha=0.7, color="tab:blue")
    ax.axvline(np.mean(x), linestyle="--", linewidth=1.2, color="tab:red")
    ax.axvline(np.median(x), linestyle="--", linewidth=1.2, color="tab:purple")
    ax.legend(
        handles=[
            Line2D([0], [0], color="tab:red", lw=1.2, ls="--", label="Mean"),
            Line2D([0], [0], color="tab:purple", lw=1.2, ls="--", label="Median"),
        ],
        frameon=False,
    )
    ax.set_xlabel("average rating")
    ax.set_ylabel("episodes")
    ax.set_title("Episode rating distribution")
    ax.grid(True, linewidth=0.5, alpha=0.5)
    return fig, ax


def plot_rating_vs_votes(df: pd.DataFrame, figsize: Tuple[int, int] = (8, 5)) -> Tuple[plt.Figure, plt.Axes]:
    """Rating against vote count (log scale), colored by season."""
    fig, ax = plt.subplots(figsize=figsize)
    sc = ax.scatter(df[POPULARITY_FEATURE], df[TARGET_FEATURE], c=df["season"], cmap="viridis", s=18, alpha=0.8)
    ax.set_xscale("log")
    ax.set_xlabel("votes (log scale)")
    ax.set_ylabel("average rating")
    ax.set_title("Rating vs. popularity")
    fig.colorbar(sc, ax=ax, label="season")
    ax.grid(True, linewidth=0.5, alpha=0.5)
    return fig, ax


def element_rating_effects(df: pd.DataFrame, top_n: int = 15) -> pd.DataFrame:
    """
    Mean rating with and without each of the ``top_n`` most frequent painting elements.

    Returns:
        DataFrame indexed by element with columns ``count``, ``with``, ``without``, ``diff``,
        ordered by frequency.
    """
    elements = [c for c in df.columns if c not in ID_COLUMNS + (TARGET_FEATURE, POPULARITY_FEATURE)]
    counts = df[elements].sum().sort_values(ascending=False).head(top_n)
    rows = []
    for element in counts.index:
        present = df[element] == 1
        rows.append({
            "element": element,
            "count": int(counts[element]),
            "with": df.loc[present, TARGET_FEATURE].mean(),
            "without": df.loc[~present, TARGET_FEATURE].mean(),
        })
    effects = pd.DataFrame(rows).set_index("element")
    effects["diff"] = effects["with"] - effects["without"]
    return effects


def plot_element_effects(df: pd.DataFrame, top_n: int = 15, figsize: Tuple[int, int] = (9, 6)) -> Tuple[plt.Figure, plt.Axes]:
    """Horizontal bars of the rating difference for the most common elements."""
    effects = element_rating_effects(df, top_n=top_n).iloc[::-1]
    fig, ax = plt.subplots(figsize=figsize)
    colors = np.where(effects["diff"] >= 0, "tab:green", "tab:red")
    ax.barh(effects.index, effects["diff"], color=colors, alpha=0.8)
    ax.axvline(0, color="black", linewidth=0.8)
    ax.set_xlabel("mean rating with element - without")
    ax.set_title(f"Rating difference for the {len(effects)} most frequent elements")
    ax.grid(True, axis="x", linewidth=0.5, alpha=0.5)
    return fig, ax


def plot_workflow_ranking(
    ranking: pd.DataFrame,
    figsize: Tuple[int, int] = (9, 6),
    title: Optional[str] = None,
) -> Tuple[plt.Figure, plt.Axes]:
    """
    Mean cross-validated RMSE per workflow with +/- one standard error, by rank.

    Points are colored by model and marked by preprocessor.
    """
    fig, ax = plt.subplots(figsize=figsize)
    models = sorted(ranking["model"].unique())
    preprocessors = sorted(ranking["preprocessor"].unique())
    colors = {m: plt.cm.tab10(i % 10) for i, m in enumerate(models)}
    markers = {p: "osD^v<>"[i % 7] for i, p in enumerate(preprocessors)}

    for _, row in ranking.iterrows():
        ax.errorbar(
            row["rank"], row["mean"],
            yerr=0 if pd.isna(row["std_err"]) else row["std_err"],
            fmt=markers[row["preprocessor"]], color=colors[row["model"]], capsize=3,
        )

    handles = [Line2D([0], [0], color=colors[m], marker="o", ls="", label=m) for m in models]
    handles += [Line2D([0], [0], color="gray", marker=markers[p], ls="", label=p) for p in preprocessors]
    ax.legend(handles=handles, frameon=False, bbox_to_anchor=(1.02, 1), loc="upper left")
    ax.set_xlabel("workflow rank")
    ax.set_ylabel("rmse (cross-validated)")
    ax.set_title(title or "Workflow ranking")
    ax.grid(True, linewidth=0.5, alpha=0.5)
    fig.tight_layout()
    return fig, ax
