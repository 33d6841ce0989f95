"""
Hyperparameter domains, tunable placeholders and space-filling grids.

A step or model argument is either a literal value or a ``Tunable`` placeholder
naming a domain. Placeholders are resolved against one candidate assignment
right before fitting.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

import pandas as pd
from scipy.stats import qmc

logger = logging.getLogger(__name__)


class EmptyDomainError(ValueError):
    """Raised when a domain has no valid value left to search."""


@dataclass(frozen=True)
class Tunable:
    """Placeholder for an argument whose value comes from the search grid."""
    name: str


@dataclass(frozen=True)
class IntRange:
    low: int
    high: Optional[int]  # None until finalized against the data

    @property
    def is_finalized(self) -> bool:
        return self.high is not None

    def from_unit(self, u: float) -> int:
        span = self.high - self.low + 1
        return int(self.low + min(math.floor(u * span), span - 1))


@dataclass(frozen=True)
class FloatRange:
    """Continuous range; with ``log_base`` the bounds are exponents."""
    low: float
    high: float
    log_base: Optional[float] = None

    is_finalized = True

    def from_unit(self, u: float) -> float:
        value = self.low + u * (self.high - self.low)
        if self.log_base is not None:
            value = self.log_base ** value
        return float(value)


@dataclass(frozen=True)
class Categorical:
    values: Tuple[Any, ...]

    is_finalized = True

    def from_unit(self, u: float) -> Any:
        return self.values[min(int(u * len(self.values)), len(self.values) - 1)]


Domain = Union[IntRange, FloatRange, Categorical]


def validate_domain(name: str, domain: Domain) -> None:
    if not domain.is_finalized:
        raise ValueError(f"Domain for '{name}' has an unknown bound; finalize it before building a grid")
    if isinstance(domain, Categorical) and not domain.values:
        raise EmptyDomainError(f"Domain for '{name}' has no values")
    if isinstance(domain, (IntRange, FloatRange)) and domain.high < domain.low:
        raise EmptyDomainError(f"Domain for '{name}' is empty: [{domain.low}, {domain.high}]")


def resolve_params(params: Dict[str, Any], assignment: Dict[str, Any]) -> Dict[str, Any]:
    """Replace every Tunable placeholder with its value from ``assignment``."""
    resolved = {}
    for key, value in params.items():
        if isinstance(value, Tunable):
            if value.name not in assignment:
                raise ValueError(f"No value for tunable parameter '{value.name}'")
            value = assignment[value.name]
        resolved[key] = value
    return resolved


def tunable_names(params: Dict[str, Any]) -> list[str]:
    return [v.name for v in params.values() if isinstance(v, Tunable)]


def config_labels(n: int) -> list[str]:
    width = max(2, len(str(n)))
    return [f"Config{i:0{width}d}" for i in range(1, n + 1)]


def latin_hypercube_grid(domains: Dict[str, Domain], size: int = 25, seed: int = 42) -> pd.DataFrame:
    """
    Space-filling candidate grid over ``domains``.

    Points come from a scrambled Latin hypercube in the unit cube and are mapped
    into each domain. Rounding of integer and categorical dimensions can make two
    points identical; duplicates are dropped, so the grid may hold fewer than
    ``size`` rows.

    Returns:
    pd.DataFrame: a ``config`` column followed by one column per parameter.
    """
    if size < 1:
        raise ValueError("grid size must be at least 1")

    names = sorted(domains)
    for name in names:
        validate_domain(name, domains[name])

    if not names:
        return pd.DataFrame({"config": config_labels(1)})

    sampler = qmc.LatinHypercube(d=len(names), seed=seed)
    unit = sampler.random(n=size)

    rows = [
        {name: domains[name].from_unit(u) for name, u in zip(names, point)}
        for point in unit
    ]
    grid = pd.DataFrame(rows, columns=names).drop_duplicates().reset_index(drop=True)
    if len(grid) < size:
        logger.debug(f"Grid reduced from {size} to {len(grid)} unique candidates after rounding")

    grid.insert(0, "config", config_labels(len(grid)))
    return grid


def grid_assignments(grid: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
    """Map each config label to its parameter assignment."""
    params = [n for n in grid.columns if n != "config"]
    return {
        row["config"]: {k: row[k] for k in params}
        for row in grid.to_dict(orient="records")
    }
