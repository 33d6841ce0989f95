"""
Utilities for ensuring reproducible results across the project.
"""

import os
import random
import numpy as np
import logging

logger = logging.getLogger(__name__)


def set_global_seed(seed: int = 42) -> None:
    """
    Set random seeds for the global generators.

    Splits, folds, grids and estimators all take explicit seeds; this only
    covers code that falls back on the global state.

    Args:
        seed: Random seed value to use across all libraries
    """
    logger.info(f"Setting global random seed to {seed}")

    # Python's built-in random module
    random.seed(seed)

    # NumPy
    np.random.seed(seed)

    # Environment variable for hash randomization
    os.environ['PYTHONHASHSEED'] = str(seed)
