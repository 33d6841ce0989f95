import logging
from typing import Optional

from joy_ratings.settings import get_settings

NOISY_LOGGERS = ("matplotlib", "PIL")

def setup_logging(level: Optional[str] = None) -> None:
    """
    Console logging for the experiment scripts.
    - Uses APP_LOG_LEVEL (via settings) if level is None.
    - Keeps plotting libraries at WARNING or above.
    """
    level_name = (level or get_settings().log_level).upper()
    # Fallback to INFO if user passes something weird
    level_value = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level_value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.WARNING))
