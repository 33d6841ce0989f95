from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class TuningSettings(BaseModel):
    train_prop: float = 0.75
    n_folds: int = 10
    grid_size: int = 25

    # ---- racing ----
    burn_in: int = 3
    alpha: float = 0.05
    num_ties: int = 10
    n_jobs: int = 1  # joblib workers per fold, -1 for all cores

    forest_trees: int = 500


class Settings(BaseSettings):

    # ---- Data roots ----
    project_root: Path = Path(".").resolve()
    data_root: Path = Path("data")
    raw_dir: Path = data_root / "raw"
    processed_dir: Path = data_root / "processed"
    reports_dir: Path = data_root / "reports"
    models_dir: Path = data_root / "models"

    # ----- Datasets -----
    elements_csv: Path = raw_dir / "elements-by-episode.csv"
    ratings_csv: Path = raw_dir / "episode-ratings.csv"

    # ---- app/runtime ----
    env: Literal["dev", "staging", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ---- reproducibility ----
    random_seed: int = 42

    tuning: TuningSettings = TuningSettings()

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_prefix="APP_",      # APP_RANDOM_SEED, APP_TUNING__N_FOLDS, etc.
        env_nested_delimiter='__',
        extra = "ignore"
    )


def get_settings() -> Settings:
    """Singleton accessor to avoid reparsing .env on every import."""
    return Settings()
