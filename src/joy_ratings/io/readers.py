from pathlib import Path
import json
import pandas as pd
import joblib

def _ensure_file(path: Path) -> Path:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"file not found: {p}")
    if p.stat().st_size == 0:
        raise FileNotFoundError(f"file is empty: {p}")
    return p

def read_csv(path: Path, **kwargs) -> pd.DataFrame:
    """Read a CSV source; surrounding whitespace in header names is dropped."""
    df = pd.read_csv(_ensure_file(path), encoding="utf-8", **kwargs)
    df.columns = [str(c).strip() for c in df.columns]
    return df

def read_json(path: Path):
    with open(_ensure_file(path), "r", encoding="utf-8") as f:
        return json.load(f)

def read_joblib(path: Path):
    """Load a fitted workflow saved by the experiment."""
    return joblib.load(_ensure_file(path))
