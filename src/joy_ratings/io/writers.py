from pathlib import Path
import json
import joblib
import pandas as pd
import matplotlib.pyplot as plt

def _tmp_for(out: Path) -> Path:
    out.parent.mkdir(parents=True, exist_ok=True)
    return out.with_suffix(out.suffix + ".tmp")

def atomic_write_csv(df: pd.DataFrame, out: Path, index: bool = False) -> None:
    tmp = _tmp_for(out)
    df.to_csv(tmp, index=index)
    tmp.replace(out)             # atomic replace on same filesystem

def write_json(payload: dict, out: Path) -> None:
    # values json cannot encode (numpy ints, paths) are written as strings
    tmp = _tmp_for(out)
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    tmp.replace(out)

def write_joblib(obj, out: Path) -> None:
    out.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(obj, out)

def save_figure(fig: plt.Figure, out: Path, dpi: int = 120) -> Path:
    """Save and close a figure."""
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    return out
