from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

DATASET_COLUMNS: List[str] = [
    "Rank",
    "Name",
    "Platform",
    "Year",
    "Genre",
    "Publisher",
    "NA_Sales",
    "EU_Sales",
    "JP_Sales",
    "Other_Sales",
    "Global_Sales",
]

NUMERIC_COLUMNS: List[str] = ["Year", "NA_Sales", "EU_Sales", "JP_Sales", "Other_Sales", "Global_Sales"]


class DatasetParseError(ValueError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not parse the CSV file {path}: {reason}")
        self.path = path
        self.reason = reason


def parse_dataset(path: Path) -> pd.DataFrame:
    """Parse one version's dataset CSV.

    The first row is the header. Text columns are kept verbatim (empty string
    for blanks); Year and the sales columns are numeric, unparseable cells
    become NaN.
    """

    if not path.exists():
        raise FileNotFoundError(str(path))

    try:
        df = pd.read_csv(
            path,
            sep=",",
            encoding="utf-8",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise DatasetParseError(path, str(exc)) from exc

    missing = [c for c in DATASET_COLUMNS if c not in df.columns]
    if missing:
        raise DatasetParseError(path, f"missing columns {missing}")

    out = df[DATASET_COLUMNS].copy()
    for col in NUMERIC_COLUMNS:
        out[col] = pd.to_numeric(out[col], errors="coerce")

    return out
