from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from readyaimshoot.aim.dataset import parse_dataset

logger = logging.getLogger(__name__)

QA_TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M%S"

YEAR_RANGE = (1985, 2004)
NAME_FRAGMENTS = ["Pokemon", "Wii", "Super Mario", "Grand Theft Auto"]
PUBLISHER = "Nintendo"


@dataclass(frozen=True)
class QuestionAnswer:
    question: str
    answer: str


QuestionBuilder = Callable[[pd.DataFrame, random.Random], QuestionAnswer]


def _fixed2(value: float) -> str:
    # two decimals; a rounded negative zero prints as "0.00"
    return f"{round(float(value), 2) + 0.0:.2f}"


def na_vs_jp_sales_for_year(df: pd.DataFrame, rng: random.Random) -> QuestionAnswer:
    year = rng.randint(*YEAR_RANGE)
    rows = df[df["Year"] == year]
    total = (rows["NA_Sales"] - rows["JP_Sales"]).sum()

    return QuestionAnswer(
        question=(
            f'For video games released in the year "{year}", how many more sales units '
            "were made in North America compared to Japan?"
        ),
        answer=_fixed2(total),
    )


def games_with_name(df: pd.DataFrame, rng: random.Random) -> QuestionAnswer:
    name = rng.choice(NAME_FRAGMENTS)
    count = int(df["Name"].str.contains(name, regex=False).sum())

    return QuestionAnswer(
        question=f'How many video games contain "{name}" in their name?',
        answer=str(count),
    )


def global_sales_by_publisher(df: pd.DataFrame, rng: random.Random) -> QuestionAnswer:
    is_publisher = rng.random() < 0.5
    condition_text = "are" if is_publisher else "are <strong>not</strong>"

    mask = df["Publisher"] == PUBLISHER
    if not is_publisher:
        mask = ~mask
    total = df.loc[mask, "Global_Sales"].sum()

    return QuestionAnswer(
        question=f"What are the total global sales for games that {condition_text} published by {PUBLISHER}?",
        answer=_fixed2(total),
    )


def linear_expression(df: pd.DataFrame, rng: random.Random) -> QuestionAnswer:
    x = rng.randint(1, 20)
    y = rng.randint(1, 5)

    return QuestionAnswer(
        question=f"What is 8x + y, where x = {x} and y = {y}?",
        answer=str(8 * x + y),
    )


# Position in this list is the question number (1-based).
QUESTION_BUILDERS: List[QuestionBuilder] = [
    na_vs_jp_sales_for_year,
    games_with_name,
    global_sales_by_publisher,
    linear_expression,
]


def build_version_qa(
    df: pd.DataFrame,
    rng: random.Random,
    builders: Sequence[QuestionBuilder] = QUESTION_BUILDERS,
) -> Dict[str, str]:
    """Build the q<N>q / q<N>a fields for one version."""

    qa: Dict[str, str] = {}
    for q_num, builder in enumerate(builders, start=1):
        result = builder(df, rng)
        qa[f"q{q_num}q"] = result.question
        qa[f"q{q_num}a"] = result.answer
    return qa


def generate_qa(
    *,
    versions: Sequence[str],
    versions_dir: Path,
    dataset_file_name: str,
    rng: random.Random,
    builders: Sequence[QuestionBuilder] = QUESTION_BUILDERS,
) -> Dict[str, Dict[str, str]]:
    """Generate questions and answers for every version, in version order.

    Raises DatasetParseError on the first dataset that cannot be parsed.
    """

    qa: Dict[str, Dict[str, str]] = {}
    for version in versions:
        df = parse_dataset(versions_dir / version / dataset_file_name)
        qa[version] = build_version_qa(df, rng, builders)
        logger.info("Generated %d questions for version %s (%d rows)", len(builders), version, len(df))
    return qa


def qa_file_name(prefix: str, now: Optional[datetime] = None) -> str:
    ts = now or datetime.now()
    return f"{prefix}-{ts.strftime(QA_TIMESTAMP_FORMAT)}.json"


def write_qa_file(
    qa: Dict[str, Dict[str, str]],
    out_dir: Path,
    prefix: str,
    now: Optional[datetime] = None,
) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / qa_file_name(prefix, now)
    path.write_text(json.dumps(qa, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path
