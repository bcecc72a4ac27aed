from __future__ import annotations

import json
import random
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from readyaimshoot.aim.dataset import DatasetParseError, parse_dataset
from readyaimshoot.aim.questions import (
    build_version_qa,
    games_with_name,
    generate_qa,
    global_sales_by_publisher,
    linear_expression,
    na_vs_jp_sales_for_year,
    qa_file_name,
    write_qa_file,
)

DATASET = """Rank,Name,Platform,Year,Genre,Publisher,NA_Sales,EU_Sales,JP_Sales,Other_Sales,Global_Sales
1,Wii Sports,Wii,2006,Sports,Nintendo,41.49,29.02,3.77,8.46,82.74
2,Super Mario Bros.,NES,1985,Platform,Nintendo,29.08,3.58,6.81,0.77,40.24
3,Mario Kart Wii,Wii,2008,Racing,Nintendo,15.85,12.88,3.79,3.31,35.82
4,Duck Hunt,NES,1984,Shooter,Nintendo,26.93,0.63,0.28,0.47,28.31
5,Pokemon Red/Pokemon Blue,GB,1996,Role-Playing,Nintendo,11.27,8.89,10.22,1,31.37

6,"Grand Theft Auto V",PS3,2013,Action,Take-Two Interactive,7.01,9.27,0.97,4.14,21.4
7,Tetris,GB,1989,Puzzle,Nintendo,23.2,2.26,4.22,0.58,30.26
8,Some Game,PC,N/A,Misc,Unknown,0.5,0.1,0.1,0,0.7
"""


class _ScriptedRng:
    """Stands in for random.Random with fixed draws."""

    def __init__(self, ints: list[int], choice: str = "Wii", coin: float = 0.1) -> None:
        self._ints = list(ints)
        self._choice = choice
        self._coin = coin

    def randint(self, a: int, b: int) -> int:
        value = self._ints.pop(0)
        assert a <= value <= b
        return value

    def choice(self, seq):
        assert self._choice in seq
        return self._choice

    def random(self) -> float:
        return self._coin


@pytest.fixture()
def dataset(tmp_path: Path):
    path = tmp_path / "Video Game Sales.csv"
    path.write_text(DATASET, encoding="utf-8")
    return parse_dataset(path)


def test_parse_dataset_skips_blank_lines_and_coerces(dataset) -> None:
    assert len(dataset) == 8
    assert dataset["Name"].iloc[5] == "Grand Theft Auto V"
    assert dataset["Year"].isna().sum() == 1


def test_parse_dataset_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("Rank,Name\n1,Foo\n", encoding="utf-8")

    with pytest.raises(DatasetParseError, match="missing columns"):
        parse_dataset(path)


def test_parse_dataset_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(DatasetParseError):
        parse_dataset(path)


def test_question_one_sales_difference(dataset) -> None:
    qa = na_vs_jp_sales_for_year(dataset, _ScriptedRng([1985]))
    assert qa.question == (
        'For video games released in the year "1985", how many more sales units '
        "were made in North America compared to Japan?"
    )
    assert qa.answer == "22.27"


def test_question_one_year_without_games(dataset) -> None:
    assert na_vs_jp_sales_for_year(dataset, _ScriptedRng([1990])).answer == "0.00"


def test_question_one_rounds_negative_zero_to_plain_zero() -> None:
    df = pd.DataFrame({"Year": [2000], "NA_Sales": [0.001], "JP_Sales": [0.002]})
    assert na_vs_jp_sales_for_year(df, _ScriptedRng([2000])).answer == "0.00"


@pytest.mark.parametrize(
    "name, expected",
    [("Wii", "2"), ("Pokemon", "1"), ("Grand Theft Auto", "1"), ("Super Mario", "1")],
)
def test_question_two_name_count(dataset, name: str, expected: str) -> None:
    qa = games_with_name(dataset, _ScriptedRng([], choice=name))
    assert qa.question == f'How many video games contain "{name}" in their name?'
    assert qa.answer == expected


def test_question_three_publisher(dataset) -> None:
    is_nintendo = global_sales_by_publisher(dataset, _ScriptedRng([], coin=0.1))
    not_nintendo = global_sales_by_publisher(dataset, _ScriptedRng([], coin=0.9))

    assert is_nintendo.question == "What are the total global sales for games that are published by Nintendo?"
    assert is_nintendo.answer == "248.74"
    assert "<strong>not</strong>" in not_nintendo.question
    assert not_nintendo.answer == "22.10"


def test_question_four_expression(dataset) -> None:
    qa = linear_expression(dataset, _ScriptedRng([3, 2]))
    assert qa.question == "What is 8x + y, where x = 3 and y = 2?"
    assert qa.answer == "26"


def test_build_version_qa_keys(dataset) -> None:
    qa = build_version_qa(dataset, _ScriptedRng([1985, 3, 2]))
    assert list(qa) == ["q1q", "q1a", "q2q", "q2a", "q3q", "q3a", "q4q", "q4a"]
    assert all(isinstance(v, str) and v for v in qa.values())


def test_generate_qa_and_write(tmp_path: Path) -> None:
    versions_dir = tmp_path / "outFiles"
    for v in ("h1", "h2"):
        (versions_dir / v).mkdir(parents=True)
        (versions_dir / v / "Video Game Sales.csv").write_text(DATASET, encoding="utf-8")

    qa = generate_qa(
        versions=["h1", "h2"],
        versions_dir=versions_dir,
        dataset_file_name="Video Game Sales.csv",
        rng=random.Random(4),
    )
    assert list(qa) == ["h1", "h2"]

    now = datetime(2024, 12, 2, 23, 4, 19)
    path = write_qa_file(qa, tmp_path / "qa", "TestQA", now=now)
    assert path.name == "TestQA-2024-12-02-230419.json"
    assert json.loads(path.read_text(encoding="utf-8")) == qa


def test_generate_qa_missing_dataset(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        generate_qa(versions=["h1"], versions_dir=tmp_path, dataset_file_name="x.csv", rng=random.Random(0))


def test_qa_file_name_format() -> None:
    assert qa_file_name("Quiz", datetime(2025, 1, 5, 7, 8, 9)) == "Quiz-2025-01-05-070809.json"
