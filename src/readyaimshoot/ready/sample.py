from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence


@dataclass(frozen=True)
class SampleResult:
    version: str
    path: Path
    rows_written: int  # header excluded


def read_lines(path: Path) -> List[str]:
    """Read a CSV file as raw lines, line terminators stripped."""

    if not path.exists():
        raise FileNotFoundError(str(path))
    return path.read_text(encoding="utf-8").splitlines()


def pick_lines(line_numbers: Sequence[int], lines: Sequence[str]) -> List[str]:
    return [lines[n] for n in line_numbers]


def choose_sample_size(rng: random.Random, lo: int, hi: int) -> int:
    return rng.randint(lo, hi)


def select_line_numbers(total: int, num_to_pick: int, rng: random.Random) -> List[int]:
    """Sample line indices without replacement.

    The result is sorted, unique and always starts with 0 (the header row),
    whether or not 0 was drawn. num_to_pick is capped at `total`.
    """

    if total <= 0:
        return []

    k = max(0, min(num_to_pick, total))
    picked = sorted(set(rng.sample(range(total), k)))
    if not picked or picked[0] != 0:
        picked.insert(0, 0)
    return picked


def sample_versions(
    *,
    master_path: Path,
    out_dir: Path,
    versions: Sequence[str],
    dataset_file_name: str,
    num_to_pick_min: int,
    num_to_pick_max: int,
    rng: random.Random,
) -> List[SampleResult]:
    """Write one sampled copy of the master CSV per version.

    Layout: {out_dir}/{version}/{dataset_file_name}
    """

    lines = read_lines(master_path)
    results: List[SampleResult] = []

    for version in versions:
        num_to_pick = choose_sample_size(rng, num_to_pick_min, num_to_pick_max)
        selected = select_line_numbers(len(lines), num_to_pick, rng)

        version_dir = out_dir / version
        version_dir.mkdir(parents=True, exist_ok=True)
        path = version_dir / dataset_file_name
        path.write_text("\n".join(pick_lines(selected, lines)), encoding="utf-8")

        results.append(SampleResult(version=version, path=path, rows_written=max(0, len(selected) - 1)))

    return results
