"""Per-version zip archives of the files handed out to students."""

from __future__ import annotations

import logging
import random
import zipfile
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import List, Sequence

from readyaimshoot.versions import generate_hash

logger = logging.getLogger(__name__)

UNIQUE_ID_LENGTH = 8


@dataclass(frozen=True)
class ArchiveResult:
    version: str
    path: Path
    files: List[str]  # archive member names


def zip_file_name(version: str, suffix: str, unique_id: str) -> str:
    return f"{version}-{suffix}-{unique_id}.zip"


def is_excluded(rel_path: str, patterns: Sequence[str]) -> bool:
    return any(fnmatchcase(rel_path, p) for p in patterns)


def files_for_version(in_dir: Path, version: str, grouping: str) -> List[Path]:
    """Collect a version's files.

    grouping:
      - "file":   files directly in in_dir named "<version>-*" or "<version>.*"
      - "folder": every file below in_dir/<version>/
    """

    if grouping == "file":
        candidates = [
            p
            for p in in_dir.iterdir()
            if p.is_file() and (p.name.startswith(f"{version}-") or p.name.startswith(f"{version}."))
        ]
    elif grouping == "folder":
        version_dir = in_dir / version
        if not version_dir.is_dir():
            return []
        candidates = [p for p in version_dir.rglob("*") if p.is_file()]
    else:
        raise ValueError(f"unsupported grouping: {grouping!r} (expected 'file' or 'folder')")

    return sorted(candidates)


def create_version_zip(
    *,
    in_dir: Path,
    out_dir: Path,
    version: str,
    suffix: str,
    grouping: str,
    exclude_patterns: Sequence[str],
    rng: random.Random,
) -> ArchiveResult:
    """Zip one version's files; member names are relative to in_dir."""

    files = files_for_version(in_dir, version, grouping)

    out_dir.mkdir(parents=True, exist_ok=True)
    zip_path = out_dir / zip_file_name(version, suffix, generate_hash(rng, UNIQUE_ID_LENGTH))

    members: List[str] = []
    with zipfile.ZipFile(zip_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for p in files:
            arcname = p.relative_to(in_dir).as_posix()
            if is_excluded(arcname, exclude_patterns):
                continue
            zf.write(p, arcname)
            members.append(arcname)

    if not members:
        logger.warning("Zip for version %s is empty (no files matched in %s)", version, in_dir)

    return ArchiveResult(version=version, path=zip_path, files=members)


def create_version_zips(
    *,
    in_dir: Path,
    out_dir: Path,
    versions: Sequence[str],
    suffix: str,
    grouping: str,
    exclude_patterns: Sequence[str],
    rng: random.Random,
) -> List[ArchiveResult]:
    if not in_dir.is_dir():
        raise FileNotFoundError(f"input directory not found: {in_dir}")

    return [
        create_version_zip(
            in_dir=in_dir,
            out_dir=out_dir,
            version=v,
            suffix=suffix,
            grouping=grouping,
            exclude_patterns=exclude_patterns,
            rng=rng,
        )
        for v in versions
    ]
