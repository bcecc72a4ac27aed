from __future__ import annotations

import json
import os
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from readyaimshoot.config import Settings

# '-' is excluded: it separates the hash from the rest of a file name.
HASH_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ$@"
DEFAULT_HASH_LENGTH = 9


class VersionsFile(BaseModel):
    version: int = Field(default=1)
    created_at: Optional[str] = Field(default=None)
    hashes: List[str] = Field(default_factory=list)


def generate_hash(rng: random.Random, length: int = DEFAULT_HASH_LENGTH) -> str:
    return "".join(rng.choice(HASH_ALPHABET) for _ in range(length))


def generate_hashes(n: int, rng: random.Random, length: int = DEFAULT_HASH_LENGTH) -> List[str]:
    """Return `n` distinct version hashes."""

    if n < 1:
        raise ValueError("number of versions must be >= 1")

    hashes: List[str] = []
    seen = set()
    while len(hashes) < n:
        h = generate_hash(rng, length)
        if h in seen:
            continue
        seen.add(h)
        hashes.append(h)
    return hashes


def load_versions(path: Path) -> List[str]:
    if not path.exists():
        raise FileNotFoundError(f"versions file not found: {path} (run `readyaimshoot versions` first)")

    raw = path.read_text(encoding="utf-8")
    parsed = json.loads(raw) if raw.strip() else {}
    if not isinstance(parsed, dict):
        raise ValueError("versions file must be a JSON object at the top level")

    try:
        versions_file = VersionsFile.model_validate(parsed)
    except ValidationError as exc:
        raise ValueError(f"Invalid versions file: {exc}") from exc

    _check_hashes(versions_file.hashes)
    return list(versions_file.hashes)


def save_versions(path: Path, hashes: List[str], now: Optional[datetime] = None) -> None:
    """Atomically write the versions file (temp file + os.replace)."""

    _check_hashes(hashes)
    created = (now or datetime.now(timezone.utc)).isoformat()

    path.parent.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = VersionsFile(created_at=created, hashes=list(hashes)).model_dump(mode="python")
    content = json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n"

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(content, encoding="utf-8")
    os.replace(tmp_path, path)


def resolve_versions(settings: Settings) -> List[str]:
    """Explicit `versions` from the config win over the versions file."""

    if settings.versions:
        _check_hashes(settings.versions)
        return list(settings.versions)
    return load_versions(settings.paths.versions_file)


def _check_hashes(hashes: List[str]) -> None:
    if not hashes:
        raise ValueError("no version hashes")
    seen = set()
    dupes = []
    for h in hashes:
        if h in seen:
            dupes.append(h)
        seen.add(h)
    if dupes:
        raise ValueError(f"Duplicate version hashes: {sorted(dupes)}")
