from __future__ import annotations

import json
import random
from datetime import datetime, timezone
from pathlib import Path

import pytest

from readyaimshoot.config import Settings
from readyaimshoot.versions import (
    HASH_ALPHABET,
    generate_hash,
    generate_hashes,
    load_versions,
    resolve_versions,
    save_versions,
)


def test_generate_hash_uses_alphabet_without_dash() -> None:
    rng = random.Random(1)
    for _ in range(50):
        h = generate_hash(rng, 9)
        assert len(h) == 9
        assert set(h) <= set(HASH_ALPHABET)
        assert "-" not in h


def test_generate_hashes_distinct_and_deterministic() -> None:
    a = generate_hashes(20, random.Random(42))
    b = generate_hashes(20, random.Random(42))

    assert a == b
    assert len(set(a)) == 20


def test_generate_hashes_rejects_zero() -> None:
    with pytest.raises(ValueError):
        generate_hashes(0, random.Random())


def test_save_and_load_versions(tmp_path: Path) -> None:
    path = tmp_path / "data" / "versions.json"
    now = datetime(2024, 12, 1, 9, 30, tzinfo=timezone.utc)

    save_versions(path, ["iG6Zp4WDF", "Z8lZJChRtn", "F29R1ibztX"], now=now)

    assert load_versions(path) == ["iG6Zp4WDF", "Z8lZJChRtn", "F29R1ibztX"]
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["created_at"] == now.isoformat()
    assert not path.with_suffix(".json.tmp").exists()


def test_load_versions_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_versions(tmp_path / "nope.json")


def test_load_versions_rejects_duplicates(tmp_path: Path) -> None:
    path = tmp_path / "versions.json"
    path.write_text(json.dumps({"version": 1, "hashes": ["a", "b", "a"]}), encoding="utf-8")

    with pytest.raises(ValueError, match="Duplicate"):
        load_versions(path)


def test_resolve_versions_prefers_explicit_config(tmp_path: Path) -> None:
    path = tmp_path / "versions.json"
    save_versions(path, ["fromfile"])

    explicit = Settings.model_validate({"versions": ["x1", "x2"], "paths": {"versions_file": str(path)}})
    from_file = Settings.model_validate({"paths": {"versions_file": str(path)}})

    assert resolve_versions(explicit) == ["x1", "x2"]
    assert resolve_versions(from_file) == ["fromfile"]
