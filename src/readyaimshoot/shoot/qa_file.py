from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import quote

GOOGLE_DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id="

QaMap = Dict[str, Dict[str, Any]]

_QUESTION_KEY_RE = re.compile(r"q$")


class QaValidationError(ValueError):
    def __init__(self, errors: List[str]) -> None:
        super().__init__("Errors found in QA file:\n" + "\n".join(errors))
        self.errors = errors


@dataclass(frozen=True)
class FileLink:
    file_name: str
    file_url: str


def load_qa_file(path: Path) -> QaMap:
    if not path.exists():
        raise FileNotFoundError(str(path))
    parsed = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(parsed, dict) or not all(isinstance(v, dict) for v in parsed.values()):
        raise ValueError(f"QA file must map version ids to objects: {path}")
    return parsed


def load_file_urls(path: Path, platform: str, onedrive_base_url: str = "") -> Dict[str, FileLink]:
    """Read the `fileid,fileName` CSV of uploaded per-version files.

    The version id is the part of fileName before the first '-'.
    """

    if not path.exists():
        raise FileNotFoundError(str(path))

    links: Dict[str, FileLink] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        row = line.split(",")
        if len(row) < 2:
            raise ValueError(f"malformed file URL row (expected fileid,fileName): {line!r}")

        file_id, file_name = row[0].strip(), row[1].strip()
        version = file_name.split("-")[0]

        if platform == "Canvas":
            url = file_id
        elif platform == "Google Drive":
            url = GOOGLE_DRIVE_DOWNLOAD_URL + file_id
        elif platform == "OneDrive":
            url = onedrive_base_url + quote(file_name, safe="")
        else:
            raise ValueError(f"Invalid platform specified: {platform!r}")

        links[version] = FileLink(file_name=file_name, file_url=url)

    return links


def merge_file_urls(qa: QaMap, links: Dict[str, FileLink]) -> QaMap:
    """Copy of `qa` with fileName/fileUrl added where a link exists."""

    merged: QaMap = {}
    for version, fields in qa.items():
        entry = dict(fields)
        link = links.get(version)
        if link is not None:
            entry["fileName"] = link.file_name
            entry["fileUrl"] = link.file_url
        merged[version] = entry
    return merged


def check_qa(qa: QaMap) -> List[str]:
    """Every question needs a non-empty answer, every version a file link."""

    errors: List[str] = []
    for version, fields in qa.items():
        for key in fields:
            if not _QUESTION_KEY_RE.search(key):
                continue
            answer_key = key[:-1] + "a"
            value = fields.get(answer_key)
            if value is None or value == "":
                errors.append(f"{version} - Missing or invalid answer for key: {answer_key}")

        if not (fields.get("fileName") and fields.get("fileUrl")):
            errors.append(f"{version}: Missing fileName or fileUrl")

    return errors


def validate_qa(qa: QaMap) -> None:
    errors = check_qa(qa)
    if errors:
        raise QaValidationError(errors)
