from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, model_validator

Platform = Literal["Canvas", "Google Drive", "OneDrive"]
Grouping = Literal["file", "folder"]

DEFAULT_DESCRIPTION_TEMPLATE = (
    "<p>This is a test assessment. Please use the link below to download the files "
    "for your assessment version.</p>\n"
    '<p><strong>{file_name}</strong>: <a href="{file_url}">{file_url}</a></p>'
)


class PathsConfig(BaseModel):
    data_dir: Path = Field(default=Path("data"))
    logs_dir: Path = Field(default=Path("logs"))
    versions_file: Path = Field(default=Path("data/versions.json"))

    # Ready: master dataset in, one folder per version out
    master_dir: Path = Field(default=Path("inFiles"))
    versions_dir: Path = Field(default=Path("outFiles"))
    zips_dir: Path = Field(default=Path("zips"))

    # Aim: QA files
    qa_dir: Path = Field(default=Path("qa"))


class ReadyConfig(BaseModel):
    num_versions: int = Field(default=3, ge=1)
    dataset_file_name: str = Field(default="Video Game Sales.csv")

    # Rows to pick per version, header excluded
    num_to_pick_min: int = Field(default=16450, ge=0)
    num_to_pick_max: int = Field(default=16550, ge=0)

    hash_length: int = Field(default=9, ge=4)
    seed: Optional[int] = Field(default=None)

    @model_validator(mode="after")
    def _check_pick_range(self) -> "ReadyConfig":
        if self.num_to_pick_min > self.num_to_pick_max:
            raise ValueError("num_to_pick_min must be <= num_to_pick_max")
        return self


class ArchiveConfig(BaseModel):
    suffix: str = Field(default="game")
    grouping: Grouping = Field(default="folder")
    exclude_patterns: List[str] = Field(default_factory=lambda: ["*/answer.csv", "*answer*"])


class AimConfig(BaseModel):
    qa_file_prefix: str = Field(default="TestQA")
    seed: Optional[int] = Field(default=None)


class CanvasConfig(BaseModel):
    """Canvas LMS settings.

    The token is read from CANVAS_TOKEN and must not be committed. Test against
    a Canvas test instance before pointing `domain` at production.
    """

    domain: str = Field(default="https://canvas.test.instructure.com")
    token: Optional[SecretStr] = Field(default=None)
    course_id: int = Field(default=0)

    # Where the per-version download links live
    platform: Platform = Field(default="Canvas")
    onedrive_base_url: str = Field(default="")

    assignment_title: str = Field(default="Test Assessment")
    assignment_group: int = Field(default=0)
    number_of_attempts: int = Field(default=1)
    start_date: Optional[datetime] = Field(default=None)
    lock_and_due_date: Optional[datetime] = Field(default=None)

    total_marks: float = Field(default=100)
    questions_per_quiz: int = Field(default=4, ge=1)
    starting_question_number: int = Field(default=1)
    question_prefix: str = Field(default="")
    bonus_questions: List[int] = Field(default_factory=list)

    description_template: str = Field(default=DEFAULT_DESCRIPTION_TEMPLATE)

    per_page: int = Field(default=100, ge=1)
    timeout_s: float = Field(default=30.0)
    max_attempts: int = Field(default=3, ge=1)

    @property
    def marks_per_question(self) -> float:
        return self.total_marks / self.questions_per_quiz


class Settings(BaseModel):
    """Application settings.

    Versions:
    - `versions` pins the version hashes explicitly; when empty the hashes are
      read from `paths.versions_file`, which `sample`/`versions` write.

    Secrets:
    - canvas.token is read from env/YAML and must not be committed.
    """

    versions: List[str] = Field(default_factory=list)

    paths: PathsConfig = Field(default_factory=PathsConfig)
    ready: ReadyConfig = Field(default_factory=ReadyConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    aim: AimConfig = Field(default_factory=AimConfig)
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)


def load_settings(config_path: Optional[Path]) -> Settings:
    """Load settings from .env + optional YAML.

    Precedence:
      1) defaults
      2) .env / environment (CANVAS_TOKEN, CANVAS_DOMAIN, CANVAS_COURSE_ID)
      3) YAML file (if provided)

    Only the project's local `.env` is loaded so that runs and tests do not pick
    up unrelated `.env` files from parent directories.
    """

    load_dotenv(dotenv_path=Path(".env"), override=False)

    base = Settings()
    merged: Dict[str, Any] = base.model_dump(mode="python")

    env_token = _getenv("CANVAS_TOKEN")
    env_domain = _getenv("CANVAS_DOMAIN")
    env_course_id = _getenv("CANVAS_COURSE_ID")

    if env_token is not None:
        merged["canvas"]["token"] = env_token
    if env_domain is not None:
        merged["canvas"]["domain"] = env_domain
    if env_course_id is not None:
        merged["canvas"]["course_id"] = env_course_id

    if config_path is not None:
        cfg = _load_yaml(config_path)
        merged = _deep_merge(merged, cfg)

    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _getenv(key: str) -> Optional[str]:
    import os

    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(str(path))
    raw = path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(raw) or {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML config must be a mapping/object at the top level")
    return parsed


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if (
            k in out
            and isinstance(out[k], dict)
            and isinstance(v, dict)
        ):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out
