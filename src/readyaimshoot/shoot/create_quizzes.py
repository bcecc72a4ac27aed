from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from readyaimshoot.config import CanvasConfig
from readyaimshoot.logging_utils import JsonlLogger
from readyaimshoot.shoot.assign import Assignment
from readyaimshoot.shoot.canvas import (
    CanvasApiError,
    CanvasClient,
    new_override_payload,
    new_question_payload,
    new_quiz_payload,
)
from readyaimshoot.shoot.qa_file import QaMap

logger = logging.getLogger(__name__)

QUIZ_IDS_HEADER = "assignmentId|quizId|canvasStudentIds"

# Transport failures and unexpected statuses are handled per step.
_STEP_ERRORS = (CanvasApiError, requests.RequestException, ValueError)


@dataclass
class VersionRunResult:
    version: str
    status: str  # ok/warn/error
    message: str
    quiz_id: Optional[int] = None
    assignment_id: Optional[int] = None
    student_ids: List[int] = field(default_factory=list)
    questions_added: int = 0
    questions_failed: List[int] = field(default_factory=list)
    override_created: bool = False
    published: bool = False
    error_type: Optional[str] = None
    error_message: Optional[str] = None


def iso_utc(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix.

    Naive datetimes are taken as UTC.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def render_description(template: str, fields: Dict[str, Any]) -> str:
    return template.format(file_name=fields.get("fileName", ""), file_url=fields.get("fileUrl", ""))


def question_numbers(canvas: CanvasConfig) -> range:
    start = canvas.starting_question_number
    return range(start, start + canvas.questions_per_quiz)


def build_question_payloads(fields: Dict[str, Any], canvas: CanvasConfig) -> List[Dict[str, Any]]:
    """Short-answer payloads for one version, in position order.

    Bonus questions are worth 0 marks. Newlines in question text become <br/>.
    """

    payloads = []
    for i in question_numbers(canvas):
        key = f"q{canvas.question_prefix}{i}"
        question_text = str(fields[f"{key}q"]).replace("\n", "<br/>")
        points = 0 if i in canvas.bonus_questions else canvas.marks_per_question
        payloads.append(
            new_question_payload(
                position=i,
                name=f"Question {i}",
                points_possible=points,
                question_text=question_text,
                answer_text=str(fields[f"{key}a"]),
            )
        )
    return payloads


def create_version_quiz(
    client: CanvasClient,
    *,
    version: str,
    fields: Dict[str, Any],
    assignment: Assignment,
    canvas: CanvasConfig,
) -> VersionRunResult:
    """Create, fill, override and publish the quiz for one version.

    A failed quiz creation skips the version. Failed questions, override or
    publish are recorded and the remaining steps still run.
    """

    if canvas.start_date is None or canvas.lock_and_due_date is None:
        raise ValueError("canvas.start_date and canvas.lock_and_due_date must be set")

    quiz_payload = new_quiz_payload(
        title=canvas.assignment_title,
        description=render_description(canvas.description_template, fields),
        points_possible=canvas.total_marks,
        number_of_attempts=canvas.number_of_attempts,
        group=canvas.assignment_group,
    )

    try:
        questions = build_question_payloads(fields, canvas)
    except KeyError as exc:
        return VersionRunResult(
            version=version,
            status="error",
            message=f"missing QA field {exc}",
            error_type="KeyError",
            error_message=str(exc),
        )

    try:
        quiz = client.create_quiz(quiz_payload)
        quiz_id = int(quiz["id"])
        assignment_id = int(quiz["assignment_id"])
    except _STEP_ERRORS + (KeyError, TypeError) as exc:
        logger.error("Failed to create quiz for version %s: %s", version, exc)
        return VersionRunResult(
            version=version,
            status="error",
            message="quiz creation failed",
            error_type=type(exc).__name__,
            error_message=str(exc),
        )

    result = VersionRunResult(
        version=version,
        status="ok",
        message="ok",
        quiz_id=quiz_id,
        assignment_id=assignment_id,
        student_ids=list(assignment.canvas_ids),
    )
    problems: List[str] = []

    for payload in questions:
        position = payload["question"]["position"]
        try:
            client.add_question(quiz_id, payload)
            result.questions_added += 1
        except _STEP_ERRORS as exc:
            logger.error("Question %s failed for version %s: %s", position, version, exc)
            result.questions_failed.append(position)
    if result.questions_failed:
        problems.append(f"questions failed: {result.questions_failed}")

    if assignment.canvas_ids:
        override = new_override_payload(
            iso_utc(canvas.start_date), iso_utc(canvas.lock_and_due_date), assignment.canvas_ids
        )
        try:
            client.create_override(assignment_id, override)
            result.override_created = True
        except _STEP_ERRORS as exc:
            logger.error("Override failed for version %s: %s", version, exc)
            problems.append(f"override failed: {exc}")
    else:
        logger.warning("No students assigned to version %s; override skipped", version)
        problems.append("no students assigned")

    try:
        client.publish_quiz(quiz_id)
        result.published = True
    except _STEP_ERRORS as exc:
        logger.error("Publishing quiz %s failed for version %s: %s", quiz_id, version, exc)
        problems.append(f"publish failed: {exc}")

    if problems:
        result.status = "warn"
        result.message = "; ".join(problems)
    return result


def create_quizzes(
    client: CanvasClient,
    *,
    qa: QaMap,
    assignments: Dict[str, Assignment],
    canvas: CanvasConfig,
    events: Optional[JsonlLogger] = None,
) -> List[VersionRunResult]:
    """Create one quiz per version, sequentially, in QA file order."""

    results: List[VersionRunResult] = []
    for version, fields in qa.items():
        assignment = assignments.get(version, Assignment())
        logger.info("Creating quiz for version %s (%d students)", version, len(assignment.canvas_ids))

        result = create_version_quiz(client, version=version, fields=fields, assignment=assignment, canvas=canvas)
        results.append(result)

        if events is not None:
            events.log(
                "version_quiz",
                version=result.version,
                status=result.status,
                message=result.message,
                quiz_id=result.quiz_id,
                assignment_id=result.assignment_id,
                students=len(result.student_ids),
                questions_added=result.questions_added,
                questions_failed=result.questions_failed,
                override_created=result.override_created,
                published=result.published,
                error_type=result.error_type,
                error_message=result.error_message,
            )

    return results


def quiz_ids_file_name(qa_file_name: str, assignment_title: str) -> str:
    return f"{Path(qa_file_name).stem}-{assignment_title}-quizIds.txt"


def format_quiz_ids(results: Sequence[VersionRunResult]) -> str:
    lines = [QUIZ_IDS_HEADER]
    for r in results:
        if r.quiz_id is None:
            continue
        lines.append(f"{r.assignment_id}|{r.quiz_id}|{','.join(str(i) for i in r.student_ids)}")
    return "\n".join(lines) + "\n"


def write_quiz_ids(path: Path, results: Sequence[VersionRunResult]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_quiz_ids(results), encoding="utf-8")
    return path
