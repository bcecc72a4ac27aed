"""Shoot stage: publish per-version quizzes to Canvas."""

from readyaimshoot.shoot.assign import Assignment, assign_students
from readyaimshoot.shoot.canvas import CanvasApiError, CanvasClient, next_url
from readyaimshoot.shoot.create_quizzes import (
    VersionRunResult,
    create_quizzes,
    quiz_ids_file_name,
    write_quiz_ids,
)
from readyaimshoot.shoot.qa_file import (
    QaValidationError,
    check_qa,
    load_file_urls,
    load_qa_file,
    merge_file_urls,
    validate_qa,
)

__all__ = [
    "Assignment",
    "CanvasApiError",
    "CanvasClient",
    "QaValidationError",
    "VersionRunResult",
    "assign_students",
    "check_qa",
    "create_quizzes",
    "load_file_urls",
    "load_qa_file",
    "merge_file_urls",
    "next_url",
    "quiz_ids_file_name",
    "validate_qa",
    "write_quiz_ids",
]
