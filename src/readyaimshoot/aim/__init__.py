"""Aim stage: personalised question/answer pairs per version."""

from readyaimshoot.aim.dataset import DATASET_COLUMNS, DatasetParseError, parse_dataset
from readyaimshoot.aim.questions import (
    QUESTION_BUILDERS,
    QuestionAnswer,
    build_version_qa,
    generate_qa,
    qa_file_name,
    write_qa_file,
)

__all__ = [
    "DATASET_COLUMNS",
    "DatasetParseError",
    "QUESTION_BUILDERS",
    "QuestionAnswer",
    "build_version_qa",
    "generate_qa",
    "parse_dataset",
    "qa_file_name",
    "write_qa_file",
]
