from __future__ import annotations

import logging

import pytest

from readyaimshoot.shoot.assign import assign_students, version_for_sis_id

VERSIONS = ["iG6Zp4WDF", "Z8lZJChRtn", "F29R1ibztX"]


def test_version_for_sis_id_modulo() -> None:
    assert version_for_sis_id("300", VERSIONS) == "iG6Zp4WDF"
    assert version_for_sis_id(301, VERSIONS) == "Z8lZJChRtn"
    assert version_for_sis_id(" 302 ", VERSIONS) == "F29R1ibztX"
    assert version_for_sis_id(None, VERSIONS) is None
    assert version_for_sis_id("abc", VERSIONS) is None


def test_version_for_sis_id_uses_leading_digits() -> None:
    assert version_for_sis_id("301abc", VERSIONS) == "Z8lZJChRtn"
    assert version_for_sis_id("  302-b", VERSIONS) == "F29R1ibztX"
    assert version_for_sis_id("a301", VERSIONS) is None


def test_assign_students_groups_by_version(caplog: pytest.LogCaptureFixture) -> None:
    students = [
        {"id": 1, "sis_user_id": "600"},
        {"id": 2, "sis_user_id": "601"},
        {"id": 3, "sis_user_id": "603"},
        {"id": 4, "sis_user_id": None, "name": "Test Student"},
    ]

    with caplog.at_level(logging.WARNING):
        assignments = assign_students(students, VERSIONS)

    assert list(assignments) == VERSIONS
    assert assignments["iG6Zp4WDF"].canvas_ids == [1, 3]
    assert assignments["iG6Zp4WDF"].sis_ids == ["600", "603"]
    assert assignments["Z8lZJChRtn"].canvas_ids == [2]
    assert assignments["F29R1ibztX"].canvas_ids == []
    assert "Test Student" in caplog.text


def test_assign_students_requires_versions() -> None:
    with pytest.raises(ValueError):
        assign_students([], [])
