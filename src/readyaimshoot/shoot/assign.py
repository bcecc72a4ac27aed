from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class Assignment:
    """Students who sit one version."""

    canvas_ids: List[int] = field(default_factory=list)
    sis_ids: List[str] = field(default_factory=list)


def version_for_sis_id(sis_user_id: Any, versions: Sequence[str]) -> Optional[str]:
    """Version index is the SIS id modulo the number of versions.

    Only the leading integer counts, so "123abc" maps like 123; ids with no
    leading digits (or None) have no version.
    """

    if sis_user_id is None:
        return None
    match = _LEADING_INT_RE.match(str(sis_user_id))
    if match is None:
        return None
    return versions[int(match.group(1)) % len(versions)]


def assign_students(students: Iterable[Dict[str, Any]], versions: Sequence[str]) -> Dict[str, Assignment]:
    """Group Canvas users by version.

    Every version gets an entry, possibly empty. Students without a numeric
    sis_user_id cannot be placed and are skipped with a warning.
    """

    if not versions:
        raise ValueError("no versions to assign students to")

    assignments: Dict[str, Assignment] = {v: Assignment() for v in versions}
    for student in students:
        sis_id = student.get("sis_user_id")
        version = version_for_sis_id(sis_id, versions)
        if version is None:
            logger.warning("Skipping user %s (%s): no numeric sis_user_id", student.get("id"), student.get("name", ""))
            continue
        assignments[version].canvas_ids.append(student["id"])
        assignments[version].sis_ids.append(str(sis_id))

    return assignments
