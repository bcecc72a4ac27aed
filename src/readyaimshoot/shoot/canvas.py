"""Canvas LMS REST client and request payloads.

Endpoints used (all below /api/v1/courses/:course_id):
  GET  /users?enrollment_type[]=student      paginated via the Link header
  POST /quizzes                              200
  PUT  /quizzes/:quiz_id                     200
  POST /quizzes/:quiz_id/questions           200
  PUT  /quizzes/:quiz_id/questions/:id       200
  POST /quizzes/:quiz_id/reports             200
  POST /assignments/:assignment_id/overrides 201
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from readyaimshoot.retry_utils import (
    RETRYABLE_STATUS,
    RetryableHttpStatus,
    RetryConfig,
    is_transient_http_error,
    retry_call,
)

logger = logging.getLogger(__name__)

_NEXT_LINK_RE = re.compile(r'^<(.*)>; rel="next"$')

IDEMPOTENT_METHODS = frozenset({"GET", "PUT"})


def _safe_to_resend(exc: Exception) -> bool:
    # a POST may already be committed unless it was throttled or never connected
    if isinstance(exc, RetryableHttpStatus):
        return exc.status_code == 429
    return isinstance(exc, requests.ConnectTimeout)


class CanvasApiError(RuntimeError):
    def __init__(self, status_code: int, reason: str, url: str) -> None:
        super().__init__(f"Canvas API error {status_code} {reason} for {url}")
        self.status_code = status_code
        self.reason = reason
        self.url = url


def format_points(value: float) -> str:
    """Points as Canvas expects them: "25" for whole numbers, full precision otherwise."""

    v = float(value)
    return str(int(v)) if v.is_integer() else repr(v)


def next_url(link_header: Optional[str]) -> Optional[str]:
    """Return the rel="next" URL of a Link header, or None."""

    if not link_header:
        return None
    for part in link_header.split(","):
        match = _NEXT_LINK_RE.match(part.strip())
        if match:
            return match.group(1)
    return None


# --- payloads ---------------------------------------------------------------


def new_quiz_payload(
    title: str,
    description: str,
    points_possible: float,
    number_of_attempts: int,
    group: int,
    hide_results: Optional[str] = None,
) -> Dict[str, Any]:
    """Unpublished assignment quiz visible only to students with an override.

    number_of_attempts = -1 means unlimited.
    """
    return {
        "quiz": {
            "title": f"{title}",
            "description": f"{description}",
            "type": "assignment",
            "points_possible": format_points(points_possible),
            "scoring_policy": "keep_highest",
            "show_correct_answers": False,
            "allowed_attempts": f"{number_of_attempts}",
            "published": False,
            "only_visible_to_overrides": True,
            "assignment_group_id": group,
            "hide_results": hide_results,
        }
    }


def edit_quiz_payload(quiz: Dict[str, Any]) -> Dict[str, Any]:
    return {"quiz": quiz}


def save_quiz_payload(quiz_id: int) -> Dict[str, Any]:
    return {"quizzes": [quiz_id]}


def new_report_payload() -> Dict[str, Any]:
    return {
        "include": "file",
        "quiz_report": {
            "includes_all_versions": True,
            "report_type": "student_analysis",
        },
    }


def new_question_payload(
    position: int,
    name: str,
    points_possible: float,
    question_text: str,
    answer_text: str,
) -> Dict[str, Any]:
    """Short-answer question with a single fully weighted answer."""
    return {
        "question": {
            "position": position,
            "name": name,
            "question_type": "short_answer_question",
            "question_text": f"<p>{question_text}</p>",
            "points_possible": format_points(points_possible),
            "answers": [
                {
                    "answer_text": f"{answer_text}",
                    "answer_weight": 100,
                }
            ],
        }
    }


def new_long_question_payload(position: int, name: str, points_possible: float, question_text: str) -> Dict[str, Any]:
    return {
        "question": {
            "position": position,
            "name": name,
            "question_type": "essay_question",
            "question_text": f"<p>{question_text}</p>",
            "points_possible": format_points(points_possible),
        }
    }


def new_blank_question_payload(position: int, question_text: str) -> Dict[str, Any]:
    return {
        "question": {
            "position": position,
            "question_type": "text_only_question",
            "question_text": f"<p>{question_text}</p>",
        }
    }


def new_file_question_payload(position: int, question_text: str) -> Dict[str, Any]:
    return {
        "question": {
            "position": position,
            "question_type": "file_upload_question",
            "question_text": f"<p>{question_text}</p>",
        }
    }


def edit_question_payload(question: Dict[str, Any]) -> Dict[str, Any]:
    return {"question": question}


def new_override_payload(start_date: str, lock_and_due_date: str, student_ids: Sequence[int]) -> Dict[str, Any]:
    return {
        "assignment_override": {
            "unlock_at": f"{start_date}",
            "lock_at": f"{lock_and_due_date}",
            "due_at": f"{lock_and_due_date}",
            "student_ids": list(student_ids),
        }
    }


def publish_quiz_payload() -> Dict[str, Any]:
    return {"quiz": {"published": True, "notify_of_update": False}}


# --- client -----------------------------------------------------------------


class CanvasClient:
    def __init__(
        self,
        *,
        domain: str,
        token: str,
        course_id: int,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30.0,
        max_attempts: int = 3,
    ) -> None:
        if not token:
            raise ValueError("Canvas API token missing (set CANVAS_TOKEN or canvas.token)")

        self.domain = domain.rstrip("/")
        self.course_id = course_id
        self.timeout_s = timeout_s
        self.retry = RetryConfig(max_attempts=max_attempts)

        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
            }
        )

    @property
    def course_url(self) -> str:
        return f"{self.domain}/api/v1/courses/{self.course_id}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        expected: Iterable[int] = (200,),
    ) -> requests.Response:
        idempotent = method.upper() in IDEMPOTENT_METHODS
        should_retry = is_transient_http_error if idempotent else _safe_to_resend

        def _do_request() -> requests.Response:
            # (connect, read)
            timeout = (min(5.0, float(self.timeout_s)), float(self.timeout_s))
            resp = self.session.request(method, url, json=json, params=params, timeout=timeout)
            if resp.status_code in RETRYABLE_STATUS and (idempotent or resp.status_code == 429):
                raise RetryableHttpStatus(resp.status_code, url)
            return resp

        def _on_retry(attempt: int, exc: Exception, delay_s: float) -> None:
            logger.warning("%s %s failed (attempt %d: %s), retrying in %.1fs", method, url, attempt, exc, delay_s)

        try:
            resp = retry_call(_do_request, cfg=self.retry, should_retry=should_retry, on_retry=_on_retry)
        except RetryableHttpStatus as exc:
            raise CanvasApiError(exc.status_code, "retries exhausted", url) from exc

        if resp.status_code not in tuple(expected):
            raise CanvasApiError(resp.status_code, getattr(resp, "reason", "") or "", url)
        return resp

    def list_students(self, per_page: int = 100) -> List[Dict[str, Any]]:
        """All students enrolled in the course, following Link pagination."""

        students: List[Dict[str, Any]] = []
        url: Optional[str] = f"{self.course_url}/users"
        params: Optional[Dict[str, Any]] = {"enrollment_type[]": "student", "per_page": per_page}

        while url:
            resp = self._request("GET", url, params=params)
            page = resp.json()
            if not isinstance(page, list):
                raise ValueError(f"unexpected users response from {url}: expected a list")
            students.extend(page)

            url = next_url(resp.headers.get("Link"))
            # next links already carry the query string
            params = None

        return students

    def create_quiz(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"{self.course_url}/quizzes", json=payload).json()

    def edit_quiz(self, quiz_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"{self.course_url}/quizzes/{quiz_id}", json=payload).json()

    def publish_quiz(self, quiz_id: int) -> Dict[str, Any]:
        return self.edit_quiz(quiz_id, publish_quiz_payload())

    def add_question(self, quiz_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"{self.course_url}/quizzes/{quiz_id}/questions", json=payload).json()

    def edit_question(self, quiz_id: int, question_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.course_url}/quizzes/{quiz_id}/questions/{question_id}"
        return self._request("PUT", url, json=payload).json()

    def create_quiz_report(self, quiz_id: int) -> Dict[str, Any]:
        url = f"{self.course_url}/quizzes/{quiz_id}/reports"
        return self._request("POST", url, json=new_report_payload()).json()

    def create_override(self, assignment_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.course_url}/assignments/{assignment_id}/overrides"
        return self._request("POST", url, json=payload, expected=(201,)).json()
