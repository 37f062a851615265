"""
Decision submission: shape a finished flow into the decision-recording payload and hand
it to a sink. HttpDecisionSink posts it to the backend; swap by passing any object
with a `submit(payload)` method.
"""

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from standing_orders.models import DecisionSubmission, ExaminationResponse, UserSelections

log = logging.getLogger(__name__)

REASONS = ("Tutoring", "Self-study", "Patient Care")
PATIENT_CARE = "Patient Care"

DEFAULT_TIMEOUT = 30.0


class SubmissionError(RuntimeError):
    """Raised when the sink rejects a decision or cannot be reached."""


def build_submission(
    selections: UserSelections,
    reason: str,
    patient_id: Optional[str] = None,
    patient_age: Optional[str | int] = None,
) -> DecisionSubmission:
    """
    Build the payload for a completed flow.

    Only positive responses are sent, and the case description is those findings joined
    by ", ". Patient id and age are required for, and only sent with, Patient Care.
    """
    if reason not in REASONS:
        raise ValueError(f"Unknown reason '{reason}'. Choose: {', '.join(REASONS)}")
    if reason == PATIENT_CARE:
        if not patient_id or patient_age in (None, ""):
            raise ValueError("Patient Care requires patient id and patient age")
    else:
        patient_id = patient_age = None
    positive = [
        ExaminationResponse(question=r.question, response="yes")
        for r in selections.exam_responses
        if r.response == "yes"
    ]
    return DecisionSubmission(
        case_description=", ".join(r.question for r in positive),
        exam_responses=positive,
        chapter_title=selections.chapter_title,
        sub_chapter_title=selections.sub_chapter_title,
        sub_sub_chapter_title=selections.sub_sub_chapter_title or None,
        matching_diagnoses=selections.matching_diagnoses,
        reason=reason,
        patient_id=patient_id,
        patient_age=patient_age,
    )


def to_wire(payload: DecisionSubmission) -> Dict[str, Any]:
    """Request body for the decisions endpoint: camelCase, absent fields omitted."""
    return {"decisionDetails": payload.model_dump(mode="json", by_alias=True, exclude_none=True)}


@runtime_checkable
class DecisionSink(Protocol):
    """Interface for wherever decisions are recorded."""

    def submit(self, payload: DecisionSubmission) -> Dict[str, Any]:
        """Record the decision and return the sink's response body. Raise SubmissionError on failure."""
        ...


class HttpDecisionSink:
    """Posts decisions to `{base_url}/decisions` with bearer auth. No retries."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not base_url:
            raise ValueError("Decision API base URL not set. Set api_base_url in config or pass base_url=...")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = client
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def submit(self, payload: DecisionSubmission) -> Dict[str, Any]:
        url = f"{self._base_url}/decisions"
        client = self._client or httpx.Client(timeout=self._timeout)
        try:
            resp = client.post(url, json=to_wire(payload), headers=self._headers())
            resp.raise_for_status()
            body = resp.json() if resp.content else {}
        except httpx.HTTPStatusError as e:
            raise SubmissionError(f"Decision rejected ({e.response.status_code}): {e.response.text}") from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Decision API unreachable: {e}") from e
        except ValueError as e:
            raise SubmissionError(f"Decision API returned invalid JSON: {e}") from e
        finally:
            if self._client is None:
                client.close()
        if isinstance(body, dict) and body.get("success") is False:
            raise SubmissionError(str(body.get("error") or body.get("message") or "Decision not recorded"))
        return body if isinstance(body, dict) else {"data": body}


def submit_decision(
    sink: DecisionSink,
    selections: UserSelections,
    reason: str,
    patient_id: Optional[str] = None,
    patient_age: Optional[str | int] = None,
) -> Dict[str, Any]:
    """Build the payload and submit it. Failures are logged and re-raised."""
    payload = build_submission(selections, reason, patient_id=patient_id, patient_age=patient_age)
    try:
        return sink.submit(payload)
    except SubmissionError as e:
        log.warning("Decision submission failed: %s", e)
        raise
