"""Submit applications through a linked HeadHunter account."""
from __future__ import annotations

from dataclasses import dataclass, field

from autoapply.log import get_logger
from autoapply.sources.headhunter import HeadHunterClient, describe_error

log = get_logger(__name__)


@dataclass
class SubmissionResult:
    ok: bool
    message: str = ""
    payload: dict = field(default_factory=dict)


def submit_application(
    hh: HeadHunterClient,
    posting_id: str,
    resume_id: str,
    message: str | None,
    token: str,
) -> SubmissionResult:
    """Best-effort: failures come back as ``ok=False``, never as exceptions."""
    try:
        payload = hh.send_negotiation(posting_id, resume_id, message, token)
    except Exception as exc:
        detail = describe_error(exc)
        log.error("Application to vacancy %s failed: %s", posting_id, detail)
        return SubmissionResult(ok=False, message=detail)
    log.info("Applied to vacancy %s with resume %s", posting_id, resume_id)
    return SubmissionResult(ok=True, message="applied", payload=payload)
