"""Turn a criterion into a search term and judge postings against it."""
from __future__ import annotations

from autoapply.llm import FieldExtractor, LLMClient
from autoapply.log import get_logger
from autoapply.models import Posting

log = get_logger(__name__)

_SEARCH_TERM_PROMPT = """\
A job seeker described what they are looking for in free text, for example
"Senior Python developer with salary from 350000 KZT".
Extract only the position to search for on a job board: drop seniority levels,
salary, location and any other qualifiers, keep the role and its key technology
(e.g. "Python developer", "Javascript разработчик"). Keep the user's language.

User's text: {criterion}

Return ONLY JSON in this format:
{{"position": "string"}}
"""

_SUITABILITY_PROMPT = """\
Analyze whether the vacancy is suitable for the user's requested position.
Be strict: if the vacancy is not a close match, it is not suitable.

User's requested position: {criterion}

Vacancy title: {title}
Employer: {employer}
Responsibilities: {responsibility}
Requirements: {requirement}
Salary: {salary}

Return ONLY JSON in this format:
{{"isSuitable": true or false, "reason": "string"}}
"""


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


class RelevanceClassifier:
    def __init__(self, llm: LLMClient, extractor: FieldExtractor) -> None:
        self.llm = llm
        self.extractor = extractor

    def search_term(self, criterion: str) -> str:
        """Normalized search term for *criterion*.

        Raises on transport failure, and ValueError when the reply carries no
        position.
        """
        reply = self.llm.complete(_SEARCH_TERM_PROMPT.format(criterion=criterion))
        position = self.extractor.extract(reply, "position")
        if not isinstance(position, str) or not position.strip():
            raise ValueError(f"No position in model reply for criterion {criterion!r}")
        term = position.strip()
        log.info("Search term for %r: %r", criterion, term)
        return term

    def is_suitable(self, criterion: str, posting: Posting) -> bool:
        """Model verdict for *posting*; any failure counts as not suitable."""
        prompt = _SUITABILITY_PROMPT.format(
            criterion=criterion,
            title=posting.title,
            employer=posting.employer,
            responsibility=posting.responsibility,
            requirement=posting.requirement,
            salary=posting.salary.describe() if posting.salary else "not specified",
        )
        try:
            reply = self.llm.complete(prompt)
        except Exception as exc:
            log.error("Suitability check failed for %s @ %s: %s", posting.title, posting.employer, exc)
            return False

        verdict = _as_bool(self.extractor.extract(reply, "isSuitable"))
        log.debug(
            "Suitability %s @ %s for %r: %s",
            posting.title, posting.employer, criterion, verdict,
        )
        return verdict
