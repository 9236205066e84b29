"""Generate tailored cover letters with the language model."""
from __future__ import annotations

from autoapply.llm import LLMClient
from autoapply.log import get_logger
from autoapply.models import Posting, User

log = get_logger(__name__)

_PROMPT = """\
Write a short professional cover letter for this vacancy.
Position: {title}
Employer: {employer}
Requirements: {requirement}
Responsibilities: {responsibility}

Candidate first name: {first_name}
Candidate last name: {last_name}
Candidate resume:
{resume}

Explain how the candidate's education, experience, skills and motivation fit the
requirements. Write in the language of the vacancy, in a professional and concise
tone, 50-60 words, and always start with a greeting. Only mention skills and
experience that appear in the resume; never invent any. Do not use placeholders
like [Your Name] and do not add extra whitespace or symbols.
"""


class CoverLetterWriter:
    def __init__(self, llm: LLMClient, *, max_tokens: int = 400) -> None:
        self.llm = llm
        self.max_tokens = max_tokens

    def generate(self, user: User, posting: Posting, resume_text: str = "") -> str | None:
        """Cover letter text, or None when the model call fails or returns nothing."""
        prompt = _PROMPT.format(
            title=posting.title,
            employer=posting.employer,
            requirement=posting.requirement,
            responsibility=posting.responsibility,
            first_name=user.first_name,
            last_name=user.last_name,
            resume=resume_text or "(not provided)",
        )
        try:
            letter = self.llm.complete(prompt, max_tokens=self.max_tokens)
        except Exception as exc:
            log.warning("Cover letter generation failed for %s @ %s: %s", posting.title, posting.employer, exc)
            return None
        if not letter:
            log.warning("Empty cover letter for %s @ %s", posting.title, posting.employer)
            return None
        log.info("Cover letter generated for %s @ %s", posting.title, posting.employer)
        return letter
