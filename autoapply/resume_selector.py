"""Pick which of a user's HeadHunter resumes to apply with."""
from __future__ import annotations

from dataclasses import dataclass

import requests

from autoapply.concurrency import settle_all
from autoapply.llm import FieldExtractor, LLMClient
from autoapply.log import get_logger
from autoapply.models import SupportingDocument
from autoapply.pdf_text import extract_pdf_text
from autoapply.sources.headhunter import HeadHunterClient, describe_error, parse_posting

log = get_logger(__name__)

_RANKING_PROMPT = """\
Pick the most suitable resume id for the vacancy below. If none is clearly
suitable, pick any of the listed resume ids.

Resumes:
{resumes}

Vacancy:
Vacancy for {title}, located in {area}.
Salary: {salary}.
Employment type: {employment}, Schedule: {schedule}.
Key skills required: {skills}.

Return ONLY JSON in this format:
{{"resumeId": "string"}}
"""

_RESUME_EXCERPT_CHARS = 3000


@dataclass
class SelectedResume:
    id: str
    text: str


def _pdf_url(resume: dict) -> str | None:
    return ((resume.get("download") or {}).get("pdf") or {}).get("url")


class ResumeSelector:
    def __init__(
        self,
        hh: HeadHunterClient,
        llm: LLMClient,
        extractor: FieldExtractor,
        *,
        model: str | None = None,
        candidates: int = 4,
    ) -> None:
        self.hh = hh
        self.llm = llm
        self.extractor = extractor
        self.model = model
        self.candidates = candidates

    def select(self, posting_id: str, token: str) -> SelectedResume | None:
        """Best resume for *posting_id* with its text, or None on transport failure."""
        try:
            resumes = self.hh.suitable_resumes(posting_id, token)[: self.candidates]
            vacancy = self.hh.get_vacancy(posting_id, token)
            docs = self._load_documents(resumes, token)

            resume_id = self._rank(docs, vacancy)
            if resume_id is None:
                resume_id = self._fallback(token)
            if resume_id is None:
                log.warning("No resume available for vacancy %s", posting_id)
                return None

            text = next((d.text for d in docs if d.id == resume_id), None)
            if text is None:
                text = self._resume_text(self.hh.get_resume(resume_id, token), token)
        except requests.RequestException as exc:
            log.error("Resume selection for vacancy %s failed: %s", posting_id, describe_error(exc))
            return None

        log.info("Selected resume %s for vacancy %s", resume_id, posting_id)
        return SelectedResume(id=resume_id, text=text)

    def _load_documents(self, resumes: list[dict], token: str) -> list[SupportingDocument]:
        outcomes = settle_all(
            lambda r: SupportingDocument(id=str(r["id"]), text=self._resume_text(r, token)),
            resumes,
            name="resume-pdf",
        )
        return [o.value for o in outcomes if o.ok]

    def _resume_text(self, resume: dict, token: str) -> str:
        url = _pdf_url(resume)
        if not url:
            return resume.get("title") or ""
        try:
            return extract_pdf_text(self.hh.download(url, token))
        except ValueError as exc:
            log.warning("Resume %s PDF unreadable: %s", resume.get("id"), exc)
            return resume.get("title") or ""

    def _rank(self, docs: list[SupportingDocument], vacancy: dict) -> str | None:
        if not docs:
            return None
        posting = parse_posting(vacancy)
        prompt = _RANKING_PROMPT.format(
            resumes="\n".join(
                f"Resume ID: {d.id}\nResume data: {d.text[:_RESUME_EXCERPT_CHARS]}\n" for d in docs
            ),
            title=posting.title,
            area=posting.area,
            salary=posting.salary.describe() if posting.salary else "not specified",
            employment=posting.employment,
            schedule=posting.schedule,
            skills=", ".join(posting.key_skills),
        )
        try:
            reply = self.llm.complete(prompt, model=self.model)
        except Exception as exc:
            log.warning("Resume ranking failed (%s), using fallback", exc)
            return None

        chosen = self.extractor.extract(reply, "resumeId")
        if chosen is None or str(chosen) not in {d.id for d in docs}:
            log.info("Ranking reply named no known resume (%r), using fallback", chosen)
            return None
        return str(chosen)

    def _fallback(self, token: str) -> str | None:
        mine = self.hh.my_resumes(token)
        return str(mine[0]["id"]) if mine else None
