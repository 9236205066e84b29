from __future__ import annotations

import os

os.environ.setdefault("AUTOAPPLY_NO_LOG_FILE", "1")

import threading
from pathlib import Path
from typing import Any, Callable

import pytest

from autoapply.config import Settings
from autoapply.cover_letter import CoverLetterWriter
from autoapply.llm import JsonFieldExtractor
from autoapply.models import Credentials, Criterion, Posting, SearchPage, TokenPair, User
from autoapply.pipeline import Services
from autoapply.relevance import RelevanceClassifier
from autoapply.resume_selector import ResumeSelector
from autoapply.sources.base import PostingSource
from autoapply.tracker import ApplicationTracker


def make_posting(idx: int | str, title: str | None = None, employer: str | None = None) -> Posting:
    return Posting(
        id=str(idx),
        title=title or f"Python developer {idx}",
        employer=employer or f"Employer {idx}",
        responsibility="Build services",
        requirement="Python, SQL",
        url=f"https://hh.kz/vacancy/{idx}/",
    )


def make_user(
    user_id: str = "u1",
    criteria: int = 1,
    *,
    linked: bool = False,
    refresh_token: str = "",
) -> User:
    return User(
        id=user_id,
        first_name="Aigerim",
        last_name="Sadykova",
        criteria=[Criterion(text=f"Python developer #{i}") for i in range(criteria)],
        has_linked_account=linked,
        credentials=Credentials(access_token="old-access", refresh_token=refresh_token),
    )


class FakeLLM:
    """Answers by prompt kind; handlers may raise to simulate transport errors."""

    def __init__(
        self,
        *,
        search_term: Callable[[str], str] | None = None,
        suitable: Callable[[str], str] | None = None,
        letter: Callable[[str], str] | None = None,
        ranking: Callable[[str], str] | None = None,
    ) -> None:
        self.handlers = {
            "search_term": search_term or (lambda p: '{"position": "Python developer"}'),
            "suitable": suitable or (lambda p: '{"isSuitable": true, "reason": "match"}'),
            "letter": letter or (lambda p: "Hello, I would like to apply."),
            "ranking": ranking or (lambda p: '{"resumeId": "r1"}'),
        }
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    @staticmethod
    def kind(prompt: str) -> str:
        if "Extract only the position" in prompt:
            return "search_term"
        if "Analyze whether the vacancy is suitable" in prompt:
            return "suitable"
        if "Pick the most suitable resume" in prompt:
            return "ranking"
        return "letter"

    def complete(self, prompt: str, *, model: str | None = None, max_tokens: int | None = None) -> str:
        kind = self.kind(prompt)
        with self._lock:
            self.calls.append((kind, prompt))
        return self.handlers[kind](prompt)

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


class FakeSource(PostingSource):
    def __init__(self, pages: dict[int, list[Posting]] | None = None, fail_pages: set[int] | None = None) -> None:
        self.pages = pages or {}
        self.fail_pages = fail_pages or set()
        self.calls: list[tuple[str, int, bool]] = []

    def search(self, query: str, page: int, *, only_with_salary: bool = False) -> SearchPage:
        self.calls.append((query, page, only_with_salary))
        if page in self.fail_pages:
            raise RuntimeError(f"page {page} unavailable")
        items = self.pages.get(page, [])
        return SearchPage(items=list(items), found=len(items), page=page)


class FakeHH:
    def __init__(self) -> None:
        self.resumes: list[dict[str, Any]] = [
            {"id": "r1", "title": "Python developer", "download": {"pdf": {"url": "https://hh/r1.pdf"}}},
            {"id": "r2", "title": "Data engineer", "download": {"pdf": {"url": "https://hh/r2.pdf"}}},
        ]
        self.mine: list[dict[str, Any]] = [{"id": "r2"}, {"id": "r1"}]
        self.vacancy: dict[str, Any] = {
            "id": "1",
            "name": "Python developer",
            "employer": {"name": "Kaspi"},
            "area": {"name": "Almaty"},
            "salary": {"from": 500000, "to": 800000, "currency": "KZT"},
            "employment": {"name": "Full time"},
            "schedule": {"name": "Remote"},
            "key_skills": [{"name": "Python"}, {"name": "Django"}],
        }
        self.fail_negotiation = False
        self.fail_refresh_for: set[str] = set()
        self.fail_lookup = False
        self.negotiations: list[tuple[str, str, str | None, str]] = []
        self.refreshed: list[str] = []
        self._lock = threading.Lock()

    def suitable_resumes(self, posting_id: str, token: str) -> list[dict]:
        if self.fail_lookup:
            import requests

            raise requests.ConnectionError("hh down")
        return list(self.resumes)

    def get_vacancy(self, posting_id: str, token: str) -> dict:
        return dict(self.vacancy, id=posting_id)

    def my_resumes(self, token: str) -> list[dict]:
        return list(self.mine)

    def get_resume(self, resume_id: str, token: str) -> dict:
        return {"id": resume_id, "title": f"resume {resume_id}", "download": {"pdf": {"url": f"https://hh/{resume_id}.pdf"}}}

    def download(self, url: str, token: str) -> bytes:
        return f"text of {url}".encode()

    def send_negotiation(self, posting_id: str, resume_id: str, message: str | None, token: str) -> dict:
        with self._lock:
            self.negotiations.append((posting_id, resume_id, message, token))
        if self.fail_negotiation:
            raise RuntimeError("negotiation rejected")
        return {"status": 201, "location": f"/negotiations/{posting_id}"}

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        with self._lock:
            self.refreshed.append(refresh_token)
        if refresh_token in self.fail_refresh_for:
            raise RuntimeError("invalid_grant")
        return TokenPair(access_token=f"new-{refresh_token}", refresh_token=f"next-{refresh_token}", expires_in=1209600)


@pytest.fixture(autouse=True)
def _plain_pdf_text(monkeypatch):
    from autoapply import resume_selector

    monkeypatch.setattr(resume_selector, "extract_pdf_text", lambda data, **kw: data.decode())


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        llm_api_key="test",
        users_path=tmp_path / "users.yaml",
        applications_path=tmp_path / "applications.csv",
    )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_hh() -> FakeHH:
    return FakeHH()


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def services(settings: Settings, fake_llm: FakeLLM, fake_hh: FakeHH, fake_source: FakeSource) -> Services:
    extractor = JsonFieldExtractor()
    return Services(
        settings=settings,
        source=fake_source,
        hh=fake_hh,  # type: ignore[arg-type]
        classifier=RelevanceClassifier(fake_llm, extractor),  # type: ignore[arg-type]
        writer=CoverLetterWriter(fake_llm),  # type: ignore[arg-type]
        selector=ResumeSelector(fake_hh, fake_llm, extractor),  # type: ignore[arg-type]
        tracker=ApplicationTracker(settings.applications_path),
    )
