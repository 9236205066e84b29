"""HeadHunter (hh.ru / hh.kz) API: vacancy search, resumes, negotiations, OAuth refresh.

Docs: https://api.hh.ru/openapi/redoc
"""
from __future__ import annotations

from datetime import date, timedelta

import requests

from autoapply.log import get_logger
from autoapply.models import DEFAULT_EMPLOYER_LOGO, Posting, Salary, SearchPage, TokenPair
from autoapply.retry import retry
from autoapply.sources.base import PostingSource

log = get_logger(__name__)

_RETRYABLE = (requests.ConnectionError, requests.Timeout, requests.HTTPError)


def _is_permanent(exc: BaseException) -> bool:
    """4xx answers (other than 429) will not change on a retry."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status < 500 and status != 429
    return False


def describe_error(exc: BaseException) -> str:
    """One-line description of a transport error, with status and body when present."""
    response = getattr(exc, "response", None)
    if response is not None:
        body = (response.text or "")[:300].replace("\n", " ")
        return f"HTTP {response.status_code} {response.url}: {body}"
    request = getattr(exc, "request", None)
    if request is not None:
        return f"{type(exc).__name__} on {request.method} {request.url}: {exc}"
    return f"{type(exc).__name__}: {exc}"


def parse_posting(item: dict, vacancy_url: str = "https://hh.kz/vacancy/{id}/") -> Posting:
    """Project one item of a /vacancies response (or a full vacancy) onto a Posting."""
    employer = item.get("employer") or {}
    snippet = item.get("snippet") or {}
    raw_salary = item.get("salary")
    salary = None
    if raw_salary:
        salary = Salary(
            low=raw_salary.get("from"),
            high=raw_salary.get("to"),
            currency=raw_salary.get("currency") or "",
        )
    logos = employer.get("logo_urls") or {}
    posting_id = str(item.get("id", ""))
    return Posting(
        id=posting_id,
        title=item.get("name", ""),
        employer=employer.get("name", ""),
        salary=salary,
        employer_logo=logos.get("90") or DEFAULT_EMPLOYER_LOGO,
        responsibility=snippet.get("responsibility") or "",
        requirement=snippet.get("requirement") or "",
        address=(item.get("address") or {}).get("raw") or "",
        url=vacancy_url.format(id=posting_id),
        area=(item.get("area") or {}).get("name", ""),
        employment=(item.get("employment") or {}).get("name", ""),
        schedule=(item.get("schedule") or {}).get("name", ""),
        key_skills=[s.get("name", "") for s in item.get("key_skills") or [] if s.get("name")],
    )


class HeadHunterClient(PostingSource):
    """All HeadHunter transport in one place; holds no per-user state."""

    def __init__(
        self,
        *,
        user_agent: str,
        api_url: str = "https://api.hh.ru",
        token_url: str = "https://hh.ru/oauth/token",
        client_id: str = "",
        client_secret: str = "",
        area: int = 40,
        recency_days: int = 2,
        vacancy_url: str = "https://hh.kz/vacancy/{id}/",
        timeout: float = 15.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token_url = token_url
        self.user_agent = user_agent
        self.client_id = client_id
        self.client_secret = client_secret
        self.area = area
        self.recency_days = recency_days
        self.vacancy_url = vacancy_url
        self.timeout = timeout

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"HH-User-Agent": self.user_agent, "User-Agent": self.user_agent}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @retry(max_attempts=3, base_delay=2.0, retryable=_RETRYABLE, giveup=_is_permanent)
    def _get(self, path: str, *, token: str | None = None, params: dict | None = None) -> dict:
        r = requests.get(
            f"{self.api_url}{path}",
            params=params,
            headers=self._headers(token),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    # ── Search ───────────────────────────────────────────────────────────

    def search_params(self, query: str, page: int, only_with_salary: bool, today: date | None = None) -> dict:
        date_from = (today or date.today()) - timedelta(days=self.recency_days)
        return {
            "text": query,
            "page": page,
            "area": self.area,
            "only_with_salary": "true" if only_with_salary else "false",
            "date_from": date_from.isoformat(),
            "order_by": "publication_time",
        }

    def search(self, query: str, page: int, *, only_with_salary: bool = False) -> SearchPage:
        data = self._get("/vacancies", params=self.search_params(query, page, only_with_salary))
        items = [parse_posting(hit, self.vacancy_url) for hit in data.get("items", [])]
        log.debug("HeadHunter q=%r page=%d returned %d postings", query, page, len(items))
        return SearchPage(
            items=items,
            found=int(data.get("found", 0) or 0),
            page=int(data.get("page", page) or 0),
            pages=int(data.get("pages", 0) or 0),
        )

    # ── Vacancy and resume details (user token) ──────────────────────────

    def get_vacancy(self, posting_id: str, token: str) -> dict:
        return self._get(f"/vacancies/{posting_id}", token=token)

    def suitable_resumes(self, posting_id: str, token: str) -> list[dict]:
        return self._get(f"/vacancies/{posting_id}/suitable_resumes", token=token).get("items", [])

    def my_resumes(self, token: str) -> list[dict]:
        return self._get("/resumes/mine", token=token).get("items", [])

    def get_resume(self, resume_id: str, token: str) -> dict:
        return self._get(f"/resumes/{resume_id}", token=token)

    @retry(max_attempts=3, base_delay=2.0, retryable=_RETRYABLE, giveup=_is_permanent)
    def download(self, url: str, token: str) -> bytes:
        r = requests.get(url, headers=self._headers(token), timeout=self.timeout)
        r.raise_for_status()
        return r.content

    # ── Writes ───────────────────────────────────────────────────────────

    def send_negotiation(self, posting_id: str, resume_id: str, message: str | None, token: str) -> dict:
        """Apply to a vacancy. Not retried: a repeated POST would apply twice."""
        form = {"vacancy_id": (None, posting_id), "resume_id": (None, resume_id)}
        if message:
            form["message"] = (None, message)
        r = requests.post(
            f"{self.api_url}/negotiations",
            files=form,
            headers=self._headers(token),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return {"status": r.status_code, "location": r.headers.get("Location", "")}

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        if self.client_id and self.client_secret:
            data["client_id"] = self.client_id
            data["client_secret"] = self.client_secret
        r = requests.post(
            self.token_url,
            data=data,
            headers=self._headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        payload = r.json()
        return TokenPair(
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expires_in=int(payload.get("expires_in", 0) or 0),
        )
