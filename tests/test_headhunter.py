from __future__ import annotations

from datetime import date

import pytest
import requests

from autoapply.models import DEFAULT_EMPLOYER_LOGO
from autoapply.sources import headhunter
from autoapply.sources.headhunter import HeadHunterClient, describe_error, parse_posting

ITEM = {
    "id": "93350001",
    "name": "Python developer",
    "employer": {"name": "Kaspi", "logo_urls": {"90": "https://img/kaspi90.png"}},
    "salary": {"from": 600000, "to": None, "currency": "KZT"},
    "snippet": {"requirement": "Python 3, <highlighttext>Django</highlighttext>", "responsibility": None},
    "address": {"raw": "Almaty, Nauryzbay Batyr 1"},
    "area": {"name": "Almaty"},
}


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: dict | None = None, content: bytes = b"", headers=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.content = content
        self.headers = headers or {}
        self.text = str(self._payload)
        self.url = "https://api.hh.ru/test"

    def json(self) -> dict:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    monkeypatch.setattr("autoapply.retry.time.sleep", lambda s: None)


@pytest.fixture
def client() -> HeadHunterClient:
    return HeadHunterClient(user_agent="autoapply-test/1.0 (test@example.com)", client_id="cid", client_secret="secret")


def test_parse_posting_projects_fields():
    posting = parse_posting(ITEM)

    assert posting.id == "93350001"
    assert posting.employer == "Kaspi"
    assert posting.salary is not None and posting.salary.low == 600000 and posting.salary.high is None
    assert posting.employer_logo == "https://img/kaspi90.png"
    assert posting.responsibility == ""
    assert posting.address == "Almaty, Nauryzbay Batyr 1"
    assert posting.url == "https://hh.kz/vacancy/93350001/"


def test_parse_posting_defaults_for_sparse_items():
    posting = parse_posting({"id": 5, "name": "QA", "employer": {"name": "X", "logo_urls": None}})

    assert posting.salary is None
    assert posting.employer_logo == DEFAULT_EMPLOYER_LOGO
    assert posting.key_skills == []


def test_search_params_cover_recency_order_area_and_salary(client):
    params = client.search_params("Python developer", 3, True, today=date(2024, 5, 10))

    assert params == {
        "text": "Python developer",
        "page": 3,
        "area": 40,
        "only_with_salary": "true",
        "date_from": "2024-05-08",
        "order_by": "publication_time",
    }


def test_search_returns_page(client, monkeypatch):
    seen = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, headers=headers)
        return FakeResponse(payload={"items": [ITEM], "found": 1, "page": 1, "pages": 1})

    monkeypatch.setattr(headhunter.requests, "get", fake_get)

    page = client.search("Python developer", 1)

    assert [p.id for p in page.items] == ["93350001"]
    assert page.found == 1
    assert seen["url"] == "https://api.hh.ru/vacancies"
    assert seen["params"]["only_with_salary"] == "false"
    assert seen["headers"]["HH-User-Agent"].startswith("autoapply-test")
    assert "Authorization" not in seen["headers"]


def test_server_errors_are_retried_then_raised(client, monkeypatch):
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append(url)
        return FakeResponse(status_code=503)

    monkeypatch.setattr(headhunter.requests, "get", fake_get)

    with pytest.raises(requests.HTTPError):
        client.search("Python", 1)
    assert len(calls) == 3


def test_client_errors_are_not_retried(client, monkeypatch):
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append(url)
        return FakeResponse(status_code=403, payload={"errors": [{"type": "forbidden"}]})

    monkeypatch.setattr(headhunter.requests, "get", fake_get)

    with pytest.raises(requests.HTTPError) as info:
        client.suitable_resumes("1", "token")
    assert len(calls) == 1
    assert "HTTP 403" in describe_error(info.value)


def test_negotiation_posts_multipart_with_bearer(client, monkeypatch):
    seen = {}

    def fake_post(url, files=None, headers=None, timeout=None):
        seen.update(url=url, files=files, headers=headers)
        return FakeResponse(status_code=201, headers={"Location": "/negotiations/77"})

    monkeypatch.setattr(headhunter.requests, "post", fake_post)

    result = client.send_negotiation("1", "r1", "Hello", "tok")

    assert result == {"status": 201, "location": "/negotiations/77"}
    assert seen["url"] == "https://api.hh.ru/negotiations"
    assert seen["files"] == {"vacancy_id": (None, "1"), "resume_id": (None, "r1"), "message": (None, "Hello")}
    assert seen["headers"]["Authorization"] == "Bearer tok"


def test_negotiation_without_message_omits_it(client, monkeypatch):
    seen = {}

    def fake_post(url, files=None, headers=None, timeout=None):
        seen["files"] = files
        return FakeResponse(status_code=201)

    monkeypatch.setattr(headhunter.requests, "post", fake_post)
    client.send_negotiation("1", "r1", None, "tok")

    assert "message" not in seen["files"]


def test_refresh_tokens(client, monkeypatch):
    seen = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        seen.update(url=url, data=data)
        return FakeResponse(payload={"access_token": "a2", "refresh_token": "r2", "expires_in": 1209600})

    monkeypatch.setattr(headhunter.requests, "post", fake_post)

    tokens = client.refresh_tokens("r1")

    assert (tokens.access_token, tokens.refresh_token, tokens.expires_in) == ("a2", "r2", 1209600)
    assert seen["url"] == "https://hh.ru/oauth/token"
    assert seen["data"]["grant_type"] == "refresh_token"
    assert seen["data"]["refresh_token"] == "r1"


def test_describe_error_without_response():
    assert describe_error(ValueError("boom")) == "ValueError: boom"
