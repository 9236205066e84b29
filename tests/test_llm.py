from __future__ import annotations

from types import SimpleNamespace

import pytest

from autoapply.llm import JsonFieldExtractor, LLMClient


@pytest.fixture
def extractor() -> JsonFieldExtractor:
    return JsonFieldExtractor()


def test_extracts_from_plain_json(extractor):
    assert extractor.extract('{"isSuitable": true, "reason": "fits"}', "isSuitable") is True


def test_extracts_from_json_surrounded_by_prose(extractor):
    reply = 'Sure, here it is:\n```json\n{\n  "resumeId": "abc123"\n}\n```\nGood luck!'
    assert extractor.extract(reply, "resumeId") == "abc123"


def test_falls_back_to_regex_for_malformed_json(extractor):
    reply = '{"position": "Python developer", "note": trailing garbage}'
    assert extractor.extract(reply, "position") == "Python developer"


@pytest.mark.parametrize(
    "reply",
    ["", "no structured data here", '{"resumeId": null}', '{"other": "x"}', "{not json"],
)
def test_absent_fields_are_none(extractor, reply):
    assert extractor.extract(reply, "resumeId") is None


def _fake_sdk(reply: str | None, seen: list[dict]):
    def create(**kwargs):
        seen.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_complete_sends_single_user_message():
    seen: list[dict] = []
    client = LLMClient("key", model="gpt-4o-mini", temperature=0.3, client=_fake_sdk("  hello  ", seen))

    assert client.complete("prompt", model="gpt-3.5-turbo", max_tokens=50) == "hello"
    assert seen == [{
        "model": "gpt-3.5-turbo",
        "messages": [{"role": "user", "content": "prompt"}],
        "temperature": 0.3,
        "max_tokens": 50,
    }]


def test_complete_treats_missing_content_as_empty():
    client = LLMClient("key", client=_fake_sdk(None, []))
    assert client.complete("prompt") == ""
