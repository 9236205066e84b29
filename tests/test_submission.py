from __future__ import annotations

from autoapply.submission import submit_application


def test_successful_submission(fake_hh):
    result = submit_application(fake_hh, "42", "r1", "Hello", "token")  # type: ignore[arg-type]

    assert result.ok is True
    assert result.payload["status"] == 201
    assert fake_hh.negotiations == [("42", "r1", "Hello", "token")]


def test_failures_become_soft_results(fake_hh):
    fake_hh.fail_negotiation = True

    result = submit_application(fake_hh, "42", "r1", None, "token")  # type: ignore[arg-type]

    assert result.ok is False
    assert "negotiation rejected" in result.message
