"""Tests for llm_client module."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from wwfm import llm_client
from wwfm.exceptions import LLMAPIError


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.text = str(body)
    resp.json.return_value = body
    return resp


def _candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture(autouse=True)
def api_key():
    with patch("wwfm.llm_client.settings") as s:
        s.gemini_api_key = "gem-key"
        yield s


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("wwfm.llm_client.time.sleep") as mock_sleep:
        yield mock_sleep


def test_returns_candidate_text():
    with patch("wwfm.llm_client.requests.post", return_value=_response(body=_candidate("[]"))) as mock_post:
        assert llm_client.call_fast("system", "terms") == "[]"

    url = mock_post.call_args.args[0]
    kwargs = mock_post.call_args.kwargs
    assert url.endswith("/gemini-2.5-flash:generateContent")
    assert kwargs["headers"]["x-goog-api-key"] == "gem-key"
    assert kwargs["json"]["system_instruction"]["parts"][0]["text"] == "system"
    assert kwargs["json"]["generationConfig"]["responseMimeType"] == "application/json"


def test_missing_key_raises(api_key):
    api_key.gemini_api_key = ""
    with pytest.raises(LLMAPIError, match="GEMINI_API_KEY"):
        llm_client.call_fast("system", "terms")


def test_retries_rate_limit_then_succeeds(no_sleep):
    responses = [_response(429, {"error": "slow down"}), _response(body=_candidate('["a"]'))]
    with patch("wwfm.llm_client.requests.post", side_effect=responses) as mock_post:
        assert llm_client.call_fast("system", "terms") == '["a"]'

    assert mock_post.call_count == 2
    no_sleep.assert_called_once_with(2)


def test_client_error_is_not_retried():
    with patch("wwfm.llm_client.requests.post", return_value=_response(400, {"error": "bad"})) as mock_post:
        with pytest.raises(LLMAPIError, match="HTTP 400"):
            llm_client.call_fast("system", "terms")
    assert mock_post.call_count == 1


def test_gives_up_after_all_attempts(no_sleep):
    with patch("wwfm.llm_client.requests.post",
               side_effect=requests.exceptions.ConnectionError("down")) as mock_post:
        with pytest.raises(LLMAPIError, match="3 attempts"):
            llm_client.call_fast("system", "terms")

    assert mock_post.call_count == 3
    assert [c.args[0] for c in no_sleep.call_args_list] == [2, 5]


def test_malformed_body_is_retried():
    responses = [_response(body={"candidates": []}), _response(body=_candidate("ok"))]
    with patch("wwfm.llm_client.requests.post", side_effect=responses):
        assert llm_client.call_fast("system", "terms") == "ok"
