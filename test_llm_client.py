"""
Tests for the text-generation adapter (services/llm_client.py, services/retry.py).
"""

from types import SimpleNamespace

import httpx
import openai
import pytest
import requests

from services.llm_client import (
    LLMClient,
    LLMNotConfiguredError,
    LLMResponseError,
    LLMTimeoutError,
    LLMUpstreamError,
    extract_json_object,
)
from services.retry import is_retryable, with_retry


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _status_error(cls, status):
    req = httpx.Request("POST", "https://api.test/v1/chat/completions")
    return cls(f"status {status}", response=httpx.Response(status, request=req), body=None)


def _timeout_error():
    return openai.APITimeoutError(request=httpx.Request("POST", "https://api.test/v1/chat/completions"))


def _completion(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=20),
    )


class FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return _completion(outcome)


def _client_with(outcomes, **kwargs):
    llm = LLMClient(provider="groq", api_key="test-key", initial_backoff_s=0, **kwargs)
    completions = FakeCompletions(outcomes)
    llm.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return llm, completions


# ---------- extract_json_object ----------

def test_extract_plain_json():
    assert extract_json_object('{"laborHours": 2.5}') == {"laborHours": 2.5}


def test_extract_markdown_fenced_json():
    text = '```json\n{"jobType": "Brakes", "parts": [{"name": "Pads", "cost": 80}]}\n```'
    assert extract_json_object(text)["parts"][0]["cost"] == 80


def test_extract_prose_wrapped_json_returns_first_object():
    text = 'Sure! Here is the estimate:\n{"laborHours": 1, "meta": {"a": 1}}\nLet me know {if} you need more.'
    assert extract_json_object(text) == {"laborHours": 1, "meta": {"a": 1}}


def test_extract_ignores_braces_inside_strings():
    text = 'x {"notes": "torque to spec } then {recheck}", "laborHours": 2} y'
    assert extract_json_object(text) == {"notes": "torque to spec } then {recheck}", "laborHours": 2}


def test_extract_skips_unparsable_block():
    assert extract_json_object('{not json} then {"ok": true}') == {"ok": True}


@pytest.mark.parametrize("text", ["", "   ", None, "no json here", "[1, 2, 3]", '{"unterminated": 1'])
def test_extract_failure_carries_raw_text(text):
    with pytest.raises(LLMResponseError) as exc:
        extract_json_object(text)
    assert exc.value.raw == (text or "")


# ---------- retry ----------

def test_retry_predicate():
    assert is_retryable(StatusError(500))
    assert is_retryable(StatusError(503))
    assert is_retryable(StatusError(429))
    assert not is_retryable(StatusError(400))
    assert not is_retryable(StatusError(401))
    assert not is_retryable(StatusError(404))
    assert is_retryable(requests.Timeout())
    assert is_retryable(requests.ConnectionError())
    assert is_retryable(_timeout_error())
    assert is_retryable(_status_error(openai.RateLimitError, 429))
    assert not is_retryable(_status_error(openai.BadRequestError, 400))
    assert not is_retryable(ValueError("boom"))


def test_with_retry_backs_off_exponentially_then_succeeds():
    delays = []
    attempts = iter([StatusError(502), StatusError(429), "done"])

    def op():
        outcome = next(attempts)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert with_retry(op, max_retries=2, initial_backoff=0.5, sleep=delays.append) == "done"
    assert delays == [0.5, 1.0]


def test_with_retry_gives_up_after_max_retries():
    delays = []
    calls = []

    def op():
        calls.append(1)
        raise StatusError(500)

    with pytest.raises(StatusError):
        with_retry(op, max_retries=2, initial_backoff=1, sleep=delays.append)
    assert len(calls) == 3
    assert delays == [1, 2]


def test_with_retry_does_not_retry_client_errors():
    calls = []

    def op():
        calls.append(1)
        raise StatusError(422)

    with pytest.raises(StatusError):
        with_retry(op, sleep=lambda s: None)
    assert len(calls) == 1


def test_with_retry_custom_predicate():
    calls = []

    def op():
        calls.append(1)
        raise KeyError("x")

    with pytest.raises(KeyError):
        with_retry(op, max_retries=3, retry_predicate=lambda e: isinstance(e, KeyError), sleep=lambda s: None)
    assert len(calls) == 4


# ---------- LLMClient ----------

def test_complete_json_returns_object_and_raw_text():
    llm, completions = _client_with(['```json\n{"laborHours": 2}\n```'])
    data, raw = llm.complete_json("system", "user", max_tokens=100, temperature=0.1)
    assert data == {"laborHours": 2}
    assert raw.startswith("```json")
    call = completions.calls[0]
    assert call["model"] == "llama-3.3-70b-versatile"
    assert call["max_tokens"] == 100
    assert call["messages"][0] == {"role": "system", "content": "system"}


def test_complete_json_retries_server_errors():
    llm, completions = _client_with(
        [_status_error(openai.InternalServerError, 500), '{"ok": 1}'], max_retries=2
    )
    data, _ = llm.complete_json("s", "u")
    assert data == {"ok": 1}
    assert len(completions.calls) == 2


def test_complete_json_maps_timeout():
    llm, completions = _client_with([_timeout_error(), _timeout_error()], max_retries=1)
    with pytest.raises(LLMTimeoutError):
        llm.complete_json("s", "u")
    assert len(completions.calls) == 2


def test_complete_json_maps_client_error_without_retry():
    llm, completions = _client_with([_status_error(openai.AuthenticationError, 401)], max_retries=2)
    with pytest.raises(LLMUpstreamError) as exc:
        llm.complete_json("s", "u")
    assert exc.value.status_code == 401
    assert len(completions.calls) == 1


def test_complete_json_non_json_reply():
    llm, _ = _client_with(["I cannot help with that."])
    with pytest.raises(LLMResponseError) as exc:
        llm.complete_json("s", "u")
    assert exc.value.raw == "I cannot help with that."


def test_empty_reply_is_a_response_error():
    llm, _ = _client_with([""])
    with pytest.raises(LLMResponseError):
        llm.complete_json("s", "u")


def test_missing_api_key():
    llm = LLMClient(provider="openai", api_key=None)
    assert not llm.configured
    with pytest.raises(LLMNotConfiguredError):
        llm.complete_json("s", "u")


def test_image_analysis_uses_vision_model():
    llm, completions = _client_with(['{"damageFound": false}'])
    data, _ = llm.analyze_image_json("prompt", "data:image/png;base64,AAAA")
    assert data == {"damageFound": False}
    call = completions.calls[0]
    assert call["model"] == "llama-3.2-90b-vision-preview"
    assert call["messages"][0]["content"][1]["image_url"]["url"] == "data:image/png;base64,AAAA"
