"""
Text-generation client (OpenAI or Groq, both via the OpenAI-compatible API).

Replies are expected to be JSON but are frequently wrapped in markdown fences
or prose; `extract_json_object` pulls out the first balanced {...} block.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import openai
from openai import OpenAI

from services.retry import with_retry

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "groq": "llama-3.3-70b-versatile",
}
DEFAULT_VISION_MODELS = {
    "openai": "gpt-4o-mini",
    "groq": "llama-3.2-90b-vision-preview",
}


class LLMError(RuntimeError):
    pass


class LLMNotConfiguredError(LLMError):
    pass


class LLMTimeoutError(LLMError):
    pass


class LLMUpstreamError(LLMError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMResponseError(LLMError):
    """The model answered, but not with usable JSON."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


def _strip_fences(text: str) -> str:
    lines = []
    for line in text.strip().split("\n"):
        if line.strip().startswith("```"):
            continue
        lines.append(line)
    return "\n".join(lines).strip()


def _balanced_end(text: str, start: int) -> int:
    """Index just past the `}` closing the `{` at `start`, or -1."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def extract_json_object(text) -> Dict[str, Any]:
    """Return the first balanced JSON object in `text`; raise LLMResponseError if none parses."""
    if not isinstance(text, str) or not text.strip():
        raise LLMResponseError("Empty response from AI", raw=text or "")

    cleaned = _strip_fences(text)
    start = cleaned.find("{")
    while start != -1:
        end = _balanced_end(cleaned, start)
        if end == -1:
            break
        try:
            data = json.loads(cleaned[start:end])
        except ValueError:  # JSONDecodeError, or an int over the digit limit
            data = None
        if isinstance(data, dict):
            return data
        start = cleaned.find("{", start + 1)

    raise LLMResponseError("AI returned non-JSON output", raw=text)


class LLMClient:
    """Lazily-created OpenAI SDK client with bounded retry."""

    def __init__(
        self,
        provider: str = "openai",
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        timeout_s: float = 60.0,
        max_retries: int = 2,
        initial_backoff_s: float = 0.5,
    ):
        self.provider = (provider or "openai").strip().lower()
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])
        self.vision_model = vision_model or DEFAULT_VISION_MODELS.get(self.provider, self.model)
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.client = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self.client is None:
            if not self.api_key:
                raise LLMNotConfiguredError(f"API key for provider '{self.provider}' not configured")
            kwargs: Dict[str, Any] = {
                "api_key": self.api_key,
                "timeout": self.timeout_s,
                # retries are handled by with_retry
                "max_retries": 0,
            }
            if self.provider == "groq":
                kwargs["base_url"] = GROQ_BASE_URL
            self.client = OpenAI(**kwargs)
        return self.client

    def _chat(self, model: str, messages: List[Dict[str, Any]], max_tokens: int, temperature: float) -> str:
        client = self._get_client()
        start_time = time.time()

        def call():
            return client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )

        try:
            response = with_retry(call, max_retries=self.max_retries, initial_backoff=self.initial_backoff_s)
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"{self.provider} request timed out after {self.timeout_s:g}s") from e
        except openai.APIStatusError as e:
            raise LLMUpstreamError(f"{self.provider} API error: {e.status_code}", status_code=e.status_code) from e
        except openai.APIConnectionError as e:
            raise LLMUpstreamError(f"{self.provider} connection error: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        usage = getattr(response, "usage", None)
        logger.info(
            "LLM call provider=%s model=%s dur_ms=%.0f tokens_in=%s tokens_out=%s",
            self.provider, model, duration_ms,
            getattr(usage, "prompt_tokens", None), getattr(usage, "completion_tokens", None),
        )

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError):
            content = None
        if not content:
            raise LLMResponseError("No response from AI", raw="")
        return content

    def complete_json(
        self, system: str, user: str, max_tokens: int = 2500, temperature: float = 0.2
    ) -> Tuple[Dict[str, Any], str]:
        """Returns (parsed_object, raw_text)."""
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        text = self._chat(self.model, messages, max_tokens, temperature)
        return extract_json_object(text), text

    def analyze_image_json(
        self, prompt: str, image_url: str, max_tokens: int = 1000, temperature: float = 0.2
    ) -> Tuple[Dict[str, Any], str]:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }
        ]
        text = self._chat(self.vision_model, messages, max_tokens, temperature)
        return extract_json_object(text), text
