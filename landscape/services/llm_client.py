# landscape/services/llm_client.py
"""Generative text API client.

The research engine only depends on the ``TextGenerator`` protocol; the
default implementation calls OpenAI chat completions through ``AsyncOpenAI``.
Tests inject a ``CallableGenerator`` instead.
"""
import inspect
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from landscape.errors import UpstreamError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str: ...


class OpenAIGenerator:
    """Chat completions via the official SDK. SDK retries are disabled: the core never retries."""

    def __init__(self, api_key: str, model: str = "gpt-4-turbo-preview", timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def _client(self) -> AsyncOpenAI:
        # un cliente por llamada: cada job corre su propio event loop
        return AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    async def complete(self, system_prompt, user_prompt, *, json_mode=False, temperature=0.7, max_tokens=None):
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            async with self._client() as client:
                resp = await client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise UpstreamError(f"Generative API call failed: {e}") from e

        choice0 = (resp.choices or [None])[0]
        content = getattr(getattr(choice0, "message", None), "content", None)
        if not content:
            raise UpstreamError("Generative API returned an empty response")
        return content.strip()


class CallableGenerator:
    """Wraps a plain ``fn(system, user, **kw)`` (sync or async) as a generator."""

    def __init__(self, fn: Callable[..., Any]):
        self._fn = fn

    async def complete(self, system_prompt, user_prompt, *, json_mode=False, temperature=0.7, max_tokens=None):
        out = self._fn(system_prompt, user_prompt, json_mode=json_mode)
        if inspect.isawaitable(out):
            out = await out
        return out


def parse_json_object(text: str) -> Any:
    """Parse a JSON response, tolerating markdown fences and surrounding prose."""
    text = (text or "").strip()
    if not text:
        raise UpstreamError("Generative API returned an empty response")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    if "```" in text:
        for part in text.split("```")[1::2]:
            candidate = part.strip()
            if candidate.lower().startswith("json"):
                candidate = candidate[4:].strip()
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                continue

    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        try:
            return json.loads(text[first:last + 1])
        except json.JSONDecodeError:
            pass

    raise UpstreamError(f"Could not parse JSON from generative API response: {text[:200]!r}")
