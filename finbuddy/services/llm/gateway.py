"""
LLM Gateway Client

Every advisor talks to the model through one OpenAI-compatible chat
completions endpoint, authenticated with a bearer key.

DESIGN DECISION: We call the HTTP endpoint directly with `requests`
rather than a vendor SDK because the caller needs the raw status code:
429 and 402 are shown to the user with their own messages, everything
else is a generic failure.

BOUNDARIES:
- No retries. A failed call fails the request that made it.
- The gateway never interprets the model's answer beyond extracting JSON.
"""

import asyncio
import json
import re
from typing import Any, Iterator, Optional

import requests
import structlog

from finbuddy.config import LLMSettings, get_settings

logger = structlog.get_logger(__name__)


class LLMServiceError(Exception):
    """The gateway call failed or returned something we cannot use."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(LLMServiceError):
    """Gateway answered 429."""

    def __init__(self, message: str = "Rate limit exceeded. Please try again in a moment."):
        super().__init__(message, status_code=429)


class PaymentRequiredError(LLMServiceError):
    """Gateway answered 402 (credits exhausted)."""

    def __init__(self, message: str = "AI service requires payment. Please contact support."):
        super().__init__(message, status_code=402)


_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)```")
_FENCED_ANY = re.compile(r"```\s*([\s\S]*?)```")


def extract_json(text: str) -> dict:
    """
    Pull a JSON object out of a model reply.

    Tries the whole text first, then the first ```json fenced block, then
    the first plain ``` fenced block.

    Raises:
        LLMServiceError: If none of them parses to an object
    """
    candidates = [text.strip()]
    for pattern in (_FENCED_JSON, _FENCED_ANY):
        match = pattern.search(text)
        if match:
            candidates.append(match.group(1).strip())

    for candidate in candidates:
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise LLMServiceError("AI did not return structured data")


def raise_for_status(response: requests.Response) -> None:
    """Map gateway HTTP statuses onto our error types."""
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 429:
        raise RateLimitedError()
    if status == 402:
        raise PaymentRequiredError()
    body = (response.text or "")[:300]
    logger.error("llm_gateway_error", status=status, body=body)
    raise LLMServiceError(f"AI gateway error: {status}", status_code=status)


class LLMGateway:
    """
    Thin client for the chat completions endpoint.

    complete_json / complete_text are coroutines (the blocking HTTP call
    runs in a worker thread). stream_chat is synchronous and returns an
    iterator of raw server-sent-event lines once the status is known.
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().llm
        self._session = session or requests.Session()

    @property
    def settings(self) -> LLMSettings:
        return self._settings

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, payload: dict, stream: bool = False) -> requests.Response:
        try:
            response = self._session.post(
                self._settings.completions_url,
                json=payload,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
                stream=stream,
            )
        except requests.RequestException as e:
            logger.error("llm_gateway_unreachable", error=str(e))
            raise LLMServiceError(f"AI gateway unreachable: {e}")

        raise_for_status(response)
        return response

    def _payload(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        tool: Optional[dict] = None,
        stream: bool = False,
    ) -> dict:
        payload: dict[str, Any] = {
            "model": model or self._settings.model_name,
            "messages": messages,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        if tool is not None:
            payload["tools"] = [{"type": "function", "function": tool}]
            payload["tool_choice"] = {"type": "function", "function": {"name": tool["name"]}}
        if stream:
            payload["stream"] = True
        return payload

    @staticmethod
    def _message(body: dict) -> dict:
        try:
            return body["choices"][0]["message"]
        except (KeyError, IndexError, TypeError):
            raise LLMServiceError("AI did not return structured data")

    def _complete_json_sync(self, system: str, user: str, tool: Optional[dict]) -> dict:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        response = self._post(self._payload(messages, tool=tool))
        try:
            body = response.json()
        except ValueError:
            raise LLMServiceError("AI gateway returned invalid JSON")

        message = self._message(body)

        if tool is not None:
            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                raise LLMServiceError("AI did not return structured data")
            arguments = tool_calls[0].get("function", {}).get("arguments")
            if isinstance(arguments, dict):
                return arguments
            try:
                parsed = json.loads(arguments or "")
            except json.JSONDecodeError:
                raise LLMServiceError("AI did not return structured data")
            if not isinstance(parsed, dict):
                raise LLMServiceError("AI did not return structured data")
            return parsed

        return extract_json(message.get("content") or "")

    async def complete_json(
        self,
        system: str,
        user: str,
        tool: Optional[dict] = None,
    ) -> dict:
        """
        Ask for a JSON object.

        Args:
            system: System prompt
            user: User prompt with the embedded numbers and schema
            tool: Optional function declaration ({name, description,
                parameters}). When given, the call forces that tool and the
                result is parsed from the tool call arguments.

        Raises:
            RateLimitedError, PaymentRequiredError, LLMServiceError
        """
        return await asyncio.to_thread(self._complete_json_sync, system, user, tool)

    def _complete_text_sync(self, system: str, messages: list[dict]) -> str:
        response = self._post(self._payload(
            [{"role": "system", "content": system}, *messages],
            model=self._settings.chat_model_name,
        ))
        try:
            body = response.json()
        except ValueError:
            raise LLMServiceError("AI gateway returned invalid JSON")
        return (self._message(body).get("content") or "").strip()

    async def complete_text(self, system: str, messages: list[dict]) -> str:
        """Single non-streamed assistant reply."""
        return await asyncio.to_thread(self._complete_text_sync, system, messages)

    def stream_chat(self, system: str, messages: list[dict]) -> Iterator[str]:
        """
        Start a streamed assistant reply.

        The HTTP status is checked before this returns, so gateway errors
        surface as exceptions rather than inside the stream.

        Returns:
            Iterator of raw SSE lines ("data: {...}"), each ending in a
            blank line, ready to relay to the client unchanged.
        """
        response = self._post(
            self._payload(
                [{"role": "system", "content": system}, *messages],
                model=self._settings.chat_model_name,
                stream=True,
            ),
            stream=True,
        )
        return self._relay(response)

    @staticmethod
    def _relay(response: requests.Response) -> Iterator[str]:
        try:
            for line in response.iter_lines(decode_unicode=True):
                if line:
                    yield f"{line}\n\n"
        finally:
            response.close()


def stream_text(lines: Iterator[str]) -> Iterator[str]:
    """
    Turn relayed SSE lines back into text deltas.

    Used by the Streamlit chat page, which renders tokens as they arrive.
    """
    for line in lines:
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            break
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            continue
        choices = chunk.get("choices") or []
        if not choices:
            continue
        delta = choices[0].get("delta", {}).get("content")
        if delta:
            yield delta
