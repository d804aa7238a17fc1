"""OpenAI-compatible chat completions backend.

This module keeps all HTTP wiring local to the backend implementation.
"""

from __future__ import annotations

import logging
import os
from copy import deepcopy

from structor.extract.backend_base import (
    BackendError,
    ExtractionRequest,
    TokenUsage,
    http_error,
    transport_error,
)

logger = logging.getLogger(__name__)


class OpenAIBackend:
    """OpenAI-backed model backend using ``response_format=json_schema``."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout_s: float = 30.0,
        strict: bool = False,
        system_prompt: str | None = None,
    ) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL") or "gpt-4.1-mini"
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL") or "https://api.openai.com"
        self.timeout_s = timeout_s
        self.strict = strict
        self.system_prompt = system_prompt
        self.last_request_json: dict | None = None
        self.last_response_json: dict | None = None
        self.last_usage: TokenUsage | None = None

    def _url(self) -> str:
        normalized_base = self.base_url.rstrip("/")
        if normalized_base.endswith("/v1"):
            return normalized_base + "/chat/completions"
        return normalized_base + "/v1/chat/completions"

    def _payload(self, request: ExtractionRequest) -> dict:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": request.render()})
        payload: dict = {
            "model": self.model,
            "messages": messages,
            "max_tokens": request.max_tokens,
        }
        if request.temperature != 0.0:
            payload["temperature"] = request.temperature
        if request.schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": request.schema_name,
                    "schema": request.schema,
                    "strict": self.strict,
                },
            }
        return payload

    def respond(self, request: ExtractionRequest) -> str:
        """Return the assistant text for the request."""

        self.last_usage = None
        if not self.api_key:
            raise BackendError(
                provider=self.name,
                kind="auth",
                message="Missing OPENAI_API_KEY.",
                retryable=False,
            )

        url = self._url()
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self._payload(request)

        retried_temperature = False
        retried_max_tokens = False
        response = self._safe_post(url, headers=headers, payload=payload)

        while response.status_code == 400:
            _, error_param, _ = _extract_error_details(response)
            if (
                error_param == "temperature"
                and "temperature" in payload
                and not retried_temperature
            ):
                logger.info("openai rejected temperature; retrying without it")
                payload.pop("temperature", None)
                retried_temperature = True
                response = self._safe_post(url, headers=headers, payload=payload)
                continue
            if (
                error_param in {"max_tokens", "max_completion_tokens"}
                and "max_tokens" in payload
                and not retried_max_tokens
            ):
                logger.info("openai rejected max_tokens; retrying with max_completion_tokens")
                payload["max_completion_tokens"] = payload.pop("max_tokens")
                retried_max_tokens = True
                response = self._safe_post(url, headers=headers, payload=payload)
                continue
            break

        if response.status_code != 200:
            error_message, error_param, _ = _extract_error_details(response)
            if error_param:
                error_message = f"{error_message} (param={error_param})"
            raise http_error(self.name, response.status_code, error_message)

        json_obj = self.last_response_json
        if json_obj is None:
            raise BackendError(
                provider=self.name,
                kind="bad_response",
                message="Malformed JSON response.",
                retryable=False,
            )

        text = _extract_text_from_openai_response(json_obj)
        if not text:
            raise BackendError(
                provider=self.name,
                kind="bad_response",
                message="No text content found in OpenAI response.",
                retryable=False,
            )
        self.last_usage = _extract_usage(json_obj, self.model)
        return text

    def _safe_post(self, url: str, *, headers: dict, payload: dict):
        self.last_request_json = deepcopy(payload)
        self.last_response_json = None
        try:
            response = _requests_post(url, headers=headers, json=payload, timeout=self.timeout_s)
        except BackendError:
            raise
        except Exception as exc:
            translated = transport_error(self.name, exc)
            if translated is None:
                raise
            raise translated from exc
        try:
            parsed = response.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            self.last_response_json = parsed
        return response


def _requests_post(url: str, *, headers: dict, json: dict, timeout: float):
    """POST helper to isolate requests dependency for easier offline mocking."""

    try:
        import requests
    except ImportError as exc:
        raise BackendError(
            provider="openai",
            kind="network",
            message=f"requests dependency unavailable: {exc}",
            retryable=False,
        ) from exc
    return requests.post(url, headers=headers, json=json, timeout=timeout)


def _extract_text_from_openai_response(json_obj) -> str:
    """Extract assistant text from chat completion response shapes."""

    if not isinstance(json_obj, dict):
        return ""

    choices = json_obj.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str) and content:
                return content
            if isinstance(content, list):
                chunks: list[str] = []
                for item in content:
                    if isinstance(item, dict):
                        text = item.get("text")
                        if isinstance(text, str):
                            chunks.append(text)
                if chunks:
                    return "".join(chunks)
        text = first.get("text")
        if isinstance(text, str) and text:
            return text

    output_text = json_obj.get("output_text")
    if isinstance(output_text, str) and output_text:
        return output_text
    return ""


def _extract_usage(json_obj: dict, model: str) -> TokenUsage | None:
    usage = json_obj.get("usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        input_tokens=int(usage.get("prompt_tokens") or 0),
        output_tokens=int(usage.get("completion_tokens") or 0),
        model=json_obj.get("model") or model,
    )


def _extract_error_details(response) -> tuple[str, str | None, str | None]:
    """Extract short error message and param from error response body."""

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    err = payload.get("error")
    if isinstance(err, dict):
        message = err.get("message")
        param = err.get("param")
        code = err.get("code")
        return (
            message if isinstance(message, str) and message else response.text,
            param if isinstance(param, str) and param else None,
            code if isinstance(code, str) and code else None,
        )
    return (response.text, None, None)
