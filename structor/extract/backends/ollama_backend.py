"""Ollama backend using the ``format`` schema option."""

from __future__ import annotations

import os

from structor.extract.backend_base import (
    BackendError,
    ExtractionRequest,
    TokenUsage,
    http_error,
    transport_error,
)


class OllamaBackend:
    """Ollama-backed model backend."""

    name = "ollama"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        endpoint: str | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self.base_url = base_url or os.getenv("OLLAMA_BASE_URL") or "http://localhost:11434"
        self.model = model or os.getenv("OLLAMA_MODEL") or "llama3"
        self.endpoint = endpoint or os.getenv("OLLAMA_ENDPOINT") or "/api/generate"
        self.timeout_s = timeout_s
        self.last_usage: TokenUsage | None = None

    def respond(self, request: ExtractionRequest) -> str:
        """Return generated text for the request."""

        self.last_usage = None
        url = self.base_url.rstrip("/") + "/" + self.endpoint.lstrip("/")
        prompt = request.render()
        payload: dict = {
            "model": self.model,
            "stream": False,
            "prompt": prompt,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
            },
        }
        if request.schema is not None:
            payload["format"] = request.schema

        if "chat" in self.endpoint:
            payload.pop("prompt", None)
            payload["messages"] = [{"role": "user", "content": prompt}]

        try:
            response = _requests_post(url, json=payload, timeout=self.timeout_s)
        except BackendError:
            raise
        except Exception as exc:
            translated = transport_error(self.name, exc)
            if translated is None:
                raise
            raise translated from exc

        if response.status_code != 200:
            raise http_error(self.name, response.status_code, response.text)

        try:
            json_obj = response.json()
        except ValueError as exc:
            raise BackendError(
                provider=self.name,
                kind="bad_response",
                message=f"Malformed JSON response: {exc}",
                retryable=False,
            ) from exc

        text = _extract_text_from_ollama_response(json_obj)
        if not text:
            raise BackendError(
                provider=self.name,
                kind="bad_response",
                message="No text content found in Ollama response.",
                retryable=False,
            )
        if isinstance(json_obj, dict) and "eval_count" in json_obj:
            self.last_usage = TokenUsage(
                input_tokens=int(json_obj.get("prompt_eval_count") or 0),
                output_tokens=int(json_obj.get("eval_count") or 0),
                model=json_obj.get("model") or self.model,
            )
        return text


def _requests_post(url: str, *, json: dict, timeout: float):
    """POST helper to isolate requests dependency for easier offline mocking."""

    try:
        import requests
    except ImportError as exc:
        raise BackendError(
            provider="ollama",
            kind="network",
            message=f"requests dependency unavailable: {exc}",
            retryable=False,
        ) from exc
    return requests.post(url, json=json, timeout=timeout)


def _extract_text_from_ollama_response(json_obj) -> str:
    """Extract text from common Ollama response shapes."""

    if not isinstance(json_obj, dict):
        return ""
    response = json_obj.get("response")
    if isinstance(response, str) and response:
        return response
    message = json_obj.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str) and content:
            return content
    return ""
