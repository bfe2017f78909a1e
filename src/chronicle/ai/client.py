"""Async continuation client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
)

from ..errors import EMPTY_RESULT_MESSAGE, MISSING_API_KEY_MESSAGE, ContinuationError, ErrorCode
from .prompts import build_continuation_prompt

LOGGER = logging.getLogger(__name__)

@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the continuation client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float = 60.0
    temperature: float | None = 0.7
    max_output_tokens: int | None = None
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class ContinuationClient:
    """Single-shot continuation adapter.

    Each :meth:`generate` call performs exactly one request: the underlying
    SDK retries are disabled and the configured timeout is enforced per call.
    Every failure is raised as :class:`~chronicle.errors.ContinuationError`.
    The SDK client is created on first use, so a missing API key surfaces as a
    failed request instead of a crash at startup.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client: AsyncOpenAI | None = client

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def generate(self, current_text: str) -> str:
        """Return the provider's continuation of ``current_text``.

        Raises:
            ContinuationError: On transport, provider or timeout errors, and
                when the response carries no text or no API key is configured.
        """

        payload = self._build_payload(build_continuation_prompt(current_text))
        LOGGER.debug(
            "Requesting continuation via %s for %d chars of text",
            self._settings.model,
            len(current_text),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        sdk_client = self._ensure_client()
        try:
            response = await sdk_client.chat.completions.create(**payload)
        except (APITimeoutError, httpx.TimeoutException) as exc:
            LOGGER.warning("Continuation request timed out after %ss", self._settings.request_timeout)
            raise ContinuationError(
                f"The model did not respond within {self._settings.request_timeout:g} seconds.",
                error_code=ErrorCode.TIMEOUT,
            ) from exc
        except APIConnectionError as exc:
            LOGGER.warning("Continuation request could not reach the provider: %s", exc)
            raise ContinuationError(
                _describe_api_error(exc), error_code=ErrorCode.TRANSPORT_ERROR
            ) from exc
        except APIStatusError as exc:
            LOGGER.warning("Continuation provider returned HTTP %s: %s", exc.status_code, exc)
            raise ContinuationError(
                _describe_api_error(exc),
                error_code=ErrorCode.PROVIDER_ERROR,
                details={"status_code": exc.status_code},
            ) from exc
        except APIError as exc:
            LOGGER.warning("Continuation provider error: %s", exc)
            raise ContinuationError(
                _describe_api_error(exc), error_code=ErrorCode.PROVIDER_ERROR
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning("Continuation transport error: %s", exc)
            raise ContinuationError(
                str(exc) or type(exc).__name__, error_code=ErrorCode.TRANSPORT_ERROR
            ) from exc

        text = self._extract_text(response)
        if not text or not text.strip():
            LOGGER.warning("Continuation response from %s contained no text", self._settings.model)
            raise ContinuationError(EMPTY_RESULT_MESSAGE, error_code=ErrorCode.EMPTY_RESPONSE)
        LOGGER.debug("Continuation received: %d chars", len(text))
        return text

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not (self._settings.api_key or "").strip():
                LOGGER.warning("Continuation request skipped: no API key configured")
                raise ContinuationError(MISSING_API_KEY_MESSAGE, error_code=ErrorCode.MISSING_API_KEY)
            self._client = self._build_client(self._settings)
        return self._client

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": self._settings.request_timeout,
        }
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature
        if self._settings.max_output_tokens is not None:
            payload["max_tokens"] = self._settings.max_output_tokens
        return payload

    @staticmethod
    def _extract_text(response: Any) -> str | None:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if content is None:
            return None
        return str(content)

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Continuation payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Continuation payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        if self._client is None:
            return
        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def _describe_api_error(exc: APIError) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return message.strip() or type(exc).__name__


__all__ = ["ClientSettings", "ContinuationClient"]
