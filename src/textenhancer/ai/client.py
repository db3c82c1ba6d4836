"""Async rewrite client built around OpenAI-compatible chat endpoints."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.parameters import RewriteParameters, RewriteRequest
from ..core.results import FailureKind, RewriteFailure, RewriteOutcome, RewriteResult
from .prompts import build_messages

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

# Only transport-level faults are worth retrying; a wrong tone is not transient.
_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    httpx.TimeoutException,
    httpx.TransportError,
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the rewrite client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float = 30.0
    max_retries: int = 2
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 2.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            debug_logging=settings.debug_logging,
        )


class RewriteClient:
    """Turns text plus parameters into one chat completion.

    ``enhance`` never raises for service problems: it returns a
    :class:`RewriteFailure` instead. Cancellation is the exception and
    propagates as :class:`asyncio.CancelledError` so the owning task can be
    torn down cleanly.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def has_credential(self) -> bool:
        return bool((self._settings.api_key or "").strip())

    async def enhance(self, text: str, parameters: RewriteParameters) -> RewriteOutcome:
        """Rewrite ``text`` according to ``parameters``."""

        if not self.has_credential:
            return RewriteFailure(FailureKind.AUTH_ERROR, "No API key configured")
        try:
            request = RewriteRequest(source_text=text, parameters=parameters)
        except ValueError as exc:
            LOGGER.warning("Refusing rewrite request: %s", exc)
            return RewriteFailure(FailureKind.EMPTY_RESULT, "There is no text to rewrite")
        payload = self._build_chat_payload(request)
        LOGGER.debug(
            "Requesting rewrite via %s (tone=%s, words=%s, language=%s, chars=%d)",
            self._settings.model,
            parameters.tone,
            parameters.target_word_count,
            parameters.language,
            len(text),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            response = await asyncio.wait_for(
                self._complete(payload), timeout=self._settings.request_timeout
            )
        except asyncio.TimeoutError:
            LOGGER.warning("Rewrite request timed out after %.1fs", self._settings.request_timeout)
            return RewriteFailure(FailureKind.NETWORK_ERROR, "The rewrite service did not respond in time")
        except (AuthenticationError, PermissionDeniedError) as exc:
            LOGGER.warning("Rewrite request rejected credential: %s", exc)
            return RewriteFailure(FailureKind.AUTH_ERROR, "The API key was rejected by the rewrite service")
        except _TRANSIENT_ERRORS as exc:
            LOGGER.warning("Rewrite request failed to connect: %s", exc)
            return RewriteFailure(FailureKind.NETWORK_ERROR, "Could not reach the rewrite service")
        except APIStatusError as exc:
            LOGGER.warning("Rewrite service returned HTTP %s: %s", exc.status_code, exc)
            return RewriteFailure(
                FailureKind.NETWORK_ERROR, f"The rewrite service returned an error (HTTP {exc.status_code})"
            )
        except APIError as exc:
            LOGGER.warning("Rewrite service error: %s", exc)
            return RewriteFailure(FailureKind.NETWORK_ERROR, "The rewrite service returned an error")
        except Exception:
            LOGGER.exception("Rewrite request raised unexpectedly")
            return RewriteFailure(
                FailureKind.NETWORK_ERROR, "Unexpected error while contacting the rewrite service"
            )

        return self._extract_result(response)

    async def _complete(self, payload: Mapping[str, Any]) -> Any:
        client = self._get_client()
        response: Any = None
        async for attempt in self._retrying():
            with attempt:
                response = await client.chat.completions.create(**payload)
        return response

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        )

    def _build_chat_payload(self, request: RewriteRequest) -> Dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": build_messages(request),
            "n": 1,
        }

    @staticmethod
    def _extract_result(response: Any) -> RewriteOutcome:
        choices = getattr(response, "choices", None) or []
        if not choices:
            LOGGER.warning("Rewrite service returned no choices")
            return RewriteFailure(FailureKind.EMPTY_RESULT, "The rewrite service returned no text")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        text = (content or "").strip()
        if not text:
            LOGGER.warning("Rewrite service returned blank content")
            return RewriteFailure(FailureKind.EMPTY_RESULT, "The rewrite service returned no text")
        LOGGER.debug("Rewrite completed (%d chars)", len(text))
        return RewriteResult(text=text)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = self._build_client(self._settings)
        return self._client

    @staticmethod
    def _build_client(settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Rewrite payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Rewrite payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        if self._client is None:
            return
        close = getattr(self._client, "close", None)
        if close is None:
            return
        try:
            result = close()
        except Exception as exc:  # pragma: no cover - third-party close
            LOGGER.debug("Rewrite client close failed to start: %s", exc)
            return
        if inspect.isawaitable(result):
            await result


__all__ = ["ClientSettings", "RewriteClient"]
