"""Hosted generation client and the rate-limit-aware invoker.

Every generation call in the service goes through ``ResilientInvoker``.
Only a rate-limit signal is retried; anything else fails immediately with
the original error attached. The OpenAI SDK's own retries are disabled so
this is the single retry loop.
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, Protocol

from openai import APIStatusError, AsyncAzureOpenAI, AsyncOpenAI, RateLimitError

from studybuddy.core.config import Settings
from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_generation import (
    Fatal,
    GenerationOutcome,
    GenerationRequest,
    RateLimited,
    Success,
    TokenUsage,
)

logger = get_logger(__name__)

_RETRY_AFTER_PATTERN = re.compile(r"retry after (\d+(?:\.\d+)?) seconds?", re.IGNORECASE)


class GenerationError(Exception):
    """Base class for generation failures."""


class GenerationNotConfiguredError(GenerationError):
    """No credentials for the hosted generation service."""


class UpstreamGenerationError(GenerationError):
    """The generation service failed and the failure is not retryable."""

    def __init__(self, reason: str, attempts: int = 1):
        super().__init__(reason)
        self.reason = reason
        self.attempts = attempts


class RetriesExhaustedError(UpstreamGenerationError):
    """The service kept rate limiting until the retry budget ran out."""

    def __init__(self, reason: str, attempts: int, retry_after_seconds: float | None = None):
        super().__init__(reason, attempts)
        self.retry_after_seconds = retry_after_seconds


def create_generation_client(settings: Settings) -> AsyncOpenAI:
    """
    Build the async OpenAI client (Azure flavour when an endpoint is configured).

    Raises:
        GenerationNotConfiguredError: If no credentials are configured
    """
    if settings.uses_azure:
        if not settings.AZURE_OPENAI_API_KEY:
            raise GenerationNotConfiguredError("AZURE_OPENAI_API_KEY is not set")
        return AsyncAzureOpenAI(
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
            api_key=settings.AZURE_OPENAI_API_KEY,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            max_retries=0,
        )
    if settings.OPENAI_API_KEY:
        return AsyncOpenAI(api_key=settings.OPENAI_API_KEY, max_retries=0)
    raise GenerationNotConfiguredError(
        "AI service not configured. Set AZURE_OPENAI_ENDPOINT/AZURE_OPENAI_API_KEY or OPENAI_API_KEY."
    )


def retry_after_hint(error: BaseException) -> float | None:
    """Seconds the service asked us to wait, if it said."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None) or {}

    retry_ms = headers.get("retry-after-ms")
    if retry_ms is not None:
        try:
            return float(retry_ms) / 1000.0
        except ValueError:
            pass

    retry_s = headers.get("retry-after")
    if retry_s is not None:
        try:
            return float(retry_s)
        except ValueError:
            # HTTP-date form is not used by the service
            pass

    match = _RETRY_AFTER_PATTERN.search(str(error))
    if match:
        return float(match.group(1))
    return None


def classify_error(error: Exception) -> RateLimited | Fatal:
    """Map a failed call to the outcome that drives the retry loop."""
    if isinstance(error, RateLimitError) or (
        isinstance(error, APIStatusError) and error.status_code == 429
    ):
        return RateLimited(retry_after_seconds=retry_after_hint(error), reason=str(error))
    return Fatal(reason=f"{type(error).__name__}: {error}", error=error)


def completion_to_success(completion: Any) -> Success:
    """Pull the text fields and usage out of a chat completion."""
    choices = getattr(completion, "choices", None) or []
    message = choices[0].message if choices else None

    usage = getattr(completion, "usage", None)
    token_usage = None
    if usage is not None:
        token_usage = TokenUsage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    return Success(
        raw_text=(getattr(message, "content", None) or "") if message else "",
        # Reasoning deployments may answer here instead of in content
        reasoning_text=(getattr(message, "reasoning_content", None) or "") if message else "",
        refusal=(getattr(message, "refusal", None) or "") if message else "",
        model=getattr(completion, "model", "") or "",
        usage=token_usage,
    )


class GenerationService(Protocol):
    """Anything that can turn a request into a completion, raising on failure."""

    async def complete(
        self, request: GenerationRequest, max_completion_tokens: int
    ) -> Success: ...


class OpenAIGenerationService:
    """Chat-completions backed generation service."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self.model = model

    async def complete(self, request: GenerationRequest, max_completion_tokens: int) -> Success:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=request.as_payload(),
            max_completion_tokens=max_completion_tokens,
        )
        return completion_to_success(completion)


UsageLogger = Callable[[str, Success, int], None]


class ResilientInvoker:
    """
    Calls the generation service, retrying only when rate limited.

    State machine per call: Calling -> Success | RateLimited | Fatal.
    RateLimited goes back to Calling while ``attempt < max_retries``, after
    waiting ``min(hint or fallback, cap)`` seconds; otherwise it becomes
    Fatal ("max retries exceeded"). Waiting uses ``asyncio.sleep`` so other
    in-flight requests keep running.
    """

    def __init__(
        self,
        service: GenerationService,
        *,
        max_retries: int = 3,
        fallback_seconds: float = 60.0,
        cap_seconds: float = 120.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        usage_logger: UsageLogger | None = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._service = service
        self.max_retries = max_retries
        self.fallback_seconds = fallback_seconds
        self.cap_seconds = cap_seconds
        self._sleep = sleep
        self._usage_logger = usage_logger

    @classmethod
    def from_settings(
        cls, service: GenerationService, settings: Settings, **kwargs: Any
    ) -> "ResilientInvoker":
        return cls(
            service,
            max_retries=settings.GENERATION_MAX_RETRIES,
            fallback_seconds=settings.RATE_LIMIT_FALLBACK_SECONDS,
            cap_seconds=settings.RATE_LIMIT_CAP_SECONDS,
            **kwargs,
        )

    def wait_seconds(self, outcome: RateLimited) -> float:
        suggested = (
            outcome.retry_after_seconds
            if outcome.retry_after_seconds is not None
            else self.fallback_seconds
        )
        return max(0.0, min(suggested, self.cap_seconds))

    async def _call_once(
        self, request: GenerationRequest, max_completion_tokens: int
    ) -> GenerationOutcome:
        try:
            return await self._service.complete(request, max_completion_tokens)
        except Exception as e:
            return classify_error(e)

    async def invoke(
        self,
        request: GenerationRequest,
        *,
        max_completion_tokens: int,
        workflow: str = "generation",
    ) -> Success | Fatal:
        """
        Run one generation with bounded rate-limit retries.

        Returns:
            ``Success`` or ``Fatal``; never raises for service failures
        """
        attempt = 0
        while True:
            attempt += 1
            started = time.monotonic()
            outcome = await self._call_once(request, max_completion_tokens)
            elapsed_ms = int((time.monotonic() - started) * 1000)

            if isinstance(outcome, Success):
                logger.info(
                    f"{workflow}: generation succeeded on attempt {attempt} in {elapsed_ms}ms"
                )
                if self._usage_logger is not None:
                    self._usage_logger(workflow, outcome, elapsed_ms)
                return outcome

            if isinstance(outcome, Fatal):
                logger.error(f"{workflow}: generation failed on attempt {attempt}: {outcome.reason}")
                return replace(outcome, attempts=attempt)

            if attempt >= self.max_retries:
                logger.error(
                    f"{workflow}: still rate limited after {attempt} attempts, giving up"
                )
                return Fatal(
                    reason=f"max retries exceeded after {attempt} rate-limited attempts",
                    attempts=attempt,
                    rate_limited=True,
                    retry_after_seconds=outcome.retry_after_seconds,
                )

            wait = self.wait_seconds(outcome)
            logger.warning(
                f"{workflow}: rate limited on attempt {attempt}/{self.max_retries}, "
                f"retrying in {wait:.1f}s"
            )
            await self._sleep(wait)

    async def generate(
        self,
        request: GenerationRequest,
        *,
        max_completion_tokens: int,
        workflow: str = "generation",
    ) -> Success:
        """
        Like ``invoke`` but raises on failure.

        Raises:
            RetriesExhaustedError: If every attempt was rate limited
            UpstreamGenerationError: On any other service failure
        """
        outcome = await self.invoke(
            request, max_completion_tokens=max_completion_tokens, workflow=workflow
        )
        if isinstance(outcome, Success):
            return outcome
        if outcome.rate_limited:
            raise RetriesExhaustedError(
                outcome.reason, outcome.attempts, outcome.retry_after_seconds
            )
        raise UpstreamGenerationError(outcome.reason, outcome.attempts) from outcome.error
