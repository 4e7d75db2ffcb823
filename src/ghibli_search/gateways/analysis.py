"""Image analysis gateway: uploaded image -> caption, with bounded retry."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ghibli_search.backend.workers_ai import WorkersAIClient
from ghibli_search.config import ANALYZE_MAX_RETRIES, ANALYZE_RETRY_BASE_DELAY
from ghibli_search.errors import BackendError, NonRetryableBackendError, TerminalBackendError
from ghibli_search.models import UploadedImage

logger = logging.getLogger(__name__)

ANALYZE_FAILED_MESSAGE = "Couldn't analyze this image, please try another"

# Cloudflare error codes that retrying cannot fix:
# 1031 = AI service overloaded, 1015 = rate limited.
NON_RETRYABLE_SIGNATURES = ("error code: 1031", "error code: 1015")


def is_non_retryable(error: BaseException) -> bool:
    message = str(error)
    return any(signature in message for signature in NON_RETRYABLE_SIGNATURES)


def _should_retry(error: BaseException) -> bool:
    return isinstance(error, BackendError) and not isinstance(error, NonRetryableBackendError)


async def _describe_once(backend: WorkersAIClient, upload: UploadedImage) -> str:
    conversion = await backend.to_markdown(upload.name, upload.data, upload.content_type)
    if conversion.get("format") == "error":
        raise BackendError(conversion.get("error") or "Failed to analyze image")
    description = conversion.get("data")
    if not description:
        raise BackendError("No description generated from image")
    return description


async def describe_image(
    backend: WorkersAIClient,
    upload: UploadedImage,
    max_retries: int = ANALYZE_MAX_RETRIES,
    base_delay: float = ANALYZE_RETRY_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """Caption an uploaded image.

    Transient failures are retried up to ``max_retries`` more times with
    exponential backoff (``base_delay``, doubling each attempt). Known
    non-retryable backend errors stop the loop on first occurrence.

    Raises:
        ValidationError: The upload has a disallowed type or is too large.
        TerminalBackendError: All attempts failed, or a non-retryable error hit.
    """
    upload.validate()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay),
        retry=retry_if_exception(_should_retry),
        sleep=sleep,
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                try:
                    description = await _describe_once(backend, upload)
                except BackendError as exc:
                    number = attempt.retry_state.attempt_number
                    logger.error("Image analysis attempt %d failed: %s", number, exc)
                    if is_non_retryable(exc):
                        logger.error("Workers AI service error, skipping retries")
                        raise NonRetryableBackendError(str(exc), exc.status_code) from exc
                    raise
    except BackendError as exc:
        logger.error("Image analysis failed for %s: %s", upload.name, exc)
        raise TerminalBackendError(ANALYZE_FAILED_MESSAGE, details=str(exc)) from exc
    return description
