"""
MCP wrapper for the suggestion service.

Fetches suggestions from the distributed suggestion service with a bounded
exponential backoff, and falls back to local heuristics when the service
stays unreachable. Waiting between attempts is an ``asyncio.sleep``, so
cancelling the caller also cancels any pending retry.
"""
from __future__ import annotations

import asyncio
import logging
import os
import typing as t

import httpx
from fastmcp import FastMCP
from pydantic import ValidationError

from planner_server import store
from planner_server.errors import SuggestionServiceError
from planner_server.models import Task
from planner_server.suggestions import Suggestion, fallback_suggestions
from services.shared.models import (
    SuggestionRequest,
    SuggestionResponse,
    suggestion_from_model,
    task_to_model,
)

logger = logging.getLogger(__name__)

mcp = FastMCP("SuggestionMCPWrapper")

# Service URL - configurable via environment variable
SUGGESTION_SERVICE_URL = os.getenv("SUGGESTION_SERVICE_URL", "http://localhost:8005")

# Two retries after the first attempt, waiting 1s then 2s
MAX_RETRIES = int(os.getenv("SUGGESTION_MAX_RETRIES", "2"))
BACKOFF_SECONDS = float(os.getenv("SUGGESTION_BACKOFF_SECONDS", "1.0"))

STANDARD_TIMEOUT = 30.0


def backoff_delay(retry: int, base: float = BACKOFF_SECONDS) -> float:
    """Seconds to wait before retry number ``retry`` (1-based): base, 2*base, 4*base..."""
    return base * 2 ** (retry - 1)


async def _post_with_retry(
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, t.Any],
        max_retries: int,
        backoff: float,
) -> httpx.Response:
    """POST ``payload``, retrying transport failures and 5xx responses.

    4xx responses are not retried.

    :raises SuggestionServiceError: When the request is rejected or every attempt fails.
    """
    last_error: t.Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            if e.response.status_code < 500:
                raise SuggestionServiceError(
                    f"HTTP error from suggestion service: {e.response.status_code} {e.response.text}"
                ) from e
            last_error = e
        except httpx.TransportError as e:
            last_error = e

        if attempt < max_retries:
            delay = backoff_delay(attempt + 1, backoff)
            logger.warning(
                "Suggestion request failed (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1, max_retries + 1, delay, last_error,
            )
            await asyncio.sleep(delay)

    logger.error("All %d suggestion request attempts failed", max_retries + 1)
    raise SuggestionServiceError(f"Suggestion service unavailable: {last_error}") from last_error


async def _fetch_suggestions(
        request: SuggestionRequest,
        client: t.Optional[httpx.AsyncClient] = None,
        max_retries: int = MAX_RETRIES,
        backoff: float = BACKOFF_SECONDS,
) -> list[Suggestion]:
    """
    Fetch suggestions from the suggestion service.

    :param request: The suggestion request body.
    :param client: HTTP client to use; a short-lived one is created when omitted.
    :param max_retries: Retries after the first attempt.
    :param backoff: Delay before the first retry; doubled for each later one.
    :raises SuggestionServiceError: When the service cannot be reached or answers badly.
    """
    url = f"{SUGGESTION_SERVICE_URL}/suggestions"
    payload = request.model_dump()

    if client is None:
        async with httpx.AsyncClient(timeout=STANDARD_TIMEOUT) as owned_client:
            response = await _post_with_retry(owned_client, url, payload, max_retries, backoff)
    else:
        response = await _post_with_retry(client, url, payload, max_retries, backoff)

    try:
        result = SuggestionResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise SuggestionServiceError(f"Malformed response from suggestion service: {e}") from e
    return [suggestion_from_model(suggestion) for suggestion in result.suggestions]


async def _suggest_for_task(
        title: str = "",
        subject: str = "",
        task_type: str = "academic",
        tasks: t.Optional[list[Task]] = None,
        recent_study_minutes: int = 0,
        client: t.Optional[httpx.AsyncClient] = None,
) -> list[Suggestion]:
    """
    Suggestions for a task being planned.

    Uses the stored tasks as context unless ``tasks`` is given. Falls back
    to offline suggestions when the service is unavailable.
    """
    context = store.list_tasks() if tasks is None else tasks
    request = SuggestionRequest(
        title=title,
        subject=subject,
        task_type=task_type,
        tasks=[task_to_model(task) for task in context],
        recent_study_minutes=recent_study_minutes,
    )
    try:
        return await _fetch_suggestions(request, client=client)
    except SuggestionServiceError as e:
        logger.warning("Using offline suggestions: %s", e)
        return fallback_suggestions(title, subject)


@mcp.tool()
async def suggest_for_task(
        title: str = "",
        subject: str = "",
        task_type: str = "academic",
        recent_study_minutes: int = 0,
) -> list[Suggestion]:
    """Suggests study and scheduling actions for a task being planned."""
    return await _suggest_for_task(title, subject, task_type, recent_study_minutes=recent_study_minutes)


if __name__ == "__main__":
    mcp.run()
