"""
Search enrichment: translate a user message into a search query
document and execute it against the search engine.

Translation failures are soft (``None`` means "skip search
enrichment"); fetch failures are raised so the caller decides
how to degrade.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

import httpx

from app.config import settings
from app.exceptions import (
    CompletionError,
    ConfigurationError,
    OutputValidationError,
    TransportError,
)
from app.schemas import SearchQueryDocument
from app.services import llm
from app.services.prompts import build_search_query_prompt

logger = logging.getLogger(__name__)


def search_today() -> date:
    """Today's date in the configured search timezone."""
    tz_name = settings.search_timezone
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return datetime.now(tz).date()


async def generate_search_query(
    message: str,
    today: Optional[date] = None,
) -> Optional[SearchQueryDocument]:
    """
    Translate *message* into a validated search query document.

    Parameters:
        message (str): The user's free-text message.
        today (date, optional): Anchor for relative time
            expressions; defaults to today in the search
            timezone.

    Returns:
        SearchQueryDocument | None: The query, or None when the
            message is empty or generation/validation failed.
    """
    if not message or not message.strip():
        return None

    prompt = build_search_query_prompt(message, today or search_today())
    try:
        query = await llm.generate_object(SearchQueryDocument, prompt)
    except (CompletionError, OutputValidationError) as exc:
        logger.warning(
            "Search query generation failed, skipping search: %s",
            exc,
        )
        return None

    logger.info(
        "Generated search query: keywords=%r time_range=%s",
        query.keywords,
        "yes" if query.time_range else "no",
    )
    return query


def _build_client() -> httpx.AsyncClient:
    """Create the HTTP client used for search requests."""
    return httpx.AsyncClient(timeout=settings.elasticsearch_timeout)


async def fetch_search_results(query: SearchQueryDocument) -> Any:
    """
    Execute *query* against the search endpoint.

    Parameters:
        query (SearchQueryDocument): Validated query document.

    Returns:
        Any: The parsed JSON response body.

    Raises:
        ConfigurationError: ``ELASTICSEARCH_URL`` is not set
            (raised before any network call).
        TransportError: The request failed or the endpoint
            answered with a non-success status.
    """
    url = settings.elasticsearch_url
    if not url:
        raise ConfigurationError(
            "ELASTICSEARCH_URL is not defined. "
            "Set ELASTICSEARCH_URL in your environment or .env"
        )

    try:
        async with _build_client() as client:
            response = await client.post(
                url,
                json=query.to_request_body(),
                auth=(
                    settings.elasticsearch_username,
                    settings.elasticsearch_password,
                ),
                headers={"Content-Type": "application/json"},
            )
    except httpx.HTTPError as exc:
        raise TransportError(f"Search request failed: {exc}") from exc

    if not response.is_success:
        raise TransportError(
            f"Search engine error: {response.status_code} "
            f"{response.reason_phrase}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as exc:
        raise TransportError(
            "Search engine returned a non-JSON body",
            status_code=response.status_code,
        ) from exc
