"""
Answer composition for a chat turn.

1. **Enrichment** → search and database sources are consulted
   concurrently and frozen into an ``EnrichmentResults`` value.
2. **Prompt**     → both payloads are merged into a single
   system instruction.
3. **Stream**     → the model's answer is streamed as
   ``content`` events; once complete, the assistant message is
   persisted (best effort) and announced via an ``annotation``
   event carrying its server-side id, then ``finish`` closes
   the stream.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from app.exceptions import CompletionError, TransportError
from app.models import generate_uuid
from app.services import database_search, llm, search
from app.services.prompts import build_answer_prompt

logger = logging.getLogger(__name__)

SaveMessage = Callable[[str, str], Awaitable[None]]


@dataclass(frozen=True)
class EnrichmentResults:
    """Results from every enrichment source for one request."""

    search: Optional[Any] = None
    database: Optional[Any] = None


@dataclass(frozen=True)
class StreamEvent:
    """One event on the outbound answer stream."""

    event: str
    data: Dict[str, Any]

    def to_sse(self) -> str:
        """Format as a Server-Sent Event string."""
        payload = json.dumps(self.data, ensure_ascii=False, default=str)
        return f"event: {self.event}\ndata: {payload}\n\n"


async def _search_enrichment(message: str) -> Optional[Any]:
    """Translate and run the search query; None when skipped."""
    query = await search.generate_search_query(message)
    if query is None:
        return None
    try:
        return await search.fetch_search_results(query)
    except TransportError as exc:
        logger.error("Error fetching from search engine: %s", exc)
        return None


async def gather_enrichment(message: str) -> EnrichmentResults:
    """
    Consult all enrichment sources for *message*.

    Search and database enrichment run concurrently and in no
    particular order; this waits for both.

    Raises:
        ConfigurationError: The search endpoint is not
            configured.
    """
    outcomes = await asyncio.gather(
        _search_enrichment(message),
        database_search.fetch_database_results(message),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    search_results, database_results = outcomes
    return EnrichmentResults(
        search=search_results,
        database=database_results,
    )


def compose_answer_prompt(
    message: str,
    enrichment: EnrichmentResults,
) -> str:
    """Build the answer instruction from *enrichment*."""
    return build_answer_prompt(
        json.dumps(enrichment.search, default=str),
        json.dumps(enrichment.database, default=str),
        message,
    )


async def stream_answer(
    messages: List[Dict[str, str]],
    system_prompt: str,
    model: str,
    save_message: SaveMessage,
) -> AsyncIterator[StreamEvent]:
    """
    Stream the model's answer as events.

    Parameters:
        messages (list[dict]): Conversation so far
            (role / content dicts).
        system_prompt (str): Instruction from
            ``compose_answer_prompt``.
        model (str): OpenAI model identifier.
        save_message (callable): ``await save_message(id, text)``
            persists the finished assistant message.

    Yields:
        StreamEvent: ``content`` deltas, then ``annotation``
            (only if the message was saved), then ``finish``.
            A model failure yields ``error`` then ``finish``.
    """
    parts: List[str] = []
    try:
        async for delta in llm.stream_text(messages, system_prompt, model):
            parts.append(delta)
            yield StreamEvent("content", {"delta": delta})
    except CompletionError as exc:
        yield StreamEvent("error", {"message": exc.message})
        yield StreamEvent("finish", {"finishReason": "error"})
        return

    message_id = generate_uuid()
    try:
        await save_message(message_id, "".join(parts))
    except Exception:
        # The answer is already delivered; never fail the stream.
        logger.exception("Failed to save assistant message")
    else:
        yield StreamEvent(
            "annotation", {"messageIdFromServer": message_id},
        )

    yield StreamEvent("finish", {"finishReason": "stop"})
