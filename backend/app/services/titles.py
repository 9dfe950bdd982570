"""Chat title generation."""

import json
import logging

from app.exceptions import CompletionError
from app.services import llm
from app.services.prompts import TITLE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80


async def generate_title_from_user_message(message: str) -> str:
    """
    Summarise the first user message into a short chat title.

    Falls back to the truncated message when the model call
    fails, so creating a chat never depends on it.
    """
    try:
        title = await llm.generate_text(
            json.dumps({"role": "user", "content": message}),
            system=TITLE_SYSTEM_PROMPT,
        )
    except CompletionError:
        logger.warning("Title generation failed, using message text")
        title = ""

    title = title.strip().strip('"').replace(":", "")
    if not title:
        title = message.strip()
    return title[:MAX_TITLE_LENGTH]
