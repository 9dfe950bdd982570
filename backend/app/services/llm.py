"""
Thin wrapper around the OpenAI chat API.

Three call modes are offered so every caller gets the same
model selection, error handling and logging:

- ``generate_text``   → unconstrained completion.
- ``generate_object`` → JSON completion validated against a
  pydantic schema.
- ``stream_text``     → streamed completion yielding deltas.
"""

import json
import logging
from typing import AsyncIterator, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from app.config import settings, AVAILABLE_MODELS
from app.exceptions import CompletionError, OutputValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _get_client() -> AsyncOpenAI:
    """Create an OpenAI client with the configured key."""
    return AsyncOpenAI(api_key=settings.openai_api_key)


def get_model(model_id: str) -> Optional[Dict[str, str]]:
    """
    Look up a selectable chat model by id.

    Returns:
        dict | None: The model option, or None if unknown.
    """
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id:
            return model
    return None


async def generate_text(
    prompt: str,
    system: Optional[str] = None,
    model: Optional[str] = None,
    temperature: float = 0.7,
) -> str:
    """
    Request a free-text completion.

    Raises:
        CompletionError: The API call failed.
    """
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    try:
        response = await _get_client().chat.completions.create(
            model=model or settings.utility_model,
            messages=messages,
            temperature=temperature,
        )
    except OpenAIError as exc:
        logger.error("Text generation failed: %s", exc)
        raise CompletionError(f"LLM call failed: {exc}") from exc

    return (response.choices[0].message.content or "").strip()


async def generate_object(
    schema: Type[T],
    prompt: str,
    system: Optional[str] = None,
    model: Optional[str] = None,
    temperature: float = 0.2,
) -> T:
    """
    Request a JSON completion and validate it against *schema*.

    The schema's JSON Schema is appended to the system message
    and the API is asked for a JSON object.  Output that is not
    valid JSON or does not validate is rejected.

    Parameters:
        schema (type[BaseModel]): Model the output must satisfy.
        prompt (str): User-turn instruction.
        system (str, optional): System instruction.
        model (str, optional): Override the utility model.
        temperature (float): Sampling temperature.

    Returns:
        BaseModel: A validated *schema* instance.

    Raises:
        CompletionError: The API call failed.
        OutputValidationError: The output did not validate.
    """
    schema_hint = (
        "Respond with a single JSON object that validates "
        "against this JSON Schema:\n"
        f"{json.dumps(schema.model_json_schema())}"
    )
    system_text = f"{system}\n\n{schema_hint}" if system else schema_hint

    messages = [
        {"role": "system", "content": system_text},
        {"role": "user", "content": prompt},
    ]

    try:
        response = await _get_client().chat.completions.create(
            model=model or settings.utility_model,
            messages=messages,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
    except OpenAIError as exc:
        logger.error(
            "[%s] structured generation failed: %s",
            schema.__name__,
            exc,
        )
        raise CompletionError(f"LLM call failed: {exc}") from exc

    content = response.choices[0].message.content or ""
    try:
        return schema.model_validate_json(content)
    except ValidationError as exc:
        logger.warning(
            "[%s] LLM output failed validation: %s",
            schema.__name__,
            content[:200],
        )
        raise OutputValidationError(
            f"Model output does not match {schema.__name__}",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


async def stream_text(
    messages: List[Dict[str, str]],
    system: str,
    model: Optional[str] = None,
) -> AsyncIterator[str]:
    """
    Stream a completion, yielding text deltas as they arrive.

    The iterator is finite and cannot be restarted; issue a
    new call to regenerate.

    Raises:
        CompletionError: The API call failed before or during
            streaming.
    """
    try:
        stream = await _get_client().chat.completions.create(
            model=model or settings.openai_model,
            messages=[
                {"role": "system", "content": system},
                *messages,
            ],
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
    except OpenAIError as exc:
        logger.error("Streaming completion failed: %s", exc)
        raise CompletionError(f"LLM call failed: {exc}") from exc
