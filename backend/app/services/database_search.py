"""
Relational enrichment source.

Translates a user message into a read-only SQL query against
the configured enrichment database and runs it.  The whole
path is optional: it only runs when ``ENABLE_DATABASE_SEARCH``
is set, and any failure is logged and swallowed so the chat
turn continues without database results.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, inspect, text

from app.config import settings
from app.exceptions import ConfigurationError, TransportError
from app.schemas import SqlQueryDraft
from app.services import llm
from app.services.prompts import build_sql_query_prompt

logger = logging.getLogger(__name__)


def _get_engine():
    """Create an engine for the enrichment database."""
    if not settings.search_database_url:
        raise ConfigurationError(
            "SEARCH_DATABASE_URL is not defined but "
            "ENABLE_DATABASE_SEARCH is true"
        )
    return create_engine(settings.search_database_url)


def describe_schema() -> str:
    """
    Introspect the enrichment database into a prompt block.

    Returns:
        str: One line per table listing ``column (TYPE)`` pairs.
    """
    engine = _get_engine()
    try:
        inspector = inspect(engine)
        lines = []
        for table_name in inspector.get_table_names():
            cols = ", ".join(
                f"{c['name']} ({c['type']})"
                for c in inspector.get_columns(table_name)
            )
            lines.append(f"  - {table_name}: {cols}")
    finally:
        engine.dispose()

    if not lines:
        return "No tables available."
    return "Tables:\n" + "\n".join(lines)


async def generate_sql_query(message: str) -> SqlQueryDraft:
    """
    Translate *message* into a read-only SQL query.

    Raises:
        CompletionError: The LLM call failed.
        OutputValidationError: The output was not a single
            SELECT statement.
    """
    schema_context = await asyncio.to_thread(describe_schema)
    prompt = build_sql_query_prompt(
        message,
        schema_context,
        settings.database_search_row_limit,
    )
    draft = await llm.generate_object(SqlQueryDraft, prompt)
    logger.info("Generated SQL query: %s", draft.query)
    return draft


def _execute(sql: str) -> List[Dict[str, Any]]:
    """Run *sql* synchronously and return capped row dicts."""
    engine = _get_engine()
    try:
        with engine.connect() as connection:
            result = connection.execute(text(sql))
            columns = list(result.keys())
            rows = result.fetchmany(settings.database_search_row_limit)
            return [dict(zip(columns, row)) for row in rows]
    finally:
        engine.dispose()


async def run_sql_query(sql: str) -> List[Dict[str, Any]]:
    """
    Execute *sql* in a worker thread.

    Raises:
        TransportError: The driver reported a failure.
    """
    try:
        return await asyncio.to_thread(_execute, sql)
    except ConfigurationError:
        raise
    except Exception as exc:
        raise TransportError(f"Database query failed: {exc}") from exc


async def fetch_database_results(
    message: str,
) -> Optional[List[Dict[str, Any]]]:
    """
    Run the optional database enrichment for *message*.

    Returns:
        list[dict] | None: Result rows, or None when the source
            is disabled or anything went wrong.
    """
    if not settings.enable_database_search:
        return None

    try:
        draft = await generate_sql_query(message)
        rows = await run_sql_query(draft.query)
    except Exception:
        logger.exception("Database enrichment failed, continuing without it")
        return None

    logger.info("Database enrichment returned %d rows", len(rows))
    return rows
