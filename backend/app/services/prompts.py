"""
Prompt templates for every LLM call the backend makes.

All functions here are pure: they only interpolate their
arguments into fixed instruction strings.
"""

import json
from datetime import date
from typing import Any, Dict, List


TITLE_SYSTEM_PROMPT = """\
- you will generate a short title based on the first message a user begins a conversation with
- ensure it is not more than 80 characters long
- the title should be a summary of the user's message
- do not use quotes or colons"""


SEARCH_QUERY_PROMPT = """\
You are an expert in generating optimized Elasticsearch queries. Your task is as follows:
1. Generate an Elasticsearch query that retrieves the most relevant documents based on the user's message: "{message}".
2. Extract only the essential keywords from the user's message that directly relate to the content being searched (e.g., "logs," "warnings," "errors"). Ignore filler words (e.g., "show me," "I want to see") as well as words like "visualization" and "dynamic chart" as they are not relevant to the query string.
3. Include a date range filter on the "@timestamp" field only if the user's message contains time-related terms. Today is {today}. Convert every time expression into absolute ISO-8601 timestamps:
   - a month name (e.g. "in March") covers that whole month, from the first day at 00:00:00 to the last day at 23:59:59; use the most recent such month that is not in the future unless a year is given
   - an explicit day (e.g. "on 3 May") covers that day from 00:00:00 to 23:59:59
   - an explicit range (e.g. "between 1 and 15 June") starts at 00:00:00 of the first day and ends at 23:59:59 of the last day
   - a relative expression (e.g. "last week", "yesterday", "past 3 days") is resolved against today
   If the user's message does not contain any time-related terms, omit "post_filter" entirely. Never default to an "all time" range.
4. The JSON structure must strictly follow this format:
{{
  "query": {{
    "query_string": {{
      "query": "EXTRACTED_KEYWORDS"
    }}
  }},
  "post_filter": {{
    "range": {{
      "@timestamp": {{
        "gte": "START_DATE",
        "lte": "END_DATE"
      }}
    }}
  }},
  "sort": [
    {{
      "@timestamp": {{
        "order": "desc"
      }}
    }}
  ],
  "size": 100
}}
5. The "query_string.query" field must contain only the extracted keywords, and no additional fields or properties should be included.
6. Use "post_filter" for filtering by date range instead of including it in the main query, to ensure results match the query string first before applying the filter.
7. Ensure that the query structure is valid and strictly adheres to the above format without introducing any extraneous fields or invalid configurations.
8. Absolutely no explanations, comments, or text outside the JSON object should be included. Only return a valid JSON object as specified above."""


ANSWER_PROMPT = """\
You are a conversational assistant. Construct a clear and informative response to the user message: "{user_query}"

You have access to two data sources:

Elasticsearch results:
"{search_results}"

Database results:
"{database_results}"

Your response should:
1. Analyze both data sources and determine which one(s) contain relevant information for the query
2. If Elasticsearch results are relevant, use them as your primary source
3. If database results are relevant, incorporate that information
4. If both sources have relevant information, combine them coherently
5. If neither source has relevant information, politely indicate that you cannot help with this specific query
6. Present information in a user-friendly tone, avoiding technical jargon unless necessary
7. Include links or metadata from the results when available
8. Avoid speculating or including information not present in the results
9. Always answer in the same language as the user's query
10. Only provide information that is directly supported by either data source"""


CHART_SYSTEM_PROMPT = "You are a data visualization expert."

CHART_CONFIG_PROMPT = """\
Given the following data, generate the chart config that best visualises the data and answers the users query.
For multiple groups use multi-lines.

The response MUST include a colors object mapping each yKey to a hex color code.

Here is an example complete config:
{{
  "type": "bar",
  "xKey": "month",
  "yKeys": ["log_level", "timestamp", "expenses"],
  "colors": {{
    "sales": "#4CAF50",
    "profit": "#2196F3",
    "expenses": "#F44336"
  }},
  "legend": true,
  "title": "Short chart title",
  "description": "One sentence describing what the chart shows",
  "takeaway": "The main insight a reader should take away"
}}

User Query:
{user_query}

Data:
{data}

Possible y-keys are:
{y_keys}

Requirements:
1. The config MUST include a colors object
2. Select the appropriate yKeys from the possible y-keys above.
3. Each yKey MUST have a corresponding color in the colors object
4. Colors should be in hex format (e.g. #4CAF50)
5. Choose colors that meaningfully represent the data (e.g. red for errors, green for success)
6. If no meaningful color association exists, use any appropriate color
7. If the xKey makes sense to be time-related, choose the best range (e.g., "month", "year", "day") based on the data provided as the xKey.
8. Return a complete JSON object with all required fields including colors."""


SQL_QUERY_PROMPT = """\
You are a SQL expert working against a read-only relational database.
Translate the user's message into ONE query that retrieves the rows
needed to answer it: "{message}"

Database schema:
{schema}

Rules:
1. Only a single SELECT statement (a leading WITH is allowed). Never
   DROP, DELETE, UPDATE, INSERT, ALTER or any other write.
2. Only reference tables and columns listed in the schema.
3. Select only the columns relevant to the message, with readable
   aliases.
4. Always end with LIMIT {row_limit} or less.
5. Use explicit JOINs and table aliases.

Return a JSON object:
{{
  "query": "SELECT ...",
  "explanation": "Short explanation of what the query returns"
}}"""


def build_search_query_prompt(message: str, today: date) -> str:
    """
    Build the instruction that turns *message* into a search
    query document.

    Parameters:
        message (str): The user's free-text message.
        today (date): Anchor for relative time expressions.

    Returns:
        str: Prompt text.
    """
    return SEARCH_QUERY_PROMPT.format(
        message=message,
        today=today.isoformat(),
    )


def build_answer_prompt(
    search_results: str,
    database_results: str,
    user_query: str,
) -> str:
    """
    Build the system instruction for final answer generation.

    Parameters:
        search_results (str): JSON-serialised search payload
            (``"null"`` when absent).
        database_results (str): JSON-serialised database payload
            (``"null"`` when absent).
        user_query (str): The user's message.

    Returns:
        str: Prompt text.
    """
    return ANSWER_PROMPT.format(
        user_query=user_query,
        search_results=search_results,
        database_results=database_results,
    )


def build_chart_config_prompt(
    rows: List[Dict[str, Any]],
    user_query: str,
) -> str:
    """
    Build the chart configuration instruction.

    The candidate y-keys are the keys of the first row, so
    *rows* must not be empty.
    """
    return CHART_CONFIG_PROMPT.format(
        user_query=user_query,
        data=json.dumps(rows, indent=2, default=str),
        y_keys=json.dumps(list(rows[0].keys())),
    )


def build_sql_query_prompt(
    message: str,
    schema_context: str,
    row_limit: int,
) -> str:
    """Build the text-to-SQL instruction for the enrichment database."""
    return SQL_QUERY_PROMPT.format(
        message=message,
        schema=schema_context,
        row_limit=row_limit,
    )
