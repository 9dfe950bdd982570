"""
Pydantic schemas for API request/response validation and for
structured model output.

The LLM-facing schemas (search query document, SQL draft,
chart config draft) double as the contract the model's JSON
must satisfy: anything that fails validation is rejected.
"""

import re
from typing import Optional, List, Any, Dict, Literal
from datetime import date, datetime, time
from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


# --- Allowed values ------------------------------------

# Chart kinds the renderer knows how to draw.
RENDERABLE_CHART_TYPES = {"bar"}

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Statements that must never reach the enrichment database.
_DANGEROUS_SQL_RE = re.compile(
    r"\b(DROP|DELETE|TRUNCATE|UPDATE|INSERT|ALTER|CREATE|"
    r"REPLACE(?!\s*\()|GRANT|REVOKE|EXEC|EXECUTE|CALL|LOAD|INTO\s+OUTFILE"
    r")\b",
    re.IGNORECASE,
)


# Quoted literals and identifiers, blanked before the statement check.
_SQL_QUOTED_RE = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|`[^`]*`")


def _reject_duplicates(keys: List[str]) -> List[str]:
    """Raise when a y-key is listed more than once."""
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        raise ValueError(f"Duplicate y-keys: {duplicates}")
    return keys


# --- Search query document ---

class QueryString(BaseModel):
    """Keyword part of the search query."""

    query: str = Field(..., min_length=1)
    fields: Optional[List[str]] = None

    model_config = {"extra": "forbid"}


class SearchQuery(BaseModel):
    """Wrapper matching the ``{"query_string": ...}`` shape."""

    query_string: QueryString

    model_config = {"extra": "forbid"}


class TimestampRange(BaseModel):
    """Absolute ISO-8601 bounds for the ``@timestamp`` field."""

    gte: datetime
    lte: datetime

    model_config = {"extra": "forbid"}

    @field_validator("gte", "lte", mode="before")
    @classmethod
    def expand_date_only(cls, v: Any, info: ValidationInfo) -> Any:
        """
        Widen date-only bounds to whole days.

        ``2024-03-31`` as ``lte`` means the end of March 31, not
        its first second.
        """
        if isinstance(v, str) and _DATE_ONLY_RE.match(v.strip()):
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            bound = time(23, 59, 59) if info.field_name == "lte" else time.min
            return datetime.combine(v, bound)
        return v

    @model_validator(mode="after")
    def check_bounds(self) -> "TimestampRange":
        """Reject ranges that end before they start."""
        if (self.gte.tzinfo is None) != (self.lte.tzinfo is None):
            raise ValueError(
                "gte and lte must both carry a timezone or neither"
            )
        if self.gte > self.lte:
            raise ValueError("gte must not be later than lte")
        return self


class TimestampRangeFilter(BaseModel):
    """``{"@timestamp": {...}}`` range clause."""

    timestamp: TimestampRange = Field(..., alias="@timestamp")

    model_config = {"extra": "forbid", "populate_by_name": True}


class PostFilter(BaseModel):
    """Filter applied after relevance scoring."""

    range: TimestampRangeFilter

    model_config = {"extra": "forbid"}


class TimestampOrder(BaseModel):
    """Sort direction for ``@timestamp``."""

    order: Literal["asc", "desc"] = "desc"

    model_config = {"extra": "forbid"}


class SortClause(BaseModel):
    """``{"@timestamp": {"order": ...}}`` sort clause."""

    timestamp: TimestampOrder = Field(..., alias="@timestamp")

    model_config = {"extra": "forbid", "populate_by_name": True}


class SearchQueryDocument(BaseModel):
    """
    Validated search request body produced from a user message.

    ``post_filter`` is only present when the message contained
    temporal language.
    """

    query: SearchQuery
    post_filter: Optional[PostFilter] = None
    sort: Optional[List[SortClause]] = None
    size: Optional[int] = Field(default=None, ge=1, le=10000)

    model_config = {"extra": "forbid"}

    @property
    def keywords(self) -> str:
        """The extracted keyword string."""
        return self.query.query_string.query

    @property
    def time_range(self) -> Optional[TimestampRange]:
        """The post-filter time range, if any."""
        if self.post_filter is None:
            return None
        return self.post_filter.range.timestamp

    def to_request_body(self) -> Dict[str, Any]:
        """Serialise for the search engine (aliases, no nulls)."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True,
        )


# --- Relational query draft ---

class SqlQueryDraft(BaseModel):
    """Model-generated read-only SQL for the enrichment database."""

    query: str = Field(..., min_length=1)
    explanation: str = ""

    @field_validator("query")
    @classmethod
    def validate_read_only(cls, v: str) -> str:
        """Accept a single SELECT statement only."""
        sql = v.strip().rstrip(";").strip()
        unquoted = _SQL_QUOTED_RE.sub("''", sql)
        if ";" in unquoted:
            raise ValueError("Only a single statement is allowed")
        if not re.match(r"^(SELECT|WITH)\b", sql, re.IGNORECASE):
            raise ValueError("Query must be a SELECT statement")
        if _DANGEROUS_SQL_RE.search(unquoted):
            raise ValueError("Query contains disallowed statement")
        return sql


# --- Chart schemas ---

class ChartConfigDraft(BaseModel):
    """Chart configuration as the model is asked to return it."""

    type: str = "bar"
    x_key: str = Field(..., alias="xKey", min_length=1)
    y_keys: List[str] = Field(..., alias="yKeys", min_length=1)
    colors: Optional[Dict[str, str]] = None
    legend: Optional[bool] = None
    title: Optional[str] = None
    description: Optional[str] = None
    takeaway: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator("y_keys")
    @classmethod
    def validate_unique_y_keys(cls, v: List[str]) -> List[str]:
        """Each y-key gets exactly one colour slot."""
        return _reject_duplicates(v)


class ChartConfig(BaseModel):
    """
    Final chart configuration handed to the renderer.

    Every y-key must have a hex colour in ``colors``.
    """

    type: str = "bar"
    x_key: str = Field(..., alias="xKey", min_length=1)
    y_keys: List[str] = Field(..., alias="yKeys", min_length=1)
    colors: Dict[str, str]
    legend: bool = True
    title: Optional[str] = None
    description: Optional[str] = None
    takeaway: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator("y_keys")
    @classmethod
    def validate_unique_y_keys(cls, v: List[str]) -> List[str]:
        """Each y-key gets exactly one colour slot."""
        return _reject_duplicates(v)

    @field_validator("colors")
    @classmethod
    def validate_hex_colors(
        cls, v: Dict[str, str],
    ) -> Dict[str, str]:
        """Reject colours that are not hex codes."""
        for key, color in v.items():
            if not _HEX_COLOR_RE.match(color):
                raise ValueError(
                    f"Colour for '{key}' is not a hex code: {color}"
                )
        return v

    @model_validator(mode="after")
    def check_colors_cover_y_keys(self) -> "ChartConfig":
        """Every y-key needs a colour."""
        missing = [k for k in self.y_keys if k not in self.colors]
        if missing:
            raise ValueError(f"Missing colours for y-keys: {missing}")
        return self


class ChartConfigRequest(BaseModel):
    """Schema for requesting a chart configuration."""

    data: List[Dict[str, Any]] = Field(..., min_length=1)
    query: str = Field(..., min_length=1)


class ChartRenderRequest(BaseModel):
    """Schema for requesting a chart render model."""

    data: List[Dict[str, Any]] = []
    config: ChartConfig


class ChartView(BaseModel):
    """
    Render model for the frontend.

    ``kind`` is ``bar`` when ``chart`` holds a Chart.js config,
    otherwise ``empty`` / ``unsupported`` with a placeholder
    ``message``.
    """

    kind: Literal["bar", "empty", "unsupported"]
    message: Optional[str] = None
    chart: Optional[Dict[str, Any]] = None
    data: List[Dict[str, Any]] = []
    title: Optional[str] = None
    description: Optional[str] = None
    takeaway: Optional[str] = None


# --- Chat Schemas ---

class ChatMessageIn(BaseModel):
    """A message as sent by the chat client."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Schema for starting or continuing a chat turn."""

    id: str = Field(..., min_length=1, max_length=255)
    messages: List[ChatMessageIn] = Field(..., min_length=1)
    model_id: str = Field(..., alias="modelId")

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
    }


class ChatMessageResponse(BaseModel):
    """Schema for a single stored chat message."""

    id: str
    chat_id: str
    role: str
    content: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ModelOption(BaseModel):
    """A selectable chat model."""

    id: str
    label: str
    api_identifier: str
    description: str = ""
