"""
Chart configuration and rendering.

``generate_chart_config`` asks the model which columns to plot
and normalises the answer into a ``ChartConfig``.
``render_chart`` turns rows plus a config into a render model
containing a Chart.js-compatible config (via react-chartjs-2)
that the frontend draws as-is.
"""

import logging
from typing import Any, Dict, List, Optional

from app.exceptions import ChartGenerationError
from app.schemas import (
    ChartConfig,
    ChartConfigDraft,
    ChartView,
    RENDERABLE_CHART_TYPES,
)
from app.services import llm
from app.services.prompts import CHART_SYSTEM_PROMPT, build_chart_config_prompt

logger = logging.getLogger(__name__)

# green, blue, red, amber, purple, brown
FALLBACK_COLORS = [
    "#4CAF50",
    "#2196F3",
    "#F44336",
    "#FFC107",
    "#9C27B0",
    "#795548",
]


def fallback_color(index: int) -> str:
    """Palette colour for position *index*, cycling."""
    return FALLBACK_COLORS[index % len(FALLBACK_COLORS)]


def build_chart_config(draft: ChartConfigDraft) -> ChartConfig:
    """
    Normalise a model draft into the final chart config.

    Colours always come from the fallback palette by y-key
    position, replacing any colours the model picked, and the
    chart type is always ``bar``.
    """
    # FIXME: model colours are overridden and the type is pinned
    # until the renderer supports more than bar charts.
    colors = {
        key: fallback_color(index)
        for index, key in enumerate(draft.y_keys)
    }
    return ChartConfig(
        type="bar",
        x_key=draft.x_key,
        y_keys=draft.y_keys,
        colors=colors,
        legend=True if draft.legend is None else draft.legend,
        title=draft.title,
        description=draft.description,
        takeaway=draft.takeaway,
    )


async def generate_chart_config(
    rows: List[Dict[str, Any]],
    user_query: str,
) -> ChartConfig:
    """
    Generate a chart config for *rows* that answers *user_query*.

    Parameters:
        rows (list[dict]): Tabular data; the first row's keys
            are the candidate y-keys.
        user_query (str): The user's request.

    Returns:
        ChartConfig: Normalised configuration.

    Raises:
        ValueError: *rows* is empty.
        ChartGenerationError: The model call failed or returned
            an unusable config.
    """
    if not rows:
        raise ValueError("Chart data must contain at least one row")

    prompt = build_chart_config_prompt(rows, user_query)
    try:
        draft = await llm.generate_object(
            ChartConfigDraft,
            prompt,
            system=CHART_SYSTEM_PROMPT,
        )
    except Exception as exc:
        logger.error("Error generating chart config: %s", exc)
        raise ChartGenerationError(
            "Failed to generate chart config"
        ) from exc

    config = build_chart_config(draft)
    logger.info(
        "Chart config: x=%s y=%s", config.x_key, config.y_keys,
    )
    return config


def to_title_case(value: str) -> str:
    """``log_level`` → ``Log Level``."""
    return " ".join(
        word[:1].upper() + word[1:] for word in value.split("_")
    )


def group_chart_rows(
    rows: List[Dict[str, Any]],
    config: ChartConfig,
) -> List[Dict[str, Any]]:
    """
    Count first-y-key values per x-key group.

    Rows are grouped by their value at ``x_key`` in first-seen
    order; each group maps every distinct value found at
    ``y_keys[0]`` to how often it occurs.

    Example:
        rows ``[{month: Jan, level: error}, {month: Jan,
        level: info}, {month: Feb, level: error}]`` with
        ``x_key=month``, ``y_keys=[level]`` give
        ``[{month: Jan, error: 1, info: 1},
        {month: Feb, error: 1}]``.
    """
    x_key = config.x_key
    y_key = config.y_keys[0]

    groups: Dict[Any, Dict[str, int]] = {}
    for row in rows:
        counts = groups.setdefault(row.get(x_key), {})
        series = str(row.get(y_key))
        counts[series] = counts.get(series, 0) + 1

    # FIXME: a series value equal to the x-key name replaces the
    # group label with its count.
    return [
        {x_key: x_value, **counts}
        for x_value, counts in groups.items()
    ]


def _series_keys(
    rows: List[Dict[str, Any]],
    y_key: str,
) -> List[str]:
    """Distinct values at *y_key* in first-seen order."""
    return list(dict.fromkeys(str(row.get(y_key)) for row in rows))


def render_chart(
    rows: Optional[List[Dict[str, Any]]],
    config: Optional[ChartConfig],
) -> ChartView:
    """
    Build the render model for *rows* and *config*.

    Returns an ``empty`` placeholder when there is nothing to
    draw and an ``unsupported`` placeholder for chart kinds
    other than bar.
    """
    if not rows or config is None:
        return ChartView(kind="empty", message="No chart data")

    texts = {
        "title": config.title,
        "description": config.description,
        "takeaway": config.takeaway,
    }

    if config.type not in RENDERABLE_CHART_TYPES:
        return ChartView(
            kind="unsupported",
            message=f"Unsupported chart type: {config.type}",
            **texts,
        )

    data = group_chart_rows(rows, config)
    series = _series_keys(rows, config.y_keys[0])

    datasets = [
        {
            "label": key,
            "data": [group.get(key, 0) for group in data],
            "backgroundColor": config.colors.get(
                key, fallback_color(index),
            ),
        }
        for index, key in enumerate(series)
    ]

    chart = {
        "type": "bar",
        "data": {
            "labels": [group[config.x_key] for group in data],
            "datasets": datasets,
        },
        "options": {
            "plugins": {
                "legend": {"display": config.legend},
                "title": {
                    "display": bool(config.title),
                    "text": config.title or "",
                },
            },
            "scales": {
                "x": {
                    "title": {
                        "display": True,
                        "text": to_title_case(config.x_key),
                    },
                },
                "y": {
                    "beginAtZero": True,
                    "title": {
                        "display": True,
                        "text": to_title_case(config.y_keys[0]),
                    },
                },
            },
        },
    }

    return ChartView(kind="bar", chart=chart, data=data, **texts)
