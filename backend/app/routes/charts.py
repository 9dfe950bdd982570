"""
API routes for chart generation.

Chart generation is on demand and separate from the chat
turn: the client posts tabular rows plus the user's query and
gets back a config, then asks for the render model.
"""

from fastapi import APIRouter, Depends

from app.deps import get_current_user
from app.models import User
from app.schemas import (
    ChartConfig,
    ChartConfigRequest,
    ChartRenderRequest,
    ChartView,
)
from app.services.chart import generate_chart_config, render_chart

router = APIRouter(prefix="/api/charts", tags=["charts"])


@router.post(
    "/config",
    response_model=ChartConfig,
    summary="Generate a chart config for tabular data",
)
async def create_chart_config(
    data: ChartConfigRequest,
    user: User = Depends(get_current_user),
):
    """
    Ask the model for the chart that best answers the query.

    Failures surface as 502 through the ``AppError`` handler.
    """
    return await generate_chart_config(data.data, data.query)


@router.post(
    "/render",
    response_model=ChartView,
    summary="Build the render model for a chart",
)
def create_chart_render(
    data: ChartRenderRequest,
    user: User = Depends(get_current_user),
):
    """Group the rows and build a Chart.js-compatible config."""
    return render_chart(data.data, data.config)
