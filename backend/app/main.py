"""
Search-augmented chat backend - FastAPI Application.

Main entry point for the backend API server.
Provides a streaming chat API whose answers are grounded in
search-engine and database results, plus on-demand chart
generation for tabular data.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import init_db
from app.exceptions import AppError
from app.routes import charts, chat

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Search Chat API",
    description=(
        "Chat with an assistant that grounds its answers in "
        "search-engine and database results, and turns tabular "
        "results into charts."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware for frontend development server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routes
app.include_router(chat.router)
app.include_router(chat.models_router)
app.include_router(charts.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render application errors with their mapped status."""
    logger.error(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


@app.on_event("startup")
def on_startup():
    """Initialize the database on application startup."""
    init_db()


@app.get("/api/health", tags=["health"])
def health_check():
    """Health check endpoint to verify the API is running."""
    return {"status": "ok"}
