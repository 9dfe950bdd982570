"""
Configuration module for the search-augmented chat backend.

Loads environment variables and provides application settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str = "sqlite:///./chat.db"
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    log_level: str = "INFO"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    utility_model: str = "gpt-4o-mini"

    elasticsearch_url: Optional[str] = None
    elasticsearch_username: str = "elastic"
    elasticsearch_password: str = "changeme"
    elasticsearch_timeout: float = 30.0

    enable_database_search: bool = False
    search_database_url: str = ""
    database_search_row_limit: int = Field(200, ge=1)

    search_timezone: str = "UTC"
    max_history_messages: int = Field(20, ge=1)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [
            origin.strip()
            for origin in self.cors_origins.split(",")
        ]

    class Config:
        """Pydantic settings configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


# Models a client may pick for the answer stream.  ``id`` is what
# the frontend sends, ``api_identifier`` is what OpenAI expects.
AVAILABLE_MODELS: List[Dict[str, str]] = [
    {
        "id": "gpt-4o-mini",
        "label": "GPT 4o mini",
        "api_identifier": "gpt-4o-mini",
        "description": "Small model for fast, lightweight tasks",
    },
    {
        "id": "gpt-4o",
        "label": "GPT 4o",
        "api_identifier": "gpt-4o",
        "description": "For complex, multi-step tasks",
    },
]
