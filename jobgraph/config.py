"""
Configuration utilities for the job graph API.
"""

from functools import lru_cache
import os
from typing import List

from pydantic import BaseModel, Field


def _split_tokens(raw: str) -> List[str]:
    return [token.strip() for token in raw.split(",") if token.strip()]


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    neo4j_uri: str = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    neo4j_user: str = os.getenv("NEO4J_USER", "neo4j")
    neo4j_password: str = os.getenv("NEO4J_PASSWORD", "password")
    neo4j_database: str = os.getenv("NEO4J_DATABASE", "neo4j")

    log_level: str = os.getenv("JOBGRAPH_LOG_LEVEL", "INFO")

    api_key: str = os.getenv("JOBGRAPH_API_KEY", "special-key")
    one_time_tokens: List[str] = Field(
        default_factory=lambda: _split_tokens(os.getenv("JOBGRAPH_ONE_TIME_TOKENS", "")),
    )
    api_url: str = os.getenv("JOBGRAPH_API_URL", "http://127.0.0.1:8000/api/v0")

    angel_api_url: str = os.getenv("ANGEL_API_URL", "https://api.angel.co/1")
    angel_access_token: str = os.getenv("ANGEL_ACCESS_TOKEN", "")

    jobs_latest_limit: int = int(os.getenv("JOBS_LATEST_LIMIT", "20"))
    jobs_recommended_limit: int = int(os.getenv("JOBS_RECOMMENDED_LIMIT", "20"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()
