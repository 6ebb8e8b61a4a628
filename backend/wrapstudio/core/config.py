"""
Application configuration settings.

Responsibilities:
- Load environment variables (optionally from a .env file)
- Name the Supabase tables artifacts are written to
- Configure the generation backend and render limits
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    return float(value)


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


class Settings:
    PROJECT_NAME: str = "WrapStudio"
    API_V1_STR: str = "/api/v1"

    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = os.getenv("SUPABASE_ANON_KEY")
    ARTIFACTS_TABLE: str = os.getenv("ARTIFACTS_TABLE", "render_artifacts")
    ARTIFACT_VERSIONS_TABLE: str = os.getenv("ARTIFACT_VERSIONS_TABLE", "render_artifact_versions")

    GENERATION_URL: Optional[str] = os.getenv("GENERATION_URL")
    GENERATION_API_KEY: Optional[str] = os.getenv("GENERATION_API_KEY")

    # Per-variant timeout in seconds; unset means wait indefinitely
    RENDER_TIMEOUT_SECONDS: Optional[float] = _optional_float(os.getenv("RENDER_TIMEOUT_SECONDS", "180"))
    RENDER_MAX_CONCURRENCY: Optional[int] = _optional_int(os.getenv("RENDER_MAX_CONCURRENCY"))
    # HTTP timeout for one generation call; a hung call otherwise holds an executor thread
    GENERATION_REQUEST_TIMEOUT: Optional[float] = (
        _optional_float(os.getenv("GENERATION_REQUEST_TIMEOUT")) or RENDER_TIMEOUT_SECONDS
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")


settings = Settings()
