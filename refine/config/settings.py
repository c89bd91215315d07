"""
Runtime settings read from the environment.

Variables (optionally loaded from a .env file):
    REFINE_GBIF_API_URL   Base URL of the backbone API (default https://api.gbif.org/v1)
    REFINE_HTTP_TIMEOUT   Timeout in seconds for one name matching call (default 30)
    REFINE_USER_AGENT     User-Agent header sent to the backbone
    LOG_LEVEL             Log level (read by refine.observability.logger)
    LOG_FORMAT            json or text (read by refine.observability.logger)
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_GBIF_API_URL = "https://api.gbif.org/v1"


class Settings(BaseModel):
    gbif_api_url: str = DEFAULT_GBIF_API_URL
    http_timeout: float = Field(30.0, gt=0)
    user_agent: str = "refine-pipeline/0.1"

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env file loaded first (existing variables win)
        """
        if env_file is not None and Path(env_file).exists():
            load_dotenv(env_file, override=False)

        return cls(
            gbif_api_url=os.getenv("REFINE_GBIF_API_URL", DEFAULT_GBIF_API_URL),
            http_timeout=float(os.getenv("REFINE_HTTP_TIMEOUT", "30")),
            user_agent=os.getenv("REFINE_USER_AGENT", "refine-pipeline/0.1"),
        )
