"""
Server configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys

from pydantic import Field

from wwebs.common.core.config import BaseAppConfig


class ServerConfig(BaseAppConfig):
    """
    Configuration management for the wwebs server.
    """

    # Listener settings
    BIND_HOST: str = Field(default="0.0.0.0", description="Listen address")
    HTTP_PORT: int = Field(default=8000, ge=1, le=65535, description="HTTP listen port")

    # Web root
    WEB_ROOT: str = Field(default=".", description="Filesystem root that request paths map onto")
    DEFAULT_INDEX: str = Field(
        default="index.html", description="Index filename used when no directory config sets one"
    )
    CONFIG_FILENAME: str = Field(
        default=".wwebs.yml", description="Per-directory configuration filename"
    )
    CONFIG_CACHE_ENABLED: bool = Field(
        default=True, description="Cache parsed directory configs until their mtime changes"
    )

    # Process execution
    STAGE_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, description="Max run time of a stage or content program (seconds)"
    )
    PASS_PATH_ENV: bool = Field(
        default=True, description="Forward the server's PATH to executed programs"
    )

    # FastAPI settings
    root_path: str = Field(default="", description="API root path (for proxy)")

    # model_config is inherited


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = ServerConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
