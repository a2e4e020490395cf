"""Configuration management for MCP servers and clients."""

import json
import os
from typing import Any, Dict, List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings

from . import __version__
from .protocol.messages import PROTOCOL_VERSION


class ServerConfig(BaseSettings):
    """Main server configuration."""

    # Server settings
    server_name: str = "mcp-stdio"
    server_version: str = __version__
    debug: bool = False
    log_level: str = "info"

    # Protocol
    protocol_versions: List[str] = Field(default_factory=lambda: [PROTOCOL_VERSION])
    page_size: Optional[int] = Field(default=None, gt=0)
    max_line_bytes: int = 16 * 1024 * 1024

    # Metrics
    metrics_enabled: bool = False
    metrics_port: Optional[int] = None

    class Config:
        env_prefix = "MCP_"
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False

    @classmethod
    def from_file(cls, config_file: str) -> "ServerConfig":
        """Load configuration from JSON file."""
        with open(config_file, "r") as f:
            config_data = json.load(f)
        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()


class ClientConfig(BaseSettings):
    """Client configuration."""

    client_name: str = "mcp-stdio-client"
    client_version: str = __version__
    protocol_version: str = PROTOCOL_VERSION
    terminate_timeout: float = 5.0
    stderr_tail_lines: int = 200

    class Config:
        env_prefix = "MCP_"
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


def load_config(
    config_file: Optional[str] = None,
    use_env: bool = True
) -> ServerConfig:
    """Load configuration from file or environment."""

    if config_file and os.path.exists(config_file):
        config = ServerConfig.from_file(config_file)
    elif use_env:
        config = ServerConfig.from_env()
    else:
        config = ServerConfig()

    # Override with environment variables if specified
    if use_env:
        if os.getenv("METRICS_ENABLED"):
            config.metrics_enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        if os.getenv("METRICS_PORT"):
            config.metrics_port = int(os.getenv("METRICS_PORT"))

    return config


def create_sample_config() -> Dict[str, Any]:
    """Create a sample configuration for reference."""
    return {
        "server_name": "mcp-stdio",
        "server_version": __version__,
        "debug": False,
        "log_level": "info",
        "protocol_versions": [PROTOCOL_VERSION],
        "page_size": 50,
        "max_line_bytes": 16 * 1024 * 1024,
        "metrics_enabled": False,
        "metrics_port": 9090,
    }
