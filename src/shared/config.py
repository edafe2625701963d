"""Configuration management for the PocketBase MCP server.

Supports a YAML configuration file and environment variable overrides.
Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PocketBaseSettings(BaseSettings):
    """Backend store connection and ownership model."""
    url: str = Field(default="http://127.0.0.1:8090", description="PocketBase base URL")
    email: Optional[str] = Field(default=None, description="Admin email")
    password: Optional[str] = Field(default=None, description="Admin password")
    timeout_seconds: float = Field(default=30.0, gt=0)
    admin_auth_path: str = Field(default="/api/admins/auth-with-password")

    # Ownership model
    users_collection: str = Field(default="users")
    identity_field: str = Field(default="supabase_id", description="User field holding the caller identity")
    owner_field: str = Field(default="user", description="Record field referencing the owning user")
    placeholder_email_domain: str = Field(default="placeholder.local")

    model_config = SettingsConfigDict(
        env_prefix="POCKETBASE_",
        env_file=".env",
        extra="ignore"
    )


class MCPServerSettings(BaseSettings):
    """MCP server configuration."""
    transport: Literal["stdio", "sse"] = Field(default="stdio")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    schema_path: str = Field(default="pb_schema.json")
    message_path: str = Field(default="/messages")
    session_buffer_size: int = Field(default=32, ge=0)

    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    pocketbase: PocketBaseSettings = Field(default_factory=PocketBaseSettings)
    mcp_server: MCPServerSettings = Field(default_factory=MCPServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
