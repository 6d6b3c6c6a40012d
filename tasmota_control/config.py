"""
Configuration management for Tasmota Control.

Uses Pydantic Settings for environment variable parsing.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HostConfig(BaseSettings):
    """Tasmota host connection configuration."""

    model_config = SettingsConfigDict(env_prefix="TASMOTA_HOST_")

    url: str = Field(
        default="http://192.168.1.225",
        description="Base URL of the Tasmota device web server",
    )
    request_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for a command or status response",
    )


class LightConfig(BaseSettings):
    """Light relay configuration."""

    model_config = SettingsConfigDict(env_prefix="TASMOTA_LIGHT_")

    enabled: bool = Field(default=True, description="Expose the light control")
    control_id: str = Field(
        default="TASMOTA_LIGHT",
        description="Stable control identifier",
    )
    name: str = Field(default="Tasmota Light", description="Display name")
    command_key: str = Field(
        default="POWER1",
        description="Tasmota power command for this relay",
    )


class ApplianceConfig(BaseSettings):
    """Generic on/off appliance relay configuration."""

    model_config = SettingsConfigDict(env_prefix="TASMOTA_APPLIANCE_")

    enabled: bool = Field(default=True, description="Expose the appliance control")
    control_id: str = Field(
        default="TASMOTA_SPEAKER",
        description="Stable control identifier",
    )
    name: str = Field(default="Tasmota Speakers", description="Display name")
    command_key: str = Field(
        default="POWER2",
        description="Tasmota power command for this relay",
    )


class ControlConfig(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TASMOTA_",
        env_file=".env",
        extra="ignore",
    )

    on_token: str = Field(
        default="ON",
        description="Power value reported by Tasmota when a relay is on",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    replay_history: Optional[int] = Field(
        default=None,
        description="Maximum events kept for late subscribers (None = whole session)",
    )

    # Sub-configs
    host: HostConfig = Field(default_factory=HostConfig)
    light: LightConfig = Field(default_factory=LightConfig)
    appliance: ApplianceConfig = Field(default_factory=ApplianceConfig)


# Global settings instance
_settings: Optional[ControlConfig] = None


def get_settings() -> ControlConfig:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = ControlConfig()
    return _settings


settings = get_settings()
