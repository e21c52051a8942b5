"""
Shared configuration management for the restaurant access core.
"""

from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class AccessCoreConfig(BaseConfig):
    """Settings for permission resolution, the POS lock and attendance checks."""

    # Identity / tenant collaborator
    identity_service_url: str = Field(default="http://localhost:8010")
    identity_request_timeout_seconds: float = Field(default=10.0)

    # Plan entitlements
    plan_cache_ttl_seconds: int = Field(default=300)

    # POS session lock
    pin_max_failed_attempts: int = Field(default=3)
    pin_cooldown_seconds: int = Field(default=30)
    pin_max_length: int = Field(default=6)

    # Attendance network identity
    network_probe_timeout_seconds: float = Field(default=5.0)
    stun_server: Optional[str] = Field(default="stun.l.google.com:19302")
    network_label: str = Field(default="Wi-Fi du restaurant")

    def stun_address(self) -> Optional[Tuple[str, int]]:
        """Return the STUN server as a (host, port) pair."""
        if not self.stun_server:
            return None
        if ":" not in self.stun_server:
            return (self.stun_server, 3478)
        host, _, port = self.stun_server.rpartition(":")
        return (host, int(port))


def get_config(**overrides) -> AccessCoreConfig:
    """Get configuration for the access core."""
    return AccessCoreConfig(**overrides)
