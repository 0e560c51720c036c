"""
Shared configuration management for the Jenkins attestation provider.
"""

import os
from typing import Callable, Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.logging import get_logger


ENV_PREFIX = "JENKINS_PROVIDER_"

JENKINS_ISSUER = "https://jenkins.athenz.svc.cluster.local/oidc"
JENKINS_ISSUER_JWKS_URI = "https://jenkins.athenz.svc.cluster.local/oidc/jwks"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class JenkinsProviderConfig(BaseConfig):
    """Settings consumed by the Jenkins instance provider."""

    audience: str = Field(default="athenz.io")
    issuer: str = Field(default=JENKINS_ISSUER)

    # Static JWKS location; when unset the issuer discovery document is queried
    jwks_uri: Optional[str] = Field(default=None)
    default_jwks_uri: str = Field(default=JENKINS_ISSUER_JWKS_URI)
    fallback_jwks_uri: Optional[str] = Field(default=None)

    provider_dns_suffix: str = Field(default="jenkins.athenz.io")
    boot_time_offset: int = Field(default=300)
    cert_expiry_minutes: int = Field(default=360)

    clock_skew_seconds: int = Field(default=60)
    discovery_timeout: float = Field(default=10.0)
    jwks_refresh_interval: Optional[int] = Field(default=None)

    def dns_suffixes(self) -> frozenset:
        """Return the configured DNS suffixes as a set."""
        return frozenset(
            suffix.strip() for suffix in self.provider_dns_suffix.split(",") if suffix.strip()
        )


class DynamicConfigInt:
    """Integer setting re-read from its source on every access.

    The source defaults to the process environment so operators can adjust the
    value without restarting the provider.
    """

    def __init__(
        self,
        name: str,
        default: int,
        source: Optional[Callable[[], Mapping[str, str]]] = None,
    ):
        self.name = name
        self.default = default
        self._source = source or (lambda: os.environ)
        self.logger = get_logger("provider.config")

    def get(self) -> int:
        raw = self._source().get(self.name)
        if raw is None or raw == "":
            return self.default
        try:
            return int(raw)
        except (TypeError, ValueError):
            self.logger.warning("Invalid dynamic config value, using default",
                                name=self.name, value=raw, default=self.default)
            return self.default

    def __call__(self) -> int:
        return self.get()


def get_config(**overrides) -> JenkinsProviderConfig:
    """Get configuration for the Jenkins provider."""
    return JenkinsProviderConfig(**overrides)
