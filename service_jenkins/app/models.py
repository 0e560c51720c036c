"""
Request, token and outcome models for the Jenkins provider.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.config import ENV_PREFIX, DynamicConfigInt, JenkinsProviderConfig


# Instance attribute keys shared with the issuance host
ZTS_INSTANCE_ID = "instanceId"
ZTS_INSTANCE_SAN_URI = "sanURI"
ZTS_INSTANCE_SAN_DNS = "sanDNS"
ZTS_INSTANCE_SAN_IP = "sanIP"
ZTS_INSTANCE_HOSTNAME = "hostname"

# Certificate attributes returned to the issuance host
ZTS_CERT_REFRESH = "certRefresh"
ZTS_CERT_USAGE = "certUsage"
ZTS_CERT_EXPIRY_TIME = "certExpiryTime"
ZTS_CERT_USAGE_CLIENT = "client"


class InstanceConfirmation(BaseModel):
    """Certificate request as handed over by the issuance host."""

    model_config = ConfigDict(frozen=True)

    domain: Optional[str] = None
    service: Optional[str] = None
    provider: Optional[str] = None
    attestation_data: Optional[str] = None
    attributes: Dict[str, str] = Field(default_factory=dict)

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name) if self.attributes else None


class ParsedToken(BaseModel):
    """Claims of an attestation token whose signature has been verified."""

    model_config = ConfigDict(frozen=True)

    issuer: Optional[str] = None
    audience: Optional[Any] = None
    subject: Optional[str] = None
    issued_at: Optional[float] = None
    expiry: Optional[float] = None
    key_id: Optional[str] = None
    key_source: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Dict[str, Any], key_id: Optional[str], key_source: str) -> "ParsedToken":
        return cls(
            issuer=claims.get("iss"),
            audience=claims.get("aud"),
            subject=claims.get("sub"),
            issued_at=claims.get("iat"),
            expiry=claims.get("exp"),
            key_id=key_id,
            key_source=key_source,
        )


class ValidationOutcome(BaseModel):
    """Result of running the claims validation pipeline."""

    approved: bool
    stage: str
    error_detail: Optional[str] = None
    token: Optional[ParsedToken] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "ValidationOutcome":
        if self.approved and self.error_detail:
            raise ValueError("approved outcome must not carry an error")
        if not self.approved and not self.error_detail:
            raise ValueError("rejected outcome requires an error detail")
        return self


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable policy built once when the provider is initialized.

    ``boot_time_offset`` is an accessor so live changes are observed on every
    validation call.
    """

    audience: str
    issuer: str
    allowed_dns_suffixes: FrozenSet[str]
    cert_expiry_minutes: int
    boot_time_offset: Callable[[], int] = field(default=lambda: 300)
    clock_skew_seconds: int = 60

    @property
    def boot_time_offset_seconds(self) -> int:
        return self.boot_time_offset()

    @classmethod
    def from_settings(
        cls,
        settings: JenkinsProviderConfig,
        source: Optional[Callable[[], Mapping[str, str]]] = None,
    ) -> "PolicyConfig":
        return cls(
            audience=settings.audience,
            issuer=settings.issuer,
            allowed_dns_suffixes=settings.dns_suffixes(),
            cert_expiry_minutes=settings.cert_expiry_minutes,
            boot_time_offset=DynamicConfigInt(
                f"{ENV_PREFIX}BOOT_TIME_OFFSET",
                settings.boot_time_offset,
                source=source,
            ),
            clock_skew_seconds=settings.clock_skew_seconds,
        )
