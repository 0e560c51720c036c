"""
Jenkins instance provider.

Confirms certificate requests from Jenkins CI jobs by validating the job's
OIDC ID token. Issued certificates are client-only and cannot be refreshed.
"""

import time
from typing import Callable, Dict, Mapping, Optional

import httpx

from shared.config import JenkinsProviderConfig, get_config
from shared.errors import (
    AttestationFailure,
    AuthorizationDenied,
    ConfigurationFault,
    PolicyViolation,
    ProviderException,
    SanDnsViolation,
)
from shared.logging import clear_context, get_logger, set_instance_context, set_request_id
from shared.metrics import ProviderMetrics, get_metrics_collector
from .authz.gate import AuthorizationGate, Authorizer
from .jwks.discovery import IssuerDiscovery
from .jwks.resolver import KeySource, SigningKeyResolver
from .models import (
    ZTS_CERT_EXPIRY_TIME,
    ZTS_CERT_REFRESH,
    ZTS_CERT_USAGE,
    ZTS_CERT_USAGE_CLIENT,
    ZTS_INSTANCE_SAN_URI,
    InstanceConfirmation,
    PolicyConfig,
)
from .registry import CLASS_SCHEME, registry
from .validation.san_policy import SanPolicy
from .validation.token_validator import TokenValidator, VerificationStage


@registry.register("jenkins")
class JenkinsInstanceProvider:
    """Instance provider for Jenkins CI jobs."""

    def __init__(
        self,
        config: Optional[JenkinsProviderConfig] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        metrics: Optional[ProviderMetrics] = None,
        clock: Callable[[], float] = time.time,
        dynamic_source: Optional[Callable[[], Mapping[str, str]]] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.metrics = metrics or get_metrics_collector()
        self.clock = clock
        self.dynamic_source = dynamic_source
        self.logger = get_logger("jenkins.provider")

        self.provider: Optional[str] = None
        self.policy: Optional[PolicyConfig] = None
        self.signing_key_resolver: Optional[SigningKeyResolver] = None
        self.key_store_signing_key_resolver: Optional[SigningKeyResolver] = None
        self.san_policy: Optional[SanPolicy] = None
        self.token_validator: Optional[TokenValidator] = None
        self.gate = AuthorizationGate(None)

    def get_provider_scheme(self) -> str:
        return CLASS_SCHEME

    def initialize(self, provider: str, provider_endpoint: Optional[str] = None,
                   ssl_context=None, key_store=None) -> None:
        """Build the policy and seed both signing key sets.

        Performs at most one discovery call and one JWKS fetch per key set;
        none of them can make initialization fail.
        """
        self.provider = provider
        settings = self.config or get_config()
        self.config = settings

        self.policy = PolicyConfig.from_settings(settings, source=self.dynamic_source)

        discovery = IssuerDiscovery(
            settings.default_jwks_uri,
            timeout=settings.discovery_timeout,
            http_client=self.http_client,
            metrics=self.metrics,
        )
        jwks_uri = discovery.resolve_jwks_uri(settings.issuer, settings.jwks_uri)

        self.signing_key_resolver = SigningKeyResolver(
            jwks_uri,
            source=KeySource.PRIMARY,
            timeout=settings.discovery_timeout,
            http_client=self.http_client,
            metrics=self.metrics,
        )
        self.key_store_signing_key_resolver = SigningKeyResolver(
            settings.fallback_jwks_uri,
            source=KeySource.FALLBACK,
            timeout=settings.discovery_timeout,
            http_client=self.http_client,
            metrics=self.metrics,
        )
        for resolver in (self.signing_key_resolver, self.key_store_signing_key_resolver):
            resolver.refresh()
            if settings.jwks_refresh_interval and resolver.jwks_uri:
                resolver.start_refresh(settings.jwks_refresh_interval)

        self.san_policy = SanPolicy(self.policy.allowed_dns_suffixes)
        self.token_validator = TokenValidator(
            self.policy,
            self.signing_key_resolver,
            self.key_store_signing_key_resolver,
            clock=self.clock,
            metrics=self.metrics,
        )

        self.logger.info(
            "Jenkins provider initialized",
            provider=provider,
            issuer=self.policy.issuer,
            audience=self.policy.audience,
            jwks_uri=jwks_uri,
        )

    def close(self) -> None:
        for resolver in (self.signing_key_resolver, self.key_store_signing_key_resolver):
            if resolver is not None:
                resolver.stop_refresh()

    def set_authorizer(self, authorizer: Optional[Authorizer]) -> None:
        self.gate = AuthorizationGate(authorizer)

    def _forbidden(self, error: ProviderException) -> ProviderException:
        self.logger.error(error.message, category=error.category)
        self.metrics.record_confirmation(error.category.lower())
        return error

    def confirm_instance(self, confirmation: InstanceConfirmation) -> InstanceConfirmation:
        """Approve the certificate request or raise a 403 ProviderException."""
        # before running any checks make sure we have a valid authorizer
        if self.gate.authorizer is None:
            raise self._forbidden(ConfigurationFault("Authorizer not available"))
        if self.token_validator is None:
            raise self._forbidden(ConfigurationFault("Provider not initialized"))

        set_request_id()
        set_instance_context(confirmation.domain, confirmation.service)
        try:
            with self.metrics.time_operation("instance_confirmation_duration_seconds"):
                attributes = self._confirm(confirmation)

            self.metrics.record_confirmation("approved")
            self.logger.info("Instance confirmed", provider=self.provider)
        finally:
            clear_context()
        return confirmation.model_copy(update={"attributes": attributes})

    def _confirm(self, confirmation: InstanceConfirmation) -> Dict[str, str]:
        domain = confirmation.domain
        service = confirmation.service
        instance_attributes = confirmation.attributes or {}

        try:
            self.san_policy.check_pre_conditions(instance_attributes)
        except PolicyViolation as exc:
            raise self._forbidden(exc)

        if not self.san_policy.validate_san_uri(instance_attributes.get(ZTS_INSTANCE_SAN_URI)):
            raise self._forbidden(PolicyViolation("Unable to validate certificate request sanURI values"))

        # the token is the attestation data for the service requesting a certificate
        attestation_data = confirmation.attestation_data
        if not attestation_data:
            raise self._forbidden(AttestationFailure("Jenkins ID Token must be provided"))

        outcome = self.token_validator.validate(attestation_data, domain, service, self.gate)
        if not outcome.approved:
            message = f"Unable to validate Certificate Request with the provided ID Token: {outcome.error_detail}"
            details = {"stage": outcome.stage}
            if outcome.stage == VerificationStage.AUTHORIZATION_PENDING.value:
                raise self._forbidden(AuthorizationDenied(message, details))
            raise self._forbidden(AttestationFailure(message, details))

        if not self.san_policy.check_san_dns(instance_attributes, domain, service):
            raise self._forbidden(SanDnsViolation("Unable to validate certificate request sanDNS entries"))

        # refresh is never allowed and the certificate is client-only
        return {
            ZTS_CERT_REFRESH: "false",
            ZTS_CERT_USAGE: ZTS_CERT_USAGE_CLIENT,
            ZTS_CERT_EXPIRY_TIME: str(self.policy.cert_expiry_minutes),
        }

    def refresh_instance(self, confirmation: Optional[InstanceConfirmation]) -> InstanceConfirmation:
        raise self._forbidden(PolicyViolation("Jenkins X.509 Certificates cannot be refreshed"))
