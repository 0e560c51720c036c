"""
OpenID Connect discovery for the Jenkins issuer.
"""

from typing import Any, Dict, Optional

import httpx

from shared.config import JENKINS_ISSUER_JWKS_URI
from shared.logging import get_logger
from shared.metrics import ProviderMetrics, get_metrics_collector


WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class IssuerDiscovery:
    """Resolve the JWKS endpoint for an issuer."""

    def __init__(
        self,
        default_jwks_uri: str = JENKINS_ISSUER_JWKS_URI,
        *,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
        metrics: Optional[ProviderMetrics] = None,
    ) -> None:
        self.default_jwks_uri = default_jwks_uri
        self.timeout = timeout
        self.metrics = metrics or get_metrics_collector()
        self.logger = get_logger("jenkins.discovery")
        self._http_client = http_client

    def resolve_jwks_uri(self, issuer: str, static_override: Optional[str] = None) -> str:
        """Return the JWKS URI to use for ``issuer``.

        A configured override wins without any network call. Otherwise the
        issuer's discovery document is fetched once; any failure falls back to
        the default JWKS URI.
        """
        if static_override:
            self.metrics.record_discovery("static")
            return static_override

        jwks_uri: Optional[str] = None
        try:
            document = self.fetch_openid_configuration(issuer)
            value = document.get("jwks_uri") if isinstance(document, dict) else None
            if isinstance(value, str) and value:
                jwks_uri = value
        except Exception as exc:  # discovery never fails initialization
            self.logger.error(
                "Unable to retrieve openid configuration from issuer",
                issuer=issuer,
                error=str(exc),
            )

        if not jwks_uri:
            self.logger.warning(
                "Using default JWKS uri for issuer",
                issuer=issuer,
                jwks_uri=self.default_jwks_uri,
            )
            self.metrics.record_discovery("fallback")
            return self.default_jwks_uri

        self.logger.info("Resolved JWKS uri from discovery document", issuer=issuer, jwks_uri=jwks_uri)
        self.metrics.record_discovery("success")
        return jwks_uri

    def fetch_openid_configuration(self, issuer: str) -> Dict[str, Any]:
        url = issuer.rstrip("/") + WELL_KNOWN_PATH
        if self._http_client is not None:
            response = self._http_client.get(url, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url)
        response.raise_for_status()
        return response.json()
