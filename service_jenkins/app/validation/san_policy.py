"""
SAN policy for Jenkins issued certificates.
"""

from typing import Iterable, Mapping, Optional

from shared.errors import PolicyViolation
from shared.logging import get_logger
from .cert_request import validate_cert_request_san_dns_names
from ..models import ZTS_INSTANCE_HOSTNAME, ZTS_INSTANCE_SAN_IP


URI_INSTANCE_ID_PREFIX = "athenz://instanceid/"
URI_SPIFFE_PREFIX = "spiffe://"

ALLOWED_URI_PREFIXES = (URI_SPIFFE_PREFIX, URI_INSTANCE_ID_PREFIX)


class SanPolicy:
    """Enforces which SAN values a Jenkins certificate request may contain."""

    def __init__(self, dns_suffixes: Iterable[str]):
        self.dns_suffixes = frozenset(dns_suffixes)
        self.logger = get_logger("jenkins.san_policy")

    def check_pre_conditions(self, attributes: Optional[Mapping[str, str]]) -> None:
        """Reject requests asking for IP or hostname based identity."""
        attributes = attributes or {}
        if attributes.get(ZTS_INSTANCE_SAN_IP):
            raise PolicyViolation("Request must not have any sanIP addresses")
        if attributes.get(ZTS_INSTANCE_HOSTNAME):
            raise PolicyViolation("Request must not have any sanDNS values")

    def validate_san_uri(self, san_uri: Optional[str]) -> bool:
        """Verify sanURI only contains spiffe and instance id uris."""
        if not san_uri:
            self.logger.debug("Request contains no sanURI to verify")
            return True

        for uri in san_uri.split(","):
            if uri.startswith(ALLOWED_URI_PREFIXES):
                continue
            self.logger.error("Request contains unsupported uri value", uri=uri)
            return False

        return True

    def check_san_dns(self, attributes: Optional[Mapping[str, str]], domain: str, service: str) -> bool:
        instance_id = validate_cert_request_san_dns_names(
            attributes or {},
            domain,
            service,
            self.dns_suffixes,
        )
        return instance_id is not None
