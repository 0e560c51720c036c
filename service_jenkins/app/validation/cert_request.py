"""
Certificate request sanDNS validation.
"""

from typing import AbstractSet, List, Mapping, Optional

from shared.logging import get_logger
from ..models import ZTS_INSTANCE_ID, ZTS_INSTANCE_SAN_DNS


INSTANCE_ID_DNS_MARKER = ".instanceid.athenz."

logger = get_logger("jenkins.cert_request")


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def extract_instance_id(
    attributes: Mapping[str, str],
    hosts: List[str],
    dns_suffixes: AbstractSet[str],
) -> Optional[str]:
    """Return the instance id from the sanDNS entries or the request attributes."""
    instance_id: Optional[str] = None
    for host in hosts:
        idx = host.find(INSTANCE_ID_DNS_MARKER)
        if idx == -1:
            continue
        if instance_id is not None:
            logger.error("Multiple instance id values specified", host=host, instance_id=instance_id)
            return None
        if host[idx + len(INSTANCE_ID_DNS_MARKER):] not in dns_suffixes or idx == 0:
            logger.error("Host does not have expected instance id format", host=host)
            return None
        instance_id = host[:idx]

    if instance_id is None:
        instance_id = attributes.get(ZTS_INSTANCE_ID) or None
    return instance_id


def validate_cert_request_san_dns_names(
    attributes: Mapping[str, str],
    domain: str,
    service: str,
    dns_suffixes: AbstractSet[str],
) -> Optional[str]:
    """Validate requested sanDNS names for ``domain``/``service``.

    Every entry must be ``<service>.<domain with dashes>.<suffix>`` for one of
    the configured suffixes, or an instance id entry. Returns the instance id
    on success, otherwise None.
    """
    if not dns_suffixes:
        logger.error("No DNS suffixes specified for validation")
        return None

    hosts = _split(attributes.get(ZTS_INSTANCE_SAN_DNS))
    if not hosts:
        logger.error("Request contains no sanDNS entries for validation")
        return None

    instance_id = extract_instance_id(attributes, hosts, dns_suffixes)
    if instance_id is None:
        logger.error("Unable to determine instance id from request", hosts=hosts)
        return None

    prefix = f"{service}.{domain.replace('.', '-')}."
    allowed_hosts = {prefix + suffix for suffix in dns_suffixes}

    for host in hosts:
        if INSTANCE_ID_DNS_MARKER in host:
            continue
        if host not in allowed_hosts:
            logger.error("Request contains invalid sanDNS entry", host=host, domain=domain, service=service)
            return None

    return instance_id
