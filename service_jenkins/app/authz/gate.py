"""
Authorization gate in front of the external authorizer.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from shared.errors import ConfigurationFault
from shared.logging import get_logger


JENKINS_JOB_ACTION = "jenkins.job"


@dataclass(frozen=True)
class Principal:
    """Service identity used for the authorization check."""

    domain: str
    name: str
    credentials: Optional[str] = None

    @classmethod
    def create(cls, domain: str, name: str, credentials: Optional[str] = None) -> "Principal":
        return cls(domain=domain, name=name, credentials=credentials)

    @property
    def full_name(self) -> str:
        return f"{self.domain}.{self.name}"


class Authorizer(Protocol):
    """Policy decision point owned by the issuance host."""

    def access(self, action: str, resource: str, principal: Principal, extra: Any = None) -> bool:
        ...


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    action: str
    resource: str

    @property
    def error_detail(self) -> str:
        return f"authorization check failed for action: {self.action} resource: {self.resource}"


class AuthorizationGate:
    """Checks that ``domain.service`` may run the Jenkins job named by the token subject."""

    def __init__(self, authorizer: Optional[Authorizer]):
        self.authorizer = authorizer
        self.logger = get_logger("jenkins.authz")

    def authorize(self, domain: str, service: str, subject: str) -> AuthorizationDecision:
        if self.authorizer is None:
            raise ConfigurationFault("Authorizer not available")

        # subject is passed through unescaped; the policy side matches on it
        resource = f"{domain}:{subject}"
        principal = Principal.create(domain, service)
        allowed = bool(self.authorizer.access(JENKINS_JOB_ACTION, resource, principal, None))

        self.logger.info(
            "Authorization check completed",
            action=JENKINS_JOB_ACTION,
            resource=resource,
            principal=principal.full_name,
            allowed=allowed,
        )
        return AuthorizationDecision(allowed=allowed, action=JENKINS_JOB_ACTION, resource=resource)
