"""
Shared error handling for the Jenkins attestation provider.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


FORBIDDEN = 403


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: int
    category: str
    message: str
    details: Dict[str, Any] = {}


class ProviderException(Exception):
    """Base exception raised back to the certificate issuance host."""

    category = "PROVIDER_ERROR"

    def __init__(self, code: int, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            category=self.category,
            message=self.message,
            details=self.details
        )


class ConfigurationFault(ProviderException):
    """Provider is not wired correctly (e.g. no authorizer)."""

    category = "CONFIGURATION_FAULT"

    def __init__(self, message: str = "Provider not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__(FORBIDDEN, message, details)


class PolicyViolation(ProviderException):
    """Request carries SAN values this provider never issues."""

    category = "POLICY_VIOLATION"

    def __init__(self, message: str = "Policy violation", details: Optional[Dict[str, Any]] = None):
        super().__init__(FORBIDDEN, message, details)


class AttestationFailure(ProviderException):
    """Attestation token missing or failed verification."""

    category = "ATTESTATION_FAILURE"

    def __init__(self, message: str = "Attestation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(FORBIDDEN, message, details)


class AuthorizationDenied(ProviderException):
    """Policy decision point refused the request."""

    category = "AUTHORIZATION_DENIED"

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(FORBIDDEN, message, details)


class SanDnsViolation(ProviderException):
    """Requested sanDNS entries are not valid for the domain/service."""

    category = "SAN_DNS_VIOLATION"

    def __init__(self, message: str = "Invalid sanDNS entries", details: Optional[Dict[str, Any]] = None):
        super().__init__(FORBIDDEN, message, details)
