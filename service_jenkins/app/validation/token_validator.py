"""
Attestation token validation for the Jenkins provider.
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from shared.logging import get_logger
from shared.metrics import ProviderMetrics, get_metrics_collector
from ..authz.gate import AuthorizationGate
from ..jwks.resolver import KeyVerification, SigningKeyResolver
from ..models import ParsedToken, PolicyConfig, ValidationOutcome


class VerificationStage(str, Enum):
    """States of the token verification pipeline."""
    UNVERIFIED = "unverified"
    SIGNATURE_CHECKED = "signature_checked"
    ISSUER_CHECKED = "issuer_checked"
    AUDIENCE_CHECKED = "audience_checked"
    FRESHNESS_CHECKED = "freshness_checked"
    SUBJECT_PRESENT = "subject_present"
    AUTHORIZATION_PENDING = "authorization_pending"
    APPROVED = "approved"


def _format_issued_at(issued_at: Any) -> str:
    if issued_at is None:
        return "None"
    try:
        return datetime.fromtimestamp(issued_at, tz=timezone.utc).isoformat()
    except (OverflowError, ValueError, OSError, TypeError):
        return str(issued_at)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class TokenValidator:
    """Runs the signature and claims checks on a Jenkins ID token."""

    def __init__(
        self,
        policy: PolicyConfig,
        primary: SigningKeyResolver,
        fallback: SigningKeyResolver,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional[ProviderMetrics] = None,
    ):
        self.policy = policy
        self.primary = primary
        self.fallback = fallback
        self.clock = clock
        self.metrics = metrics or get_metrics_collector()
        self.logger = get_logger("jenkins.validator")

    def verify_signature(self, token: str) -> KeyVerification:
        """Verify against the primary key set, then once against the fallback.

        When both fail the returned error carries both causes.
        """
        leeway = self.policy.clock_skew_seconds
        primary = self.primary.verify_token(token, leeway=leeway)
        self.metrics.record_token_verification(primary.source.value, "success" if primary.ok else "failed")
        if primary.ok:
            return primary

        fallback = self.fallback.verify_token(token, leeway=leeway)
        self.metrics.record_token_verification(fallback.source.value, "success" if fallback.ok else "failed")
        if fallback.ok:
            self.logger.info("Token verified with fallback key store", kid=fallback.key_id,
                             primary_error=primary.error)
            return fallback

        return KeyVerification(
            fallback.source,
            key_id=primary.key_id or fallback.key_id,
            error=(
                f"Unable to parse and validate token with JWKs: {primary.error}"
                f"Unable to parse and validate token with Key Store: {fallback.error}"
            ),
        )

    def validate(
        self,
        token: str,
        domain: Optional[str] = None,
        service: Optional[str] = None,
        gate: Optional[AuthorizationGate] = None,
    ) -> ValidationOutcome:
        """Validate ``token``; stops at the first failing stage.

        Without a ``gate`` the pipeline ends after the subject check, which is
        what offline tooling uses. The provider always passes one.
        """
        verification = self.verify_signature(token)
        if not verification.ok:
            return self._reject(VerificationStage.UNVERIFIED, verification.error)

        # signed claims are still untyped; checks run on the raw values
        claims = verification.claims
        parsed = self._parse(verification)

        issuer = claims.get("iss")
        if not isinstance(issuer, str) or issuer != self.policy.issuer:
            return self._reject(VerificationStage.SIGNATURE_CHECKED,
                                f"token issuer is not Jenkins: {issuer}", parsed)

        audience = claims.get("aud")
        if not isinstance(audience, str) or audience != self.policy.audience:
            return self._reject(VerificationStage.ISSUER_CHECKED,
                                f"token audience is not ZTS Server audience: {audience}", parsed)

        # offset is read on every call so live config changes apply
        oldest_allowed = self.clock() - self.policy.boot_time_offset_seconds
        issued_at = claims.get("iat")
        if not _is_timestamp(issued_at) or issued_at < oldest_allowed:
            return self._reject(
                VerificationStage.AUDIENCE_CHECKED,
                f"job start time is not recent enough, issued at: {_format_issued_at(issued_at)}",
                parsed,
            )

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            return self._reject(VerificationStage.FRESHNESS_CHECKED,
                                "token does not contain required subject claim", parsed)

        if parsed is None:
            return self._reject(VerificationStage.FRESHNESS_CHECKED, "token contains malformed claims")

        if gate is None:
            return ValidationOutcome(approved=True, stage=VerificationStage.SUBJECT_PRESENT.value, token=parsed)

        decision = gate.authorize(domain, service, subject)
        if not decision.allowed:
            return self._reject(VerificationStage.AUTHORIZATION_PENDING, decision.error_detail, parsed)

        return ValidationOutcome(approved=True, stage=VerificationStage.APPROVED.value, token=parsed)

    def _parse(self, verification: KeyVerification) -> Optional[ParsedToken]:
        try:
            return ParsedToken.from_claims(verification.claims, verification.key_id, verification.source.value)
        except ValidationError as exc:
            self.logger.warning("Token claims have unexpected types", kid=verification.key_id,
                                error_count=exc.error_count())
            return None

    def _reject(self, stage: VerificationStage, detail: str, token: Optional[ParsedToken] = None) -> ValidationOutcome:
        self.logger.warning("Token validation failed", stage=stage.value, error=detail)
        return ValidationOutcome(approved=False, stage=stage.value, error_detail=detail, token=token)
