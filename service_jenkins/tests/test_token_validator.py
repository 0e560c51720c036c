"""
Unit tests for TokenValidator.
"""

import time
from unittest.mock import MagicMock

import pytest

from shared.config import JENKINS_ISSUER, JenkinsProviderConfig
from service_jenkins.app.authz.gate import AuthorizationGate, Principal
from service_jenkins.app.jwks.resolver import KeySource, SigningKeyResolver
from service_jenkins.app.models import PolicyConfig
from service_jenkins.app.validation.token_validator import TokenValidator, VerificationStage, _format_issued_at


RESOURCE = "sports:https://jenkins.io/job/example-project"


@pytest.fixture
def dynamic_env():
    return {}


@pytest.fixture
def policy(dynamic_env):
    settings = JenkinsProviderConfig(audience="https://athenz.io", jwks_uri="https://config.athenz.io")
    return PolicyConfig.from_settings(settings, source=lambda: dynamic_env)


@pytest.fixture
def primary(metrics):
    return SigningKeyResolver(source=KeySource.PRIMARY, metrics=metrics)


@pytest.fixture
def fallback(metrics):
    return SigningKeyResolver(source=KeySource.FALLBACK, metrics=metrics)


@pytest.fixture
def validator(policy, primary, fallback, metrics):
    return TokenValidator(policy, primary, fallback, metrics=metrics)


@pytest.fixture
def authorizer():
    mock_authorizer = MagicMock()
    mock_authorizer.access.return_value = True
    return mock_authorizer


class TestTokenValidator:
    """Test cases for TokenValidator."""

    def test_valid_token_approved(self, validator, primary, ec_public_key, id_token_factory, authorizer):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(), "sports", "api", AuthorizationGate(authorizer))

        assert outcome.approved is True
        assert outcome.error_detail is None
        assert outcome.stage == VerificationStage.APPROVED.value
        assert outcome.token.subject == "https://jenkins.io/job/example-project"
        assert outcome.token.key_source == "primary"
        authorizer.access.assert_called_once_with(
            "jenkins.job", RESOURCE, Principal.create("sports", "api"), None
        )

    def test_claims_only_without_gate(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory())

        assert outcome.approved is True
        assert outcome.stage == VerificationStage.SUBJECT_PRESENT.value

    def test_fallback_key_store(self, validator, fallback, ec_public_key, id_token_factory, metrics):
        fallback.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory())

        assert outcome.approved is True
        assert outcome.token.key_source == "fallback"
        assert metrics.registry.get_sample_value(
            "token_verifications_total", {"source": "primary", "status": "failed"}
        ) == 1
        assert metrics.registry.get_sample_value(
            "token_verifications_total", {"source": "fallback", "status": "success"}
        ) == 1

    def test_unknown_key_reports_both_sources(self, validator, id_token_factory, authorizer):
        outcome = validator.validate(id_token_factory(), "sports", "api", AuthorizationGate(authorizer))

        assert outcome.approved is False
        assert outcome.stage == VerificationStage.UNVERIFIED.value
        assert "Unable to parse and validate token with JWKs: Signing key not found: 0" in outcome.error_detail
        assert "Unable to parse and validate token with Key Store: Signing key not found: 0" in outcome.error_detail
        authorizer.access.assert_not_called()

    def test_forged_token_rejected(self, validator, primary, fallback, ec_public_key,
                                   other_private_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)
        fallback.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(private_key=other_private_key))

        assert outcome.approved is False
        assert "with JWKs" in outcome.error_detail
        assert "with Key Store" in outcome.error_detail

    def test_issuer_mismatch(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory("https://wrong-issuer"))

        assert outcome.approved is False
        assert outcome.error_detail == "token issuer is not Jenkins: https://wrong-issuer"

    def test_issuer_not_normalized(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(JENKINS_ISSUER + "/"))

        assert "token issuer is not Jenkins" in outcome.error_detail

    def test_audience_mismatch(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(audience="https://test.athenz.io"))

        assert outcome.approved is False
        assert outcome.error_detail == "token audience is not ZTS Server audience: https://test.athenz.io"

    def test_stale_issued_at(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(issued_at=int(time.time()) - 400))

        assert outcome.approved is False
        assert outcome.error_detail.startswith("job start time is not recent enough, issued at: ")

    def test_missing_issued_at(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(skip_issued_at=True))

        assert outcome.approved is False
        assert outcome.error_detail == "job start time is not recent enough, issued at: None"

    def test_boot_time_offset_read_per_call(self, validator, primary, ec_public_key, id_token_factory, dynamic_env):
        primary.add_public_key("0", ec_public_key)
        token = id_token_factory(issued_at=int(time.time()) - 400)

        assert validator.validate(token).approved is False

        dynamic_env["JENKINS_PROVIDER_BOOT_TIME_OFFSET"] = "600"
        assert validator.validate(token).approved is True

        dynamic_env["JENKINS_PROVIDER_BOOT_TIME_OFFSET"] = "60"
        assert validator.validate(token).approved is False

    def test_freshness_uses_clock(self, policy, primary, fallback, ec_public_key, id_token_factory, metrics):
        primary.add_public_key("0", ec_public_key)
        now = time.time()
        token = id_token_factory(issued_at=int(now))
        validator = TokenValidator(policy, primary, fallback, clock=lambda: now + 301, metrics=metrics)

        assert "not recent enough" in validator.validate(token).error_detail

    def test_missing_subject(self, validator, primary, ec_public_key, id_token_factory, authorizer):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(skip_subject=True), "sports", "api",
                                     AuthorizationGate(authorizer))

        assert outcome.approved is False
        assert outcome.error_detail == "token does not contain required subject claim"
        authorizer.access.assert_not_called()

    def test_authorization_denied(self, validator, primary, ec_public_key, id_token_factory, authorizer):
        primary.add_public_key("0", ec_public_key)
        authorizer.access.return_value = False

        outcome = validator.validate(id_token_factory(), "sports", "api", AuthorizationGate(authorizer))

        assert outcome.approved is False
        assert outcome.stage == VerificationStage.AUTHORIZATION_PENDING.value
        assert outcome.error_detail == (
            f"authorization check failed for action: jenkins.job resource: {RESOURCE}"
        )

    def test_first_failure_wins(self, validator, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)
        token = id_token_factory(
            "https://wrong-issuer",
            audience="https://test.athenz.io",
            skip_subject=True,
            skip_issued_at=True,
        )

        outcome = validator.validate(token)

        assert "token issuer is not Jenkins" in outcome.error_detail
        assert "audience" not in outcome.error_detail


class TestMalformedClaims:
    """Signed tokens whose claims have unexpected types are rejected, never raised."""

    @pytest.mark.parametrize(
        "extra_claims, stage, detail",
        [
            ({"iss": 12345}, VerificationStage.SIGNATURE_CHECKED,
             "token issuer is not Jenkins: 12345"),
            ({"aud": ["https://athenz.io"]}, VerificationStage.ISSUER_CHECKED,
             "token audience is not ZTS Server audience: ['https://athenz.io']"),
            ({"iat": -10 ** 14}, VerificationStage.AUDIENCE_CHECKED,
             "job start time is not recent enough, issued at: -100000000000000"),
            ({"iat": "1700000000"}, VerificationStage.AUDIENCE_CHECKED,
             "job start time is not recent enough, issued at: 1700000000"),
        ],
    )
    def test_rejected_at_claim_stage(self, validator, primary, ec_public_key, id_token_factory, authorizer,
                                     extra_claims, stage, detail):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(extra_claims=extra_claims), "sports", "api",
                                     AuthorizationGate(authorizer))

        assert outcome.approved is False
        assert outcome.stage == stage.value
        assert outcome.error_detail == detail
        authorizer.access.assert_not_called()

    @pytest.mark.parametrize("issued_at", [[1], "recent", {"seconds": 1}])
    def test_unparseable_issued_at_fails_signature_stage(self, validator, primary, ec_public_key,
                                                         id_token_factory, issued_at):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(extra_claims={"iat": issued_at}))

        assert outcome.approved is False
        assert outcome.stage == VerificationStage.UNVERIFIED.value
        assert "Unable to parse and validate token with JWKs: " in outcome.error_detail

    def test_resolver_reports_type_errors(self, primary, ec_public_key, id_token_factory):
        primary.add_public_key("0", ec_public_key)

        result = primary.verify_token(id_token_factory(extra_claims={"iat": [1]}))

        assert result.ok is False
        assert result.key_id == "0"
        assert result.error

    @pytest.mark.parametrize("subject", [42, ["https://jenkins.io/job/example-project"], ""])
    def test_non_string_subject(self, validator, primary, ec_public_key, id_token_factory, authorizer, subject):
        primary.add_public_key("0", ec_public_key)

        outcome = validator.validate(id_token_factory(extra_claims={"sub": subject}), "sports", "api",
                                     AuthorizationGate(authorizer))

        assert outcome.approved is False
        assert outcome.error_detail
        authorizer.access.assert_not_called()

    def test_format_issued_at_out_of_range(self):
        assert _format_issued_at(10 ** 20) == str(10 ** 20)
        assert _format_issued_at(None) == "None"
        assert _format_issued_at(0) == "1970-01-01T00:00:00+00:00"
