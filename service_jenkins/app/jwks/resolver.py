"""
Signing key resolution for attestation tokens.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import httpx
from jose import jwk, jwt
from jose.exceptions import JOSEError, JWKError

from shared.logging import get_logger
from shared.metrics import ProviderMetrics, get_metrics_collector


SUPPORTED_ALGORITHMS = ("RS256", "RS384", "RS512", "ES256", "ES384", "ES512")

_EC_CURVE_ALGORITHMS = {"P-256": "ES256", "P-384": "ES384", "P-521": "ES512"}


class KeySource(str, Enum):
    """Trust source a signing key set belongs to."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class KeyVerification:
    """Outcome of verifying a token against one key set."""

    source: KeySource
    claims: Optional[Dict[str, Any]] = None
    key_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


def _default_algorithm(key_data: Mapping[str, Any]) -> Optional[str]:
    kty = key_data.get("kty")
    if kty == "RSA":
        return "RS256"
    if kty == "EC":
        return _EC_CURVE_ALGORITHMS.get(key_data.get("crv"))
    return None


def to_jwk(key: Any, algorithm: Optional[str] = None) -> Dict[str, Any]:
    """Normalize a JWK dict, PEM string/bytes or cryptography public key."""
    if isinstance(key, Mapping):
        data = dict(key)
        alg = data.get("alg") or algorithm or _default_algorithm(data)
    else:
        alg = algorithm or "ES256"
        data = jwk.construct(key, alg).to_dict()
    if alg not in SUPPORTED_ALGORITHMS:
        raise JWKError(f"Unsupported key algorithm: {alg}")
    # rejects malformed key material before it is published
    jwk.construct(data, alg)
    data["alg"] = alg
    return data


def parse_jwks(payload: Any) -> Dict[str, Dict[str, Any]]:
    """Parse a JWKS document into a key id to JWK mapping.

    Keys without a ``kid`` or with unusable material are skipped.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("keys"), list):
        raise ValueError("JWKS response missing 'keys' array")

    logger = get_logger("jenkins.jwks")
    keys: Dict[str, Dict[str, Any]] = {}
    for entry in payload["keys"]:
        if not isinstance(entry, dict):
            continue
        kid = entry.get("kid")
        if not isinstance(kid, str) or not kid:
            logger.warning("Skipping JWKS entry without key id")
            continue
        if entry.get("use") not in (None, "sig"):
            continue
        try:
            keys[kid] = to_jwk(entry)
        except (JOSEError, ValueError) as exc:
            logger.warning("Skipping unusable JWKS entry", kid=kid, error=str(exc))
    return keys


class SigningKeyResolver:
    """Key id to public key mapping for one trust source.

    Readers always see a complete, read-only snapshot; writers build a new
    mapping and swap it in under a lock.
    """

    def __init__(
        self,
        jwks_uri: Optional[str] = None,
        *,
        source: KeySource = KeySource.PRIMARY,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
        metrics: Optional[ProviderMetrics] = None,
    ) -> None:
        self.jwks_uri = jwks_uri
        self.source = source
        self.timeout = timeout
        self.metrics = metrics or get_metrics_collector()
        self.logger = get_logger(f"jenkins.jwks.{source.value}")
        self._http_client = http_client

        self._keys: Mapping[str, Dict[str, Any]] = MappingProxyType({})
        self._fetched: Dict[str, Dict[str, Any]] = {}
        self._inserted: Dict[str, Dict[str, Any]] = {}
        self._write_lock = threading.Lock()

        self._stop_event = threading.Event()
        self._refresh_thread: Optional[threading.Thread] = None

    @property
    def keys(self) -> Mapping[str, Dict[str, Any]]:
        return self._keys

    def get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        """Return the JWK for ``kid`` or None when unknown."""
        return self._keys.get(kid)

    def add_public_key(self, kid: str, key: Any, algorithm: Optional[str] = None) -> None:
        """Insert a key directly; survives later JWKS refreshes."""
        data = to_jwk(key, algorithm)
        data["kid"] = kid
        with self._write_lock:
            self._inserted[kid] = data
            self._publish()

    def refresh(self) -> bool:
        """Fetch the JWKS document and publish a new snapshot.

        On failure the previous snapshot stays in place.
        """
        if not self.jwks_uri:
            return False

        try:
            fetched = parse_jwks(self._fetch_jwks())
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("Failed to refresh JWKS", jwks_uri=self.jwks_uri, error=str(exc))
            self.metrics.record_jwks_refresh(self.source.value, "failed")
            return False

        with self._write_lock:
            self._fetched = fetched
            self._publish()

        self.logger.info("JWKS refreshed successfully", jwks_uri=self.jwks_uri, keys_count=len(fetched))
        self.metrics.record_jwks_refresh(self.source.value, "success")
        return True

    def _publish(self) -> None:
        snapshot = dict(self._fetched)
        snapshot.update(self._inserted)
        self._keys = MappingProxyType(snapshot)

    def _fetch_jwks(self) -> Any:
        if self._http_client is not None:
            response = self._http_client.get(self.jwks_uri, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self.jwks_uri)
        response.raise_for_status()
        return response.json()

    def verify_token(self, token: str, leeway: int = 60) -> KeyVerification:
        """Verify the token signature and time claims against this key set."""
        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as exc:
            return KeyVerification(self.source, error=str(exc))

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            return KeyVerification(self.source, error="Token missing key ID")

        key_data = self.get_key(kid)
        if key_data is None:
            return KeyVerification(self.source, key_id=kid, error=f"Signing key not found: {kid}")

        try:
            claims = jwt.decode(
                token,
                key_data,
                algorithms=[key_data["alg"]],
                options={
                    "verify_aud": False,
                    "verify_iss": False,
                    "leeway": leeway,
                },
            )
        # time claims of an unexpected type escape jose as builtin errors
        except (JOSEError, TypeError, ValueError, OverflowError) as exc:
            return KeyVerification(self.source, key_id=kid, error=str(exc))

        return KeyVerification(self.source, claims=claims, key_id=kid)

    def start_refresh(self, interval: float) -> None:
        """Refresh the key set every ``interval`` seconds in a daemon thread."""
        if self._refresh_thread is not None and self._refresh_thread.is_alive():
            return
        self._stop_event.clear()
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval,),
            name=f"jwks-refresh-{self.source.value}",
            daemon=True,
        )
        self._refresh_thread.start()

    def stop_refresh(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout)
            self._refresh_thread = None

    @property
    def refreshing(self) -> bool:
        return self._refresh_thread is not None and self._refresh_thread.is_alive()

    def _refresh_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.refresh()
