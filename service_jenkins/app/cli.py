#!/usr/bin/env python3
"""
Check a Jenkins ID token offline.

Runs the signature and claims checks the provider applies (everything except
the authorization check) and prints the outcome as JSON. Useful to diagnose
whether a rejected token is a key trust problem or a claims problem.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from shared.config import get_config
from shared.logging import configure_logging
from .jwks.discovery import IssuerDiscovery
from .jwks.resolver import KeySource, SigningKeyResolver
from .models import PolicyConfig
from .validation.token_validator import TokenValidator


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = get_config()
    parser = argparse.ArgumentParser(description="Validate a Jenkins OIDC ID token.")
    parser.add_argument("token_file", type=Path, help="File holding the ID token ('-' for stdin)")
    parser.add_argument("--issuer", default=settings.issuer, help="Expected token issuer")
    parser.add_argument("--audience", default=settings.audience, help="Expected token audience")
    parser.add_argument("--jwks-uri", default=settings.jwks_uri, help="JWKS uri; discovered from the issuer when omitted")
    parser.add_argument("--no-fetch", action="store_true", help="Do not fetch any JWKS; only use --public-key")
    parser.add_argument("--public-key", type=Path, default=None, help="PEM public key added to the key store")
    parser.add_argument("--kid", default="0", help="Key id for --public-key")
    parser.add_argument("--algorithm", default="ES256", help="Algorithm for --public-key")
    parser.add_argument("--boot-time-offset", type=int, default=settings.boot_time_offset,
                        help="Maximum token age in seconds")
    parser.add_argument("--log-level", default="warning", help="Log level")
    return parser.parse_args(argv)


def _read_token(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read().strip()
    return path.read_text().strip()


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging("jenkins", args.log_level, stream=sys.stderr)

    settings = get_config(
        issuer=args.issuer,
        audience=args.audience,
        boot_time_offset=args.boot_time_offset,
    )
    policy = PolicyConfig.from_settings(settings, source=lambda: {})

    primary = SigningKeyResolver(source=KeySource.PRIMARY)
    if not args.no_fetch:
        primary.jwks_uri = IssuerDiscovery(settings.default_jwks_uri).resolve_jwks_uri(args.issuer, args.jwks_uri)
        primary.refresh()

    key_store = SigningKeyResolver(source=KeySource.FALLBACK)
    if args.public_key is not None:
        key_store.add_public_key(args.kid, args.public_key.read_text(), args.algorithm)

    validator = TokenValidator(policy, primary, key_store)
    outcome = validator.validate(_read_token(args.token_file))
    print(outcome.model_dump_json(indent=2))
    return 0 if outcome.approved else 1


if __name__ == "__main__":
    sys.exit(main())
