"""
Jenkins instance provider package.

Decides whether a Jenkins CI job presenting an OIDC ID token may receive a
short-lived, client-only X.509 certificate:

- app.provider: Provider entrypoint (confirm/refresh) that sequences checks.
- app.jwks: Issuer discovery and signing key resolution.
- app.validation: Token claims validation and SAN policy.
- app.authz: Authorization gate in front of the external authorizer.
- app.registry: Scheme-to-factory registry used by the issuance host.

Design notes:
- Module import must not perform network calls. Discovery and JWKS fetches
  happen only in `JenkinsInstanceProvider.initialize` or explicit refreshes.
- Use the shared/ utilities for logging, metrics, config and errors.
"""

# registers class://jenkins for hosts that only import the registry
from . import provider  # noqa: F401,E402
