"""
Token validation package.

Provides the checks the Jenkins provider runs on each certificate request:

- token_validator: signature (primary key set, then fallback), issuer,
  audience, freshness and subject checks on the attestation token, ending
  with the authorization gate.
- san_policy: which SAN shapes a request may carry.
- cert_request: sanDNS validation against the domain/service identity and
  the configured DNS suffixes.
"""
