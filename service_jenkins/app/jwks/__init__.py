"""
JWKS package.

Resolves where the Jenkins issuer publishes its signing keys and keeps the
keys used to verify attestation token signatures:

- discovery: best-effort lookup of the issuer's `jwks_uri`. Never raises;
  a broken discovery endpoint degrades to the default JWKS location.
- resolver: key id to public key mapping, populated from a JWKS document or
  by direct insertion, published as read-only snapshots.
"""
