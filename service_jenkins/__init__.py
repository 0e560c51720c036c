"""
Jenkins attestation provider for the certificate issuance host.
"""
