"""
Content-addressed key identifiers.

The identifier is the SHA-1 digest of the encoded public key, the same value
a SubjectKeyIdentifier extension carries, so log lines can be matched against
certificates with standard tooling.
"""

from cryptography import x509

from .errors import TemplateConstructionError


def key_identifier(public_key) -> bytes:
    try:
        return x509.SubjectKeyIdentifier.from_public_key(public_key).digest
    except Exception as e:
        raise TemplateConstructionError(f"Cannot compute key identifier: {e}") from e


def format_key_id(digest: bytes) -> str:
    """Renders a digest as colon-separated uppercase hex, e.g. '0A:1B:2C'."""
    return digest.hex(":").upper()


def key_id(public_key) -> str:
    return format_key_id(key_identifier(public_key))
