import datetime
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID


def verify_signature(cert: x509.Certificate, signer_public_key) -> None:
    """Raises ValueError unless `cert` was signed by `signer_public_key`."""
    if not isinstance(signer_public_key, rsa.RSAPublicKey):
        raise ValueError("Signer public key is not an RSA key")
    sig_hash = cert.signature_hash_algorithm
    if sig_hash is None:
        raise ValueError("Certificate signature algorithm incompatible with RSA public key")
    try:
        signer_public_key.verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            sig_hash,
        )
    except InvalidSignature as e:
        raise ValueError("Certificate signature verification failed") from e


def get_username(cert: x509.Certificate) -> str:
    attrs = cert.subject.get_attributes_for_oid(NameOID.USER_ID)
    if len(attrs) != 1:
        raise ValueError(f"Expected exactly one UID in subject, got {len(attrs)}")
    return attrs[0].value


def validate_cert(cert: x509.Certificate, signer_public_key,
                  expected_username: Optional[str] = None,
                  now: Optional[datetime.datetime] = None) -> bool:
    """Checks signature, subject and validity window of an issued certificate."""
    verify_signature(cert, signer_public_key)

    username = get_username(cert)
    if expected_username is not None and username != expected_username:
        raise ValueError(f"Identity mismatch: expected {expected_username}, got {username}")

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    if not (cert.not_valid_before_utc <= now <= cert.not_valid_after_utc):
        raise ValueError("Certificate expired or not yet valid")

    return True
