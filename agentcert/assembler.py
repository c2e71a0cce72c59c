from dataclasses import dataclass

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import SignatureAlgorithmOID

from . import config
from .errors import AssemblyError
from .keyid import key_id
from .keys import KeyPair
from .signing import Identity
from .template import CertificateTemplate
from .validation import verify_signature

logger = structlog.get_logger(__name__)


def _spki(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class IssuedCertificate:
    """A verified certificate together with the key pair it certifies."""
    certificate: x509.Certificate
    key_pair: KeyPair
    key_id: str

    @property
    def der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    def certificate_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def private_key_pem(self) -> bytes:
        return self.key_pair.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def assemble(signed: x509.Certificate, template: CertificateTemplate,
             key_pair: KeyPair, identity: Identity) -> IssuedCertificate:
    """Decodes the signed certificate, checks it against its inputs and packages it."""
    try:
        cert = x509.load_der_x509_certificate(signed.public_bytes(serialization.Encoding.DER))
    except ValueError as e:
        raise AssemblyError(f"Signed certificate does not decode: {e}") from e

    if cert.signature_algorithm_oid != SignatureAlgorithmOID.RSA_WITH_SHA256:
        raise AssemblyError(f"Unexpected signature algorithm {cert.signature_algorithm_oid.dotted_string}")
    if len(cert.signature) != (identity.public_key.key_size + 7) // 8:
        raise AssemblyError(
            f"Signature length {len(cert.signature)} does not match a {identity.public_key.key_size}-bit key"
        )
    try:
        verify_signature(cert, identity.public_key)
    except ValueError as e:
        raise AssemblyError(f"Signature does not verify against {identity.comment!r}: {e}") from e

    if _spki(cert.public_key()) != _spki(key_pair.public_key):
        raise AssemblyError("Certificate public key does not match the generated key pair")
    if cert.serial_number != template.serial_number or cert.subject != template.subject_name:
        raise AssemblyError("Certificate does not match its template")

    issued = IssuedCertificate(certificate=cert, key_pair=key_pair, key_id=key_id(key_pair.public_key))
    logger.info(
        "certificate_issued",
        key_id=issued.key_id,
        subject=cert.subject.rfc4514_string(),
        serial=cert.serial_number,
        not_after=cert.not_valid_after_utc.isoformat(),
    )
    if config.LOG_CERTIFICATE_PEM:
        logger.debug("certificate_pem", key_id=issued.key_id, pem=issued.certificate_pem().decode("ascii"))
    return issued
