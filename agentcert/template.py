import datetime
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from . import config
from .errors import TemplateConstructionError
from .keyid import key_identifier

# RFC 5280 caps serial numbers at 20 octets.
MAX_SERIAL_BITS = 159


@dataclass(frozen=True)
class CertificateTemplate:
    """Every field of the certificate except the signature."""
    issuer_name: x509.Name
    subject_name: x509.Name
    serial_number: int
    not_before: datetime.datetime
    not_after: datetime.datetime
    public_key: rsa.RSAPublicKey
    extensions: Tuple[Tuple[x509.ExtensionType, bool], ...]

    def to_builder(self) -> x509.CertificateBuilder:
        builder = (
            x509.CertificateBuilder()
            .issuer_name(self.issuer_name)
            .subject_name(self.subject_name)
            .serial_number(self.serial_number)
            .not_valid_before(self.not_before)
            .not_valid_after(self.not_after)
            .public_key(self.public_key)
        )
        for extension, critical in self.extensions:
            builder = builder.add_extension(extension, critical=critical)
        return builder


def issuer_name() -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, config.ISSUER_COUNTRY),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, config.ISSUER_ORGANIZATION),
        x509.NameAttribute(NameOID.COMMON_NAME, config.ISSUER_COMMON_NAME),
    ])


def subject_name(username: str) -> x509.Name:
    """Single RDN carrying the username as UID."""
    if not isinstance(username, str) or not username:
        raise TemplateConstructionError(f"Invalid subject identifier: {username!r}")
    try:
        return x509.Name([x509.NameAttribute(NameOID.USER_ID, username)])
    except ValueError as e:
        raise TemplateConstructionError(f"Cannot encode subject {username!r}: {e}") from e


def validity_window(now: datetime.datetime) -> Tuple[datetime.datetime, datetime.datetime]:
    """Returns (not_before, not_after) around `now`, to whole seconds in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    now = now.astimezone(datetime.timezone.utc).replace(microsecond=0)
    not_before = now - datetime.timedelta(hours=config.HOURS_BEFORE)
    not_after = now + datetime.timedelta(hours=config.HOURS_BEFORE + config.HOURS_AFTER)
    return not_before, not_after


def new_serial_number() -> int:
    """Serial from the timestamp of a version 1 UUID.

    Practically unique across calls (uuid1 never repeats a timestamp within a
    process), but predictable: do not rely on it as a secret.
    """
    serial = abs(uuid.uuid1().time)
    if serial <= 0 or serial.bit_length() > MAX_SERIAL_BITS:
        raise TemplateConstructionError(f"Serial number out of range: {serial}")
    return serial


def key_extensions(public_key) -> Tuple[Tuple[x509.ExtensionType, bool], ...]:
    # The issuer is nominal and has no key of its own, so the authority key
    # identifier points at the subject key as well.
    digest = key_identifier(public_key)
    try:
        return (
            (x509.SubjectKeyIdentifier(digest), False),
            (x509.AuthorityKeyIdentifier(
                key_identifier=digest,
                authority_cert_issuer=None,
                authority_cert_serial_number=None,
            ), False),
            (x509.KeyUsage(digital_signature=True, content_commitment=False, key_encipherment=False,
                           data_encipherment=False, key_agreement=False, key_cert_sign=True,
                           crl_sign=False, encipher_only=False, decipher_only=False), False),
            (x509.BasicConstraints(ca=False, path_length=None), True),
        )
    except (TypeError, ValueError) as e:
        raise TemplateConstructionError(f"Cannot encode extensions: {e}") from e


def build_template(username: str, public_key, now: datetime.datetime,
                   issuer: Optional[x509.Name] = None) -> CertificateTemplate:
    """Builds the unsigned certificate for `username` around `public_key`."""
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise TemplateConstructionError(f"Unsupported public key type: {type(public_key).__name__}")
    not_before, not_after = validity_window(now)
    return CertificateTemplate(
        issuer_name=issuer if issuer is not None else issuer_name(),
        subject_name=subject_name(username),
        serial_number=new_serial_number(),
        not_before=not_before,
        not_after=not_after,
        public_key=public_key,
        extensions=key_extensions(public_key),
    )
