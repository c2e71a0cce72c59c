"""
Boundary to the external signing agent.

The agent holds the long-term private key and signs on request; this module
never sees that key. Callers inject a Signer (anything with a matching
`sign(data, identity)` method) and the Identity naming the agent key to use.
AgentKey presents that pair as an RSA private key, so `cryptography`'s own
certificate builder computes the TBSCertificate and the signature algorithm
identifier and only the raw signature is requested remotely.
"""

from dataclasses import dataclass
from typing import Protocol

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import SigningError, TemplateConstructionError
from .template import CertificateTemplate

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    """Reference to a key held by the agent: its public half plus a label."""
    public_key: rsa.RSAPublicKey
    comment: str = ""


class Signer(Protocol):
    def sign(self, data: bytes, identity: Identity) -> bytes:
        """Return an RSASSA-PKCS1-v1_5/SHA-256 signature over `data`."""
        ...


class AgentKey(rsa.RSAPrivateKey):
    """RSA private key whose only capability is signing through the agent."""

    def __init__(self, signer: Signer, identity: Identity):
        self._signer = signer
        self._identity = identity

    @property
    def key_size(self) -> int:
        return self._identity.public_key.key_size

    def public_key(self) -> rsa.RSAPublicKey:
        return self._identity.public_key

    def sign(self, data, padding_, algorithm) -> bytes:
        if not isinstance(padding_, padding.PKCS1v15) or not isinstance(algorithm, hashes.SHA256):
            raise SigningError(
                f"Agent signs PKCS1v15/SHA-256 only, got {type(padding_).__name__}/{type(algorithm).__name__}"
            )
        try:
            signature = self._signer.sign(bytes(data), self._identity)
        except Exception as e:
            raise SigningError(f"Signing agent failed for {self._identity.comment!r}: {e}") from e
        if not isinstance(signature, (bytes, bytearray, memoryview)) or not signature:
            raise SigningError(f"Signing agent returned malformed output: {type(signature).__name__}")
        return bytes(signature)

    def decrypt(self, ciphertext, padding_):
        raise UnsupportedAlgorithm("Agent keys can only sign")

    def private_numbers(self):
        raise UnsupportedAlgorithm("Agent keys do not expose private numbers")

    def private_bytes(self, encoding, format, encryption_algorithm):
        raise UnsupportedAlgorithm("Agent keys cannot be serialized")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


def sign_template(template: CertificateTemplate, signer: Signer, identity: Identity) -> x509.Certificate:
    """Signs the frozen template through the agent. Blocks until it answers."""
    if not isinstance(identity.public_key, rsa.RSAPublicKey):
        raise SigningError(f"Agent identity {identity.comment!r} is not an RSA key")
    logger.debug("signature_requested", identity=identity.comment, serial=template.serial_number)
    try:
        return template.to_builder().sign(private_key=AgentKey(signer, identity), algorithm=hashes.SHA256())
    except SigningError:
        raise
    except (TypeError, ValueError) as e:
        raise TemplateConstructionError(f"Cannot encode certificate: {e}") from e


class FileKeySigner:
    """Signer backed by a PEM private key on disk.

    Stands in for a real agent in the command line tool and in tests; like an
    agent it refuses identities it does not hold.
    """

    def __init__(self, key_path: str, comment: str = ""):
        try:
            with open(key_path, "rb") as f:
                key = serialization.load_pem_private_key(f.read(), password=None)
        except (OSError, ValueError, TypeError) as e:
            raise SigningError(f"Cannot load signing key {key_path}: {e}") from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise SigningError(f"Signing key {key_path} is not an RSA key")
        self._key = key
        self._comment = comment or key_path

    def identity(self) -> Identity:
        return Identity(public_key=self._key.public_key(), comment=self._comment)

    def sign(self, data: bytes, identity: Identity) -> bytes:
        if identity.public_key.public_numbers() != self._key.public_key().public_numbers():
            raise SigningError(f"Identity {identity.comment!r} is not held by this signer")
        return self._key.sign(data, padding.PKCS1v15(), hashes.SHA256())
