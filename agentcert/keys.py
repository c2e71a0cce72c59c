from dataclasses import dataclass

import structlog
from cryptography.hazmat.primitives.asymmetric import rsa

from . import config
from .backend import ensure_backend
from .errors import KeyGenerationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class KeyPair:
    """Ephemeral key pair for one issuance. Never sent to the signer."""
    private_key: rsa.RSAPrivateKey

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()


def generate_key_pair() -> KeyPair:
    """Generates a fresh RSA key pair from the OS entropy source."""
    ensure_backend()
    try:
        key = rsa.generate_private_key(
            public_exponent=config.PUBLIC_EXPONENT,
            key_size=config.KEY_SIZE,
        )
    except Exception as e:
        raise KeyGenerationError(f"RSA key generation failed: {e}") from e
    logger.debug("key_pair_generated", key_size=key.key_size)
    return KeyPair(private_key=key)
