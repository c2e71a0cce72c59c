"""
One-time initialisation of the OpenSSL backend used by `cryptography`.

Entry points call ensure_backend() during startup; key generation calls it
again lazily, so library users who skip the explicit step still get a clear
KeyGenerationError instead of an obscure failure halfway through issuance.
"""

import threading

import structlog

from .errors import KeyGenerationError

logger = structlog.get_logger(__name__)

_lock = threading.Lock()
_openssl_version = None


def ensure_backend() -> str:
    """Load the OpenSSL backend once per process and return its version text."""
    global _openssl_version
    with _lock:
        if _openssl_version is not None:
            return _openssl_version
        try:
            from cryptography.hazmat.backends.openssl import backend
            version = backend.openssl_version_text()
        except Exception as e:
            raise KeyGenerationError(f"Cryptographic backend unavailable: {e}") from e
        _openssl_version = version
    logger.debug("crypto_backend_ready", openssl=version)
    return version
