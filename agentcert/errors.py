class IssuanceError(Exception):
    """Base class for every failure that aborts a certificate issuance."""


class KeyGenerationError(IssuanceError):
    """The cryptographic provider could not produce a key pair."""


class TemplateConstructionError(IssuanceError):
    """The subject, a name or an extension could not be encoded."""


class SigningError(IssuanceError):
    """The external signer failed, rejected the identity or returned garbage."""


class AssemblyError(IssuanceError):
    """The signed certificate does not decode or does not verify.

    Treat as security relevant: a certificate whose signature does not match
    its template is never handed back to the caller.
    """
