"""
Short-lived client certificate issuance.

issue_certificate() runs the whole flow for one user:

    generate key pair -> build template -> key id -> agent signature -> assemble

Each step either succeeds or raises its IssuanceError subclass; there is no
retry and no partial result. Calls share no state and may run concurrently.
"""

import datetime

import structlog

from .assembler import IssuedCertificate, assemble
from .keyid import key_id
from .keys import generate_key_pair
from .signing import Identity, Signer, sign_template
from .template import build_template

logger = structlog.get_logger(__name__)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def issue_certificate(signer: Signer, identity: Identity, username: str) -> IssuedCertificate:
    """Mints a certificate for `username` signed by the agent key `identity`.

    The returned key pair belongs to the caller; nothing is kept here.
    """
    key_pair = generate_key_pair()
    template = build_template(username, key_pair.public_key, utcnow())

    log = logger.bind(key_id=key_id(key_pair.public_key), username=username)
    log.info("generating_certificate", serial=template.serial_number)

    signed = sign_template(template, signer, identity)
    return assemble(signed, template, key_pair, identity)
