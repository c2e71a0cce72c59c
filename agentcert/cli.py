import argparse
import os
import sys

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from . import config
from .backend import ensure_backend
from .errors import IssuanceError
from .issuer import issue_certificate
from .keyid import key_id
from .logs import setup_logging
from .signing import FileKeySigner
from .validation import validate_cert


def load_public_key(path: str):
    """Reads a public key from a certificate, public key or private key PEM."""
    with open(path, "rb") as f:
        data = f.read()
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data).public_key()
    if b"PRIVATE KEY-----" in data:
        return serialization.load_pem_private_key(data, password=None).public_key()
    return serialization.load_pem_public_key(data)


def cmd_issue(args) -> int:
    # The username names the output files, so it must stay inside out_dir
    if os.path.basename(args.username) != args.username or args.username in (".", ".."):
        print(f"Error: Username {args.username!r} cannot be used as a file name", file=sys.stderr)
        return 1
    signer = FileKeySigner(args.identity_key)
    issued = issue_certificate(signer, signer.identity(), args.username)

    os.makedirs(args.out_dir, exist_ok=True)
    cert_path = os.path.join(args.out_dir, f"{args.username}_cert.pem")
    key_path = os.path.join(args.out_dir, f"{args.username}_key.pem")
    with open(cert_path, "wb") as f:
        f.write(issued.certificate_pem())
    # Private key readable by the owner only
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(issued.private_key_pem())

    print(f"Issued certificate for {args.username} (key id {issued.key_id}) at {cert_path}")
    return 0


def cmd_keyid(args) -> int:
    try:
        public_key = load_public_key(args.pem)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: Cannot read key from {args.pem}: {e}", file=sys.stderr)
        return 1
    print(key_id(public_key))
    return 0


def cmd_verify(args) -> int:
    try:
        with open(args.cert, "rb") as f:
            cert = x509.load_pem_x509_certificate(f.read())
        validate_cert(cert, load_public_key(args.identity_key), expected_username=args.username)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"{cert.subject.rfc4514_string()} certificate valid and trusted.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentcert",
        description="Issue short-lived X.509 client certificates signed by an agent-held key.",
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Diagnostic log level.")
    parser.add_argument("--log-format", default=config.LOG_FORMAT, choices=["console", "json"])
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Command: Issue
    issue_parser = subparsers.add_parser("issue", help="Issues a certificate for a fresh key pair.")
    issue_parser.add_argument("username", help="Subject UID for the certificate (e.g., alice).")
    issue_parser.add_argument("--identity-key", required=True, help="PEM private key standing in for the agent.")
    issue_parser.add_argument("--out-dir", default=config.DEFAULT_OUT_DIR, help="Where to write the cert and key.")
    issue_parser.set_defaults(func=cmd_issue)

    # Command: KeyId
    keyid_parser = subparsers.add_parser("keyid", help="Prints the key identifier of a key or certificate.")
    keyid_parser.add_argument("pem", help="Certificate, public key or private key PEM file.")
    keyid_parser.set_defaults(func=cmd_keyid)

    # Command: Verify
    verify_parser = subparsers.add_parser("verify", help="Verifies an issued certificate.")
    verify_parser.add_argument("cert", help="Certificate PEM file.")
    verify_parser.add_argument("--identity-key", required=True, help="PEM key (public or private) of the signer.")
    verify_parser.add_argument("--username", help="Expected subject UID.")
    verify_parser.set_defaults(func=cmd_verify)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_format)
    try:
        ensure_backend()
        return args.func(args)
    except IssuanceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
