import datetime

import pytest
from structlog.testing import capture_logs
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509.oid import NameOID

from agentcert import config, issuer
from agentcert.errors import AssemblyError, SigningError, TemplateConstructionError
from agentcert.template import issuer_name
from agentcert.validation import validate_cert


def _issuer_cert(agent_key):
    """Self-signed certificate for the agent key under the nominal issuer name."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(issuer_name())
        .issuer_name(issuer_name())
        .public_key(agent_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(agent_key, hashes.SHA256())
    )


def test_issue_for_alice_end_to_end(agent, identity, agent_key, timewarp_ctx):
    with timewarp_ctx("2025-11-01T00:00:00.250000Z") as now:
        issued = issuer.issue_certificate(agent, identity, "alice")

    cert = issued.certificate
    assert cert.subject.rfc4514_string() == "UID=alice"
    assert cert.issuer == issuer_name()
    assert cert.not_valid_before_utc == now.replace(microsecond=0) - datetime.timedelta(hours=1)
    assert cert.not_valid_after_utc - cert.not_valid_before_utc == datetime.timedelta(hours=50)

    # Standard verification against the agent's public key
    agent_key.public_key().verify(cert.signature, cert.tbs_certificate_bytes,
                                  padding.PKCS1v15(), cert.signature_hash_algorithm)
    cert.verify_directly_issued_by(_issuer_cert(agent_key))
    assert validate_cert(cert, agent_key.public_key(), expected_username="alice",
                         now=now + datetime.timedelta(hours=1))


def test_returned_key_pair_matches_certificate(agent, identity):
    issued = issuer.issue_certificate(agent, identity, "carol")
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    assert issued.certificate.public_key().public_bytes(serialization.Encoding.DER, spki) == \
        issued.key_pair.public_key.public_bytes(serialization.Encoding.DER, spki)
    assert x509.load_der_x509_certificate(issued.der) == issued.certificate
    assert issued.certificate_pem().startswith(b"-----BEGIN CERTIFICATE-----")
    loaded = serialization.load_pem_private_key(issued.private_key_pem(), password=None)
    assert loaded.public_key().public_numbers() == issued.key_pair.public_key.public_numbers()


@pytest.mark.parametrize("username", ["alice", "bob.smith", "svc-deploy_01", "Émilie", "o'brien"])
def test_subject_round_trips(agent, identity, username):
    issued = issuer.issue_certificate(agent, identity, username)
    attrs = issued.certificate.subject.get_attributes_for_oid(NameOID.USER_ID)
    assert [a.value for a in attrs] == [username]


def test_consecutive_issuances_have_distinct_serials(agent, identity):
    first = issuer.issue_certificate(agent, identity, "alice")
    second = issuer.issue_certificate(agent, identity, "alice")
    assert first.certificate.serial_number != second.certificate.serial_number
    assert first.certificate.serial_number >= 0 and second.certificate.serial_number >= 0
    assert first.key_id != second.key_id


def test_signing_failure_returns_nothing(failing_agent, identity):
    result = None
    with pytest.raises(SigningError):
        result = issuer.issue_certificate(failing_agent, identity, "alice")
    assert result is None


def test_bad_signature_fails_assembly(corrupting_agent, identity):
    with pytest.raises(AssemblyError):
        issuer.issue_certificate(corrupting_agent, identity, "alice")


def test_signature_from_wrong_key_fails_assembly(wrong_key_agent, identity):
    with pytest.raises(AssemblyError):
        issuer.issue_certificate(wrong_key_agent, identity, "alice")


def test_issuance_logs_key_id(agent, identity, monkeypatch):
    monkeypatch.setattr(config, "LOG_CERTIFICATE_PEM", False)
    with capture_logs() as logs:
        issued = issuer.issue_certificate(agent, identity, "alice")
    events = {entry["event"]: entry for entry in logs}
    assert events["generating_certificate"]["key_id"] == issued.key_id
    assert events["certificate_issued"]["key_id"] == issued.key_id
    assert events["certificate_issued"]["subject"] == "UID=alice"
    assert "certificate_pem" not in events


def test_issuance_can_log_pem(agent, identity, monkeypatch):
    monkeypatch.setattr(config, "LOG_CERTIFICATE_PEM", True)
    with capture_logs() as logs:
        issued = issuer.issue_certificate(agent, identity, "alice")
    pem_entry = next(entry for entry in logs if entry["event"] == "certificate_pem")
    lines = pem_entry["pem"].strip().splitlines()
    assert lines[0] == "-----BEGIN CERTIFICATE-----"
    assert lines[-1] == "-----END CERTIFICATE-----"
    assert all(len(line) <= 64 for line in lines[1:-1])
    assert pem_entry["pem"].encode("ascii") == issued.certificate_pem()


def test_unencodable_username_never_reaches_agent(agent, identity):
    # A lone surrogate cannot be encoded as UTF8String
    with pytest.raises(TemplateConstructionError):
        issuer.issue_certificate(agent, identity, "\ud800")
    assert agent.calls == []


def test_validate_cert_accepts_naive_utc_now(agent, identity, agent_key):
    issued = issuer.issue_certificate(agent, identity, "alice")
    naive_now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    assert validate_cert(issued.certificate, agent_key.public_key(), now=naive_now)
    with pytest.raises(ValueError):
        validate_cert(issued.certificate, agent_key.public_key(),
                      now=naive_now + datetime.timedelta(hours=72))
