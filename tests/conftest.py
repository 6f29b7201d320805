"""Shared test fixtures for credkit."""

from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple

import pytest

from credkit.crypto.keys import generate_key_pair
from credkit.crypto.types import KeyAlgorithm, KeyFormat, KeyPair
from credkit.pki.csr import generate_csr
from credkit.pki.issuer import (
    create_self_signed_certificate,
    issue_certificate_from_csr,
)
from credkit.pki.types import ExtensionPolicy, IssuerCredentials, Validity

SUBJECT: list[dict[str, str]] = [
    {"name": "commonName", "value": "example.com"},
    {"name": "countryName", "value": "US"},
    {"shortName": "ST", "value": "New York"},
    {"name": "localityName", "value": "New York"},
    {"name": "organizationName", "value": "Example Technologies, Inc."},
    {"shortName": "OU", "value": "Engineering"},
]

CA_EXTENSION_REQUEST: list[dict[str, Any]] = [
    {
        "name": "extensionRequest",
        "extensions": [
            {"name": "basicConstraints", "cA": True, "pathLen": 0},
            {
                "name": "keyUsage",
                "keyCertSign": True,
                "digitalSignature": True,
                "cRLSign": True,
            },
            {"name": "extKeyUsage", "codeSigning": True},
            {
                "name": "subjectAltName",
                "altNames": [
                    {"type": 2, "value": "test.domain.com"},
                    {"type": 2, "value": "other.domain.com"},
                    {"type": 2, "value": "www.domain.net"},
                ],
            },
        ],
    }
]


class Hierarchy(NamedTuple):
    """Root, intermediate, and leaf certificates with their keys."""

    root_pem: str
    root_key: KeyPair
    intermediate_pem: str
    intermediate_key: KeyPair
    leaf_pem: str
    leaf_key: KeyPair


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin environment-driven settings for tests."""
    monkeypatch.setenv("CREDKIT_JWKS_FETCH_TIMEOUT", "2")
    monkeypatch.delenv("CREDKIT_CERTIFICATE_EXTENSION_POLICY", raising=False)
    monkeypatch.delenv("CREDKIT_JWS_SERIALIZATION", raising=False)
    monkeypatch.delenv("CREDKIT_JWT_LEEWAY", raising=False)


@pytest.fixture(scope="session")
def rsa_key_pair() -> KeyPair:
    """RSA-2048 key pair in JWK form."""
    return generate_key_pair(KeyAlgorithm.RSA_2048, KeyFormat.JWK)


@pytest.fixture(scope="session")
def ec_key_pair() -> KeyPair:
    """EC P-256 key pair in JWK form."""
    return generate_key_pair(KeyAlgorithm.EC_P256, KeyFormat.JWK)


@pytest.fixture(scope="session")
def subject() -> list[dict[str, str]]:
    return SUBJECT


@pytest.fixture(scope="session")
def ca_extension_request() -> list[dict[str, Any]]:
    return CA_EXTENSION_REQUEST


@pytest.fixture(scope="session")
def validity() -> Validity:
    """One-year window that started yesterday."""
    now = datetime.now(UTC)
    return Validity(not_before=now - timedelta(days=1), not_after=now + timedelta(days=365))


def _subject_for(common_name: str) -> list[dict[str, str]]:
    return [{"name": "commonName", "value": common_name}, {"name": "countryName", "value": "US"}]


@pytest.fixture(scope="session")
def hierarchy(validity: Validity) -> Hierarchy:
    """Root CA -> intermediate CA (pathLen 0) -> leaf."""
    root_key = generate_key_pair(KeyAlgorithm.RSA_2048, KeyFormat.PEM)
    root_pem = create_self_signed_certificate(
        root_key,
        _subject_for("Test Root"),
        1,
        validity,
        [
            {
                "name": "extensionRequest",
                "extensions": [
                    {"name": "basicConstraints", "cA": True, "critical": True},
                    {"name": "keyUsage", "keyCertSign": True, "cRLSign": True},
                ],
            }
        ],
    )

    intermediate_key = generate_key_pair(KeyAlgorithm.EC_P256, KeyFormat.JWK)
    intermediate_pem = issue_certificate_from_csr(
        generate_csr(intermediate_key, _subject_for("intermediate.example.com")),
        IssuerCredentials(certificate_pem=root_pem, private_key=root_key.private_key),
        2,
        validity,
        policy=ExtensionPolicy.CA_PROFILE,
    )

    leaf_key = generate_key_pair(KeyAlgorithm.RSA_2048, KeyFormat.JWK)
    leaf_pem = issue_certificate_from_csr(
        generate_csr(
            leaf_key,
            _subject_for("device.example.com"),
            [
                {
                    "name": "extensionRequest",
                    "extensions": [{"name": "basicConstraints", "cA": False}],
                }
            ],
        ),
        IssuerCredentials(
            certificate_pem=intermediate_pem,
            private_key=intermediate_key.private_key,
        ),
        3,
        validity,
    )
    return Hierarchy(
        root_pem=root_pem,
        root_key=root_key,
        intermediate_pem=intermediate_pem,
        intermediate_key=intermediate_key,
        leaf_pem=leaf_pem,
        leaf_key=leaf_key,
    )
