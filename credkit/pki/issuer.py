"""Certificate issuance from verified CSRs, plus self-signed trust anchors."""

import logging
import secrets
from collections.abc import Sequence
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID

from credkit.core.errors import MalformedInputError
from credkit.core.settings import load_settings
from credkit.crypto.keys import RandomBytes, load_private_key
from credkit.crypto.types import KeyPair
from credkit.pki.csr import (
    build_extension,
    build_name,
    common_name_of,
    load_csr,
    parse_extension_attributes,
)
from credkit.pki.types import (
    ExtensionAttribute,
    ExtensionPolicy,
    IssuerCredentials,
    SubjectField,
    Validity,
)

logger = logging.getLogger(__name__)

SERIAL_NUMBER_BYTES = 20


def generate_serial_number(random_bytes: RandomBytes = secrets.token_bytes) -> int:
    """Positive serial of at most 159 bits drawn from ``random_bytes``."""
    serial = int.from_bytes(random_bytes(SERIAL_NUMBER_BYTES), "big") >> 1
    return serial or 1


def _coerce_serial(serial_number: int | str) -> int:
    if isinstance(serial_number, int):
        return serial_number
    try:
        return int(serial_number, 16)
    except ValueError as exc:
        raise MalformedInputError(f"Serial number is not hex: {serial_number!r}") from exc


def ca_profile_extensions(common_name: str) -> list[tuple[x509.ExtensionType, bool]]:
    """Fixed intermediate-CA extension set; the SAN carries the subject CN."""
    return [
        (x509.BasicConstraints(ca=True, path_length=0), True),
        (
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            True,
        ),
        (
            x509.ExtendedKeyUsage(
                [ExtendedKeyUsageOID.CODE_SIGNING, ExtendedKeyUsageOID.CLIENT_AUTH]
            ),
            False,
        ),
        (x509.SubjectAlternativeName([x509.DNSName(common_name)]), False),
    ]


def _load_issuer_certificate(pem: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem.encode())
    except ValueError as exc:
        raise MalformedInputError(f"Unparsable issuer certificate: {exc}") from exc


def _base_builder(
    subject: x509.Name,
    issuer: x509.Name,
    public_key: Any,
    serial_number: int | str,
    validity: Validity,
) -> x509.CertificateBuilder:
    try:
        return (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .serial_number(_coerce_serial(serial_number))
            .not_valid_before(validity.not_before)
            .not_valid_after(validity.not_after)
        )
    except (ValueError, TypeError) as exc:
        raise MalformedInputError(f"Invalid certificate fields: {exc}") from exc


def _sign(builder: x509.CertificateBuilder, signing_key: Any) -> str:
    try:
        cert = builder.sign(signing_key, hashes.SHA256())
    except ValueError as exc:
        raise MalformedInputError(f"Cannot sign certificate: {exc}") from exc
    return cert.public_bytes(serialization.Encoding.PEM).decode()


def issue_certificate_from_csr(
    csr: str,
    issuer: IssuerCredentials,
    serial_number: int | str,
    validity: Validity,
    policy: ExtensionPolicy | str | None = None,
) -> str:
    """Issue a SHA-256 signed certificate for a CSR.

    Subject and public key come from the CSR, the issuer name from the
    issuer's certificate. Extensions follow ``policy``: ``copy_request``
    copies the CSR's extensionRequest verbatim, ``ca_profile`` replaces it
    with :func:`ca_profile_extensions`.

    The CSR self-signature is NOT checked here; call ``verify_csr`` first.
    """
    request = load_csr(csr)
    try:
        policy = ExtensionPolicy(policy or load_settings().certificate_extension_policy)
    except ValueError as exc:
        raise MalformedInputError(f"Unknown extension policy: {policy!r}") from exc
    issuer_cert = _load_issuer_certificate(issuer.certificate_pem)
    issuer_key = load_private_key(issuer.private_key)

    builder = _base_builder(
        request.subject,
        issuer_cert.subject,
        request.public_key(),
        serial_number,
        validity,
    )

    try:
        if policy is ExtensionPolicy.CA_PROFILE:
            extensions = ca_profile_extensions(common_name_of(request.subject))
        else:
            extensions = [(ext.value, ext.critical) for ext in request.extensions]
        for value, critical in extensions:
            builder = builder.add_extension(value, critical=critical)
    except ValueError as exc:
        raise MalformedInputError(f"Invalid extensions: {exc}") from exc

    pem = _sign(builder, issuer_key)
    logger.debug(
        "Issued certificate serial=%s policy=%s", serial_number, policy.value
    )
    return pem


def create_self_signed_certificate(
    key_pair: KeyPair,
    subject: Sequence[SubjectField | dict[str, Any]],
    serial_number: int | str,
    validity: Validity,
    extension_attributes: Sequence[ExtensionAttribute | dict[str, Any]] | None = None,
) -> str:
    """Create a self-signed certificate, typically a trust anchor."""
    private_key = load_private_key(key_pair.private_key)
    name = build_name(subject)
    builder = _base_builder(
        name, name, private_key.public_key(), serial_number, validity
    )
    try:
        for attribute in parse_extension_attributes(extension_attributes):
            for spec in attribute.extensions:
                builder = builder.add_extension(
                    build_extension(spec), critical=spec.critical
                )
    except ValueError as exc:
        raise MalformedInputError(f"Invalid extensions: {exc}") from exc
    return _sign(builder, private_key)
