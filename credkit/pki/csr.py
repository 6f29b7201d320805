"""PKCS#10 certification request construction and inspection."""

import ipaddress
import logging
from collections.abc import Sequence
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from pydantic import TypeAdapter, ValidationError

from credkit.core.errors import FieldNotFoundError, MalformedInputError
from credkit.crypto.keys import load_private_key, load_public_key, same_public_key
from credkit.crypto.types import KeyPair
from credkit.pki.types import (
    GENERAL_NAME_DNS,
    GENERAL_NAME_EMAIL,
    GENERAL_NAME_URI,
    AltName,
    BasicConstraintsSpec,
    ExtensionAttribute,
    ExtensionSpec,
    ExtKeyUsageSpec,
    KeyUsageSpec,
    SubjectField,
)

logger = logging.getLogger(__name__)

_NAME_OIDS = {
    "commonName": NameOID.COMMON_NAME,
    "CN": NameOID.COMMON_NAME,
    "countryName": NameOID.COUNTRY_NAME,
    "C": NameOID.COUNTRY_NAME,
    "stateOrProvinceName": NameOID.STATE_OR_PROVINCE_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "localityName": NameOID.LOCALITY_NAME,
    "L": NameOID.LOCALITY_NAME,
    "organizationName": NameOID.ORGANIZATION_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "organizationalUnitName": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "emailAddress": NameOID.EMAIL_ADDRESS,
    "E": NameOID.EMAIL_ADDRESS,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "streetAddress": NameOID.STREET_ADDRESS,
    "title": NameOID.TITLE,
    "givenName": NameOID.GIVEN_NAME,
    "surname": NameOID.SURNAME,
    "domainComponent": NameOID.DOMAIN_COMPONENT,
    "DC": NameOID.DOMAIN_COMPONENT,
}

_PURPOSE_OIDS = {
    "server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "code_signing": ExtendedKeyUsageOID.CODE_SIGNING,
    "email_protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "time_stamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "ocsp_signing": ExtendedKeyUsageOID.OCSP_SIGNING,
}

_subject_adapter = TypeAdapter(list[SubjectField])
_attributes_adapter = TypeAdapter(list[ExtensionAttribute])


def build_name(subject: Sequence[SubjectField | dict[str, Any]]) -> x509.Name:
    """Build an X.509 name with one RDN per field, in the given order."""
    try:
        fields = _subject_adapter.validate_python(list(subject))
    except ValidationError as exc:
        raise MalformedInputError(f"Invalid subject: {exc}") from exc
    attributes = []
    for field in fields:
        label = field.name or field.short_name
        oid = _NAME_OIDS.get(label) or _NAME_OIDS.get(field.short_name or "")
        if oid is None:
            raise MalformedInputError(f"Unknown subject attribute: {label!r}")
        try:
            attributes.append(x509.NameAttribute(oid, field.value))
        except ValueError as exc:
            raise MalformedInputError(f"Invalid value for {label}: {exc}") from exc
    return x509.Name(attributes)


def _general_name(alt: AltName) -> x509.GeneralName:
    if alt.type == GENERAL_NAME_DNS:
        return x509.DNSName(alt.value)
    if alt.type == GENERAL_NAME_EMAIL:
        return x509.RFC822Name(alt.value)
    if alt.type == GENERAL_NAME_URI:
        return x509.UniformResourceIdentifier(alt.value)
    try:
        return x509.IPAddress(ipaddress.ip_address(alt.value))
    except ValueError as exc:
        raise MalformedInputError(f"Invalid IP address: {alt.value!r}") from exc


def build_extension(descriptor: ExtensionSpec) -> x509.ExtensionType:
    """Translate one extension descriptor into a cryptography extension."""
    if isinstance(descriptor, BasicConstraintsSpec):
        return x509.BasicConstraints(
            ca=descriptor.ca, path_length=descriptor.path_len if descriptor.ca else None
        )
    if isinstance(descriptor, KeyUsageSpec):
        return x509.KeyUsage(
            digital_signature=descriptor.digital_signature,
            content_commitment=descriptor.non_repudiation,
            key_encipherment=descriptor.key_encipherment,
            data_encipherment=descriptor.data_encipherment,
            key_agreement=descriptor.key_agreement,
            key_cert_sign=descriptor.key_cert_sign,
            crl_sign=descriptor.crl_sign,
            encipher_only=descriptor.encipher_only,
            decipher_only=descriptor.decipher_only,
        )
    if isinstance(descriptor, ExtKeyUsageSpec):
        purposes = [oid for flag, oid in _PURPOSE_OIDS.items() if getattr(descriptor, flag)]
        if not purposes:
            raise MalformedInputError("extKeyUsage requests no purpose")
        return x509.ExtendedKeyUsage(purposes)
    return x509.SubjectAlternativeName([_general_name(alt) for alt in descriptor.alt_names])


def parse_extension_attributes(
    extension_attributes: Sequence[ExtensionAttribute | dict[str, Any]] | None,
) -> list[ExtensionAttribute]:
    """Validate extensionRequest descriptors given as models or plain dicts."""
    try:
        return _attributes_adapter.validate_python(list(extension_attributes or []))
    except ValidationError as exc:
        raise MalformedInputError(f"Invalid extension attributes: {exc}") from exc


def generate_csr(
    key_pair: KeyPair,
    subject: Sequence[SubjectField | dict[str, Any]],
    extension_attributes: Sequence[ExtensionAttribute | dict[str, Any]] | None = None,
) -> str:
    """Build a CSR self-signed with the pair's private key (proof of possession).

    The pair may be in any representation; its public half must match the
    private half, which is the key that ends up in the request.
    """
    private_key = load_private_key(key_pair.private_key)
    if not same_public_key(load_public_key(key_pair.public_key), private_key.public_key()):
        raise MalformedInputError("Public key does not belong to the private key")

    builder = x509.CertificateSigningRequestBuilder().subject_name(build_name(subject))
    attributes = parse_extension_attributes(extension_attributes)
    try:
        for attribute in attributes:
            for descriptor in attribute.extensions:
                builder = builder.add_extension(build_extension(descriptor), critical=descriptor.critical)
        csr = builder.sign(private_key, hashes.SHA256())
    except ValueError as exc:
        raise MalformedInputError(f"Cannot build CSR: {exc}") from exc
    return csr.public_bytes(serialization.Encoding.PEM).decode()


def load_csr(csr: str) -> x509.CertificateSigningRequest:
    """Parse a PEM CSR."""
    try:
        return x509.load_pem_x509_csr(csr.encode())
    except (ValueError, AttributeError) as exc:
        raise MalformedInputError(f"Unparsable CSR: {exc}") from exc


def verify_csr(csr: str) -> bool:
    """Check the CSR's self-signature against its embedded public key.

    Subject and extensions are not inspected.
    """
    valid = load_csr(csr).is_signature_valid
    if not valid:
        logger.warning("CSR self-signature does not verify")
    return valid


def common_name_of(name: x509.Name) -> str:
    """First CN value of an X.509 name."""
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        raise FieldNotFoundError("Subject has no CN attribute")
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode()


def get_common_name_from_csr(csr: str) -> str:
    """Return the subject CN of a PEM CSR."""
    return common_name_of(load_csr(csr).subject)
