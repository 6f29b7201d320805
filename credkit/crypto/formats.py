"""PEM, DER, and JWK conversions, thumbprints, and JWK set assembly."""

import base64
import binascii
import hashlib
import json
from collections.abc import Sequence
from typing import Any

import uuid_utils
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from credkit.core.errors import (
    InvalidKeyTypeError,
    MalformedInputError,
    UnsupportedAlgorithmError,
)
from credkit.crypto.keys import (
    load_private_key,
    load_public_key,
    private_key_to_jwk,
    public_key_to_jwk,
    signing_algorithm_for,
)

_THUMBPRINT_MEMBERS = {
    "RSA": ("e", "kty", "n"),
    "EC": ("crv", "kty", "x", "y"),
}


def pem_to_jwk(pem: str, key_type: str = "public") -> dict[str, str]:
    """Convert a PEM key to a JWK.

    ``key_type='public'`` also accepts a private PEM and emits only its public
    half, matching how SPKI export behaves.
    """
    if key_type not in ("public", "private"):
        raise InvalidKeyTypeError(f"Invalid key type: {key_type!r}")
    if not isinstance(pem, str) or "-----BEGIN" not in pem:
        raise MalformedInputError("Input is not a PEM string")
    if key_type == "private":
        return private_key_to_jwk(load_private_key(pem))
    return public_key_to_jwk(load_public_key(pem))


def _load_certificate(pem: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem.encode())
    except (ValueError, AttributeError) as exc:
        raise MalformedInputError(f"Unparsable certificate PEM: {exc}") from exc


def pem_to_der(pem: str) -> bytes:
    """Decode a certificate PEM into DER bytes."""
    return _load_certificate(pem).public_bytes(serialization.Encoding.DER)


def der_to_pem(der: bytes) -> str:
    """Encode certificate DER bytes as PEM."""
    try:
        cert = x509.load_der_x509_certificate(der)
    except (ValueError, TypeError) as exc:
        raise MalformedInputError(f"Unparsable certificate DER: {exc}") from exc
    return cert.public_bytes(serialization.Encoding.PEM).decode()


def thumbprint_from_pem(pem: str) -> str:
    """SHA-256 hex digest of the lowercase hex text of a certificate's DER.

    This hashes the hex string, not the DER bytes. Existing thumbprints were
    produced this way, so it must not be "fixed"; use
    :func:`certificate_fingerprint` for the conventional digest.
    """
    return hashlib.sha256(pem_to_der(pem).hex().encode("ascii")).hexdigest()


def certificate_fingerprint(pem: str) -> str:
    """SHA-256 hex digest of a certificate's DER bytes."""
    return hashlib.sha256(pem_to_der(pem)).hexdigest()


def x5c_to_pem_array(x5c: Sequence[str]) -> list[str]:
    """Convert a JWK ``x5c`` list (base64 DER) into PEM certificates."""
    pems = []
    for entry in x5c:
        try:
            der = base64.b64decode(entry, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedInputError(f"Invalid x5c entry: {exc}") from exc
        pems.append(der_to_pem(der))
    return pems


def pem_array_to_x5c(pems: Sequence[str]) -> list[str]:
    """Convert PEM certificates into ``x5c`` base64 DER strings."""
    return [base64.b64encode(pem_to_der(pem)).decode() for pem in pems]


def jwk_thumbprint(jwk: dict[str, Any]) -> str:
    """RFC 7638 thumbprint: base64url SHA-256 of the canonical required members."""
    members = _THUMBPRINT_MEMBERS.get(jwk.get("kty", ""))
    if members is None:
        raise UnsupportedAlgorithmError(
            f"Thumbprint not supported for kty={jwk.get('kty')!r}"
        )
    try:
        canonical = {name: jwk[name] for name in members}
    except KeyError as exc:
        raise MalformedInputError(f"JWK is missing member {exc}") from exc
    raw = json.dumps(canonical, sort_keys=True, separators=(",", ":")).encode()
    digest = hashlib.sha256(raw).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def generate_jwks(
    public_key: Any,
    kid: str | None = None,
    alg: str | None = None,
    use: str = "sig",
    x5c: Sequence[str] | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Build a single-key JWK set from a public key in any representation."""
    key = load_public_key(public_key)
    entry: dict[str, Any] = public_key_to_jwk(key)
    entry["alg"] = alg or signing_algorithm_for(key)
    entry["use"] = use
    entry["kid"] = kid or str(uuid_utils.uuid7())
    if x5c:
        entry["x5c"] = pem_array_to_x5c(x5c)
    return {"keys": [entry]}
