"""Type definitions for key material, JWKs, and verified JOSE objects."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

KeyHalf = dict[str, str] | str | bytes


class KeyAlgorithm(StrEnum):
    """Supported asymmetric key algorithms."""

    RSA_2048 = "RSA-2048"
    EC_P256 = "EC-P256"


class KeyFormat(StrEnum):
    """Representation shared by both halves of a generated key pair."""

    JWK = "jwk"
    PEM = "pem"
    DER = "der"


class JWSSerialization(StrEnum):
    """JWS wire serializations."""

    COMPACT = "compact"
    FLATTENED = "flattened"


class KeyPair(BaseModel):
    """A public/private key pair in a single representation.

    JWK halves are dicts, PEM halves are SPKI/PKCS8 strings, and DER halves
    are raw bytes.
    """

    model_config = ConfigDict(frozen=True)

    public_key: KeyHalf
    private_key: KeyHalf
    format: KeyFormat


class VerifiedToken(BaseModel):
    """Claims and protected header of a JWT whose signature was checked."""

    payload: dict[str, Any]
    protected_header: dict[str, Any]


class VerifiedJWS(BaseModel):
    """Raw payload bytes and protected header of a verified JWS."""

    payload: bytes
    protected_header: dict[str, Any]
