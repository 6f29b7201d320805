"""RSA and EC P-256 key generation, loading, and JWK conversion."""

import base64
import secrets
from collections.abc import Callable
from typing import Any

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from credkit.core.errors import MalformedInputError, UnsupportedAlgorithmError
from credkit.crypto.types import KeyAlgorithm, KeyFormat, KeyPair

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
P256_COORDINATE_BYTES = 32
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
RSA_SIGNING_ALGORITHMS = ("RS256", "RS384", "RS512", "PS256", "PS384", "PS512")
EC_SIGNING_ALGORITHMS = ("ES256",)

RandomBytes = Callable[[int], bytes]
PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey
PublicKey = rsa.RSAPublicKey | ec.EllipticCurvePublicKey

_ALGORITHM_ALIASES = {
    "rsa": KeyAlgorithm.RSA_2048,
    "rsa-2048": KeyAlgorithm.RSA_2048,
    "ec": KeyAlgorithm.EC_P256,
    "ec-p256": KeyAlgorithm.EC_P256,
    "p-256": KeyAlgorithm.EC_P256,
}


def parse_algorithm(algorithm: KeyAlgorithm | str) -> KeyAlgorithm:
    """Resolve an algorithm name such as 'rsa' or 'EC-P256'."""
    if isinstance(algorithm, KeyAlgorithm):
        return algorithm
    try:
        return _ALGORITHM_ALIASES[str(algorithm).lower()]
    except KeyError:
        raise UnsupportedAlgorithmError(
            f"Unsupported key algorithm: {algorithm!r}"
        ) from None


def generate_key_pair(
    algorithm: KeyAlgorithm | str = KeyAlgorithm.RSA_2048,
    output_format: KeyFormat | str = KeyFormat.JWK,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> KeyPair:
    """Generate a key pair with both halves in ``output_format``.

    EC P-256 private scalars are drawn from ``random_bytes``. RSA generation
    runs inside the OpenSSL backend, which uses its own CSPRNG.
    """
    try:
        fmt = KeyFormat(output_format)
    except ValueError:
        raise UnsupportedAlgorithmError(
            f"Unsupported key output format: {output_format!r}"
        ) from None
    private_key = _generate_private_key(parse_algorithm(algorithm), random_bytes)
    return KeyPair(
        public_key=export_public_key(private_key.public_key(), fmt),
        private_key=export_private_key(private_key, fmt),
        format=fmt,
    )


def _generate_private_key(
    algorithm: KeyAlgorithm, random_bytes: RandomBytes
) -> PrivateKey:
    if algorithm is KeyAlgorithm.RSA_2048:
        return rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=RSA_KEY_SIZE,
        )
    while True:
        candidate = int.from_bytes(random_bytes(P256_COORDINATE_BYTES), "big")
        if 0 < candidate < P256_ORDER:
            return ec.derive_private_key(candidate, ec.SECP256R1())


def export_private_key(key: PrivateKey, fmt: KeyFormat) -> dict[str, str] | str | bytes:
    """Serialize a private key as a JWK dict, PKCS8 PEM, or PKCS8 DER."""
    if fmt is KeyFormat.JWK:
        return private_key_to_jwk(key)
    encoding = (
        serialization.Encoding.PEM
        if fmt is KeyFormat.PEM
        else serialization.Encoding.DER
    )
    raw = key.private_bytes(
        encoding=encoding,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return raw.decode() if fmt is KeyFormat.PEM else raw


def export_public_key(key: PublicKey, fmt: KeyFormat) -> dict[str, str] | str | bytes:
    """Serialize a public key as a JWK dict, SPKI PEM, or SPKI DER."""
    if fmt is KeyFormat.JWK:
        return public_key_to_jwk(key)
    encoding = (
        serialization.Encoding.PEM
        if fmt is KeyFormat.PEM
        else serialization.Encoding.DER
    )
    raw = key.public_bytes(
        encoding=encoding,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return raw.decode() if fmt is KeyFormat.PEM else raw


def _int_to_base64url(value: int, length: int | None = None) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = length or max((value.bit_length() + 7) // 8, 1)
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def public_key_to_jwk(key: PublicKey) -> dict[str, str]:
    """Convert a public key to its JWK members."""
    if isinstance(key, rsa.RSAPublicKey):
        numbers = key.public_numbers()
        return {
            "kty": "RSA",
            "n": _int_to_base64url(numbers.n),
            "e": _int_to_base64url(numbers.e),
        }
    _require_supported(key)
    point = key.public_numbers()
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": _int_to_base64url(point.x, P256_COORDINATE_BYTES),
        "y": _int_to_base64url(point.y, P256_COORDINATE_BYTES),
    }


def private_key_to_jwk(key: PrivateKey) -> dict[str, str]:
    """Convert a private key to its JWK members, public fields included."""
    jwk = public_key_to_jwk(key.public_key())
    if isinstance(key, rsa.RSAPrivateKey):
        numbers = key.private_numbers()
        jwk.update(
            d=_int_to_base64url(numbers.d),
            p=_int_to_base64url(numbers.p),
            q=_int_to_base64url(numbers.q),
            dp=_int_to_base64url(numbers.dmp1),
            dq=_int_to_base64url(numbers.dmq1),
            qi=_int_to_base64url(numbers.iqmp),
        )
    else:
        jwk["d"] = _int_to_base64url(
            key.private_numbers().private_value, P256_COORDINATE_BYTES
        )
    return jwk


def _require_supported(key: Any) -> None:
    if isinstance(key, rsa.RSAPrivateKey | rsa.RSAPublicKey):
        if key.key_size < RSA_KEY_SIZE:
            raise UnsupportedAlgorithmError(
                f"RSA keys must be at least {RSA_KEY_SIZE} bits"
            )
        return
    if not isinstance(key, ec.EllipticCurvePrivateKey | ec.EllipticCurvePublicKey):
        raise UnsupportedAlgorithmError(
            f"Unsupported key type: {type(key).__name__}"
        )
    if not isinstance(key.curve, ec.SECP256R1):
        raise UnsupportedAlgorithmError(f"Unsupported curve: {key.curve.name}")


def _load_jwk(jwk: dict[str, Any]) -> Any:
    try:
        return jwt.PyJWK(jwk).key
    except (jwt.PyJWKError, jwt.InvalidKeyError, KeyError, ValueError) as exc:
        raise MalformedInputError(f"Invalid JWK: {exc}") from exc


def _load_serialized(key: str | bytes, private: bool) -> Any:
    data = key.encode() if isinstance(key, str) else key
    is_pem = data.lstrip().startswith(b"-----BEGIN")
    try:
        if is_pem:
            if b"PRIVATE KEY-----" in data:
                return serialization.load_pem_private_key(data, password=None)
            if private:
                raise MalformedInputError("PEM block does not hold a private key")
            return serialization.load_pem_public_key(data)
        if isinstance(key, str):
            raise MalformedInputError("Key string is not PEM encoded")
        try:
            return serialization.load_der_private_key(data, password=None)
        except ValueError:
            if private:
                raise
            return serialization.load_der_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise MalformedInputError(f"Unparsable key material: {exc}") from exc


def load_private_key(key: Any) -> PrivateKey:
    """Load a private key from a JWK dict, PEM string, DER bytes, or key object."""
    if isinstance(key, dict):
        loaded = _load_jwk(key)
    elif isinstance(key, str | bytes):
        loaded = _load_serialized(key, private=True)
    else:
        loaded = key
    if not isinstance(loaded, rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey):
        if isinstance(loaded, rsa.RSAPublicKey | ec.EllipticCurvePublicKey):
            raise MalformedInputError("Expected a private key, got a public key")
        raise UnsupportedAlgorithmError(
            f"Unsupported key type: {type(loaded).__name__}"
        )
    _require_supported(loaded)
    return loaded


def load_public_key(key: Any) -> PublicKey:
    """Load a public key; private inputs yield their public half."""
    if isinstance(key, dict):
        loaded = _load_jwk(key)
    elif isinstance(key, str | bytes):
        loaded = _load_serialized(key, private=False)
    else:
        loaded = key
    if isinstance(loaded, rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey):
        loaded = loaded.public_key()
    _require_supported(loaded)
    return loaded


def signing_algorithm_for(key: PrivateKey | PublicKey) -> str:
    """JWA algorithm bound to a key type: RS256 for RSA, ES256 for P-256."""
    if isinstance(key, rsa.RSAPrivateKey | rsa.RSAPublicKey):
        return "RS256"
    return "ES256"


def verification_algorithms_for(key: PrivateKey | PublicKey) -> list[str]:
    """Every JWA algorithm a key of this type may have signed with."""
    if isinstance(key, rsa.RSAPrivateKey | rsa.RSAPublicKey):
        return list(RSA_SIGNING_ALGORITHMS)
    return list(EC_SIGNING_ALGORITHMS)


def same_public_key(first: PublicKey, second: PublicKey) -> bool:
    """Compare two public keys by their SPKI encoding."""
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    return first.public_bytes(der, spki) == second.public_bytes(der, spki)
