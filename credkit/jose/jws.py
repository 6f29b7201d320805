"""JWS signing and verification in compact and flattened JSON serialization.

Verification keys come either from the caller (:func:`verify_jws_with_jwk`)
or from the protected header (:func:`verify_jws`): an embedded ``jwk`` wins,
otherwise the JWK set at ``jku`` is fetched and searched for ``kid``. Key
resolution fails closed.
"""

import json
import logging
from typing import Any

import jwt
from jwt import api_jws

from credkit.core.errors import (
    KeyResolutionError,
    MalformedInputError,
    SignatureInvalidError,
    UnsupportedAlgorithmError,
    UnsupportedSerializationError,
)
from credkit.core.settings import load_settings
from credkit.crypto.keys import (
    PublicKey,
    load_private_key,
    load_public_key,
    signing_algorithm_for,
    verification_algorithms_for,
)
from credkit.crypto.types import JWSSerialization, VerifiedJWS
from credkit.jose.jwks_fetcher import HttpKeySetFetcher, KeySetFetcher, select_key_by_kid

logger = logging.getLogger(__name__)

FLATTENED_MEMBERS = ("protected", "payload", "signature")

JWS = str | dict[str, str]


def _serialization(value: JWSSerialization | str | None) -> JWSSerialization:
    if value is None:
        return load_settings().jws_serialization
    try:
        return JWSSerialization(value)
    except ValueError:
        raise UnsupportedSerializationError(
            f"Invalid serialization: {value!r}"
        ) from None


def sign_jws(
    signing_key: Any,
    payload: Any,
    *,
    header: dict[str, Any] | None = None,
    algorithm: str | None = None,
    serialization: JWSSerialization | str | None = None,
) -> JWS:
    """Serialize ``payload`` to JSON and sign it.

    ``header`` becomes part of the protected header and may carry ``jwk``,
    ``nonce``, ``url`` and similar protocol fields. The algorithm defaults to
    the one bound to the key type. Compact output is a string, flattened
    output a ``{"protected", "payload", "signature"}`` dict.
    """
    form = _serialization(serialization)
    key = load_private_key(signing_key)
    body = json.dumps(payload, separators=(",", ":")).encode()
    headers = {"typ": None, **(header or {})}
    try:
        token = api_jws.encode(
            body,
            key,
            algorithm=algorithm or signing_algorithm_for(key),
            headers=headers,
        )
    except (jwt.InvalidKeyError, TypeError, NotImplementedError) as exc:
        raise UnsupportedAlgorithmError(str(exc)) from exc
    if form is JWSSerialization.COMPACT:
        return token
    return dict(zip(FLATTENED_MEMBERS, token.split("."), strict=True))


def _to_compact(jws: JWS | bytes, form: JWSSerialization) -> str:
    if form is JWSSerialization.COMPACT:
        if isinstance(jws, bytes):
            jws = jws.decode()
        if not isinstance(jws, str):
            raise MalformedInputError("Compact JWS must be a string")
        return jws.strip()
    if isinstance(jws, str | bytes):
        try:
            jws = json.loads(jws)
        except ValueError as exc:
            raise MalformedInputError(f"Flattened JWS is not JSON: {exc}") from exc
    if not isinstance(jws, dict):
        raise MalformedInputError("Flattened JWS must be a JSON object")
    try:
        parts = [jws[name] for name in FLATTENED_MEMBERS]
    except KeyError as exc:
        raise MalformedInputError(f"Flattened JWS is missing {exc}") from exc
    if not all(isinstance(part, str) for part in parts):
        raise MalformedInputError("Flattened JWS members must be strings")
    return ".".join(parts)


def decode_protected_header(jws: JWS | bytes) -> dict[str, Any]:
    """Read the protected header WITHOUT verifying the signature.

    For inspection only; never base a trust decision on the result.
    """
    form = JWSSerialization.COMPACT
    if isinstance(jws, dict) or (
        isinstance(jws, str | bytes) and jws.lstrip()[:1] in ("{", b"{")
    ):
        form = JWSSerialization.FLATTENED
    try:
        return api_jws.get_unverified_header(_to_compact(jws, form))
    except jwt.InvalidTokenError as exc:
        raise MalformedInputError(f"Malformed JWS header: {exc}") from exc


def decode_jws_payload(payload: bytes) -> Any:
    """Decode verified payload bytes back into the JSON value that was signed."""
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedInputError(f"JWS payload is not JSON: {exc}") from exc


def _verify_compact(compact: str, key: PublicKey) -> VerifiedJWS:
    try:
        decoded = api_jws.decode_complete(
            compact,
            key,
            algorithms=verification_algorithms_for(key),
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
        logger.warning("JWS signature rejected: %s", exc)
        raise SignatureInvalidError(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedInputError(f"Malformed JWS: {exc}") from exc
    return VerifiedJWS(payload=decoded["payload"], protected_header=decoded["header"])


def verify_jws_with_jwk(
    jws: JWS | bytes,
    jwk: Any,
    serialization: JWSSerialization | str | None = None,
) -> VerifiedJWS:
    """Verify against a caller-pinned key, ignoring any key in the header."""
    compact = _to_compact(jws, _serialization(serialization))
    return _verify_compact(compact, load_public_key(jwk))


def resolve_verification_key(
    header: dict[str, Any], fetcher: KeySetFetcher | None = None
) -> PublicKey:
    """Find the key named by a protected header: embedded ``jwk``, then ``jku``+``kid``."""
    jwk = header.get("jwk")
    jku = header.get("jku")
    if not jwk and not jku:
        raise KeyResolutionError("Protected header carries neither jwk nor jku")
    if not jwk:
        key_set = (fetcher or HttpKeySetFetcher()).fetch(jku)
        jwk = select_key_by_kid(key_set, header.get("kid"))
        if jwk is None:
            raise KeyResolutionError(
                f"No JWK with kid={header.get('kid')!r} at {jku}"
            )
    if not isinstance(jwk, dict):
        raise KeyResolutionError("Resolved JWK is not a JSON object")
    try:
        return load_public_key(jwk)
    except (MalformedInputError, UnsupportedAlgorithmError) as exc:
        raise KeyResolutionError(f"Resolved JWK is unusable: {exc}") from exc


def verify_jws(
    jws: JWS | bytes,
    serialization: JWSSerialization | str | None = None,
    fetcher: KeySetFetcher | None = None,
) -> VerifiedJWS:
    """Verify a JWS with the key its own protected header points to.

    A ``jku`` fetch failure surfaces as :class:`KeySetFetchError`, distinct
    from signature failures, and is not retried.
    """
    compact = _to_compact(jws, _serialization(serialization))
    header = decode_protected_header(compact)
    return _verify_compact(compact, resolve_verification_key(header, fetcher))
