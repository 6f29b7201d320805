"""JWT issuance and verification with RS256/ES256 bound to the key type."""

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.types import Options

from credkit.core.errors import (
    ClaimMismatchError,
    KeyResolutionError,
    MalformedInputError,
    SignatureInvalidError,
    TokenExpiredError,
)
from credkit.core.settings import load_settings
from credkit.crypto.keys import (
    load_private_key,
    load_public_key,
    signing_algorithm_for,
)
from credkit.crypto.types import VerifiedToken
from credkit.jose.jwks_fetcher import select_key_by_kid

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "iss", "aud", "exp")

_DURATION = re.compile(
    r"^\s*([+-]?\d+(?:\.\d+)?)\s*"
    r"(s|secs?|seconds?|m|mins?|minutes?|h|hrs?|hours?|d|days?|w|weeks?|y|yrs?|years?)\s*$",
    re.IGNORECASE,
)
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31557600,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as '1h', '30 minutes', or '2d'."""
    match = _DURATION.match(value)
    if match is None:
        raise MalformedInputError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=float(amount) * _UNIT_SECONDS[unit[0].lower()])


def resolve_expiration(
    exp: str | int | float | datetime | timedelta, now: datetime
) -> datetime:
    """Turn a duration string, epoch seconds, or datetime into an absolute time."""
    if isinstance(exp, datetime):
        return exp if exp.tzinfo else exp.replace(tzinfo=UTC)
    if isinstance(exp, timedelta):
        return now + exp
    if isinstance(exp, str):
        return now + parse_duration(exp)
    if isinstance(exp, int | float) and not isinstance(exp, bool):
        return datetime.fromtimestamp(exp, UTC)
    raise MalformedInputError(f"Unsupported exp value: {exp!r}")


def generate_jwt(signing_key: Any, claims: Mapping[str, Any]) -> str:
    """Sign ``claims`` as a compact JWT.

    ``sub``, ``iss``, ``aud`` and ``exp`` are required; every other entry is
    carried as a custom claim. ``iat`` is always set to the current time.
    """
    missing = [name for name in REQUIRED_CLAIMS if name not in claims]
    if missing:
        raise MalformedInputError(f"Missing required claims: {', '.join(missing)}")

    key = load_private_key(signing_key)
    now = datetime.now(UTC)
    payload = {name: value for name, value in claims.items() if name not in REQUIRED_CLAIMS}
    payload.update(
        iat=now,
        iss=claims["iss"],
        sub=claims["sub"],
        aud=claims["aud"],
        exp=resolve_expiration(claims["exp"], now),
    )
    headers = None
    if isinstance(signing_key, dict) and signing_key.get("kid"):
        headers = {"kid": signing_key["kid"]}
    return jwt.encode(
        payload,
        key,
        algorithm=signing_algorithm_for(key),
        headers=headers,
    )


def _select_verification_key(verification_key: Any, token: str) -> Any:
    """Pick the key out of a JWK set by the token's ``kid``."""
    if not (isinstance(verification_key, dict) and "keys" in verification_key):
        return verification_key
    kid = decode_jwt_header(token).get("kid")
    keys = verification_key["keys"]
    if kid is None and len(keys) == 1:
        return keys[0]
    selected = select_key_by_kid(verification_key, kid)
    if selected is None:
        raise KeyResolutionError(f"No JWK with kid={kid!r} in key set")
    return selected


def verify_jwt(
    verification_key: Any,
    token: str,
    *,
    issuer: str | None = None,
    audience: str | None = None,
    leeway: int | None = None,
) -> VerifiedToken:
    """Verify signature, expiry, and (when given) issuer and audience."""
    key = load_public_key(_select_verification_key(verification_key, token))
    opts: Options = {"require": ["exp"]}
    if audience is None:
        opts["verify_aud"] = False
    try:
        decoded = jwt.decode_complete(
            token,
            key,
            algorithms=[signing_algorithm_for(key)],
            issuer=issuer,
            audience=audience,
            leeway=load_settings().jwt_leeway if leeway is None else leeway,
            options=opts,
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError(str(exc)) from exc
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
        logger.warning("JWT signature rejected: %s", exc)
        raise SignatureInvalidError(str(exc)) from exc
    except (
        jwt.InvalidAudienceError,
        jwt.InvalidIssuerError,
        jwt.MissingRequiredClaimError,
        jwt.ImmatureSignatureError,
    ) as exc:
        raise ClaimMismatchError(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedInputError(f"Malformed JWT: {exc}") from exc
    return VerifiedToken(payload=decoded["payload"], protected_header=decoded["header"])


def decode_jwt(token: str) -> dict[str, Any]:
    """Decode JWT claims WITHOUT verifying the signature.

    For inspection only. The result must never be used for a trust decision;
    call :func:`verify_jwt` for that.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise MalformedInputError(f"Malformed JWT: {exc}") from exc


def decode_jwt_header(token: str) -> dict[str, Any]:
    """Read a JWT header without verification (inspection only)."""
    try:
        return jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as exc:
        raise MalformedInputError(f"Malformed JWT: {exc}") from exc
