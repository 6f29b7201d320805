"""Human-friendly random identifiers."""

import secrets

from credkit.core.errors import MalformedInputError

# Ambiguous glyphs (0, o, i, l) are left out.
ALPHABETS = {
    "alphanumeric": "abcdefghjkmnpqrstuvwxyz123456789",
    "numeric": "123456789",
}


def create_random(length: int, kind: str = "alphanumeric") -> str:
    """Random string of ``length`` characters drawn from a CSPRNG."""
    try:
        alphabet = ALPHABETS[kind]
    except KeyError:
        raise MalformedInputError(f"Invalid random string type: {kind!r}") from None
    return "".join(secrets.choice(alphabet) for _ in range(length))
