"""Error taxonomy for key, token, CSR, and certificate operations."""


class CredkitError(Exception):
    """Base exception for all credkit failures."""


class UnsupportedAlgorithmError(CredkitError):
    """Requested key algorithm is not supported."""


class MalformedInputError(CredkitError):
    """PEM, DER, JWK, or token input could not be parsed."""


class InvalidKeyTypeError(CredkitError):
    """Key type selector is not 'public' or 'private'."""


class SignatureInvalidError(CredkitError):
    """A CSR, JWS, or JWT signature did not verify."""


class TokenExpiredError(CredkitError):
    """JWT exp claim is in the past."""


class ClaimMismatchError(CredkitError):
    """JWT issuer or audience does not match the expected value."""


class KeyResolutionError(CredkitError):
    """No usable verification key could be found for a JWS."""


class KeySetFetchError(CredkitError):
    """Transport failure while fetching a remote JWK set."""


class FieldNotFoundError(CredkitError):
    """Requested subject attribute is absent."""


class IndexOutOfRangeError(CredkitError):
    """Certificate chain is shorter than the requested position."""


class UnsupportedSerializationError(CredkitError):
    """JWS serialization is neither compact nor flattened."""


class ProvisioningError(CredkitError):
    """Remote certificate authority rejected or failed a request."""


class ChainBrokenError(CredkitError):
    """A link in a certificate chain failed validation."""

    def __init__(self, position: int, reason: str) -> None:
        super().__init__(f"chain broken at position {position}: {reason}")
        self.position = position
        self.reason = reason
