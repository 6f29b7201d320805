"""Library settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from credkit.crypto.types import JWSSerialization
from credkit.pki.types import ExtensionPolicy

JWKS_FETCH_TIMEOUT_DEFAULT = 5.0
PROVISIONING_TIMEOUT_DEFAULT = 10.0


class PkiSettings(BaseSettings):
    """Defaults for JOSE verification and certificate issuance."""

    model_config = SettingsConfigDict(env_prefix="CREDKIT_")

    jwks_fetch_timeout: float = JWKS_FETCH_TIMEOUT_DEFAULT
    provisioning_timeout: float = PROVISIONING_TIMEOUT_DEFAULT
    jws_serialization: JWSSerialization = JWSSerialization.COMPACT
    certificate_extension_policy: ExtensionPolicy = ExtensionPolicy.COPY_REQUEST
    jwt_leeway: int = 0


def load_settings() -> PkiSettings:
    """Read settings from the current environment."""
    return PkiSettings()
