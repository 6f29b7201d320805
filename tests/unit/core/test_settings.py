"""Tests for environment-driven settings."""

import pytest

from credkit.core.settings import PkiSettings, load_settings
from credkit.crypto.types import JWSSerialization
from credkit.pki.types import ExtensionPolicy


class TestPkiSettings:
    """Tests for PkiSettings."""

    def test_defaults(self) -> None:
        settings = PkiSettings(jwks_fetch_timeout=5.0)
        assert settings.jwks_fetch_timeout == 5.0
        assert settings.jws_serialization is JWSSerialization.COMPACT
        assert settings.certificate_extension_policy is ExtensionPolicy.COPY_REQUEST
        assert settings.jwt_leeway == 0

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CREDKIT_JWS_SERIALIZATION", "flattened")
        monkeypatch.setenv("CREDKIT_JWT_LEEWAY", "30")
        settings = load_settings()
        assert settings.jws_serialization is JWSSerialization.FLATTENED
        assert settings.jwt_leeway == 30
        assert settings.jwks_fetch_timeout == 2.0
