"""Tests for PEM/DER/JWK conversion and JWK sets."""

import hashlib

import pytest

from credkit.core.errors import InvalidKeyTypeError, MalformedInputError
from credkit.crypto.formats import (
    certificate_fingerprint,
    der_to_pem,
    generate_jwks,
    jwk_thumbprint,
    pem_array_to_x5c,
    pem_to_der,
    pem_to_jwk,
    thumbprint_from_pem,
    x5c_to_pem_array,
)
from credkit.crypto.keys import generate_key_pair


def _normalize(pem: str) -> str:
    return "".join(pem.split())


class TestPemToJWK:
    """Tests for pem_to_jwk."""

    def test_public_rsa(self) -> None:
        kp = generate_key_pair("rsa", "pem")
        jwk = pem_to_jwk(kp.public_key)
        assert set(jwk) == {"kty", "n", "e"}
        assert jwk["e"] == "AQAB"

    def test_private_ec(self) -> None:
        kp = generate_key_pair("ec", "pem")
        jwk = pem_to_jwk(kp.private_key, "private")
        assert set(jwk) == {"kty", "crv", "x", "y", "d"}

    def test_matches_jwk_generation(self) -> None:
        kp = generate_key_pair("ec", "pem")
        assert pem_to_jwk(kp.private_key, "public") == pem_to_jwk(kp.public_key)

    def test_invalid_key_type(self) -> None:
        kp = generate_key_pair("ec", "pem")
        with pytest.raises(InvalidKeyTypeError):
            pem_to_jwk(kp.public_key, "secret")

    def test_malformed_pem(self) -> None:
        with pytest.raises(MalformedInputError):
            pem_to_jwk("not a pem")


class TestCertificateEncoding:
    """Tests for certificate PEM/DER conversion and thumbprints."""

    def test_der_round_trip(self, hierarchy) -> None:
        der = pem_to_der(hierarchy.leaf_pem)
        assert der[0] == 0x30
        assert _normalize(der_to_pem(der)) == _normalize(hierarchy.leaf_pem)

    def test_malformed_der(self) -> None:
        with pytest.raises(MalformedInputError):
            der_to_pem(b"\x30\x03\x02\x01")

    def test_malformed_certificate_pem(self) -> None:
        with pytest.raises(MalformedInputError):
            pem_to_der("-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n")

    def test_thumbprint_hashes_hex_text(self, hierarchy) -> None:
        der = pem_to_der(hierarchy.root_pem)
        expected = hashlib.sha256(der.hex().encode()).hexdigest()
        assert thumbprint_from_pem(hierarchy.root_pem) == expected
        assert len(expected) == 64

    def test_fingerprint_hashes_der(self, hierarchy) -> None:
        der = pem_to_der(hierarchy.root_pem)
        assert certificate_fingerprint(hierarchy.root_pem) == hashlib.sha256(der).hexdigest()
        assert certificate_fingerprint(hierarchy.root_pem) != thumbprint_from_pem(
            hierarchy.root_pem
        )

    def test_x5c_round_trip(self, hierarchy) -> None:
        pems = [hierarchy.leaf_pem, hierarchy.root_pem]
        restored = x5c_to_pem_array(pem_array_to_x5c(pems))
        assert [_normalize(p) for p in restored] == [_normalize(p) for p in pems]

    def test_invalid_x5c_entry(self) -> None:
        with pytest.raises(MalformedInputError):
            x5c_to_pem_array(["***"])


class TestGenerateJWKS:
    """Tests for JWK set assembly."""

    def test_rsa_entry(self, rsa_key_pair) -> None:
        jwks = generate_jwks(rsa_key_pair.public_key)
        assert set(jwks) == {"keys"}
        assert len(jwks["keys"]) == 1
        assert set(jwks["keys"][0]) == {"kty", "e", "n", "alg", "use", "kid"}
        assert jwks["keys"][0]["alg"] == "RS256"

    def test_ec_entry_with_kid(self, ec_key_pair) -> None:
        entry = generate_jwks(ec_key_pair.public_key, kid="k1")["keys"][0]
        assert entry["kid"] == "k1"
        assert entry["alg"] == "ES256"
        assert "d" not in entry

    def test_private_input_is_not_leaked(self, ec_key_pair) -> None:
        entry = generate_jwks(ec_key_pair.private_key)["keys"][0]
        assert "d" not in entry

    def test_x5c_attached(self, hierarchy) -> None:
        entry = generate_jwks(
            hierarchy.leaf_key.public_key,
            x5c=[hierarchy.leaf_pem, hierarchy.intermediate_pem],
        )["keys"][0]
        assert len(entry["x5c"]) == 2


class TestJWKThumbprint:
    """Tests for RFC 7638 thumbprints."""

    def test_rfc7638_example(self) -> None:
        jwk = {
            "kty": "RSA",
            "n": (
                "0vx7agoebGcQSuuPiLJXZptN9nndrQmbXEps2aiAFbWhM78LhWx4cbbfAAtVT86zwu1RK7aPFFxuhDR1L6tSoc_BJECP"
                "ebWKRXjBZCiFV4n3oknjhMstn64tZ_2W-5JsGY4Hc5n9yBXArwl93lqt7_RN5w6Cf0h4QyQ5v-65YGjQR0_FDW2QvzqY"
                "368QQMicAtaSqzs8KJZgnYb9c7d0zgdAZHzu6qMQvRL5hajrn1n91CbOpbISD08qNLyrdkt-bFTWhAI4vMQFh6WeZu0f"
                "M4lFd2NcRwr3XPksINHaQ-G_xBniIqbw0Ls1jF44-csFCur-kEgU8awapJzKnqDKgw"
            ),
            "e": "AQAB",
            "alg": "RS256",
            "kid": "2011-04-29",
        }
        assert jwk_thumbprint(jwk) == "NzbLsXh8uDCcd-6MNwXF4W_7noWXFZAfHkxZsRGC9Xs"

    def test_ignores_optional_members(self, ec_key_pair) -> None:
        public = dict(ec_key_pair.public_key)
        assert jwk_thumbprint(public) == jwk_thumbprint({**public, "kid": "x", "use": "sig"})
