"""Type definitions for CSR subjects, extension requests, and issuance."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from credkit.crypto.types import KeyHalf

GENERAL_NAME_EMAIL = 1
GENERAL_NAME_DNS = 2
GENERAL_NAME_URI = 6
GENERAL_NAME_IP = 7


class ExtensionPolicy(StrEnum):
    """How issued certificates get their extensions."""

    COPY_REQUEST = "copy_request"
    CA_PROFILE = "ca_profile"


class _Descriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubjectField(_Descriptor):
    """One RDN attribute, named by long name (commonName) or short name (CN)."""

    name: str | None = None
    short_name: str | None = Field(default=None, alias="shortName")
    value: str

    @model_validator(mode="after")
    def _require_name(self) -> "SubjectField":
        if not self.name and not self.short_name:
            raise ValueError("subject field needs name or shortName")
        return self


class BasicConstraintsSpec(_Descriptor):
    """basicConstraints request."""

    name: Literal["basicConstraints"] = "basicConstraints"
    ca: bool = Field(default=False, alias="cA")
    path_len: int | None = Field(default=None, alias="pathLen", ge=0)
    critical: bool = False


class KeyUsageSpec(_Descriptor):
    """keyUsage request; each flag maps to one KeyUsage bit."""

    name: Literal["keyUsage"] = "keyUsage"
    digital_signature: bool = Field(default=False, alias="digitalSignature")
    non_repudiation: bool = Field(default=False, alias="nonRepudiation")
    key_encipherment: bool = Field(default=False, alias="keyEncipherment")
    data_encipherment: bool = Field(default=False, alias="dataEncipherment")
    key_agreement: bool = Field(default=False, alias="keyAgreement")
    key_cert_sign: bool = Field(default=False, alias="keyCertSign")
    crl_sign: bool = Field(default=False, alias="cRLSign")
    encipher_only: bool = Field(default=False, alias="encipherOnly")
    decipher_only: bool = Field(default=False, alias="decipherOnly")
    critical: bool = False


class ExtKeyUsageSpec(_Descriptor):
    """extKeyUsage request."""

    name: Literal["extKeyUsage"] = "extKeyUsage"
    server_auth: bool = Field(default=False, alias="serverAuth")
    client_auth: bool = Field(default=False, alias="clientAuth")
    code_signing: bool = Field(default=False, alias="codeSigning")
    email_protection: bool = Field(default=False, alias="emailProtection")
    time_stamping: bool = Field(default=False, alias="timeStamping")
    ocsp_signing: bool = Field(default=False, alias="OCSPSigning")
    critical: bool = False


class AltName(_Descriptor):
    """GeneralName entry: 1 rfc822, 2 DNS, 6 URI, 7 IP."""

    type: Literal[1, 2, 6, 7]
    value: str


class SubjectAltNameSpec(_Descriptor):
    """subjectAltName request."""

    name: Literal["subjectAltName"] = "subjectAltName"
    alt_names: list[AltName] = Field(alias="altNames", min_length=1)
    critical: bool = False


ExtensionSpec = Annotated[
    BasicConstraintsSpec | KeyUsageSpec | ExtKeyUsageSpec | SubjectAltNameSpec,
    Field(discriminator="name"),
]


class ExtensionAttribute(_Descriptor):
    """PKCS#9 extensionRequest attribute carrying extension descriptors."""

    name: Literal["extensionRequest"] = "extensionRequest"
    extensions: list[ExtensionSpec]


class Validity(_Descriptor):
    """Certificate validity window; naive datetimes are taken as UTC."""

    not_before: datetime = Field(alias="notBefore")
    not_after: datetime = Field(alias="notAfter")

    @field_validator("not_before", "not_after")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    @model_validator(mode="after")
    def _ordered(self) -> "Validity":
        if self.not_after <= self.not_before:
            raise ValueError("notAfter must be later than notBefore")
        return self


class IssuerCredentials(_Descriptor):
    """Issuing authority: its certificate and matching private key."""

    certificate_pem: str
    private_key: KeyHalf
