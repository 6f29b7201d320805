"""PEM certificate chains: splitting, indexing, prepending, and validation.

A chain is ordered leaf first; each following entry is the issuer of the one
before it and the last entry is the trust anchor.
"""

import base64
import binascii
import logging
import re
import textwrap
from collections.abc import Sequence
from datetime import UTC, datetime

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from credkit.core.errors import (
    ChainBrokenError,
    IndexOutOfRangeError,
    MalformedInputError,
)

logger = logging.getLogger(__name__)

PEM_LINE_LENGTH = 64

_PEM_BLOCK = re.compile(
    r"-----BEGIN ([A-Z0-9 ]+)-----\s*(.*?)\s*-----END \1-----",
    re.DOTALL,
)


def _encode_block(label: str, body: str) -> str:
    try:
        der = base64.b64decode("".join(body.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedInputError(f"Invalid base64 in {label} block") from exc
    lines = textwrap.wrap(base64.b64encode(der).decode(), PEM_LINE_LENGTH)
    return f"-----BEGIN {label}-----\n" + "\n".join(lines) + f"\n-----END {label}-----\n"


def get_pem_chain_as_array(chain: str) -> list[str]:
    """Split concatenated PEM into blocks, keeping order.

    Each block is re-encoded with 64-column lines and a single trailing
    newline.
    """
    return [_encode_block(label, body) for label, body in _PEM_BLOCK.findall(chain or "")]


def get_cert_in_pem_chain(chain: str, position: int = 0) -> str:
    """Return the PEM block at ``position``."""
    blocks = get_pem_chain_as_array(chain)
    if not 0 <= position < len(blocks):
        raise IndexOutOfRangeError(
            f"Chain has {len(blocks)} certificates, no position {position}"
        )
    return blocks[position]


def prepend_cert_to_chain(cert: str, chain: str | None) -> str:
    """New chain with ``cert`` at index 0 followed by the existing entries."""
    return "".join(get_pem_chain_as_array(cert) + get_pem_chain_as_array(chain or ""))


def _load(pem: str, position: int) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem.encode())
    except ValueError as exc:
        raise MalformedInputError(
            f"Unparsable certificate at position {position}: {exc}"
        ) from exc


def _check_validity(cert: x509.Certificate, position: int, at: datetime) -> None:
    if at < cert.not_valid_before_utc:
        raise ChainBrokenError(position, "certificate is not yet valid")
    if at > cert.not_valid_after_utc:
        raise ChainBrokenError(position, "certificate has expired")


def _check_signed_by(
    cert: x509.Certificate, issuer: x509.Certificate, position: int
) -> None:
    try:
        cert.verify_directly_issued_by(issuer)
    except InvalidSignature:
        raise ChainBrokenError(position, "signature does not verify") from None
    except (ValueError, TypeError) as exc:
        raise ChainBrokenError(position, str(exc)) from exc


def _check_may_sign(issuer: x509.Certificate, position: int, ca_below: int) -> None:
    try:
        constraints = issuer.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        raise ChainBrokenError(position, "issuer lacks basicConstraints") from None
    if not constraints.ca:
        raise ChainBrokenError(position, "issuer is not a CA")
    if constraints.path_length is not None and ca_below > constraints.path_length:
        raise ChainBrokenError(
            position,
            f"path length {ca_below} exceeds constraint {constraints.path_length}",
        )
    try:
        usage = issuer.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return
    if not usage.key_cert_sign:
        raise ChainBrokenError(position, "issuer key usage forbids keyCertSign")


def validate_x5c_chain(chain: Sequence[str] | str, at: datetime | None = None) -> bool:
    """Validate a leaf-first chain against its last entry as trust anchor.

    Checks every certificate's validity window, each signature link, the CA
    basic constraint (and path length) of every issuer, and the anchor's
    self-signature. Returns True; a failing link raises
    :class:`ChainBrokenError` naming its position.
    """
    pems = get_pem_chain_as_array(chain) if isinstance(chain, str) else list(chain)
    if not pems:
        raise ChainBrokenError(0, "chain is empty")
    certs = [_load(pem, position) for position, pem in enumerate(pems)]
    now = at or datetime.now(UTC)
    anchor = len(certs) - 1
    try:
        for position, cert in enumerate(certs[:-1]):
            _check_validity(cert, position, now)
            _check_may_sign(certs[position + 1], position + 1, ca_below=position)
            _check_signed_by(cert, certs[position + 1], position)
        _check_validity(certs[anchor], anchor, now)
        _check_signed_by(certs[anchor], certs[anchor], anchor)
    except ChainBrokenError as exc:
        logger.warning("Certificate chain rejected: %s", exc)
        raise
    logger.debug("Validated certificate chain of length %d", len(certs))
    return True
