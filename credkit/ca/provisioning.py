"""Provisioning against a hosted certificate authority over HTTP."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from credkit.core.errors import ProvisioningError
from credkit.core.settings import load_settings
from credkit.jose.jwt_tokens import generate_jwt

logger = logging.getLogger(__name__)


def provision_to_hosted_ca(
    url: str,
    private_key: Any,
    claims: Mapping[str, Any],
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """POST to ``url`` authenticated by a bearer JWT signed with ``private_key``.

    ``claims`` follow :func:`generate_jwt`. Returns the decoded JSON body, or
    an empty dict when the authority answers without one.
    """
    token = generate_jwt(private_key, claims)
    headers = {"Authorization": f"Bearer {token}"}
    try:
        if client is not None:
            resp = client.post(url, headers=headers)
        else:
            with httpx.Client(timeout=load_settings().provisioning_timeout) as own:
                resp = own.post(url, headers=headers)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Provisioning request to %s failed: %s", url, exc)
        raise ProvisioningError(f"Provisioning request to {url} failed: {exc}") from exc

    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError as exc:
        raise ProvisioningError(f"Authority at {url} returned non-JSON body") from exc
