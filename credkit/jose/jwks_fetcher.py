"""Remote JWK set retrieval for ``jku`` key resolution."""

import logging
from typing import Any, Protocol

import httpx

from credkit.core.errors import KeySetFetchError
from credkit.core.settings import load_settings

logger = logging.getLogger(__name__)


class KeySetFetcher(Protocol):
    """Fetches a JWK set document from a URL."""

    def fetch(self, url: str) -> dict[str, Any]: ...


class HttpKeySetFetcher:
    """Blocking JWK set fetcher over HTTPS. Failures are never retried."""

    def __init__(
        self,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._timeout = (
            timeout if timeout is not None else load_settings().jwks_fetch_timeout
        )
        self._client = client

    def fetch(self, url: str) -> dict[str, Any]:
        """GET ``url`` and return the parsed ``{"keys": [...]}`` document."""
        try:
            if self._client is not None:
                resp = self._client.get(url, timeout=self._timeout)
            else:
                with httpx.Client(
                    timeout=self._timeout,
                    headers={"Accept": "application/json"},
                ) as client:
                    resp = client.get(url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("JWKS fetch from %s failed: %s", url, exc)
            raise KeySetFetchError(f"Could not fetch JWKS from {url}: {exc}") from exc
        except ValueError as exc:
            raise KeySetFetchError(f"JWKS at {url} is not valid JSON") from exc

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise KeySetFetchError(f"JWKS missing 'keys' list at {url}")
        return data


def select_key_by_kid(key_set: dict[str, Any], kid: str | None) -> dict[str, Any] | None:
    """Return the JWK whose ``kid`` matches, or None."""
    if kid is None:
        return None
    for key in key_set.get("keys", []):
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None
