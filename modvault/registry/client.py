"""Async client for the package registry listing endpoint.

Only the listing is fetched here. Payload downloads go through the
installer, which applies the trusted-host checks.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from modvault.core.errors import NetworkError
from modvault.models.packages import PackageListing

logger = logging.getLogger(__name__)

_LISTINGS = TypeAdapter(list[PackageListing])


class RegistryClient:
    """Fetches the full package listing of one registry.

    Parameters
    ----------
    base_url:
        API root, e.g. ``https://thunderstore.io/c/valheim/api/v1``.
    timeout:
        Upper bound in seconds for the listing request.
    client:
        Optional injected ``httpx.AsyncClient`` (tests pass one backed by
        ``httpx.MockTransport``). Not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("RegistryClient requires a 'base_url'.")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def listing_url(self) -> str:
        return f"{self._base_url}/package/"

    async def fetch_listings(self) -> list[PackageListing]:
        """Download and parse the registry listing.

        Raises
        ------
        NetworkError
            On transport failure, timeout, non-2xx status, or a body that
            is not a valid listing.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        logger.info("Fetching registry listing from %s", self.listing_url)
        try:
            response = await self._client.get(self.listing_url, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"Registry returned HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Registry request failed: {exc}") from exc

        try:
            listings = _LISTINGS.validate_json(response.content)
        except PydanticValidationError as exc:
            raise NetworkError(f"Registry listing could not be decoded: {exc}") from exc
        logger.info("Registry listing contains %d package(s).", len(listings))
        return listings

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
