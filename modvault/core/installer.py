"""Installer pipeline — validate, fetch, verify, extract, register.

Each install runs the same five steps, and a failure at any step aborts
that install:

1. Validate the package id and check the locator against the trusted-host
   allow-list. This happens before any network access.
2. Short-circuit if the package directory already exists.
3. Fetch the whole payload into memory. Redirects are followed by hand
   and every target is checked against the allow-list before it is
   requested.
4. Verify the payload digest when one is expected. A mismatch discards
   the payload before extraction.
5. Extract through ``RepositoryStore.materialize`` and record the embedded
   manifest in the metadata cache.

``install_many`` dispatches independent entries under a semaphore. A
failure in one entry is logged and recorded in the returned
``BatchInstallResult``; it never cancels its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

import httpx

from modvault.core.errors import ChecksumError, ModvaultError, NetworkError
from modvault.core.hasher import digest_matches, normalize_digest
from modvault.core.identifiers import ensure_trusted_locator, validate_full_id
from modvault.core.metadata_store import MetadataStore
from modvault.core.repository import RepositoryStore
from modvault.models.install import BatchInstallResult, InstallOutcome, PlanEntry

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
MAX_REDIRECTS = 10


class InstallerPipeline:
    """Downloads and installs packages into a ``RepositoryStore``.

    Parameters
    ----------
    repository:
        Destination store; its directories define installed state.
    metadata:
        Cache that receives the manifest of every freshly installed
        package.
    trusted_hosts:
        Allow-list of download hosts. Subdomains are accepted.
    client:
        Optional ``httpx.AsyncClient``. When omitted the pipeline creates
        its own on first use and closes it in :meth:`aclose`.
    """

    def __init__(
        self,
        repository: RepositoryStore,
        metadata: MetadataStore,
        *,
        trusted_hosts: Sequence[str],
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._repository = repository
        self._metadata = metadata
        self._trusted_hosts = tuple(trusted_hosts)
        self._client = client
        self._owns_client = client is None

    @property
    def trusted_hosts(self) -> tuple[str, ...]:
        return self._trusted_hosts

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> InstallerPipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Single install
    # ------------------------------------------------------------------

    async def install(
        self, full_id: str, locator: str, expected_hash: str | None = None
    ) -> InstallOutcome:
        """Install one package.

        Parameters
        ----------
        full_id:
            ``Owner-Name-Version`` id, also the install directory name.
        locator:
            https download URL on a trusted host.
        expected_hash:
            Optional sha256 digest (bare hex or ``sha256:<hex>``). Empty or
            ``None`` skips verification.

        Returns
        -------
        InstallOutcome
            ``ALREADY_INSTALLED`` if the directory existed (no network
            access happened in that case, unless a concurrent install won
            the race during extraction).

        Raises
        ------
        ValidationError
            Malformed id (including ``PathTraversalError``).
        UntrustedSourceError
            Locator or a redirect hop outside the allow-list.
        NetworkError
            Transport failure or non-2xx response.
        ChecksumError
            Digest mismatch. Nothing is extracted.
        ExtractionError
            Unreadable archive or failed write.
        DatabaseError
            The manifest could not be recorded.
        """
        validate_full_id(full_id)
        ensure_trusted_locator(locator, self._trusted_hosts)

        if self._repository.exists(full_id):
            logger.debug("%s already installed; no download needed.", full_id)
            return InstallOutcome.ALREADY_INSTALLED

        payload = await self._fetch(full_id, locator)

        matches, actual = digest_matches(payload, expected_hash)
        if not matches:
            raise ChecksumError(full_id, normalize_digest(expected_hash), actual)

        extracted = await asyncio.to_thread(self._repository.materialize, full_id, payload)
        if not extracted:
            return InstallOutcome.ALREADY_INSTALLED

        manifest = self._repository.read_manifest(full_id)
        if manifest is not None:
            await asyncio.to_thread(self._metadata.record_manifest, full_id, manifest, locator)

        logger.info("Installed %s (%d bytes).", full_id, len(payload))
        return InstallOutcome.INSTALLED

    async def _fetch(self, full_id: str, locator: str) -> bytes:
        """Download the full payload, following redirects by hand.

        Each redirect target passes the same allow-list check as the
        original locator before it is requested.
        """
        client = self._get_client()
        url = locator
        logger.debug("Downloading %s from %s", full_id, url)
        for _ in range(MAX_REDIRECTS + 1):
            try:
                response = await client.get(url, follow_redirects=False)
            except httpx.HTTPError as exc:
                raise NetworkError(f"Failed to download {full_id}: {exc}") from exc
            if not response.is_redirect:
                break
            url = str(response.url.join(response.headers["location"]))
            ensure_trusted_locator(url, self._trusted_hosts)
            logger.debug("Following redirect for %s to %s", full_id, url)
        else:
            raise NetworkError(f"Too many redirects while downloading {full_id}")

        if not response.is_success:
            raise NetworkError(
                f"Download of {full_id} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    # ------------------------------------------------------------------
    # Batch install
    # ------------------------------------------------------------------

    async def install_many(
        self,
        entries: Iterable[PlanEntry],
        *,
        root_id: str,
        concurrency: int = DEFAULT_CONCURRENCY,
        unresolved: Iterable[str] = (),
    ) -> BatchInstallResult:
        """Install *entries* with at most *concurrency* in flight.

        Completion order is not guaranteed. Per-entry ``ModvaultError``s
        are collected in ``BatchInstallResult.failed``; anything else
        propagates.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        semaphore = asyncio.Semaphore(concurrency)
        installed: list[str] = []
        skipped: list[str] = []
        failed: dict[str, str] = {}

        async def _run(entry: PlanEntry) -> None:
            async with semaphore:
                try:
                    outcome = await self.install(entry.full_id, entry.locator, entry.expected_hash)
                except ModvaultError as exc:
                    logger.warning("Dependency %s failed to install: %s", entry.full_id, exc)
                    failed[entry.full_id] = str(exc)
                    return
            if outcome is InstallOutcome.INSTALLED:
                installed.append(entry.full_id)
            else:
                skipped.append(entry.full_id)

        await asyncio.gather(*(_run(entry) for entry in entries))

        return BatchInstallResult(
            root_id=root_id,
            installed=installed,
            skipped=skipped,
            failed=failed,
            unresolved=list(unresolved),
        )
