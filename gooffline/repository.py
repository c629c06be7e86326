"""Repository contexts that turn coordinates into located artifacts."""

from __future__ import annotations

import asyncio
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from typing import Protocol

import httpx

from .log import get_logger
from .models import Coordinate, GoOfflineError, Repository, ResolvedArtifact
from .versions import InvalidVersionRange, VersionRange, is_range

logger = get_logger(__name__)


class ArtifactResolutionError(GoOfflineError):
    """A single coordinate could not be resolved."""


class ArtifactNotFoundError(ArtifactResolutionError):
    """No repository holds the artifact."""


class VersionRangeError(ArtifactResolutionError):
    """A version range is malformed or no available version satisfies it."""


class ArtifactTransferError(ArtifactResolutionError):
    """A repository could not be reached or answered with an error."""


class RepositoryContextError(GoOfflineError):
    """The repository context itself is unusable."""


class ArtifactFilter(Protocol):
    def accepts(self, artifact: ResolvedArtifact) -> bool: ...


class RepositoryContext(Protocol):
    """What the batch resolver needs from a repository backend.

    ``resolve`` raises ``ArtifactResolutionError`` when one coordinate cannot
    be resolved; any other exception is treated as fatal for the run.
    """

    repositories: Sequence[Repository]

    async def resolve(
        self, coordinate: Coordinate, post_filter: ArtifactFilter | None = None
    ) -> list[ResolvedArtifact]: ...


class RemoteRepositoryContext:
    """Resolves coordinates against Maven-layout repositories over HTTP."""

    def __init__(
        self,
        repositories: Sequence[Repository],
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the repository context.

        Args:
            repositories: Repositories to search, in order
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client
        """
        if not repositories:
            raise RepositoryContextError("At least one repository is required")
        for repository in repositories:
            if not repository.url.startswith(("http://", "https://")):
                raise RepositoryContextError(
                    f"Unsupported URL for repository {repository.id}: {repository.url}"
                )

        self.repositories = list(repositories)
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._versions_cache: dict[str, asyncio.Future[list[str]]] = {}

    async def __aenter__(self) -> RemoteRepositoryContext:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for task in self._versions_cache.values():
            task.cancel()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def resolve(
        self, coordinate: Coordinate, post_filter: ArtifactFilter | None = None
    ) -> list[ResolvedArtifact]:
        """Locate a coordinate's file and POM in the configured repositories.

        Args:
            coordinate: Coordinate to resolve, possibly with a version range
            post_filter: Optional filter over the located artifacts

        Returns:
            Located artifacts accepted by the post-filter
        """
        version = coordinate.version
        if is_range(version):
            version = await self.resolve_version_range(coordinate)
        concrete = coordinate.with_version(version)

        artifacts = [await self._locate(concrete)]
        if concrete.type != "pom":
            pom = Coordinate(concrete.group, concrete.artifact, version, type="pom")
            artifacts.append(await self._locate(pom))

        if post_filter is not None:
            artifacts = [artifact for artifact in artifacts if post_filter.accepts(artifact)]
        return artifacts

    async def resolve_version_range(self, coordinate: Coordinate) -> str:
        """Pick the highest available version satisfying the coordinate's range."""
        try:
            version_range = VersionRange.parse(coordinate.version)
        except InvalidVersionRange as e:
            raise VersionRangeError(str(e)) from e

        available: list[str] = []
        for repository in self.repositories:
            available.extend(
                await self._fetch_versions(repository, coordinate.group, coordinate.artifact)
            )

        chosen = version_range.select(available)
        if chosen is None:
            raise VersionRangeError(
                f"No version of {coordinate.group}:{coordinate.artifact} "
                f"satisfies {coordinate.version}"
            )
        logger.debug("Resolved version range", coordinate=str(coordinate), version=chosen)
        return chosen

    async def _fetch_versions(self, repository: Repository, group: str, artifact: str) -> list[str]:
        url = repository.metadata_url(group, artifact)
        task = self._versions_cache.get(url)
        if task is None:
            # concurrent range resolutions of one artifact share a single download
            task = asyncio.ensure_future(self._download_versions(url))
            self._versions_cache[url] = task
        try:
            return await asyncio.shield(task)
        except ArtifactResolutionError:
            if self._versions_cache.get(url) is task:
                del self._versions_cache[url]
            raise

    async def _download_versions(self, url: str) -> list[str]:
        response = await self._request("GET", url)
        if response.status_code in (404, 410):
            return []
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise ArtifactTransferError(f"Malformed metadata at {url}: {e}") from e
        return [
            (node.text or "").strip()
            for node in root.iterfind("./versioning/versions/version")
            if node.text
        ]

    async def _locate(self, coordinate: Coordinate) -> ResolvedArtifact:
        transfer_error: ArtifactTransferError | None = None
        for repository in self.repositories:
            url = repository.artifact_url(coordinate)
            try:
                response = await self._request("HEAD", url)
                if response.status_code == 405:
                    # some repository managers refuse HEAD
                    response = await self._request("GET", url)
            except ArtifactTransferError as e:
                # another repository may still have it
                transfer_error = e
                continue
            if response.status_code not in (404, 410):
                return ResolvedArtifact(coordinate=coordinate, repository=repository.id, url=url)

        if transfer_error is not None:
            raise transfer_error
        searched = ", ".join(repository.id for repository in self.repositories)
        raise ArtifactNotFoundError(f"{coordinate} not found in repositories: {searched}")

    async def _request(self, method: str, url: str) -> httpx.Response:
        try:
            response = await self._get_client().request(method, url)
        except httpx.TimeoutException as e:
            raise ArtifactTransferError(f"Timeout fetching {url}") from e
        except httpx.HTTPError as e:
            raise ArtifactTransferError(f"Network error fetching {url}: {e}") from e

        if response.status_code in (404, 410) or (method == "HEAD" and response.status_code == 405):
            return response
        if response.status_code >= 400:
            raise ArtifactTransferError(f"HTTP {response.status_code} fetching {url}")
        return response
