"""Batch resolution of coordinates with per-item failure containment."""

import asyncio
from collections.abc import Iterable

from .log import get_logger
from .models import BatchResult, Coordinate, ResolutionOutcome
from .repository import ArtifactFilter, ArtifactResolutionError, RepositoryContext

logger = get_logger(__name__)


async def gather_or_cancel(*aws):
    """Like ``asyncio.gather``, but stop the siblings when one of them fails.

    On the first error the remaining awaitables are cancelled and awaited
    before the error is raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BatchResolver:
    """Resolves a set of coordinates independently against one repository context."""

    def __init__(
        self,
        context: RepositoryContext,
        name: str,
        post_filter: ArtifactFilter | None = None,
        max_concurrency: int = 6,
    ):
        """Initialize batch resolver.

        Args:
            context: Repository context used for every coordinate
            name: Batch name used in log messages, e.g. "dependencies"
            post_filter: Optional filter over what each resolution may yield
            max_concurrency: Maximum concurrent resolutions
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.context = context
        self.name = name
        self.post_filter = post_filter
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def resolve_one(self, coordinate: Coordinate) -> ResolutionOutcome:
        """Resolve one coordinate, turning a resolution error into a failure outcome.

        Args:
            coordinate: Coordinate to resolve

        Returns:
            Success with the resolved artifacts, or failure with the reason
        """
        async with self._semaphore:
            try:
                artifacts = await self.context.resolve(coordinate, self.post_filter)
            except ArtifactResolutionError as e:
                logger.warning(
                    f"Failed to resolve {self.name} for {coordinate}",
                    batch=self.name,
                    coordinate=str(coordinate),
                    error=str(e),
                )
                return ResolutionOutcome.failure(coordinate, str(e))
        return ResolutionOutcome.success(coordinate, artifacts)

    async def resolve(self, coordinates: Iterable[Coordinate]) -> BatchResult:
        """Resolve all coordinates concurrently.

        Args:
            coordinates: Coordinates to resolve; duplicates are resolved once

        Returns:
            Batch result with the merged artifacts and the failed coordinates
        """
        logger.debug(f"Resolving '{self.name}' with following repositories:")
        for repository in self.context.repositories:
            logger.debug(str(repository))

        # sorted only so that log lines come out in a stable order
        unique = sorted(set(coordinates), key=str)
        outcomes = await gather_or_cancel(*(self.resolve_one(c) for c in unique))
        return BatchResult.from_outcomes(self.name, list(outcomes))
