"""Resolve a project's dependencies, plugins and reports ahead of an offline build."""

from .config import OfflineSettings
from .coordinates import extract_all
from .filters import (
    ArtifactIdFilter,
    ClassifierFilter,
    FilterChain,
    GroupIdFilter,
    ReactorExclusionFilter,
    ScopeFilter,
    TypeFilter,
)
from .log import get_logger
from .models import (
    MAVEN_CENTRAL,
    ArtifactRecord,
    BatchResult,
    OfflineResult,
    Repository,
    ResolvedArtifact,
)
from .project import Project
from .repository import RemoteRepositoryContext, RepositoryContext
from .resolve import BatchResolver, gather_or_cancel

logger = get_logger(__name__)


class GoOffline:
    """Runs the dependency batch and the plugin batch for one project."""

    def __init__(
        self,
        project: Project,
        settings: OfflineSettings,
        dependency_context: RepositoryContext,
        plugin_context: RepositoryContext,
    ):
        self.project = project
        self.settings = settings
        self.dependency_context = dependency_context
        self.plugin_context = plugin_context
        self.reactor_filter = (
            ReactorExclusionFilter(project.reactor_modules) if settings.exclude_reactor else None
        )
        # malformed include/exclude values raise here, before any batch starts
        self.filter_chain = self.build_filter_chain()
        self._dependencies: frozenset[ResolvedArtifact] | None = None

    def build_filter_chain(self) -> FilterChain:
        """Build the include/exclude chain for declared dependencies."""
        s = self.settings
        filters = [
            ArtifactIdFilter(s.include_artifact_ids, s.exclude_artifact_ids),
            GroupIdFilter(s.include_group_ids, s.exclude_group_ids),
            ScopeFilter(s.include_scope, s.exclude_scope),
            ClassifierFilter(s.include_classifiers, s.exclude_classifiers),
            TypeFilter(s.include_types, s.exclude_types),
        ]
        if self.reactor_filter is not None:
            filters.append(self.reactor_filter)
        return FilterChain(*filters)

    async def resolve_dependency_artifacts(self) -> BatchResult:
        """Filter the declared dependencies and resolve what remains."""
        dependencies = self.filter_chain.filter(self.project.dependencies)
        coordinates = set(extract_all(dependencies))
        if self.settings.include_parents and self.project.parent is not None:
            coordinates.add(self.project.parent)

        resolver = BatchResolver(
            self.dependency_context,
            "dependencies",
            post_filter=self.reactor_filter,
            max_concurrency=self.settings.max_concurrency,
        )
        return await resolver.resolve(coordinates)

    async def resolve_plugin_artifacts(self) -> BatchResult:
        """Resolve plugin and report artifacts; include/exclude settings do not apply."""
        artifacts: dict[ArtifactRecord, None] = {}
        for artifact in [*self.project.report_artifacts, *self.project.plugin_artifacts]:
            artifacts.setdefault(artifact)

        resolver = BatchResolver(
            self.plugin_context,
            "plugins",
            post_filter=self.reactor_filter,
            max_concurrency=self.settings.max_concurrency,
        )
        return await resolver.resolve(extract_all(artifacts))

    async def execute(self) -> OfflineResult:
        """Resolve both batches concurrently.

        A systemic error in either batch cancels the other one, and the error
        is raised once both have stopped.

        Returns:
            Resolved dependencies and resolved plugins, kept separate
        """
        plugins, dependencies = await gather_or_cancel(
            self.resolve_plugin_artifacts(),
            self.resolve_dependency_artifacts(),
        )
        self._dependencies = dependencies.artifacts

        if not self.settings.silent:
            for artifact in sorted(plugins.artifacts, key=lambda a: a.file_name):
                logger.info(f"Resolved plugin: {artifact.file_name}")
            for artifact in sorted(dependencies.artifacts, key=lambda a: a.file_name):
                logger.info(f"Resolved dependency: {artifact.file_name}")

        return OfflineResult(dependencies=dependencies, plugins=plugins)

    @property
    def dependencies(self) -> frozenset[ResolvedArtifact]:
        """Dependencies resolved by the last ``execute`` call."""
        if self._dependencies is None:
            raise RuntimeError("execute() has not been run")
        return self._dependencies


async def go_offline(project: Project, settings: OfflineSettings | None = None) -> OfflineResult:
    """Resolve everything a project needs against its remote repositories.

    Args:
        project: Project to resolve
        settings: Run settings; defaults apply when omitted

    Returns:
        Resolved dependencies and plugins
    """
    settings = settings or OfflineSettings()
    repositories = _with_central([*project.repositories, *settings.remote_repositories])
    plugin_repositories = _with_central(
        [*project.plugin_repositories, *settings.plugin_repositories]
    )

    async with RemoteRepositoryContext(repositories, timeout=settings.timeout) as dependency_context:
        async with RemoteRepositoryContext(plugin_repositories, timeout=settings.timeout) as plugin_context:
            pipeline = GoOffline(project, settings, dependency_context, plugin_context)
            return await pipeline.execute()


def _with_central(repositories: list[Repository]) -> list[Repository]:
    """Deduplicate by id and append Maven Central unless a repository overrides it."""
    unique: dict[str, Repository] = {}
    for repository in repositories:
        unique.setdefault(repository.id, repository)
    unique.setdefault(MAVEN_CENTRAL.id, MAVEN_CENTRAL)
    return list(unique.values())
