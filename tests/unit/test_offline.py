"""Tests for the go-offline pipeline."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from structlog.testing import capture_logs

from gooffline.config import OfflineSettings
from gooffline.filters import FilterConfigurationError
from gooffline.models import (
    MAVEN_CENTRAL,
    ArtifactRecord,
    BatchResult,
    Coordinate,
    DependencyRecord,
    OfflineResult,
    Repository,
)
from gooffline.offline import GoOffline, go_offline
from gooffline.project import Project
from gooffline.repository import RepositoryContextError

LIB = Coordinate("org.x", "lib", "1.0")
MOD1 = Coordinate("org.y", "mod1", "2.0")
COMPILER = Coordinate("org.apache.maven.plugins", "maven-compiler-plugin", "3.11.0", type="maven-plugin")
JAVADOC = Coordinate("org.apache.maven.plugins", "maven-javadoc-plugin", "3.6.0", type="maven-plugin")


def make_project(**kwargs) -> Project:
    return Project(coordinate=Coordinate("org.y", "root", "2.0", "pom"), **kwargs)


def plugin(c: Coordinate) -> ArtifactRecord:
    return ArtifactRecord(c.group, c.artifact, c.version)


class SlowRepositoryContext:
    """Context whose resolutions never finish on their own."""

    repositories = [Repository("slow", "https://slow.example.com/maven2")]

    def __init__(self):
        self.started = False
        self.stopped = False

    async def resolve(self, coordinate, post_filter=None):
        self.started = True
        try:
            await asyncio.sleep(60)
        finally:
            self.stopped = True
        return []


class TestGoOffline:
    """Test the two-batch orchestration."""

    @pytest.mark.asyncio
    async def test_scope_example(self, make_context):
        """Should resolve one artifact from two records differing only in scope."""
        project = make_project(
            dependencies=[
                DependencyRecord("org.x", "lib", "1.0", scope="test"),
                DependencyRecord("org.x", "lib", "1.0", scope="compile"),
            ]
        )
        context = make_context({LIB: [LIB]})
        pipeline = GoOffline(project, OfflineSettings(exclude_scope="test"), context, make_context())

        result = await pipeline.execute()

        assert context.calls == [LIB]
        assert {a.coordinate for a in result.dependencies.artifacts} == {LIB}

    @pytest.mark.asyncio
    async def test_duplicate_records_resolve_once(self, make_context):
        """Should surface records with equal coordinates as a single entry."""
        project = make_project(
            dependencies=[
                DependencyRecord("org.x", "lib", "1.0", scope="test"),
                DependencyRecord("org.x", "lib", "1.0", scope="compile"),
            ]
        )
        context = make_context({LIB: [LIB]})
        result = await GoOffline(project, OfflineSettings(), context, make_context()).execute()

        assert context.calls == [LIB]
        assert len(result.dependencies.artifacts) == 1

    @pytest.mark.asyncio
    async def test_reactor_example(self, make_context):
        """Should never attempt to resolve a module built in the same run."""
        project = make_project(
            dependencies=[DependencyRecord("org.y", "mod1", "2.0"), DependencyRecord("org.x", "lib", "1.0")],
            reactor_modules=[MOD1],
        )
        context = make_context({LIB: [LIB], MOD1: [MOD1]})

        result = await GoOffline(project, OfflineSettings(), context, make_context()).execute()

        assert context.calls == [LIB]
        assert {a.coordinate for a in result.dependencies.artifacts} == {LIB}

    @pytest.mark.asyncio
    async def test_reactor_exclusion_disabled(self, make_context):
        """Should resolve reactor modules when reactor exclusion is off."""
        project = make_project(
            dependencies=[DependencyRecord("org.y", "mod1", "2.0")],
            reactor_modules=[MOD1],
        )
        context = make_context({MOD1: [MOD1]})
        pipeline = GoOffline(project, OfflineSettings(exclude_reactor=False), context, make_context())

        result = await pipeline.execute()

        assert pipeline.reactor_filter is None
        assert len(pipeline.filter_chain) == 5
        assert {a.coordinate for a in result.dependencies.artifacts} == {MOD1}

    @pytest.mark.asyncio
    async def test_reactor_post_filter_drops_transitive_modules(self, make_context):
        """Should drop reactor modules that a resolution yields."""
        project = make_project(dependencies=[DependencyRecord("org.x", "lib", "1.0")], reactor_modules=[MOD1])
        context = make_context({LIB: [LIB, MOD1]})

        result = await GoOffline(project, OfflineSettings(), context, make_context()).execute()

        assert {a.coordinate for a in result.dependencies.artifacts} == {LIB}

    @pytest.mark.asyncio
    async def test_plugins_ignore_include_exclude_settings(self, make_context):
        """Should resolve reports and plugins without the filter chain."""
        project = make_project(
            plugin_artifacts=[plugin(COMPILER), plugin(JAVADOC)],
            report_artifacts=[plugin(JAVADOC)],
        )
        plugin_context = make_context({COMPILER: [COMPILER], JAVADOC: [JAVADOC]})
        settings = OfflineSettings(include_group_ids="org.nothing", include_types="jar")

        result = await GoOffline(project, settings, make_context(), plugin_context).execute()

        assert sorted(plugin_context.calls, key=str) == [COMPILER, JAVADOC]
        assert {a.coordinate for a in result.plugins.artifacts} == {COMPILER, JAVADOC}
        assert result.plugins.name == "plugins"

    @pytest.mark.asyncio
    async def test_plugin_failures_warn_and_continue(self, make_context):
        """Should treat a missing plugin like a missing dependency."""
        project = make_project(plugin_artifacts=[plugin(COMPILER), plugin(JAVADOC)])
        plugin_context = make_context({COMPILER: [COMPILER]})

        with capture_logs() as logs:
            result = await GoOffline(project, OfflineSettings(), make_context(), plugin_context).execute()

        assert result.plugins.failed_coordinates == [JAVADOC]
        assert result.has_failures
        assert [log["event"] for log in logs if log["log_level"] == "warning"] == [
            f"Failed to resolve plugins for {JAVADOC}"
        ]

    @pytest.mark.asyncio
    async def test_batches_stay_separate(self, make_context):
        """Should return dependencies and plugins as separate results."""
        project = make_project(
            dependencies=[DependencyRecord("org.x", "lib", "1.0")],
            plugin_artifacts=[plugin(COMPILER)],
        )
        result = await GoOffline(
            project, OfflineSettings(), make_context({LIB: [LIB]}), make_context({COMPILER: [COMPILER]})
        ).execute()

        assert result.dependencies.name == "dependencies"
        assert {a.coordinate for a in result.dependencies.artifacts} == {LIB}
        assert {a.coordinate for a in result.plugins.artifacts} == {COMPILER}

    @pytest.mark.asyncio
    async def test_include_parents(self, make_context):
        """Should add the parent pom to the dependency batch when asked."""
        parent = Coordinate("org.example", "example-parent", "7", "pom")
        project = make_project(parent=parent)
        context = make_context({parent: [parent]})

        await GoOffline(project, OfflineSettings(), context, make_context()).execute()
        assert context.calls == []

        await GoOffline(project, OfflineSettings(include_parents=True), context, make_context()).execute()
        assert context.calls == [parent]

    @pytest.mark.asyncio
    async def test_logs_resolved_artifacts_unless_silent(self, make_context):
        """Should log each resolved artifact at info level unless silent."""
        project = make_project(
            dependencies=[DependencyRecord("org.x", "lib", "1.0")],
            plugin_artifacts=[plugin(COMPILER)],
        )

        with capture_logs() as logs:
            await GoOffline(
                project, OfflineSettings(), make_context({LIB: [LIB]}), make_context({COMPILER: [COMPILER]})
            ).execute()
        info = [log["event"] for log in logs if log["log_level"] == "info"]
        assert info == [
            "Resolved plugin: maven-compiler-plugin-3.11.0.jar",
            "Resolved dependency: lib-1.0.jar",
        ]

        with capture_logs() as logs:
            await GoOffline(
                project,
                OfflineSettings(silent=True),
                make_context({LIB: [LIB]}),
                make_context({COMPILER: [COMPILER]}),
            ).execute()
        assert not [log for log in logs if log["log_level"] == "info"]

    def test_malformed_filter_value_fails_before_resolution(self, make_context):
        """Should reject a malformed include/exclude value before either batch starts."""
        project = make_project(
            dependencies=[DependencyRecord("org.x", "lib", "1.0")],
            plugin_artifacts=[plugin(COMPILER)],
        )
        # skip settings validation so the filter chain sees the raw value
        settings = OfflineSettings.model_construct(exclude_artifact_ids=("bad:value",))
        dependency_context = make_context({LIB: [LIB]})
        plugin_context = make_context({COMPILER: [COMPILER]})

        with pytest.raises(FilterConfigurationError):
            GoOffline(project, settings, dependency_context, plugin_context)

        assert plugin_context.calls == []
        assert dependency_context.calls == []

    @pytest.mark.asyncio
    async def test_systemic_error_stops_both_batches(self, make_context):
        """Should cancel the plugin batch and wait for it before raising a systemic error."""
        project = make_project(
            dependencies=[DependencyRecord("org.x", "lib", "1.0")],
            plugin_artifacts=[plugin(COMPILER)],
        )
        plugin_context = SlowRepositoryContext()
        dependency_context = make_context(error=RepositoryContextError("repository session lost"))

        with pytest.raises(RepositoryContextError):
            await GoOffline(project, OfflineSettings(), dependency_context, plugin_context).execute()

        assert plugin_context.started
        assert plugin_context.stopped

    @pytest.mark.asyncio
    async def test_dependencies_view(self, make_context):
        """Should expose the resolved dependencies only after execution."""
        project = make_project(dependencies=[DependencyRecord("org.x", "lib", "1.0")])
        pipeline = GoOffline(project, OfflineSettings(), make_context({LIB: [LIB]}), make_context())

        with pytest.raises(RuntimeError):
            pipeline.dependencies

        await pipeline.execute()
        assert isinstance(pipeline.dependencies, frozenset)
        assert {a.coordinate for a in pipeline.dependencies} == {LIB}


class TestGoOfflineEntryPoint:
    """Test wiring of repository contexts."""

    @pytest.mark.asyncio
    async def test_builds_contexts_from_project_and_settings(self):
        """Should give each batch its own repositories with central appended."""
        internal = Repository("internal", "https://repo.example.com/maven2")
        plugins = Repository("plugins", "https://plugins.example.com/maven2")
        project = make_project(repositories=[internal])
        settings = OfflineSettings(plugin_repositories=[plugins], timeout=5.0)
        empty = BatchResult("x", frozenset())

        with patch("gooffline.offline.RemoteRepositoryContext") as mock_context_class, patch.object(
            GoOffline, "execute", new=AsyncMock(return_value=OfflineResult(empty, empty))
        ):
            mock_context_class.return_value.__aenter__ = AsyncMock(return_value=mock_context_class.return_value)
            mock_context_class.return_value.__aexit__ = AsyncMock(return_value=None)

            await go_offline(project, settings)

        calls = mock_context_class.call_args_list
        assert calls[0].args[0] == [internal, MAVEN_CENTRAL]
        assert calls[1].args[0] == [plugins, MAVEN_CENTRAL]
        assert calls[0].kwargs["timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_project_can_override_central(self):
        """Should not add central when a repository already uses that id."""
        mirror = Repository("central", "https://mirror.example.com/maven2")
        project = make_project(repositories=[mirror])
        empty = BatchResult("x", frozenset())

        with patch("gooffline.offline.RemoteRepositoryContext") as mock_context_class, patch.object(
            GoOffline, "execute", new=AsyncMock(return_value=OfflineResult(empty, empty))
        ):
            mock_context_class.return_value.__aenter__ = AsyncMock(return_value=mock_context_class.return_value)
            mock_context_class.return_value.__aexit__ = AsyncMock(return_value=None)

            await go_offline(project)

        assert mock_context_class.call_args_list[0].args[0] == [mirror]
