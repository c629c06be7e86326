"""Core data models for gooffline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


class GoOfflineError(Exception):
    """Base class for all gooffline errors."""


class InvalidCoordinateString(GoOfflineError, ValueError):
    """The coordinate string being passed is invalid or malformed."""

    def __init__(self, coords: str) -> None:
        super().__init__(f"Received invalid artifact coordinates: {coords}")


@dataclass(frozen=True)
class Coordinate:
    """A Maven-style coordinate identifying a single resolvable unit.

    Two coordinates with identical fields are the same resolution unit. The
    version may still be a range (e.g. ``[1.0,2.0)``); resolving it is the
    repository context's job.
    """

    REGEX = re.compile("([^: ]+):([^: ]+)(:([^: ]*)(:([^: ]+))?)?:([^: ]+)")

    group: str
    artifact: str
    version: str
    type: str = "jar"
    classifier: str | None = None

    def __post_init__(self) -> None:
        # "" and None both mean "no classifier"
        if not self.classifier:
            object.__setattr__(self, "classifier", None)
        if not self.type:
            object.__setattr__(self, "type", "jar")

    @classmethod
    def from_coord_str(cls, s: str) -> Coordinate:
        """Parse ``group:artifact[:type[:classifier]]:version``."""
        parts = cls.REGEX.fullmatch(s.strip())
        if parts is None:
            raise InvalidCoordinateString(s)
        return cls(
            group=parts.group(1),
            artifact=parts.group(2),
            version=parts.group(7),
            type=parts.group(4) or "jar",
            classifier=parts.group(6),
        )

    def to_coord_str(self, versioned: bool = True) -> str:
        unversioned = f"{self.group}:{self.artifact}"
        if self.classifier is not None:
            unversioned += f":{self.type}:{self.classifier}"
        elif self.type != "jar":
            unversioned += f":{self.type}"
        if versioned:
            return f"{unversioned}:{self.version}"
        return unversioned

    def with_version(self, version: str) -> Coordinate:
        return Coordinate(self.group, self.artifact, version, self.type, self.classifier)

    def __str__(self) -> str:
        return self.to_coord_str()


@dataclass(frozen=True)
class DependencyRecord:
    """A dependency as declared by the project, before resolution."""

    group: str
    artifact: str
    version: str
    scope: str | None = None
    classifier: str | None = None
    type: str = "jar"
    optional: bool = False

    @property
    def effective_scope(self) -> str:
        """Scope used for filtering; an unset scope is ``compile``."""
        return self.scope or "compile"


@dataclass(frozen=True)
class ArtifactRecord:
    """A plugin or report artifact already bound to an exact version."""

    group: str
    artifact: str
    version: str
    type: str = "maven-plugin"
    classifier: str | None = None


@dataclass(frozen=True)
class Repository:
    """A remote repository in Maven layout."""

    id: str
    url: str

    def artifact_url(self, coordinate: Coordinate, extension: str | None = None) -> str:
        """URL of a coordinate's file in this repository."""
        ext = extension or _extension_for(coordinate.type)
        path = "/".join(
            [*coordinate.group.split("."), coordinate.artifact, coordinate.version]
        )
        suffix = f"-{coordinate.classifier}" if coordinate.classifier else ""
        return f"{self.url.rstrip('/')}/{path}/{coordinate.artifact}-{coordinate.version}{suffix}.{ext}"

    def metadata_url(self, group: str, artifact: str) -> str:
        path = "/".join([*group.split("."), artifact])
        return f"{self.url.rstrip('/')}/{path}/maven-metadata.xml"

    def __str__(self) -> str:
        return f"{self.id} ({self.url})"


MAVEN_CENTRAL = Repository(id="central", url="https://repo.maven.apache.org/maven2")

# Packaging types whose file extension differs from the type name
_TYPE_EXTENSIONS = {
    "maven-plugin": "jar",
    "test-jar": "jar",
    "ejb": "jar",
    "ejb-client": "jar",
    "java-source": "jar",
    "javadoc": "jar",
    "bundle": "jar",
}


def _extension_for(artifact_type: str) -> str:
    return _TYPE_EXTENSIONS.get(artifact_type, artifact_type)


@dataclass(frozen=True)
class ResolvedArtifact:
    """A concrete artifact located in a repository.

    Identity is the coordinate alone, so the same artifact found through
    different inputs or repositories collapses to one set entry.
    """

    coordinate: Coordinate
    repository: str = field(default="", compare=False)
    url: str = field(default="", compare=False)

    @property
    def file_name(self) -> str:
        """File name in the ``artifactId-version[-classifier].extension`` form."""
        c = self.coordinate
        classifier = f"-{c.classifier}" if c.classifier else ""
        return f"{c.artifact}-{c.version}{classifier}.{_extension_for(c.type)}"


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of resolving a single coordinate: success or failure."""

    coordinate: Coordinate
    artifacts: frozenset[ResolvedArtifact] = frozenset()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, coordinate: Coordinate, artifacts) -> ResolutionOutcome:
        return cls(coordinate=coordinate, artifacts=frozenset(artifacts))

    @classmethod
    def failure(cls, coordinate: Coordinate, error: str) -> ResolutionOutcome:
        return cls(coordinate=coordinate, error=error)


@dataclass(frozen=True)
class BatchResult:
    """Artifacts resolved for one batch, plus the coordinates that failed."""

    name: str
    artifacts: frozenset[ResolvedArtifact]
    failures: tuple[ResolutionOutcome, ...] = ()

    @classmethod
    def from_outcomes(cls, name: str, outcomes: list[ResolutionOutcome]) -> BatchResult:
        artifacts: set[ResolvedArtifact] = set()
        failures = []
        for outcome in outcomes:
            if outcome.ok:
                artifacts.update(outcome.artifacts)
            else:
                failures.append(outcome)
        failures.sort(key=lambda o: str(o.coordinate))
        return cls(name=name, artifacts=frozenset(artifacts), failures=tuple(failures))

    @property
    def failed_coordinates(self) -> list[Coordinate]:
        return [outcome.coordinate for outcome in self.failures]


@dataclass(frozen=True)
class OfflineResult:
    """Resolved dependencies and plugins, kept apart for reporting."""

    dependencies: BatchResult
    plugins: BatchResult

    @property
    def has_failures(self) -> bool:
        return bool(self.dependencies.failures or self.plugins.failures)
