"""Project model: declared dependencies, bound plugins and reports, reactor modules."""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .log import get_logger
from .models import ArtifactRecord, Coordinate, DependencyRecord, GoOfflineError, Repository

logger = get_logger(__name__)

DEFAULT_PLUGIN_GROUP = "org.apache.maven.plugins"

_PROPERTY_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ProjectModelError(GoOfflineError):
    """The project description could not be read."""


@dataclass
class Project:
    """Everything the pipeline needs to know about the project being built."""

    coordinate: Coordinate
    dependencies: list[DependencyRecord] = field(default_factory=list)
    plugin_artifacts: list[ArtifactRecord] = field(default_factory=list)
    report_artifacts: list[ArtifactRecord] = field(default_factory=list)
    reactor_modules: list[Coordinate] = field(default_factory=list)
    repositories: list[Repository] = field(default_factory=list)
    plugin_repositories: list[Repository] = field(default_factory=list)
    parent: Coordinate | None = None


# JSON descriptor schema

class DependencyModel(BaseModel):
    group: str
    artifact: str
    version: str
    scope: str | None = None
    classifier: str | None = None
    type: str = "jar"
    optional: bool = False


class ArtifactModel(BaseModel):
    group: str
    artifact: str
    version: str
    type: str = "maven-plugin"
    classifier: str | None = None


class ModuleModel(BaseModel):
    group: str
    artifact: str
    version: str
    type: str = "jar"


class RepositoryModel(BaseModel):
    id: str
    url: str


class ProjectDescriptor(BaseModel):
    """JSON form of a project."""

    group: str
    artifact: str
    version: str
    packaging: str = "jar"
    parent: ModuleModel | None = None
    dependencies: list[DependencyModel] = []
    plugins: list[ArtifactModel] = []
    reports: list[ArtifactModel] = []
    modules: list[ModuleModel] = []
    repositories: list[RepositoryModel] = []
    plugin_repositories: list[RepositoryModel] = []

    def to_project(self) -> Project:
        coordinate = Coordinate(self.group, self.artifact, self.version, self.packaging)
        modules = [Coordinate(**m.model_dump()) for m in self.modules]
        return Project(
            coordinate=coordinate,
            dependencies=[DependencyRecord(**d.model_dump()) for d in self.dependencies],
            plugin_artifacts=[ArtifactRecord(**p.model_dump()) for p in self.plugins],
            report_artifacts=[ArtifactRecord(**r.model_dump()) for r in self.reports],
            reactor_modules=[coordinate, *modules] if modules else [],
            repositories=[Repository(**r.model_dump()) for r in self.repositories],
            plugin_repositories=[Repository(**r.model_dump()) for r in self.plugin_repositories],
            parent=(
                Coordinate(self.parent.group, self.parent.artifact, self.parent.version, "pom")
                if self.parent
                else None
            ),
        )


def load_project(path: str | Path) -> Project:
    """Load a project from a JSON descriptor.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed project
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
        return ProjectDescriptor.model_validate(data).to_project()
    except OSError as e:
        raise ProjectModelError(f"Cannot read {path}: {e}") from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise ProjectModelError(f"Invalid project descriptor {path}: {e}") from e


class PomReader:
    """Reads the declared parts of a ``pom.xml``.

    Only what the pom itself states is read: no inheritance beyond the
    parent's group and version, and no dependency management.
    """

    def __init__(self, path: Path):
        self.path = path
        try:
            self.root = ET.parse(path).getroot()
        except OSError as e:
            raise ProjectModelError(f"Cannot read {path}: {e}") from e
        except ET.ParseError as e:
            raise ProjectModelError(f"Malformed pom {path}: {e}") from e

        # Namespace prefix, e.g. "{http://maven.apache.org/POM/4.0.0}"
        match = re.match(r"^\{[^}]*\}", self.root.tag)
        self.ns = match.group(0) if match else ""
        self.properties: dict[str, str] = {}

    def _find(self, node: ET.Element, path: str) -> ET.Element | None:
        return node.find("/".join(self.ns + part for part in path.split("/")))

    def _findall(self, node: ET.Element, path: str) -> list[ET.Element]:
        return node.findall("/".join(self.ns + part for part in path.split("/")))

    def _text(self, node: ET.Element, path: str, default: str | None = None) -> str | None:
        child = self._find(node, path)
        if child is None or child.text is None or not child.text.strip():
            return default
        return self.interpolate(child.text.strip())

    def interpolate(self, value: str) -> str:
        """Substitute ``${...}`` references to known properties."""
        return _PROPERTY_PATTERN.sub(lambda m: self.properties.get(m.group(1), m.group(0)), value)

    def read(self) -> Project:
        root = self.root

        parent = None
        parent_node = self._find(root, "parent")
        if parent_node is not None:
            parent = Coordinate(
                group=self._text(parent_node, "groupId", ""),
                artifact=self._text(parent_node, "artifactId", ""),
                version=self._text(parent_node, "version", ""),
                type="pom",
            )

        group = self._text(root, "groupId") or (parent.group if parent else None)
        artifact = self._text(root, "artifactId")
        version = self._text(root, "version") or (parent.version if parent else None)
        if not (group and artifact and version):
            raise ProjectModelError(f"{self.path} does not declare groupId, artifactId and version")

        self._load_properties(group, artifact, version)
        coordinate = Coordinate(
            self.interpolate(group),
            self.interpolate(artifact),
            self.interpolate(version),
            self._text(root, "packaging", "jar"),
        )
        # a multi-module build also builds the aggregator itself
        modules = self._modules()
        reactor_modules = [coordinate, *modules] if modules else []

        return Project(
            coordinate=coordinate,
            dependencies=self._dependencies(),
            plugin_artifacts=self._plugins("build/plugins/plugin"),
            report_artifacts=self._plugins("reporting/plugins/plugin"),
            reactor_modules=reactor_modules,
            repositories=self._repositories("repositories/repository"),
            plugin_repositories=self._repositories("pluginRepositories/pluginRepository"),
            parent=parent,
        )

    def _load_properties(self, group: str, artifact: str, version: str) -> None:
        props_node = self._find(self.root, "properties")
        if props_node is not None:
            for child in props_node:
                name = child.tag[len(self.ns):] if child.tag.startswith(self.ns) else child.tag
                self.properties[name] = (child.text or "").strip()
        self.properties.update({
            "project.groupId": group,
            "project.artifactId": artifact,
            "project.version": version,
            "pom.groupId": group,
            "pom.version": version,
        })

    def _dependencies(self) -> list[DependencyRecord]:
        dependencies = []
        for node in self._findall(self.root, "dependencies/dependency"):
            group = self._text(node, "groupId")
            artifact = self._text(node, "artifactId")
            version = self._text(node, "version")
            if not (group and artifact and version):
                logger.warning(
                    "Skipping dependency without groupId, artifactId or version",
                    pom=str(self.path),
                    dependency=f"{group}:{artifact}",
                )
                continue
            dependencies.append(
                DependencyRecord(
                    group=group,
                    artifact=artifact,
                    version=version,
                    scope=self._text(node, "scope"),
                    classifier=self._text(node, "classifier"),
                    type=self._text(node, "type", "jar"),
                    optional=self._text(node, "optional", "false").lower() == "true",
                )
            )
        return dependencies

    def _plugins(self, path: str) -> list[ArtifactRecord]:
        plugins = []
        for node in self._findall(self.root, path):
            group = self._text(node, "groupId", DEFAULT_PLUGIN_GROUP)
            artifact = self._text(node, "artifactId")
            version = self._text(node, "version")
            if not (artifact and version):
                logger.warning(
                    "Skipping plugin without a bound version",
                    pom=str(self.path),
                    plugin=f"{group}:{artifact}",
                )
                continue
            plugins.append(ArtifactRecord(group=group, artifact=artifact, version=version))
        return plugins

    def _repositories(self, path: str) -> list[Repository]:
        repositories = []
        for node in self._findall(self.root, path):
            url = self._text(node, "url")
            if url:
                repositories.append(Repository(id=self._text(node, "id", url), url=url))
        return repositories

    def _modules(self) -> list[Coordinate]:
        modules = []
        for node in self._findall(self.root, "modules/module"):
            if not node.text or not node.text.strip():
                continue
            module_pom = self.path.parent / node.text.strip() / "pom.xml"
            if not module_pom.is_file():
                logger.debug("Module pom not found", module=node.text.strip())
                continue
            module = PomReader(module_pom).read()
            # an aggregator module already lists itself first
            modules.extend(module.reactor_modules or [module.coordinate])
        return modules


def load_pom(path: str | Path) -> Project:
    """Load a project from a ``pom.xml``.

    Args:
        path: Path to the pom file or to its directory

    Returns:
        Parsed project, with its modules as reactor modules
    """
    path = Path(path)
    if path.is_dir():
        path = path / "pom.xml"
    return PomReader(path).read()
