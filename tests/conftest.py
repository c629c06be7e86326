"""Pytest configuration and fixtures."""

import pytest

from gooffline.models import DependencyRecord, Repository, ResolvedArtifact
from gooffline.repository import ArtifactNotFoundError

FAKE_REPOSITORY = Repository(id="fake", url="https://repo.example.com/maven2")


class FakeRepositoryContext:
    """In-memory repository context.

    ``available`` maps each resolvable coordinate to the coordinates its
    resolution yields; anything else raises ArtifactNotFoundError.
    """

    def __init__(self, available=None, error=None):
        self.repositories = [FAKE_REPOSITORY]
        self.available = dict(available or {})
        self.error = error
        self.calls = []

    async def resolve(self, coordinate, post_filter=None):
        self.calls.append(coordinate)
        if self.error is not None:
            raise self.error
        if coordinate not in self.available:
            raise ArtifactNotFoundError(f"{coordinate} not found")
        artifacts = [
            ResolvedArtifact(coordinate=c, repository="fake", url=FAKE_REPOSITORY.artifact_url(c))
            for c in self.available[coordinate]
        ]
        if post_filter is not None:
            artifacts = [a for a in artifacts if post_filter.accepts(a)]
        return artifacts


@pytest.fixture
def make_context():
    """Factory for in-memory repository contexts."""
    return FakeRepositoryContext


@pytest.fixture
def sample_dependencies():
    """Declared dependencies covering several scopes, types and classifiers."""
    return [
        DependencyRecord("org.x", "lib", "1.0", scope="compile"),
        DependencyRecord("org.x", "lib-test", "1.0", scope="test"),
        DependencyRecord("org.x", "api", "2.1", scope=None),
        DependencyRecord("org.y", "natives", "3.0", scope="runtime", classifier="linux"),
        DependencyRecord("org.y", "bom", "3.0", scope="import", type="pom"),
        DependencyRecord("com.z", "servlet", "4.0", scope="provided", type="war"),
    ]


@pytest.fixture
def sample_pom(tmp_path):
    """A small multi-module project on disk."""
    (tmp_path / "pom.xml").write_text(
        """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>org.example</groupId>
    <artifactId>example-parent</artifactId>
    <version>7</version>
  </parent>
  <groupId>org.y</groupId>
  <artifactId>root</artifactId>
  <version>2.0</version>
  <packaging>pom</packaging>
  <properties>
    <junit.version>4.13.2</junit.version>
  </properties>
  <modules>
    <module>mod1</module>
  </modules>
  <dependencies>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>${junit.version}</version>
      <scope>test</scope>
    </dependency>
    <dependency>
      <groupId>org.y</groupId>
      <artifactId>mod1</artifactId>
      <version>${project.version}</version>
    </dependency>
    <dependency>
      <groupId>org.managed</groupId>
      <artifactId>no-version</artifactId>
    </dependency>
  </dependencies>
  <build>
    <plugins>
      <plugin>
        <artifactId>maven-compiler-plugin</artifactId>
        <version>3.11.0</version>
      </plugin>
      <plugin>
        <groupId>org.codehaus.mojo</groupId>
        <artifactId>exec-maven-plugin</artifactId>
      </plugin>
    </plugins>
  </build>
  <reporting>
    <plugins>
      <plugin>
        <artifactId>maven-javadoc-plugin</artifactId>
        <version>3.6.0</version>
      </plugin>
    </plugins>
  </reporting>
  <repositories>
    <repository>
      <id>internal</id>
      <url>https://repo.example.com/maven2</url>
    </repository>
  </repositories>
</project>
"""
    )
    (tmp_path / "mod1").mkdir()
    (tmp_path / "mod1" / "pom.xml").write_text(
        """<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.y</groupId>
    <artifactId>root</artifactId>
    <version>2.0</version>
  </parent>
  <artifactId>mod1</artifactId>
</project>
"""
    )
    return tmp_path / "pom.xml"
