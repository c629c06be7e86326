"""Conversion of project records into resolvable coordinates."""

from collections.abc import Iterable

from .models import ArtifactRecord, Coordinate, DependencyRecord


def from_dependency(dependency: DependencyRecord) -> Coordinate:
    """Build a coordinate from a declared dependency.

    Scope and the optional flag are not part of the coordinate, and version
    ranges are copied as-is.
    """
    return Coordinate(
        group=dependency.group,
        artifact=dependency.artifact,
        version=dependency.version,
        type=dependency.type,
        classifier=dependency.classifier,
    )


def from_artifact(artifact: ArtifactRecord) -> Coordinate:
    """Build a coordinate from a plugin or report artifact."""
    return Coordinate(
        group=artifact.group,
        artifact=artifact.artifact,
        version=artifact.version,
        type=artifact.type,
        classifier=artifact.classifier,
    )


def extract(record: DependencyRecord | ArtifactRecord) -> Coordinate:
    """Build a coordinate from either kind of project record.

    Args:
        record: A declared dependency or an already-bound artifact

    Returns:
        The record's coordinate
    """
    if isinstance(record, DependencyRecord):
        return from_dependency(record)
    if isinstance(record, ArtifactRecord):
        return from_artifact(record)
    raise TypeError(f"Cannot extract a coordinate from {type(record).__name__}")


def extract_all(records: Iterable[DependencyRecord | ArtifactRecord]) -> frozenset[Coordinate]:
    """Extract coordinates from records, collapsing records with equal coordinates."""
    return frozenset(extract(record) for record in records)
