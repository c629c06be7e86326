"""Include/exclude filters applied to declared dependencies before resolution."""

import re
from collections.abc import Iterable

from .log import get_logger
from .models import Coordinate, DependencyRecord, GoOfflineError, ResolvedArtifact

logger = get_logger(__name__)

SCOPES = frozenset({"compile", "provided", "runtime", "test", "system", "import"})

VALUE_PATTERN = re.compile(r"^[^\s:,]+$")


class FilterConfigurationError(GoOfflineError, ValueError):
    """An include or exclude value is malformed."""


def split_values(values: str | Iterable[str] | None) -> frozenset[str]:
    """Normalize a comma-separated string or an iterable into a set of values.

    Values are trimmed and blanks are dropped.

    Args:
        values: "a, b" style string, iterable of strings, or None

    Returns:
        Set of non-empty values
    """
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = values.split(",")
    return frozenset(v.strip() for v in values if v and v.strip())


class DependencyFilter:
    """A pure predicate over dependency records."""

    def keep(self, dependency: DependencyRecord) -> bool:
        raise NotImplementedError

    def filter(self, dependencies: Iterable[DependencyRecord]) -> frozenset[DependencyRecord]:
        return frozenset(d for d in dependencies if self.keep(d))


class ValueFilter(DependencyFilter):
    """Keeps records whose value on one dimension passes an include and an exclude list.

    A record is kept when the include list is empty or contains the value,
    and the exclude list does not contain it.
    """

    dimension = ""

    def __init__(
        self,
        include: str | Iterable[str] | None = None,
        exclude: str | Iterable[str] | None = None,
    ):
        self.include = split_values(include)
        self.exclude = split_values(exclude)
        for value in self.include | self.exclude:
            self.validate(value)

    def validate(self, value: str) -> None:
        if not VALUE_PATTERN.match(value):
            raise FilterConfigurationError(f"Invalid {self.dimension} value: {value!r}")

    def value_of(self, dependency: DependencyRecord) -> str:
        raise NotImplementedError

    def keep(self, dependency: DependencyRecord) -> bool:
        value = self.value_of(dependency)
        if self.include and value not in self.include:
            return False
        return value not in self.exclude

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(include={sorted(self.include)}, "
            f"exclude={sorted(self.exclude)})"
        )


class ArtifactIdFilter(ValueFilter):
    dimension = "artifactId"

    def value_of(self, dependency: DependencyRecord) -> str:
        return dependency.artifact


class GroupIdFilter(ValueFilter):
    dimension = "groupId"

    def value_of(self, dependency: DependencyRecord) -> str:
        return dependency.group


class ScopeFilter(ValueFilter):
    dimension = "scope"

    def validate(self, value: str) -> None:
        if value not in SCOPES:
            raise FilterConfigurationError(
                f"Invalid scope {value!r}, expected one of: {', '.join(sorted(SCOPES))}"
            )

    def value_of(self, dependency: DependencyRecord) -> str:
        return dependency.effective_scope


class ClassifierFilter(ValueFilter):
    dimension = "classifier"

    def value_of(self, dependency: DependencyRecord) -> str:
        return dependency.classifier or ""


class TypeFilter(ValueFilter):
    dimension = "type"

    def value_of(self, dependency: DependencyRecord) -> str:
        return dependency.type or "jar"


class ReactorExclusionFilter(DependencyFilter):
    """Drops anything that the current multi-module build produces itself.

    Used both on declared dependencies and, through ``accepts``, on the
    artifacts a single resolution yields.
    """

    def __init__(self, reactor_modules: Iterable[Coordinate]):
        self.reactor_keys = frozenset(
            (module.group, module.artifact, module.version) for module in reactor_modules
        )

    def _in_reactor(self, group: str, artifact: str, version: str) -> bool:
        if (group, artifact, version) in self.reactor_keys:
            logger.debug(
                "Skipped artifact because it is present in the reactor",
                artifact=f"{group}:{artifact}:{version}",
            )
            return True
        return False

    def keep(self, dependency: DependencyRecord) -> bool:
        return not self._in_reactor(dependency.group, dependency.artifact, dependency.version)

    def accepts(self, artifact: ResolvedArtifact) -> bool:
        c = artifact.coordinate
        return not self._in_reactor(c.group, c.artifact, c.version)

    def __repr__(self) -> str:
        return f"ReactorExclusionFilter(modules={len(self.reactor_keys)})"


class FilterChain:
    """An ordered, fixed sequence of filters applied one after another."""

    def __init__(self, *filters: DependencyFilter):
        self.filters = tuple(filters)

    def filter(self, dependencies: Iterable[DependencyRecord]) -> frozenset[DependencyRecord]:
        """Apply every filter in order to the deduplicated input.

        Args:
            dependencies: Declared dependency records

        Returns:
            The records every filter keeps
        """
        filtered = frozenset(dependencies)
        for dependency_filter in self.filters:
            filtered = dependency_filter.filter(filtered)
        return filtered

    def __len__(self) -> int:
        return len(self.filters)

    def __repr__(self) -> str:
        return f"FilterChain(filters={list(self.filters)})"
