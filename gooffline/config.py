"""Settings for a go-offline run."""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .filters import SCOPES, VALUE_PATTERN, FilterConfigurationError, split_values
from .models import Repository

ENV_PREFIX = "GOOFFLINE_"


class OfflineSettings(BaseModel):
    """Include/exclude parameters and resolution options."""

    model_config = ConfigDict(frozen=True)

    include_artifact_ids: tuple[str, ...] = ()
    exclude_artifact_ids: tuple[str, ...] = ()
    include_group_ids: tuple[str, ...] = ()
    exclude_group_ids: tuple[str, ...] = ()
    include_scope: tuple[str, ...] = ()
    exclude_scope: tuple[str, ...] = ()
    include_classifiers: tuple[str, ...] = ()
    exclude_classifiers: tuple[str, ...] = ()
    include_types: tuple[str, ...] = ()
    exclude_types: tuple[str, ...] = ()

    exclude_reactor: bool = True
    include_parents: bool = False
    silent: bool = False

    remote_repositories: tuple[Repository, ...] = ()
    plugin_repositories: tuple[Repository, ...] = ()

    max_concurrency: int = Field(default=6, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    @field_validator(
        "include_artifact_ids",
        "exclude_artifact_ids",
        "include_group_ids",
        "exclude_group_ids",
        "include_scope",
        "exclude_scope",
        "include_classifiers",
        "exclude_classifiers",
        "include_types",
        "exclude_types",
        mode="before",
    )
    @classmethod
    def _split(cls, value):
        return tuple(sorted(split_values(value)))

    @field_validator(
        "include_artifact_ids",
        "exclude_artifact_ids",
        "include_group_ids",
        "exclude_group_ids",
        "include_classifiers",
        "exclude_classifiers",
        "include_types",
        "exclude_types",
    )
    @classmethod
    def _well_formed(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        malformed = [v for v in value if not VALUE_PATTERN.match(v)]
        if malformed:
            raise FilterConfigurationError(f"Malformed filter value(s): {', '.join(map(repr, malformed))}")
        return value

    @field_validator("include_scope", "exclude_scope")
    @classmethod
    def _known_scopes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [scope for scope in value if scope not in SCOPES]
        if unknown:
            # pydantic only wraps ValueError, so this surfaces as a ValidationError
            raise FilterConfigurationError(f"Unknown scope(s): {', '.join(unknown)}")
        return value

    @field_validator("remote_repositories", "plugin_repositories", mode="before")
    @classmethod
    def _parse_repositories(cls, value):
        if isinstance(value, str):
            value = [v for v in value.split(",") if v.strip()]
        return tuple(_as_repository(v) for v in value or ())

    @classmethod
    def from_env(cls, environ: Mapping[str, str], **overrides) -> "OfflineSettings":
        """Build settings from ``GOOFFLINE_*`` variables.

        Args:
            environ: Environment mapping, usually ``os.environ``
            **overrides: Values taking precedence over the environment

        Returns:
            Validated settings
        """
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        values.update(overrides)
        return cls(**values)


def _as_repository(value) -> Repository:
    if isinstance(value, Repository):
        return value
    if isinstance(value, Mapping):
        return Repository(id=value["id"], url=value["url"])
    # "id::url" or a bare URL
    value = str(value).strip()
    if "::" in value:
        repo_id, url = value.split("::", 1)
        return Repository(id=repo_id.strip(), url=url.strip())
    return Repository(id=value, url=value)
