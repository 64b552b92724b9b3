"""Repository configuration documents.

A configuration is a YAML document carrying an `apiVersion` and a `kind`.
The `apiVersion` selects the decoder, and every decoded version can be
upgraded step by step until it reaches `LATEST_API_VERSION`.

Implements:
- `load_config`: Read and migrate a configuration file.
- `migrate_to_latest`: Upgrade a decoded configuration.
- `config_to_yaml`: Write a configuration back out.
"""

from __future__ import annotations

import dataclasses
import glob
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, ClassVar, TypeAlias

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

if TYPE_CHECKING:
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

KIND = "Repository"
V1ALPHA1 = "aptify/v1alpha1"
V1ALPHA2 = "aptify/v1alpha2"
LATEST_API_VERSION = V1ALPHA2

ARCH_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")
NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+_-]*$")


class ConfigError(Exception):
    """The configuration document is invalid."""


def validate_architecture(arch: str) -> str:
    """Return `arch` if it is a valid Debian architecture name."""
    if not isinstance(arch, str) or not ARCH_PATTERN.match(arch):
        raise ConfigError(f"Invalid architecture: {arch!r}")
    return arch


def _validate_name(kind: str, name: str) -> None:
    if not NAME_PATTERN.match(name):
        raise ConfigError(f"Invalid {kind} name: {name!r}")


def _from_mapping(cls: type[Any], data: Any, where: str, **overrides: Any) -> Any:
    """Build the dataclass `cls` from a YAML mapping, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping for {where}, got {type(data).__name__}")

    known = {f.name for f in dataclasses.fields(cls) if f.init}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in {where}: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name not in data or f.name in overrides:
            continue
        value = data[f.name]
        if f.type == "str":
            value = "" if value is None else str(value)
        elif f.type in {"list[str]"}:
            if value is None:
                value = []
            elif not isinstance(value, list):
                raise ConfigError(f"Expected a list for {where}.{f.name}")
            value = [str(v) for v in value]
        kwargs[f.name] = value
    kwargs.update(overrides)

    try:
        return cls(**kwargs)
    except TypeError as err:
        raise ConfigError(f"Invalid {where}: {err}") from err


@dataclass(frozen=True)
class ComponentConfig:
    """A component and the packages it holds.

    Attributes:
        name: Name of the component, eg. `main`.
        packages: File system paths or glob patterns of `.deb` files.
    """

    name: str
    packages: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Any, where: str) -> ComponentConfig:
        component: ComponentConfig = _from_mapping(cls, data, where)
        _validate_name("component", component.name)
        return component


@dataclass(frozen=True)
class ReleaseConfigV1Alpha1:
    """A release as described by `aptify/v1alpha1`."""

    name: str
    version: str = ""
    origin: str = ""
    label: str = ""
    suite: str = ""
    description: str = ""
    components: list[ComponentConfig] = field(default_factory=list)


@dataclass(frozen=True)
class ReleaseConfig:
    """A release of the repository.

    Attributes:
        name: Name of the release. Used as the `Codename` and the directory
            below `dists/`.
        version: Version of the release.
        origin: The entity responsible for creating and distributing the release.
        label: A human-readable identifier for the release.
        suite: The broader collection the release belongs to, eg. `stable`.
        description: A description of the release.
        architectures: Architectures to index even when no package uses them.
        components: The components (and their packages) of the release.
    """

    name: str
    version: str = ""
    origin: str = ""
    label: str = ""
    suite: str = ""
    description: str = ""
    architectures: list[str] = field(default_factory=list)
    components: list[ComponentConfig] = field(default_factory=list)


def _decode_releases(cls: type[Any], data: Any) -> list[Any]:
    raw_releases = data.get("releases") or []
    if not isinstance(raw_releases, list):
        raise ConfigError("Expected a list of releases")

    releases = []
    for i, raw in enumerate(raw_releases):
        where = f"releases[{i}]"
        raw_components = raw.get("components") if isinstance(raw, dict) else None
        components = [
            ComponentConfig.from_mapping(c, f"{where}.components[{j}]")
            for j, c in enumerate(raw_components or [])
        ]
        release = _from_mapping(cls, raw, where, components=components)
        _validate_name("release", release.name)
        names = [c.name for c in release.components]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate component names in release {release.name}")
        if any(r.name == release.name for r in releases):
            raise ConfigError(f"Duplicate release name: {release.name}")
        releases.append(release)
    return releases


@dataclass(frozen=True)
class RepositoryV1Alpha1:
    """The first configuration schema, without architectures."""

    API_VERSION: ClassVar[str] = V1ALPHA1

    releases: list[ReleaseConfigV1Alpha1] = field(default_factory=list)
    base_dir: Path = Path()

    @classmethod
    def decode(cls, data: dict[str, Any], base_dir: Path) -> RepositoryV1Alpha1:
        return cls(_decode_releases(ReleaseConfigV1Alpha1, data), base_dir)

    def upgrade(self) -> Repository:
        """Convert to `aptify/v1alpha2`. No architectures are configured."""
        releases = [
            ReleaseConfig(
                name=r.name,
                version=r.version,
                origin=r.origin,
                label=r.label,
                suite=r.suite,
                description=r.description,
                components=list(r.components),
            )
            for r in self.releases
        ]
        return Repository(releases, self.base_dir)


@dataclass(frozen=True)
class Repository:
    """The latest configuration schema.

    Attributes:
        releases: The releases to generate.
        base_dir: Directory relative package patterns are resolved against.
    """

    API_VERSION: ClassVar[str] = V1ALPHA2

    releases: list[ReleaseConfig] = field(default_factory=list)
    base_dir: Path = Path()

    @classmethod
    def decode(cls, data: dict[str, Any], base_dir: Path) -> Repository:
        repo = cls(_decode_releases(ReleaseConfig, data), base_dir)
        for release in repo.releases:
            for arch in release.architectures:
                validate_architecture(arch)
        return repo

    def upgrade(self) -> Repository:
        return self

    def package_paths(self, component: ComponentConfig) -> list[Path]:
        """Expand the package patterns of `component`, in sorted order."""
        paths: list[Path] = []
        for pattern in component.packages:
            full_pattern = Path(pattern).expanduser()
            if not full_pattern.is_absolute():
                full_pattern = self.base_dir / full_pattern
            matches = sorted(glob.glob(str(full_pattern)))  # noqa: PTH207
            if not matches:
                logger.warning("No packages match %s", full_pattern)
            paths.extend(Path(match) for match in matches)
        return paths


VersionedConfig: TypeAlias = RepositoryV1Alpha1 | Repository

DECODERS: dict[str, type[RepositoryV1Alpha1] | type[Repository]] = {
    V1ALPHA1: RepositoryV1Alpha1,
    V1ALPHA2: Repository,
}


def migrate_to_latest(conf: VersionedConfig) -> Repository:
    """Upgrade `conf` one schema version at a time."""
    current: VersionedConfig = conf
    while current.API_VERSION != LATEST_API_VERSION:
        logger.debug("Migrating config from %s", current.API_VERSION)
        current = current.upgrade()
    return current  # type: ignore[return-value]


def config_from_yaml(stream: IO[str] | str, base_dir: StrPath = ".") -> Repository:
    """Decode a configuration document and migrate it to the latest version.

    Raises:
        ConfigError: If the document is malformed or of an unsupported version.
    """
    try:
        data = YAML(typ="safe").load(stream)
    except YAMLError as err:
        raise ConfigError(f"Failed to parse config: {err}") from err

    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping")

    api_version = data.pop("apiVersion", None)
    kind = data.pop("kind", None)
    if api_version not in DECODERS:
        raise ConfigError(f"Unsupported api version: {api_version}")
    if kind != KIND:
        raise ConfigError(f"Unsupported kind: {kind}")

    unknown = set(data) - {"releases"}
    if unknown:
        raise ConfigError(f"Unknown keys in config: {', '.join(sorted(unknown))}")

    conf = DECODERS[api_version].decode(data, Path(base_dir))
    return migrate_to_latest(conf)


def load_config(path: StrPath) -> Repository:
    """Read the configuration file at `path`.

    Relative package patterns are resolved against the file's directory.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        return config_from_yaml(f, path.resolve().parent)


def config_to_yaml(conf: VersionedConfig, stream: IO[str]) -> None:
    """Write `conf` as YAML, with its type header populated."""
    data: dict[str, Any] = {"apiVersion": conf.API_VERSION, "kind": KIND}
    data["releases"] = [dataclasses.asdict(release) for release in conf.releases]
    yaml = YAML(typ="rt")
    yaml.default_flow_style = False
    yaml.dump(data, stream)


def example_config() -> Repository:
    """A single-release configuration to start a new repository from."""
    return Repository(
        releases=[
            ReleaseConfig(
                name="stable",
                origin="aptify",
                label="aptify",
                suite="stable",
                description="Packages built with aptify",
                architectures=["amd64"],
                components=[ComponentConfig("main", ["debs/*.deb"])],
            )
        ]
    )


__all__ = [
    "LATEST_API_VERSION",
    "ComponentConfig",
    "ConfigError",
    "ReleaseConfig",
    "ReleaseConfigV1Alpha1",
    "Repository",
    "RepositoryV1Alpha1",
    "VersionedConfig",
    "config_from_yaml",
    "config_to_yaml",
    "example_config",
    "load_config",
    "migrate_to_latest",
    "validate_architecture",
]
