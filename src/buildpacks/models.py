"""Data models for buildpacks and their stack version catalogs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from errors import BuildpackMisconfiguration
from versioning.models import VersionRange


@dataclass(frozen=True)
class BuildpackScripts:
    """Script bodies of one buildpack; ``common`` is the shared catalog prelude."""
    common: str = ""
    base: str = ""
    command: str = ""
    compile: str = ""
    detect: str = ""
    test: str = ""
    list_base_image: Optional[str] = None


@dataclass(frozen=True)
class StackVersionCatalog:
    """Stack version -> {target name -> base image reference}."""
    images: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def versions(self) -> List[str]:
        return list(self.images.keys())

    def targets(self, version: str) -> List[str]:
        return sorted((self.images.get(version) or {}).keys())

    def base_image(self, buildpack: str, version: str, target: str) -> str:
        """Look up the base image for ``target`` at ``version``.

        Raises:
            BuildpackMisconfiguration: The version or target has no entry.
        """
        table = self.images.get(version)
        if not table:
            raise BuildpackMisconfiguration(
                buildpack,
                f"no base images configured for stack version {version}",
                details={"version": version, "available": self.versions()},
            )
        image = table.get(target)
        if not image:
            raise BuildpackMisconfiguration(
                buildpack,
                f"no base image for target {target!r} at stack version {version}",
                details={"version": version, "target": target, "targets": sorted(table)},
            )
        return image


@dataclass(frozen=True)
class Buildpack:
    """A named bundle of scripts plus the stack versions it can build against."""
    name: str
    description: str = ""
    scripts: BuildpackScripts = field(default_factory=BuildpackScripts)
    default_version_range: str = ""
    stack_versions: StackVersionCatalog = field(default_factory=StackVersionCatalog)


@dataclass(frozen=True)
class RunnableBuildpack:
    """A buildpack bound to the stack version detected for one project."""
    buildpack: Buildpack
    detected_version_range: str
    resolved_version_range: VersionRange
    resolved_version: str

    @property
    def name(self) -> str:
        return self.buildpack.name

    @property
    def scripts(self) -> BuildpackScripts:
        return self.buildpack.scripts

    def base_image(self, target: str) -> str:
        return self.buildpack.stack_versions.base_image(self.name, self.resolved_version, target)


class Buildpacks:
    """Ordered, name-addressable collection of loaded buildpacks."""

    def __init__(self, packs: Optional[List[Buildpack]] = None):
        self._packs: Tuple[Buildpack, ...] = tuple(packs or ())

    def __iter__(self) -> Iterator[Buildpack]:
        return iter(self._packs)

    def __len__(self) -> int:
        return len(self._packs)

    def names(self) -> List[str]:
        return [p.name for p in self._packs]

    def get(self, name: str) -> Optional[Buildpack]:
        for pack in self._packs:
            if pack.name == name:
                return pack
        return None

    def as_dict(self) -> Dict[str, Buildpack]:
        return {p.name: p for p in self._packs}
