"""Data models for stack version resolution."""

from dataclasses import dataclass, field
from typing import List, Optional

import semantic_version


@dataclass(frozen=True)
class VersionRange:
    """A parsed semver range together with the text it came from."""
    raw: str
    spec: semantic_version.NpmSpec = field(compare=False)
    include_prerelease: bool = False

    def matches(self, version: semantic_version.Version) -> bool:
        """Return True when ``version`` satisfies this range."""
        if version.prerelease and not self.include_prerelease:
            return False
        return self.spec.match(version)

    def __str__(self) -> str:
        return self.raw


@dataclass
class ResolutionResult:
    """Resolution outcome to feed logging and CLI output."""
    requested: str
    resolved_version: Optional[str]
    candidates: List[str]

    @property
    def found(self) -> bool:
        return self.resolved_version is not None
