"""Typed state published by one target and consumed by its dependents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from errors import StateShapeMismatch


@dataclass(frozen=True)
class TargetState:
    """Base for everything a target may publish."""


@dataclass(frozen=True)
class CompiledArtifact(TargetState):
    """Path to the archive produced by a compile step."""
    artifact_path: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], producer: str = "compile") -> "CompiledArtifact":
        """Accept the legacy ``{"artifactPath": ...}`` shape, failing fast otherwise."""
        if not isinstance(data, Mapping):
            raise StateShapeMismatch(
                f"got a {type(data).__name__} from {producer} target, expected a mapping",
                {"producer": producer},
            )
        path = data.get("artifactPath")
        if not path:
            raise StateShapeMismatch(
                f"got {dict(data)!r} from {producer} target; expected key 'artifactPath'",
                {"producer": producer, "keys": sorted(data)},
            )
        return cls(artifact_path=str(path))


@dataclass(frozen=True)
class TestReport(TargetState):
    """Outcome of running a buildpack's test script."""
    __test__ = False  # not a pytest test class

    passed: bool
    output: str = ""
