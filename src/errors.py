"""Typed errors raised by the detection and build pipeline.

Every error carries a short human message plus a ``details`` mapping with
the structured context (buildpack, target, script output, candidate
versions) a user needs to fix configuration without re-running verbosely.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class PacksmithError(Exception):
    """Base class for all fatal pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used for logging and JSON output."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "hint": self.hint,
        }


class ConfigError(PacksmithError):
    """Settings file is missing, unreadable or structurally invalid."""


class CatalogError(PacksmithError):
    """Buildpack catalog directory or one of its files cannot be read."""


class BuildpackError(PacksmithError):
    """Problem attributable to one buildpack; message is prefixed with its name."""

    def __init__(self, buildpack: str, message: str, script: str = "", details: Optional[Dict[str, Any]] = None,
                 hint: Optional[str] = None):
        m = f"{script}; {message}" if script else message
        merged = {"buildpack": buildpack}
        if script:
            merged["script"] = script
        merged.update(details or {})
        super().__init__(f"buildpack {buildpack}: {m}", merged, hint)
        self.buildpack = buildpack
        self.script = script


class ScriptContractViolation(BuildpackError):
    """A buildpack script printed something other than its required output shape."""


class BuildpackMisconfiguration(BuildpackError):
    """The buildpack's own static data (default range, stack table) is invalid."""

    def __init__(self, buildpack: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(buildpack, "misconfigured; " + message, details=details)


class VersionUnsatisfiable(BuildpackError):
    """No catalog version satisfies the requested range."""

    def __init__(self, buildpack: str, requested: str, available: Iterable[str]):
        candidates = list(available)
        super().__init__(
            buildpack,
            f"unable to satisfy stack version {requested!r}; available versions are: "
            f"{', '.join(candidates) or '(none)'}",
            details={"requested": requested, "available": candidates},
            hint="Request a range covered by the catalog or add the version to stack.yml",
        )
        self.requested = requested
        self.available = candidates


class DetectionMiss(BuildpackError):
    """Detection script declined the directory. Expected, not a failure."""


class AmbiguousDetection(PacksmithError):
    """More than one buildpack matched the same project directory."""

    def __init__(self, names: Iterable[str]):
        matched = list(names)
        super().__init__(
            f"multiple project types detected: {' and '.join(matched)}",
            {"buildpacks": matched},
            hint="Tighten the detect.sh scripts so only one buildpack claims the project",
        )
        self.names = matched


class DependencyCycle(PacksmithError):
    """Target dependencies do not form a DAG."""

    def __init__(self, cycle: Iterable[str]):
        path = list(cycle)
        super().__init__(f"target dependency cycle: {' -> '.join(path)}", {"cycle": path})
        self.cycle = path


class UnknownTarget(PacksmithError):
    """A requested or depended-on target name is not offered by the buildpack."""


class StateShapeMismatch(PacksmithError):
    """A target received a state payload it cannot interpret."""


class CheckFailed(PacksmithError):
    """A target precondition failed."""

    def __init__(self, target: str, message: str):
        super().__init__(f"target {target}: {message}", {"target": target})
        self.target = target


class SubprocessFailure(PacksmithError):
    """A script failed to start or exited non-zero."""

    def __init__(self, script: str, message: str, combined: str = "", exit_code: Optional[int] = None):
        text = f"{message}; output from {script}:\n{combined}" if combined else f"{message} ({script})"
        super().__init__(text, {"script": script, "exit_code": exit_code, "output": combined})
        self.script = script
        self.combined = combined
        self.exit_code = exit_code


class ScriptTimeout(SubprocessFailure):
    """A script exceeded its deadline and was killed."""

    def __init__(self, script: str, timeout: float, combined: str = ""):
        super().__init__(script, f"timed out after {timeout:g}s", combined)
        self.timeout = timeout


class BuildNumberError(PacksmithError):
    """Build number override or counter file could not be parsed."""


class ContainerBuildFailed(PacksmithError):
    """The external container builder reported failure."""
