"""Build targets, their ordering and execution."""

from .base import Target, TargetContext, tree_fingerprint
from .engine import Engine, RunResult, Status, TargetOutcome
from .graph import resolve
from .registry import targets_for
from .specs import Add, BuildSpec, RunSpec
from .state import CompiledArtifact, TargetState, TestReport

__all__ = [
    "Add",
    "BuildSpec",
    "CompiledArtifact",
    "Engine",
    "RunResult",
    "RunSpec",
    "Status",
    "Target",
    "TargetContext",
    "TargetOutcome",
    "TargetState",
    "TestReport",
    "resolve",
    "targets_for",
    "tree_fingerprint",
]
