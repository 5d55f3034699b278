"""Sequential execution of a resolved target plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Sequence

from common.logging_utils import Timer, extra_context, is_debug_enabled
from errors import CheckFailed, ContainerBuildFailed, ScriptTimeout, StateShapeMismatch, SubprocessFailure

from .base import Target, TargetContext
from .graph import resolve
from .specs import BuildSpec, RunSpec
from .state import TargetState

logger = logging.getLogger(__name__)


class Status(Enum):
    """What happened to a target during one run."""

    BUILT = "built"
    REUSED = "reused"
    EXECUTED = "executed"


@dataclass
class TargetOutcome:
    name: str
    status: Status
    reason: str = ""
    tags: List[str] = field(default_factory=list)
    build_spec: Optional[BuildSpec] = None


@dataclass
class RunResult:
    """Per-target outcomes in execution order plus the requested target's run spec."""
    outcomes: List[TargetOutcome] = field(default_factory=list)
    run_spec: Optional[RunSpec] = None

    def outcome(self, name: str) -> Optional[TargetOutcome]:
        for item in self.outcomes:
            if item.name == name:
                return item
        return None


class Engine:
    """Drives targets through their lifecycle hooks.

    Args:
        targets: Every target the bound buildpack offers, by name.
    """

    def __init__(self, targets: Mapping[str, Target]):
        self.targets = dict(targets)

    def plan(self, requested: str) -> List[Target]:
        return resolve(self.targets, requested)

    def run(self, requested: str, ctx: TargetContext) -> RunResult:
        """Resolve ``requested`` and execute the resulting plan."""
        plan = self.plan(requested)
        logger.info("Plan for %s: %s", requested, " -> ".join(t.name for t in plan))
        return self.execute(plan, ctx)

    def execute(self, ordered: Sequence[Target], ctx: TargetContext) -> RunResult:
        """Execute an already ordered plan; the last target is the requested one.

        Cleanup callbacks registered on ``ctx.cleanup`` run when this returns
        or raises.
        """
        result = RunResult()
        with ctx.cleanup:
            for index, target in enumerate(ordered):
                with Timer() as timer:
                    outcome = self._run_target(target, ctx)
                result.outcomes.append(outcome)
                logger.info("Target %s %s (%s)", target.name, outcome.status.value, outcome.reason)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Target finished",
                        extra=extra_context(
                            event="target_done", component="engine", action=target.name,
                            outcome=outcome.status.value, duration_ms=round(timer.duration_ms, 1),
                        ),
                    )
                state = target.published_state(ctx)
                if state is not None:
                    self._deliver(target.name, state, ordered[index + 1:])

            if ordered and ordered[-1].runnable:
                result.run_spec = ordered[-1].run_spec(ctx)
        return result

    @staticmethod
    def _check(target: Target, ctx: TargetContext) -> None:
        try:
            target.check(ctx)
        except ScriptTimeout:
            raise
        except SubprocessFailure as e:
            raise CheckFailed(target.name, str(e)) from e

    def _run_target(self, target: Target, ctx: TargetContext) -> TargetOutcome:
        self._check(target, ctx)

        stale, reason = target.container_is_stale(ctx)
        fingerprint = None
        if not stale:
            fingerprint = target.fingerprint(ctx)
            if target.previous_build_exists(ctx, fingerprint):
                tags = [target.built_image] if target.built_image else []
                return TargetOutcome(target.name, Status.REUSED, reason, tags=tags)
            reason = "no previous build with matching content"

        target.pre_build(ctx)
        spec = target.build_spec(ctx)
        tags: List[str] = []
        if spec is not None:
            tags.append(ctx.build.image_tag(target.name))
            if fingerprint:
                tags.append(ctx.build.fingerprint_tag(target.name, fingerprint))
            logger.info("Building image %s", tags[0])
            if not ctx.builder.build(spec, tags, ctx.work_dir):
                raise ContainerBuildFailed(
                    f"target {target.name}: container build failed",
                    {"target": target.name, "tags": tags},
                )
            target.built_image = tags[0]
        target.execute(ctx)
        status = Status.BUILT if spec is not None else Status.EXECUTED
        return TargetOutcome(target.name, status, reason, tags=tags, build_spec=spec)

    @staticmethod
    def _deliver(producer: str, state: TargetState, later: Sequence[Target]) -> None:
        for dependent in later:
            if producer not in dependent.depends_on():
                continue
            expected = dependent.accepts.get(producer)
            if expected is None:
                logger.debug("Target %s ignores state from %s", dependent.name, producer)
                continue
            payload = state
            if isinstance(payload, Mapping) and hasattr(expected, "from_mapping"):
                payload = expected.from_mapping(payload, producer=producer)
            if not isinstance(payload, expected):
                raise StateShapeMismatch(
                    f"target {dependent.name}: got {type(payload).__name__} from {producer} target; "
                    f"expected {expected.__name__}",
                    {"target": dependent.name, "producer": producer},
                )
            dependent.set_state(producer, payload)
