"""Target sets offered for a bound buildpack."""

from __future__ import annotations

from typing import Callable, Dict, Type

from buildpacks.models import RunnableBuildpack

from .base import Target
from .builtin import AppTarget, CompileTarget, TestTarget

DEFAULT_TARGETS: Dict[str, Type[Target]] = {
    CompileTarget.name: CompileTarget,
    AppTarget.name: AppTarget,
    TestTarget.name: TestTarget,
}


def _nodejs_overrides() -> Dict[str, Type[Target]]:
    from packs.nodejs import NodeJSAppTarget  # pylint: disable=import-outside-toplevel
    return {"app": NodeJSAppTarget}


# buildpack name -> callable returning per-target class overrides
PACK_OVERRIDES: Dict[str, Callable[[], Dict[str, Type[Target]]]] = {
    "nodejs": _nodejs_overrides,
}


def targets_for(runnable: RunnableBuildpack) -> Dict[str, Target]:
    """Fresh target instances for one invocation, by name."""
    classes = dict(DEFAULT_TARGETS)
    overrides = PACK_OVERRIDES.get(runnable.name)
    if overrides is not None:
        classes.update(overrides())
    return {name: cls() for name, cls in classes.items()}
