"""Target base class and the context handed to every lifecycle hook.

A target is one named pipeline step. The engine calls, in order: ``check``,
``container_is_stale`` (then ``fingerprint``/``previous_build_exists`` when
reuse is allowed), ``pre_build``, ``build_spec``, ``execute``,
``published_state`` and finally ``run_spec`` for the requested target.
Subclasses override only the hooks they need.
"""

from __future__ import annotations

import hashlib
import os
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Type

from build_context import BuildContext
from buildpacks.models import RunnableBuildpack
from constants import Constants
from container import ContainerBuilder
from errors import CheckFailed
from shell.runner import ScriptRunner

from .specs import BuildSpec, RunSpec
from .state import TargetState

_SKIP_DIRS = {".git", ".hg", ".svn", "node_modules"}


def tree_fingerprint(root: str) -> str:
    """Content hash of a source tree, ignoring VCS metadata and temp scripts."""
    digest = hashlib.sha256()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for filename in sorted(filenames):
            if filename.startswith(Constants.SCRIPT_PREFIX):
                continue
            path = os.path.join(dirpath, filename)
            if not os.path.isfile(path):
                continue
            digest.update(os.path.relpath(path, root).encode("utf-8"))
            digest.update(b"\0")
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(65536), b""):
                    digest.update(chunk)
            digest.update(b"\0")
    return digest.hexdigest()


@dataclass
class TargetContext:
    """Per-invocation collaborators shared by all targets."""
    build: BuildContext
    buildpack: RunnableBuildpack
    runner: ScriptRunner
    builder: ContainerBuilder
    label_prefix: str = ""
    artifacts_dir: str = Constants.ARTIFACTS_DIR
    timeout: Optional[float] = None
    cleanup: ExitStack = field(default_factory=ExitStack)

    @property
    def work_dir(self) -> str:
        return self.build.work_dir

    def script_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        env = self.build.buildpack_env(self.buildpack)
        env.update(extra or {})
        return env

    def run_script(self, name: str, body: str, extra_env: Optional[Mapping[str, str]] = None) -> str:
        """Run one of the bound buildpack's scripts in the work dir."""
        scripts = self.buildpack.scripts
        return self.runner.run(
            name, body, self.work_dir,
            env=self.script_env(extra_env), common=scripts.common, base=scripts.base,
            timeout=self.timeout,
        )


class Target:
    """One orderable build step.

    Attributes:
        name: Target name, unique within a buildpack.
        accepts: Producer name -> state type this target can consume.
        runnable: Whether a run specification can be produced.
        built_image: Image reference set by the engine after build or reuse.
    """

    name = ""
    description = ""
    accepts: Dict[str, Type[TargetState]] = {}
    runnable = False

    def __init__(self) -> None:
        self.built_image: Optional[str] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"

    def depends_on(self) -> List[str]:
        return []

    def run_after(self) -> List[str]:
        return []

    def check(self, ctx: TargetContext) -> None:
        """Raise CheckFailed when the project cannot be built by this target."""

    def fail(self, message: str) -> CheckFailed:
        return CheckFailed(self.name, message)

    def container_is_stale(self, ctx: TargetContext) -> Tuple[bool, str]:
        """Return (stale, reason). Not stale lets the engine look for a previous build."""
        return False, "reusable while its content is unchanged"

    def fingerprint(self, ctx: TargetContext) -> str:
        bp = ctx.buildpack
        digest = hashlib.sha256()
        for part in (self.name, bp.name, bp.resolved_version, tree_fingerprint(ctx.work_dir)):
            digest.update(part.encode("utf-8"))
            digest.update(b"\0")
        return digest.hexdigest()

    def previous_build_exists(self, ctx: TargetContext, fingerprint: str) -> bool:
        tag = ctx.build.fingerprint_tag(self.name, fingerprint)
        if ctx.builder.image_exists(tag):
            self.built_image = tag
            return True
        return False

    def pre_build(self, ctx: TargetContext) -> None:
        """Side effects needed before the image is built."""

    def build_spec(self, ctx: TargetContext) -> Optional[BuildSpec]:
        """Image to build, or None for targets that do not produce one."""
        return None

    def execute(self, ctx: TargetContext) -> None:
        """Target-side work after the image (if any) was built."""

    def published_state(self, ctx: TargetContext) -> Optional[TargetState]:
        return None

    def set_state(self, from_target: str, state: TargetState) -> None:
        """Receive state from a dependency; unrelated producers are ignored."""

    def run_spec(self, ctx: TargetContext) -> Optional[RunSpec]:
        return None

    def container_name(self, ctx: TargetContext) -> str:
        return f"{ctx.build.canonical_package_name}-{self.name}"

    def base_spec(self, ctx: TargetContext) -> BuildSpec:
        """Build spec seeded with the stack's base image and identifying labels."""
        bp = ctx.buildpack
        spec = BuildSpec(
            from_image=bp.base_image(self.name),
            workdir=Constants.APP_DIR,
            label_prefix=ctx.label_prefix,
        )
        spec.add_label("stack.id", bp.name)
        spec.add_label("stack.name", bp.buildpack.description or bp.name)
        spec.add_label("stack.version", bp.resolved_version)
        spec.add_label("package.name", ctx.build.canonical_package_name)
        spec.add_label("package.revision", ctx.build.commit_sha)
        spec.add_label("build.number", str(ctx.build.build_number))
        return spec
