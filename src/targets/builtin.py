"""Script-driven targets available for every buildpack.

``compile`` produces an artifact outside the image, ``app`` packages that
artifact onto the stack's base image and ``test`` runs the buildpack's test
script against the project.
"""

from __future__ import annotations

import glob
import logging
import os
import shlex
import shutil
from typing import List, Mapping, Optional, Tuple

from constants import Constants, Scripts
from errors import CheckFailed, ScriptContractViolation, StateShapeMismatch, SubprocessFailure

from .base import Target, TargetContext
from .specs import Add, BuildSpec, RunSpec, free_port, task_host
from .state import CompiledArtifact, TargetState, TestReport

logger = logging.getLogger(__name__)

_ARTIFACT_PLACEHOLDER = "<artifact path set by compile target>"


def _artifact_suffix(path: str) -> str:
    name = os.path.basename(path)
    for double in (".tar.gz", ".tar.bz2", ".tar.xz"):
        if name.endswith(double):
            return double
    return os.path.splitext(name)[1]


def temporary_link(src: str, dest: str, ctx: TargetContext) -> None:
    """Link ``src`` to ``dest`` until the engine finishes.

    Falls back to copying when a hard link is not possible (e.g. across
    devices).
    """
    if os.path.lexists(dest):
        os.unlink(dest)
    try:
        os.link(src, dest)
    except OSError:
        logger.debug("Hard link %s -> %s failed; copying", src, dest)
        shutil.copy2(src, dest)
    ctx.cleanup.callback(_remove_quietly, dest)


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


class CompileTarget(Target):
    """Runs compile.sh and caches the artifact it reports by content fingerprint."""

    name = "compile"
    description = (
        "Runs the buildpack's compile.sh in the project directory. The last line it prints "
        "is the path to the produced artifact, which later targets add to their image."
    )

    def __init__(self) -> None:
        super().__init__()
        self.artifact_path: Optional[str] = None
        self._fingerprint: Optional[str] = None

    def container_is_stale(self, ctx: TargetContext) -> Tuple[bool, str]:
        return False, "source unchanged since the cached compile"

    def fingerprint(self, ctx: TargetContext) -> str:
        self._fingerprint = super().fingerprint(ctx)
        return self._fingerprint

    def cache_dir(self, ctx: TargetContext) -> str:
        return os.path.join(os.path.expanduser(ctx.artifacts_dir), ctx.build.canonical_package_name)

    def previous_build_exists(self, ctx: TargetContext, fingerprint: str) -> bool:
        found = sorted(glob.glob(os.path.join(glob.escape(self.cache_dir(ctx)), fingerprint + "*")))
        if not found:
            return False
        self.artifact_path = found[0]
        logger.info("Reusing compiled artifact %s", self.artifact_path)
        return True

    def execute(self, ctx: TargetContext) -> None:
        cache_dir = self.cache_dir(ctx)
        os.makedirs(cache_dir, exist_ok=True)
        output = ctx.run_script(
            Scripts.COMPILE.value, ctx.buildpack.scripts.compile,
            {Constants.ENV_ARTIFACT_DIR: cache_dir},
        )
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if not lines:
            raise ScriptContractViolation(
                ctx.buildpack.name, "printed no artifact path", script=Scripts.COMPILE.value,
            )
        produced = lines[-1]
        if not os.path.isabs(produced):
            produced = os.path.join(ctx.work_dir, produced)
        if not os.path.isfile(produced):
            raise ScriptContractViolation(
                ctx.buildpack.name, f"reported artifact {produced} which does not exist",
                script=Scripts.COMPILE.value, details={"output": output},
            )

        fingerprint = self._fingerprint or self.fingerprint(ctx)
        cached = os.path.join(cache_dir, fingerprint + _artifact_suffix(produced))
        try:
            os.replace(produced, cached)
        except OSError:
            logger.debug("Rename %s -> %s failed; copying", produced, cached)
            shutil.copy2(produced, cached)
            os.unlink(produced)
        self.artifact_path = cached
        logger.info("Compiled artifact cached at %s", cached)

    def published_state(self, ctx: TargetContext) -> Optional[TargetState]:
        if self.artifact_path is None:
            return None
        return CompiledArtifact(self.artifact_path)


class AppTarget(Target):
    """Packages the compiled artifact onto the stack's base image."""

    name = "app"
    description = (
        "Adds the artifact from the compile target to /srv/app/ on the stack's base image "
        "and starts the command printed by the buildpack's command.sh."
    )
    accepts = {"compile": CompiledArtifact}
    runnable = True

    def __init__(self) -> None:
        super().__init__()
        self.artifact_path: Optional[str] = None
        self.local_artifact: Optional[str] = None
        self.command: List[str] = []

    def depends_on(self) -> List[str]:
        return ["compile"]

    def run_after(self) -> List[str]:
        return ["compile"]

    def start_command(self, ctx: TargetContext) -> List[str]:
        """Command the container starts with, split into argv."""
        return shlex.split(ctx.run_script(Scripts.COMMAND.value, ctx.buildpack.scripts.command))

    def check(self, ctx: TargetContext) -> None:
        self.command = self.start_command(ctx)
        if not self.command:
            raise self.fail("no start command; command.sh printed nothing")

    def container_is_stale(self, ctx: TargetContext) -> Tuple[bool, str]:
        return True, "it is not reusable"

    def set_state(self, from_target: str, state: TargetState) -> None:
        if from_target != "compile":
            return
        if isinstance(state, Mapping):
            state = CompiledArtifact.from_mapping(state, producer=from_target)
        if not isinstance(state, CompiledArtifact):
            raise StateShapeMismatch(
                f"target {self.name}: got {type(state).__name__} from {from_target} target; "
                "expected CompiledArtifact",
                {"target": self.name, "producer": from_target, "got": type(state).__name__},
            )
        self.artifact_path = state.artifact_path

    def pre_build(self, ctx: TargetContext) -> None:
        if not self.artifact_path:
            raise CheckFailed(self.name, "artifact path not set by compile target")
        if not os.path.isfile(self.artifact_path):
            raise CheckFailed(self.name, f"artifact not at {self.artifact_path}")
        local = Constants.SCRIPT_PREFIX + "artifact-" + os.path.basename(self.artifact_path)
        temporary_link(self.artifact_path, os.path.join(ctx.work_dir, local), ctx)
        self.local_artifact = local

    def build_spec(self, ctx: TargetContext) -> Optional[BuildSpec]:
        spec = self.base_spec(ctx)
        # tarballs are unpacked by the builder on ADD
        spec.adds.append(Add([self.local_artifact or _ARTIFACT_PLACEHOLDER], Constants.APP_DIR))
        spec.cmd = list(self.command)
        return spec

    def run_spec(self, ctx: TargetContext) -> Optional[RunSpec]:
        port0 = free_port()
        spec = RunSpec(
            image=self.built_image or ctx.build.image_tag(self.name),
            ports={port0: port0},
            name=self.container_name(ctx),
        )
        spec.add_env("PORT0", str(port0))
        spec.add_env(Constants.ENV_TASK_HOST, task_host())
        return spec

    def container_name(self, ctx: TargetContext) -> str:
        return ctx.build.canonical_package_name


class TestTarget(Target):
    """Runs test.sh in the project directory."""

    __test__ = False

    name = "test"
    description = "Runs the buildpack's test.sh against the project source."

    def __init__(self) -> None:
        super().__init__()
        self.report: Optional[TestReport] = None

    def container_is_stale(self, ctx: TargetContext) -> Tuple[bool, str]:
        return True, "tests always run"

    def execute(self, ctx: TargetContext) -> None:
        scripts = ctx.buildpack.scripts
        result = ctx.runner.execute(
            Scripts.TEST.value, scripts.test, ctx.work_dir,
            env=ctx.script_env(), common=scripts.common, base=scripts.base, timeout=ctx.timeout,
        )
        self.report = TestReport(passed=result.succeeded, output=result.combined)
        if not result.succeeded:
            raise SubprocessFailure(
                Scripts.TEST.value, f"tests failed with exit status {result.exit_code}",
                combined=result.combined, exit_code=result.exit_code,
            )

    def published_state(self, ctx: TargetContext) -> Optional[TargetState]:
        return self.report
