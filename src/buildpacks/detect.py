"""Project type detection by running each buildpack's detect.sh.

The detect script contract: print exactly ``"<buildpackName> <versionToken>"``
where ``versionToken`` is ``default`` or a semver range, and exit zero. A
non-zero exit means the buildpack does not apply to the directory.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants, Scripts
from errors import (
    AmbiguousDetection,
    BuildpackMisconfiguration,
    DetectionMiss,
    ScriptContractViolation,
    ScriptTimeout,
    SubprocessFailure,
    VersionUnsatisfiable,
)
from shell.runner import ScriptRunner
from versioning.resolver import parse_range, resolve

from .models import Buildpack, RunnableBuildpack

logger = logging.getLogger(__name__)

# Errors that point at a broken buildpack or catalog rather than at the
# project; these abort detection instead of counting as "no match".
_FATAL = (BuildpackMisconfiguration, VersionUnsatisfiable, ScriptTimeout)


def _parse_detect_output(bp: Buildpack, detected: str) -> str:
    parts = detected.split()
    if len(parts) != 2 or parts[0] != bp.name:
        raise ScriptContractViolation(
            bp.name,
            f"returned {detected!r}; want '{bp.name} <stackversion>' where <stackversion> "
            "is either 'default' or semver range",
            script=Scripts.DETECT.value,
            details={"output": detected},
        )
    return parts[1]


def detect(
    bp: Buildpack,
    project_dir: str,
    runner: ScriptRunner,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> RunnableBuildpack:
    """Run ``detect.sh`` for one buildpack and bind it to a stack version.

    Args:
        bp: Buildpack whose detect.sh is run.
        project_dir: Project directory the script runs in.
        runner: Script runner.
        env: Flattened build context for the script.
        timeout: Optional per-call deadline.

    Returns:
        RunnableBuildpack with the resolved stack version.

    Raises:
        DetectionMiss: The script exited non-zero (buildpack does not apply).
        ScriptContractViolation: Output has the wrong shape or an invalid range.
        BuildpackMisconfiguration: The buildpack's default range is invalid,
            or the script could not be started.
        VersionUnsatisfiable: No catalog version satisfies the range.
    """
    script = Scripts.DETECT.value
    try:
        detected = runner.run(
            script, bp.scripts.detect, project_dir,
            env=env, common=bp.scripts.common, base=bp.scripts.base, timeout=timeout,
        )
    except ScriptTimeout:
        raise
    except SubprocessFailure as e:
        if e.exit_code is None:
            raise BuildpackMisconfiguration(
                bp.name, f"{script} could not be started: {e.message}", details={"output": e.combined}
            ) from e
        raise DetectionMiss(bp.name, "did not match", script=script, details={"output": e.combined}) from e

    token = _parse_detect_output(bp, detected)

    if token == Constants.DEFAULT_VERSION_TOKEN:
        if not bp.default_version_range:
            raise BuildpackMisconfiguration(bp.name, "no default stack version configured")
        try:
            version_range = parse_range(bp.default_version_range)
        except ValueError as e:
            raise BuildpackMisconfiguration(
                bp.name,
                f"unable to parse default stack version {bp.default_version_range!r} as semver range: {e}",
                details={"default_version": bp.default_version_range},
            ) from e
    else:
        try:
            version_range = parse_range(token)
        except ValueError as e:
            raise ScriptContractViolation(
                bp.name,
                f"unable to parse {token!r} as semver range: {e}",
                script=script,
                details={"output": detected},
            ) from e

    resolution = resolve(version_range, bp.stack_versions.versions())
    if not resolution.found:
        raise VersionUnsatisfiable(bp.name, version_range.raw, resolution.candidates)

    runnable = RunnableBuildpack(
        buildpack=bp,
        detected_version_range=token,
        resolved_version_range=version_range,
        resolved_version=resolution.resolved_version,  # type: ignore[arg-type]
    )
    if is_debug_enabled(logger):
        logger.debug(
            "Buildpack matched",
            extra=extra_context(
                event="detect", component="buildpacks", action=bp.name,
                outcome=runnable.resolved_version,
            ),
        )
    return runnable


def detect_all(
    buildpacks: Iterable[Buildpack],
    project_dir: str,
    runner: ScriptRunner,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> List[RunnableBuildpack]:
    """Probe every buildpack and collect all that match.

    Misses and script-contract violations are logged and skipped. Errors in
    a buildpack's own configuration propagate immediately.
    """
    matched: List[RunnableBuildpack] = []
    for bp in buildpacks:
        try:
            matched.append(detect(bp, project_dir, runner, env=env, timeout=timeout))
        except _FATAL:
            raise
        except DetectionMiss:
            logger.debug("Buildpack %s did not match %s", bp.name, project_dir)
        except ScriptContractViolation as e:
            logger.warning("Skipping buildpack %s: %s", bp.name, e)
    return matched


def detect_any(
    buildpacks: Iterable[Buildpack],
    project_dir: str,
    runner: ScriptRunner,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> Optional[RunnableBuildpack]:
    """Choose the single buildpack matching ``project_dir``.

    Returns:
        The matching RunnableBuildpack, or None when nothing matched.

    Raises:
        AmbiguousDetection: More than one buildpack matched.
    """
    matched = detect_all(buildpacks, project_dir, runner, env=env, timeout=timeout)
    if len(matched) > 1:
        raise AmbiguousDetection([m.name for m in matched])
    if not matched:
        logger.info("No buildpack matched %s", project_dir)
        return None
    logger.info("Detected %s (stack version %s)", matched[0].name, matched[0].resolved_version)
    return matched[0]
