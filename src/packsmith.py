"""packsmith - detect a project's stack and build it with buildpacks.

    Returns:
        int: Exit code
"""
import logging
import os
import sys

from args import parse_args
from build_context import BuildContext, BuildNumbers, parse_build_number_override, read_git_info
from buildpacks.catalog import load_buildpacks
from buildpacks.detect import detect_any
from buildpacks.models import Buildpacks, RunnableBuildpack
from cli_config import Settings, apply_cli_overrides, load_settings
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from container import DockerCli
from errors import PacksmithError, UnknownTarget
from shell.runner import ScriptRunner
from targets.base import TargetContext
from targets.engine import Engine
from targets.registry import targets_for

logger = logging.getLogger(__name__)


def load_catalog(settings: Settings) -> Buildpacks:
    return load_buildpacks(os.path.expanduser(settings.catalog_dir), settings.buildpacks)


def build_context(args, settings: Settings, allocate: bool = False) -> BuildContext:
    """Assemble the build context for the project directory.

    Args:
        args: Parsed CLI arguments.
        settings: Resolved settings.
        allocate: Take a new build number instead of peeking at the current one.
    """
    work_dir = os.path.abspath(args.DIRECTORY)
    git = read_git_info(work_dir)
    override = parse_build_number_override(os.environ.get(Constants.ENV_BUILD_NUMBER))
    numbers = BuildNumbers(settings.build_numbers_dir)
    if allocate:
        number = numbers.next(git.canonical_name, git.commit_sha, override)
    elif override is not None:
        number = override
    else:
        number = numbers.current(git.canonical_name, git.commit_sha)
    return BuildContext(git=git, build_number=number, docker_registry=settings.docker_registry, work_dir=work_dir)


def detect_project(ctx: BuildContext, settings: Settings, runner: ScriptRunner) -> RunnableBuildpack:
    """Detect the single buildpack for the project, failing when none matches."""
    runnable = detect_any(load_catalog(settings), ctx.work_dir, runner, env=ctx.buildpack_env())
    if runnable is None:
        raise PacksmithError(
            f"no buildpack detected for {ctx.work_dir}",
            {"work_dir": ctx.work_dir},
            hint="Run 'packsmith buildpacks' to see which project types are supported",
        )
    return runnable


def target_context(args, settings: Settings, allocate: bool = False):
    runner = ScriptRunner(settings.script_timeout)
    ctx = build_context(args, settings, allocate)
    runnable = detect_project(ctx, settings, runner)
    return TargetContext(
        build=ctx,
        buildpack=runnable,
        runner=runner,
        builder=DockerCli(settings.docker_binary),
        label_prefix=settings.label_prefix,
        artifacts_dir=settings.artifacts_dir,
        timeout=settings.script_timeout,
    )


def cmd_detect(args, settings: Settings) -> ExitCodes:
    runner = ScriptRunner(settings.script_timeout)
    ctx = build_context(args, settings)
    runnable = detect_project(ctx, settings, runner)
    print(f"{runnable.name} {runnable.resolved_version}")
    return ExitCodes.SUCCESS


def cmd_build(args, settings: Settings) -> ExitCodes:
    tctx = target_context(args, settings, allocate=True)
    result = Engine(targets_for(tctx.buildpack)).run(args.target, tctx)
    for outcome in result.outcomes:
        line = f"{outcome.name}: {outcome.status.value}"
        if outcome.tags:
            line += f" {outcome.tags[0]}"
        print(line)
    return ExitCodes.SUCCESS


def cmd_dockerfile(args, settings: Settings) -> ExitCodes:
    tctx = target_context(args, settings)
    targets = targets_for(tctx.buildpack)
    target = targets.get(args.target)
    if target is None:
        raise UnknownTarget(f"target {args.target!r} not found; available: {', '.join(sorted(targets))}")
    target.check(tctx)
    spec = target.build_spec(tctx)
    if spec is None:
        raise PacksmithError(f"target {args.target} does not build an image")
    sys.stdout.write(spec.render())
    return ExitCodes.SUCCESS


def cmd_image(args, settings: Settings) -> ExitCodes:
    ctx = build_context(args, settings)
    if ctx.build_number == 0:
        raise PacksmithError(f"no builds yet for {ctx.git.canonical_name}@{ctx.commit_sha}")
    print(ctx.image_tag(args.target))
    return ExitCodes.SUCCESS


def cmd_run(args, settings: Settings) -> ExitCodes:
    tctx = target_context(args, settings, allocate=True)
    result = Engine(targets_for(tctx.buildpack)).run(args.target, tctx)
    if result.run_spec is None:
        raise PacksmithError(f"target {args.target} is not runnable")
    logger.info("Starting %s", result.run_spec.image)
    status = tctx.builder.run(result.run_spec)
    return ExitCodes.SUCCESS if status == 0 else ExitCodes.BUILD_ERROR


def cmd_buildpacks(args, settings: Settings) -> ExitCodes:  # pylint: disable=unused-argument
    packs = load_catalog(settings)
    for pack in packs:
        versions = ", ".join(pack.stack_versions.versions()) or "(none)"
        default = pack.default_version_range or "(none)"
        print(f"{pack.name}\t{pack.description}\tdefault: {default}\tversions: {versions}")
    return ExitCodes.SUCCESS


COMMANDS = {
    "detect": cmd_detect,
    "build": cmd_build,
    "dockerfile": cmd_dockerfile,
    "image": cmd_image,
    "run": cmd_run,
    "buildpacks": cmd_buildpacks,
}


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND),
        )

    try:
        settings = apply_cli_overrides(load_settings(args.CONFIG), args)
        code = COMMANDS[args.COMMAND](args, settings)
    except PacksmithError as e:
        logger.error("%s", e)
        details = {k: v for k, v in e.details.items() if k != "output"}
        if details:
            logger.error("Details: %s", details)
        if e.hint:
            logger.info("Hint: %s", e.hint)
        sys.exit(ExitCodes.BUILD_ERROR.value)
    sys.exit(code.value)


if __name__ == "__main__":
    main()
