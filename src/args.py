"""Argument parsing functionality for packsmith."""

import argparse
from constants import Constants

COMMANDS = ["detect", "build", "dockerfile", "image", "run", "buildpacks"]


def _add_target(parser):
    parser.add_argument("target",
                        help=f"Target to operate on (default: {Constants.DEFAULT_TARGET})",
                        nargs="?",
                        default=Constants.DEFAULT_TARGET)


def build_parser():
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="packsmith",
        description="packsmith - detect a project's stack and build it with buildpacks",
        add_help=True,
    )

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help=f"Path to YAML/JSON settings file (default: {Constants.CONFIG_FILE})",
                        action="store",
                        type=str)
    parser.add_argument("--catalog",
                        dest="CATALOG_DIR",
                        help=f"Buildpack catalog directory (default: {Constants.CATALOG_DIR})",
                        action="store",
                        type=str)
    parser.add_argument("--registry",
                        dest="REGISTRY",
                        help=f"Docker registry for image tags (default: {Constants.DEFAULT_REGISTRY})",
                        action="store",
                        type=str)
    parser.add_argument("--script-timeout",
                        dest="SCRIPT_TIMEOUT",
                        help="Deadline in seconds for each buildpack script; 0 disables it",
                        action="store",
                        type=str)
    parser.add_argument("-C", "--directory",
                        dest="DIRECTORY",
                        help="Project directory (default: current directory)",
                        action="store",
                        type=str,
                        default=".")

    sub = parser.add_subparsers(dest="COMMAND", metavar="command")
    sub.required = True

    sub.add_parser("detect", help="Detect the project's buildpack and stack version")

    build = sub.add_parser("build", help="Build a target and everything it depends on")
    _add_target(build)

    dockerfile = sub.add_parser("dockerfile", help="Print the Dockerfile a target would build")
    _add_target(dockerfile)

    image = sub.add_parser("image", help="Print the image tag of the last build of a target")
    _add_target(image)

    run = sub.add_parser("run", help="Build a target and start a container from it")
    _add_target(run)

    sub.add_parser("buildpacks", help="List the buildpacks in the catalog")

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
