"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    BUILD_ERROR = 1
    USAGE_ERROR = 2


class Scripts(Enum):
    """Script files every buildpack directory must provide.

    Args:
        Enum (string): File names inside a buildpack directory.
    """

    BASE = "base.sh"
    COMMAND = "command.sh"
    COMPILE = "compile.sh"
    DETECT = "detect.sh"
    TEST = "test.sh"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    COMMON_SCRIPT = "common.sh"
    LIST_BASE_IMAGE_SCRIPT = "list-base-image.sh"
    STACK_FILE = "stack.yml"
    DEFAULT_VERSION_TOKEN = "default"
    DEFAULT_SHEBANG = "#!/usr/bin/env bash"
    SCRIPT_PREFIX = ".packsmith-"

    DEFAULT_TARGET = "app"
    DEFAULT_REGISTRY = "docker.local"
    DEFAULT_LABEL_PREFIX = "com.packsmith"
    DEFAULT_SCRIPT_TIMEOUT_SEC = 600
    APP_DIR = "/srv/app/"

    CONFIG_FILE = "~/.packsmith/config.yml"
    CATALOG_DIR = "~/.packsmith/buildpacks"
    BUILD_NUMBERS_DIR = "~/.packsmith/build_numbers"
    ARTIFACTS_DIR = "~/.packsmith/artifacts"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "PACKSMITH_LOG_LEVEL"
    ENV_CONFIG = "PACKSMITH_CONFIG"
    ENV_CATALOG_DIR = "PACKSMITH_CATALOG_DIR"
    ENV_REGISTRY = "PACKSMITH_REGISTRY"
    ENV_SCRIPT_TIMEOUT = "PACKSMITH_SCRIPT_TIMEOUT"
    ENV_BUILD_NUMBER = "BUILD_NUMBER"
    ENV_TASK_HOST = "TASK_HOST"
    ENV_DOCKER_HOST = "DOCKER_HOST"

    # Keys handed to every buildpack script. Buildpack authors depend on
    # this exact set; extend it, never rename.
    ENV_COMMIT_SHA = "BUILD_COMMIT_SHA"
    ENV_PACKAGE_NAME = "BUILD_PACKAGE_NAME"
    ENV_BUILD_NUMBER_KEY = "BUILD_NUMBER"
    ENV_WORKDIR = "BUILD_WORKDIR"
    ENV_BUILD_REGISTRY = "BUILD_REGISTRY"
    ENV_BUILDPACK_NAME = "BUILDPACK_NAME"
    ENV_STACK_VERSION = "BUILDPACK_STACK_VERSION"
    ENV_ARTIFACT_DIR = "ARTIFACT_DIR"
    PASSTHROUGH_ENV = ["PATH", "HOME"]
