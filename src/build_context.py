"""Process-scoped build data: git identity, build number and registry.

The build number is a per ``(canonical name, commit)`` counter kept under the
user's home directory. Concurrent invocations serialise the
read-increment-write under an advisory lock so each build observes a unique
number. An explicit override bypasses the counter file entirely.
"""

from __future__ import annotations

import fcntl
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Dict, Optional, TYPE_CHECKING

from constants import Constants
from errors import BuildNumberError, PacksmithError

if TYPE_CHECKING:
    from buildpacks.models import RunnableBuildpack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitInfo:
    """Opaque git identity of the project being built."""
    commit_sha: str
    canonical_name: str


@dataclass(frozen=True)
class BuildContext:
    """Everything scripts and targets need to know about the current build."""
    git: GitInfo
    build_number: int
    docker_registry: str
    work_dir: str

    @property
    def canonical_package_name(self) -> str:
        return self.git.canonical_name.rstrip("/").split("/")[-1]

    @property
    def commit_sha(self) -> str:
        return self.git.commit_sha

    def image_repository(self) -> str:
        return f"{self.docker_registry}/{self.canonical_package_name}"

    def image_tag(self, target: str) -> str:
        """Tag for the image a target builds in this invocation."""
        return f"{self.image_repository()}:{target}-{self.commit_sha[:12]}-{self.build_number}"

    def fingerprint_tag(self, target: str, fingerprint: str) -> str:
        """Content-addressed tag used to find a reusable previous build."""
        return f"{self.image_repository()}:{target}-fp-{fingerprint[:16]}"

    def buildpack_env(self, runnable: Optional["RunnableBuildpack"] = None) -> Dict[str, str]:
        """Flatten the context into the environment handed to buildpack scripts."""
        env = {
            Constants.ENV_COMMIT_SHA: self.commit_sha,
            Constants.ENV_PACKAGE_NAME: self.canonical_package_name,
            Constants.ENV_BUILD_NUMBER_KEY: str(self.build_number),
            Constants.ENV_WORKDIR: self.work_dir,
            Constants.ENV_BUILD_REGISTRY: self.docker_registry,
        }
        if runnable is not None:
            env[Constants.ENV_BUILDPACK_NAME] = runnable.name
            env[Constants.ENV_STACK_VERSION] = runnable.resolved_version
        return env


def parse_build_number_override(value: Optional[str]) -> Optional[int]:
    """Parse $BUILD_NUMBER; empty means no override."""
    if value is None or not value.strip():
        return None
    try:
        number = int(value.strip())
    except ValueError as e:
        raise BuildNumberError(
            f"unable to parse ${Constants.ENV_BUILD_NUMBER} ({value}) to int",
            {"value": value},
        ) from e
    if number < 0:
        raise BuildNumberError(f"${Constants.ENV_BUILD_NUMBER} must not be negative: {value}", {"value": value})
    return number


class BuildNumbers:
    """Monotonic per-commit build counter stored on local disk.

    Args:
        store_dir: Root directory; counters live at ``<store>/<canonical name>/<commit>``.
    """

    def __init__(self, store_dir: str = Constants.BUILD_NUMBERS_DIR):
        self.store_dir = os.path.expanduser(store_dir)

    def path_for(self, canonical_name: str, commit_sha: str) -> str:
        return os.path.join(self.store_dir, canonical_name, commit_sha)

    def current(self, canonical_name: str, commit_sha: str) -> int:
        """Last allocated number for this commit, 0 when never built."""
        path = self.path_for(canonical_name, commit_sha)
        if not os.path.exists(path):
            return 0
        return self._read(path)

    def next(self, canonical_name: str, commit_sha: str, override: Optional[int] = None) -> int:
        """Allocate the next build number.

        Args:
            canonical_name: Canonical package name, e.g. ``github.com/org/repo``.
            commit_sha: Commit being built.
            override: Externally supplied number; returned as-is, storage untouched.
        """
        if override is not None:
            logger.info("Using build number %d from $%s", override, Constants.ENV_BUILD_NUMBER)
            return override

        path = self.path_for(canonical_name, commit_sha)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        with open(path + ".lock", "a+", encoding="utf-8") as lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                number = (self._read(path) if os.path.exists(path) else 0) + 1
                self._write(path, number)
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)
        logger.debug("Allocated build number %d for %s@%s", number, canonical_name, commit_sha)
        return number

    @staticmethod
    def _read(path: str) -> int:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read().strip()
        try:
            return int(text)
        except ValueError as e:
            raise BuildNumberError(
                f"unable to parse build number {text!r} (from {path}) as int",
                {"path": path},
            ) from e

    @staticmethod
    def _write(path: str, number: int) -> None:
        fd, tmp = tempfile.mkstemp(prefix=".build-number-", dir=os.path.dirname(path))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(f"{number}\n")
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def _git(work_dir: str, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=work_dir,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise PacksmithError(f"unable to run git: {e}") from e
    if result.returncode != 0:
        raise PacksmithError(
            f"git {' '.join(args)} failed: {result.stderr.strip()}",
            {"work_dir": work_dir, "output": result.stderr},
        )
    return result.stdout.strip()


def canonical_name_from_remote(remote_url: str) -> str:
    """Turn a git remote URL into ``host/org/repo``."""
    url = remote_url.strip()
    if url.endswith(".git"):
        url = url[:-4]
    if "://" in url:
        url = url.split("://", 1)[1]
        if "@" in url.split("/", 1)[0]:
            url = url.split("@", 1)[1]
    elif "@" in url and ":" in url:
        # scp-like syntax: git@host:org/repo
        url = url.split("@", 1)[1].replace(":", "/", 1)
    return url.strip("/")


def read_git_info(work_dir: str) -> GitInfo:
    """Read commit and canonical name from the repository containing ``work_dir``."""
    commit = _git(work_dir, "rev-parse", "HEAD")
    try:
        remote = _git(work_dir, "config", "--get", "remote.origin.url")
        name = canonical_name_from_remote(remote)
    except PacksmithError:
        name = os.path.basename(_git(work_dir, "rev-parse", "--show-toplevel"))
        logger.warning("No origin remote; using directory name %s as package name", name)
    return GitInfo(commit_sha=commit, canonical_name=name)
