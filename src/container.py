"""Container builder interface and the docker CLI implementation."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import List, Protocol, Sequence, TYPE_CHECKING

from constants import Constants

if TYPE_CHECKING:
    from targets.specs import BuildSpec, RunSpec

logger = logging.getLogger(__name__)


class ContainerBuilder(Protocol):
    """Anything that can turn a build spec into a tagged image."""

    def build(self, spec: "BuildSpec", tags: Sequence[str], context_dir: str) -> bool:
        """Build ``spec`` with ``context_dir`` as build context; False on failure."""

    def image_exists(self, tag: str) -> bool:
        """Whether an image with ``tag`` is available locally."""

    def run(self, spec: "RunSpec") -> int:
        """Start a container and return its exit status."""


class DockerCli:
    """ContainerBuilder backed by the ``docker`` command line client."""

    def __init__(self, binary: str = "docker"):
        self.binary = binary

    def _call(self, args: List[str]) -> subprocess.CompletedProcess:
        logger.debug("Running %s %s", self.binary, " ".join(args))
        return subprocess.run([self.binary, *args], check=False)  # noqa: S603

    def build(self, spec: "BuildSpec", tags: Sequence[str], context_dir: str) -> bool:
        fd, dockerfile = tempfile.mkstemp(prefix=Constants.SCRIPT_PREFIX, suffix="-Dockerfile", dir=context_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(spec.render())
            args = ["build", "-f", dockerfile]
            for tag in tags:
                args += ["-t", tag]
            args.append(context_dir)
            try:
                result = self._call(args)
            except OSError as e:
                logger.error("Unable to run %s: %s", self.binary, e)
                return False
            return result.returncode == 0
        finally:
            os.unlink(dockerfile)

    def image_exists(self, tag: str) -> bool:
        try:
            result = subprocess.run(  # noqa: S603
                [self.binary, "image", "inspect", tag],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            logger.warning("Unable to run %s: %s", self.binary, e)
            return False
        return result.returncode == 0

    def run(self, spec: "RunSpec") -> int:
        return self._call(spec.docker_args()).returncode
