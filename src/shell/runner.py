"""Execution of buildpack scripts with captured output.

A script is assembled from the shared ``common.sh`` prelude, the buildpack's
``base.sh`` and the named script body, written to a uniquely named file in
the working directory, executed there and removed again on every exit path.
"""

from __future__ import annotations

import logging
import os
import signal
import stat
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from typing import IO, Dict, List, Mapping, Optional

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from errors import ScriptTimeout, SubprocessFailure

logger = logging.getLogger(__name__)


@dataclass
class ScriptResult:
    """Complete result of one script run."""

    name: str
    stdout: str
    stderr: str
    combined: str
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def assemble_script(common: str, base: str, name: str, body: str) -> str:
    """Concatenate prelude, base and body into one executable text."""
    contents = f"{common}\n\n# base.sh\n{base}\n\n# {name}\n{body}\n"
    if not contents.startswith("#!"):
        contents = f"{Constants.DEFAULT_SHEBANG}\n{contents}"
    return contents


def script_env(env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Flattened build context plus the few host variables scripts need to run."""
    result = {k: os.environ[k] for k in Constants.PASSTHROUGH_ENV if k in os.environ}
    for key, value in (env or {}).items():
        result[str(key)] = "" if value is None else str(value)
    return result


class _Collector:
    """Drains both pipes so that stdout, stderr and their interleaving are kept."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.stdout: List[str] = []
        self.stderr: List[str] = []
        self.combined: List[str] = []

    def drain(self, stream: IO[bytes], sink: List[str]) -> None:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace")
            with self._lock:
                sink.append(line)
                self.combined.append(line)
        stream.close()


class ScriptRunner:
    """Runs assembled buildpack scripts as subprocesses.

    Args:
        timeout: Default deadline in seconds; None waits indefinitely.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        name: str,
        body: str,
        work_dir: str,
        env: Optional[Mapping[str, str]] = None,
        common: str = "",
        base: str = "",
        timeout: Optional[float] = None,
    ) -> str:
        """Run a script and return its stdout with surrounding whitespace removed.

        Raises:
            SubprocessFailure: The script could not start or exited non-zero.
            ScriptTimeout: The script ran past its deadline.
        """
        result = self.execute(name, body, work_dir, env=env, common=common, base=base, timeout=timeout)
        if not result.succeeded:
            raise SubprocessFailure(
                name,
                f"exit status {result.exit_code}",
                combined=result.combined,
                exit_code=result.exit_code,
            )
        return result.stdout.strip()

    def execute(
        self,
        name: str,
        body: str,
        work_dir: str,
        env: Optional[Mapping[str, str]] = None,
        common: str = "",
        base: str = "",
        timeout: Optional[float] = None,
    ) -> ScriptResult:
        """Run a script to completion; a non-zero exit is reported, not raised."""
        deadline = timeout if timeout is not None else self.timeout
        contents = assemble_script(common, base, name, body)

        try:
            fd, path = tempfile.mkstemp(prefix=Constants.SCRIPT_PREFIX, suffix="-" + name, dir=work_dir)
        except OSError as e:
            raise SubprocessFailure(name, f"unable to write script: {e}") from e
        try:
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(contents)
                os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            except OSError as e:
                raise SubprocessFailure(name, f"unable to write script: {e}") from e

            if is_debug_enabled(logger):
                logger.debug(
                    "Running script",
                    extra=extra_context(event="script_start", component="shell", action=name, target=work_dir),
                )
            with Timer() as timer:
                result = self._spawn(name, path, work_dir, script_env(env), deadline)
            if is_debug_enabled(logger):
                logger.debug(
                    "Script finished",
                    extra=extra_context(
                        event="script_exit",
                        component="shell",
                        action=name,
                        outcome=result.exit_code,
                        duration_ms=round(timer.duration_ms, 1),
                    ),
                )
            return result
        finally:
            try:
                os.unlink(path)
            except OSError:
                logger.debug("Failed to remove script file: %s", path)

    def _spawn(self, name: str, path: str, work_dir: str, env: Dict[str, str],
               deadline: Optional[float]) -> ScriptResult:
        try:
            proc = subprocess.Popen(  # noqa: S603
                [path],
                cwd=work_dir,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise SubprocessFailure(name, f"unable to start: {e}") from e

        collector = _Collector()
        readers = [
            threading.Thread(target=collector.drain, args=(proc.stdout, collector.stdout), daemon=True),
            threading.Thread(target=collector.drain, args=(proc.stderr, collector.stderr), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            exit_code = proc.wait(timeout=deadline)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            proc.wait()
            for reader in readers:
                reader.join(timeout=5)
            logger.error("Script %s timed out after %ss; killed", name, deadline)
            raise ScriptTimeout(name, float(deadline), "".join(collector.combined))  # type: ignore[arg-type]

        for reader in readers:
            reader.join()

        return ScriptResult(
            name=name,
            stdout="".join(collector.stdout),
            stderr="".join(collector.stderr),
            combined="".join(collector.combined),
            exit_code=exit_code,
        )


def _kill_group(proc: subprocess.Popen) -> None:
    """Terminate the script and anything it spawned."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()
