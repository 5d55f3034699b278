"""Declarative image build and container run specifications."""

from __future__ import annotations

import hashlib
import json
import os
import socket
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from constants import Constants


@dataclass
class Add:
    """Copy ``files`` from the build context to ``dest`` inside the image."""
    files: List[str]
    dest: str


@dataclass
class BuildSpec:
    """Everything the container builder needs; the equivalent of a Dockerfile."""
    from_image: str
    adds: List[Add] = field(default_factory=list)
    workdir: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    label_prefix: str = ""
    runs: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    cmd: List[str] = field(default_factory=list)

    def add_label(self, name: str, value: str) -> None:
        self.labels[name] = value

    def add_run(self, command: str) -> None:
        self.runs.append(command)

    def qualified_labels(self) -> Dict[str, str]:
        if not self.label_prefix:
            return dict(self.labels)
        return {f"{self.label_prefix}.{k}": v for k, v in self.labels.items()}

    def render(self) -> str:
        """Render as Dockerfile text."""
        lines = [f"FROM {self.from_image}"]
        for name, value in sorted(self.qualified_labels().items()):
            lines.append(f"LABEL {name}={json.dumps(value)}")
        for key, value in sorted(self.env.items()):
            lines.append(f"ENV {key}={json.dumps(value)}")
        if self.workdir:
            lines.append(f"WORKDIR {self.workdir}")
        for add in self.adds:
            lines.append(f"ADD {json.dumps(add.files + [add.dest])}")
        for run in self.runs:
            lines.append(f"RUN {run}")
        if self.cmd:
            lines.append(f"CMD {json.dumps(self.cmd)}")
        return "\n".join(lines) + "\n"

    def fingerprint(self) -> str:
        return hashlib.sha256(self.render().encode("utf-8")).hexdigest()


@dataclass
class RunSpec:
    """How to start a container from a built image."""
    image: str
    env: Dict[str, str] = field(default_factory=dict)
    ports: Dict[int, int] = field(default_factory=dict)
    name: Optional[str] = None

    def add_env(self, key: str, value: str) -> None:
        self.env[key] = value

    def docker_args(self) -> List[str]:
        args = ["run", "--rm"]
        if self.name:
            args += ["--name", self.name]
        for key, value in sorted(self.env.items()):
            args += ["-e", f"{key}={value}"]
        for host, container in sorted(self.ports.items()):
            args += ["-p", f"{host}:{container}"]
        args.append(self.image)
        return args


def free_port(host: str = "") -> int:
    """Ask the OS for a currently unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def task_host() -> str:
    """Address under which a started container can reach its host.

    $TASK_HOST wins; otherwise the host part of a tcp $DOCKER_HOST; otherwise
    this machine's resolvable address.
    """
    explicit = os.environ.get(Constants.ENV_TASK_HOST)
    if explicit:
        return explicit
    docker_host = os.environ.get(Constants.ENV_DOCKER_HOST, "")
    if docker_host.startswith("tcp://"):
        parsed = urlparse(docker_host)
        if parsed.hostname:
            return parsed.hostname
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"
