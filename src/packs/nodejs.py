"""NodeJS specialisation: the app target reads package.json."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import CheckFailed
from targets.base import TargetContext
from targets.builtin import AppTarget
from targets.specs import BuildSpec
from versioning.resolver import best_match, parse_range

logger = logging.getLogger(__name__)

NPM_VERSIONS = ["3.3.4", "2.4.15"]
DEFAULT_NPM_VERSION = "2.4.15"


@dataclass
class NodePackage:
    """The parts of package.json the NodeJS pack cares about."""
    name: str = ""
    version: str = ""
    engines: Dict[str, str] = field(default_factory=dict)
    scripts: Dict[str, str] = field(default_factory=dict)

    @property
    def start(self) -> str:
        return (self.scripts.get("start") or "").strip()


def load_package_json(work_dir: str) -> NodePackage:
    """Read ``package.json`` from ``work_dir``; missing fields default to empty."""
    path = os.path.join(work_dir, "package.json")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
    except FileNotFoundError as e:
        raise CheckFailed("app", f"no package.json in {work_dir}") from e
    except (OSError, ValueError) as e:
        raise CheckFailed("app", f"unable to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise CheckFailed("app", f"{path} is not a JSON object")
    return NodePackage(
        name=str(data.get("name") or ""),
        version=str(data.get("version") or ""),
        engines={k: str(v) for k, v in (data.get("engines") or {}).items()},
        scripts={k: str(v) for k, v in (data.get("scripts") or {}).items()},
    )


def npm_major_version(package: NodePackage) -> str:
    """Major version of npm to install, chosen from ``engines.npm``."""
    requested = package.engines.get("npm")
    if not requested:
        return DEFAULT_NPM_VERSION.split(".")[0]
    try:
        match = best_match(parse_range(requested), NPM_VERSIONS)
    except ValueError:
        match = None
    if match is None:
        raise CheckFailed(
            "app",
            f"npm version {requested} not supported; available npm version ranges are: '^3' and '^2'",
        )
    return str(match.major)


class NodeJSAppTarget(AppTarget):
    """Uses package.json ``scripts.start`` as the container command.

    If the pack supports the ``compile`` target its artifact is first added
    to /srv/app/ inside the container.
    """

    def __init__(self) -> None:
        super().__init__()
        self.package: Optional[NodePackage] = None

    def start_command(self, ctx: TargetContext) -> List[str]:
        self.package = load_package_json(ctx.work_dir)
        # invoke the start script directly so signals reach the app
        return self.package.start.split()

    def check(self, ctx: TargetContext) -> None:
        self.command = self.start_command(ctx)
        if not self.command:
            raise self.fail("package.json does not specify a start script")

    def build_spec(self, ctx: TargetContext) -> Optional[BuildSpec]:
        spec = super().build_spec(ctx)
        package = self.package or load_package_json(ctx.work_dir)
        spec.add_run(f"npm install -g npm@{npm_major_version(package)}")
        spec.add_label("stack.nodejs.version", ctx.buildpack.resolved_version)
        return spec
