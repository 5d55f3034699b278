"""Shared fixtures: throwaway buildpack catalogs, contexts and a fake builder."""

import os
import textwrap

import pytest
import yaml

from build_context import BuildContext, GitInfo
from buildpacks.models import Buildpack, BuildpackScripts, RunnableBuildpack, StackVersionCatalog
from shell.runner import ScriptRunner
from targets.base import TargetContext
from versioning.resolver import parse_range


def write_script(path, body):
    with open(path, "w", encoding="utf-8") as f:
        f.write(textwrap.dedent(body).lstrip())


def make_buildpack_dir(root, name, detect="exit 1", command="echo", compile_="exit 0", test="exit 0",
                       base="", stack=None):
    """Create ``<root>/<name>`` with all required scripts and an optional stack.yml."""
    path = os.path.join(str(root), name)
    os.makedirs(path, exist_ok=True)
    for script, body in (("base.sh", base), ("command.sh", command), ("compile.sh", compile_),
                         ("detect.sh", detect), ("test.sh", test)):
        write_script(os.path.join(path, script), body)
    if stack is not None:
        with open(os.path.join(path, "stack.yml"), "w", encoding="utf-8") as f:
            yaml.safe_dump(stack, f)
    return path


NODEJS_STACK = {
    "description": "NodeJS",
    "default_version": "^6",
    "versions": {
        "4.4.7": {"app": "docker.local/nodejs:4.4.7", "compile": "docker.local/nodejs-build:4.4.7"},
        "6.9.1": {"app": "docker.local/nodejs:6.9.1", "compile": "docker.local/nodejs-build:6.9.1"},
    },
}


class FakeBuilder:
    """Records builds instead of calling docker."""

    def __init__(self, existing=(), succeed=True):
        self.builds = []
        self.existing = set(existing)
        self.succeed = succeed
        self.runs = []

    def build(self, spec, tags, context_dir):
        self.builds.append((spec, list(tags), context_dir))
        if self.succeed:
            self.existing.update(tags)
        return self.succeed

    def image_exists(self, tag):
        return tag in self.existing

    def run(self, spec):
        self.runs.append(spec)
        return 0


@pytest.fixture
def fake_builder():
    return FakeBuilder()


@pytest.fixture
def runnable():
    """A nodejs buildpack bound to 6.9.1 with trivial scripts."""
    pack = Buildpack(
        name="nodejs",
        description="NodeJS",
        scripts=BuildpackScripts(command="echo node index.js", compile="exit 0", detect="exit 1", test="exit 0"),
        default_version_range="^6",
        stack_versions=StackVersionCatalog(NODEJS_STACK["versions"]),
    )
    return RunnableBuildpack(pack, "default", parse_range("^6"), "6.9.1")


@pytest.fixture
def build_ctx(tmp_path):
    work = tmp_path / "project"
    work.mkdir()
    return BuildContext(
        git=GitInfo(commit_sha="0123456789abcdef0123", canonical_name="github.com/acme/widget"),
        build_number=3,
        docker_registry="docker.local",
        work_dir=str(work),
    )


@pytest.fixture
def target_ctx(build_ctx, runnable, fake_builder, tmp_path):
    return TargetContext(
        build=build_ctx,
        buildpack=runnable,
        runner=ScriptRunner(timeout=30),
        builder=fake_builder,
        label_prefix="com.packsmith",
        artifacts_dir=str(tmp_path / "artifacts"),
    )
