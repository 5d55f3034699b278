"""Tests for project type detection."""

import pytest

from buildpacks.catalog import load_buildpacks
from buildpacks.detect import detect, detect_all, detect_any
from errors import (
    AmbiguousDetection,
    BuildpackMisconfiguration,
    DetectionMiss,
    ScriptContractViolation,
    VersionUnsatisfiable,
)
from shell.runner import ScriptRunner
from conftest import NODEJS_STACK, make_buildpack_dir, write_script

NODE_DETECT = """
if [ -f package.json ]; then
  echo "nodejs ${NODE_RANGE:-default}"
else
  exit 1
fi
"""


@pytest.fixture
def project(tmp_path):
    work = tmp_path / "project"
    work.mkdir()
    (work / "package.json").write_text("{}", encoding="utf-8")
    return str(work)


def _catalog(tmp_path, **packs):
    root = tmp_path / "catalog"
    root.mkdir(exist_ok=True)
    for name, kwargs in packs.items():
        make_buildpack_dir(root, name, **kwargs)
    return load_buildpacks(str(root))


class TestDetect:
    """Single buildpack detection contract."""

    def test_default_resolves_to_catalog_version(self, tmp_path, project):
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK})
        runnable = detect(packs.get("nodejs"), project, ScriptRunner())
        assert runnable.name == "nodejs"
        assert runnable.detected_version_range == "default"
        assert runnable.resolved_version == "6.9.1"
        assert runnable.base_image("app") == "docker.local/nodejs:6.9.1"

    def test_exact_default_range(self, tmp_path, project):
        stack = dict(NODEJS_STACK, default_version="6.9.1")
        packs = _catalog(tmp_path, nodejs={"detect": "echo nodejs default", "stack": stack})
        runnable = detect(packs.get("nodejs"), project, ScriptRunner())
        assert runnable.resolved_version == "6.9.1"
        assert runnable.base_image("app") == NODEJS_STACK["versions"]["6.9.1"]["app"]

    def test_explicit_range(self, tmp_path, project):
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK})
        runnable = detect(packs.get("nodejs"), project, ScriptRunner(), env={"NODE_RANGE": "^4"})
        assert runnable.resolved_version == "4.4.7"
        assert str(runnable.resolved_version_range) == "^4"

    def test_non_zero_exit_is_a_miss(self, tmp_path):
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK})
        with pytest.raises(DetectionMiss):
            detect(packs.get("nodejs"), str(tmp_path), ScriptRunner())

    @pytest.mark.parametrize("output", ["nodejs", "ruby default", "nodejs default extra", ""])
    def test_output_shape_violations(self, tmp_path, project, output):
        packs = _catalog(tmp_path, nodejs={"detect": f"echo '{output}'", "stack": NODEJS_STACK})
        with pytest.raises(ScriptContractViolation) as exc:
            detect(packs.get("nodejs"), project, ScriptRunner())
        assert "buildpack nodejs: detect.sh" in str(exc.value)

    def test_unparsable_script_range(self, tmp_path, project):
        packs = _catalog(tmp_path, nodejs={"detect": "echo nodejs not-semver", "stack": NODEJS_STACK})
        with pytest.raises(ScriptContractViolation, match="unable to parse"):
            detect(packs.get("nodejs"), project, ScriptRunner())

    def test_missing_default_is_misconfiguration(self, tmp_path, project):
        stack = dict(NODEJS_STACK, default_version=None)
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": stack})
        with pytest.raises(BuildpackMisconfiguration, match="misconfigured; no default"):
            detect(packs.get("nodejs"), project, ScriptRunner())

    def test_unparsable_default_is_misconfiguration(self, tmp_path, project):
        stack = dict(NODEJS_STACK, default_version="banana")
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": stack})
        with pytest.raises(BuildpackMisconfiguration):
            detect(packs.get("nodejs"), project, ScriptRunner())

    def test_unsatisfiable_lists_candidates(self, tmp_path, project):
        packs = _catalog(tmp_path, nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK})
        with pytest.raises(VersionUnsatisfiable) as exc:
            detect(packs.get("nodejs"), project, ScriptRunner(), env={"NODE_RANGE": "^9"})
        assert exc.value.requested == "^9"
        assert exc.value.available == ["4.4.7", "6.9.1"]
        assert "4.4.7, 6.9.1" in str(exc.value)


class TestDetectAny:
    """Choosing the single matching buildpack."""

    def test_single_match(self, tmp_path, project):
        packs = _catalog(
            tmp_path,
            nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK},
            ruby={"detect": "exit 1"},
        )
        assert detect_any(packs, project, ScriptRunner()).name == "nodejs"

    def test_zero_matches_returns_none(self, tmp_path, project):
        packs = _catalog(tmp_path, go={"detect": "exit 1"}, ruby={"detect": "exit 1"})
        assert detect_any(packs, project, ScriptRunner()) is None

    def test_two_matches_are_ambiguous(self, tmp_path, project):
        stack = {"default_version": "1.0.0", "versions": {"1.0.0": {"app": "img"}}}
        packs = _catalog(
            tmp_path,
            nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK},
            yarn={"detect": "echo yarn default", "stack": stack},
        )
        with pytest.raises(AmbiguousDetection) as exc:
            detect_any(packs, project, ScriptRunner())
        assert exc.value.names == ["nodejs", "yarn"]
        assert str(exc.value) == "multiple project types detected: nodejs and yarn"

    def test_contract_violation_is_skipped(self, tmp_path, project):
        packs = _catalog(
            tmp_path,
            bad={"detect": "echo wrong"},
            nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK},
        )
        assert [r.name for r in detect_all(packs, project, ScriptRunner())] == ["nodejs"]

    def test_misconfiguration_propagates(self, tmp_path, project):
        packs = _catalog(
            tmp_path,
            broken={"detect": "echo broken default"},
            nodejs={"detect": NODE_DETECT, "stack": NODEJS_STACK},
        )
        with pytest.raises(BuildpackMisconfiguration):
            detect_any(packs, project, ScriptRunner())

    def test_unstartable_detect_script_is_misconfiguration(self, tmp_path, project):
        root = tmp_path / "catalog"
        root.mkdir()
        write_script(root / "common.sh", "#!/nonexistent/interpreter\n")
        packs = _catalog(tmp_path, nodejs={"detect": "echo nodejs default", "stack": NODEJS_STACK})
        with pytest.raises(BuildpackMisconfiguration, match="could not be started"):
            detect_any(packs, project, ScriptRunner())
