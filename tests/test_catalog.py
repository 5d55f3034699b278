"""Tests for loading buildpack catalogs from disk."""

import os

import pytest

from buildpacks.catalog import load_buildpack, load_buildpacks
from errors import BuildpackMisconfiguration, CatalogError
from conftest import NODEJS_STACK, make_buildpack_dir, write_script


class TestLoadBuildpacks:
    """Directory layout handling."""

    def test_missing_root(self, tmp_path):
        with pytest.raises(CatalogError, match="buildpack dir not found"):
            load_buildpacks(str(tmp_path / "nope"))

    def test_loads_sorted_and_injects_common(self, tmp_path):
        write_script(tmp_path / "common.sh", "SHARED=1")
        make_buildpack_dir(tmp_path, "ruby")
        make_buildpack_dir(tmp_path, "nodejs", stack=NODEJS_STACK)
        (tmp_path / ".hidden").mkdir()

        packs = load_buildpacks(str(tmp_path))

        assert packs.names() == ["nodejs", "ruby"]
        assert len(packs) == 2
        for pack in packs:
            assert pack.scripts.common.strip() == "SHARED=1"

    def test_common_is_optional(self, tmp_path):
        make_buildpack_dir(tmp_path, "go")
        assert load_buildpacks(str(tmp_path)).get("go").scripts.common == ""

    def test_missing_required_script_names_path(self, tmp_path):
        path = make_buildpack_dir(tmp_path, "broken")
        os.unlink(os.path.join(path, "test.sh"))
        with pytest.raises(CatalogError) as exc:
            load_buildpacks(str(tmp_path))
        assert "error parsing buildpack at" in str(exc.value)
        assert "test.sh" in str(exc.value)

    def test_get_returns_distinct_buildpacks(self, tmp_path):
        make_buildpack_dir(tmp_path, "a", detect="echo a")
        make_buildpack_dir(tmp_path, "b", detect="echo b")
        packs = load_buildpacks(str(tmp_path))
        assert packs.get("a").scripts.detect.strip() == "echo a"
        assert packs.get("b").scripts.detect.strip() == "echo b"
        assert packs.get("c") is None
        assert set(packs.as_dict()) == {"a", "b"}


class TestStackFile:
    """stack.yml parsing and settings overrides."""

    def test_versions_and_default(self, tmp_path):
        pack = load_buildpack(make_buildpack_dir(tmp_path, "nodejs", stack=NODEJS_STACK))
        assert pack.description == "NodeJS"
        assert pack.default_version_range == "^6"
        assert sorted(pack.stack_versions.versions()) == ["4.4.7", "6.9.1"]
        assert pack.stack_versions.base_image("nodejs", "6.9.1", "app") == "docker.local/nodejs:6.9.1"

    def test_optional_list_base_image(self, tmp_path):
        path = make_buildpack_dir(tmp_path, "nodejs")
        assert load_buildpack(path).scripts.list_base_image is None
        write_script(os.path.join(path, "list-base-image.sh"), "echo img")
        assert "echo img" in load_buildpack(path).scripts.list_base_image

    def test_override_merges_version_tables(self, tmp_path):
        path = make_buildpack_dir(tmp_path, "nodejs", stack=NODEJS_STACK)
        pack = load_buildpack(path, override={
            "default_version": "4.4.7",
            "versions": {"6.9.1": {"app": "mirror/nodejs:6.9.1"}, "8.0.0": {"app": "mirror/nodejs:8"}},
        })
        assert pack.default_version_range == "4.4.7"
        catalog = pack.stack_versions
        assert catalog.base_image("nodejs", "6.9.1", "app") == "mirror/nodejs:6.9.1"
        assert catalog.base_image("nodejs", "6.9.1", "compile") == "docker.local/nodejs-build:6.9.1"
        assert "8.0.0" in catalog.versions()

    def test_non_mapping_stack_file(self, tmp_path):
        path = make_buildpack_dir(tmp_path, "nodejs")
        write_script(os.path.join(path, "stack.yml"), "- just\n- a list\n")
        with pytest.raises(CatalogError, match="must contain a mapping"):
            load_buildpack(path)

    def test_missing_base_image_is_misconfiguration(self, tmp_path):
        pack = load_buildpack(make_buildpack_dir(tmp_path, "nodejs", stack=NODEJS_STACK))
        with pytest.raises(BuildpackMisconfiguration, match="misconfigured"):
            pack.stack_versions.base_image("nodejs", "6.9.1", "test")
        with pytest.raises(BuildpackMisconfiguration):
            pack.stack_versions.base_image("nodejs", "9.9.9", "app")
