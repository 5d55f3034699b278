"""Loading of buildpack definitions from a catalog directory.

Layout::

    <root>/common.sh              shared prelude injected into every buildpack
    <root>/<name>/base.sh
    <root>/<name>/command.sh
    <root>/<name>/compile.sh
    <root>/<name>/detect.sh
    <root>/<name>/test.sh
    <root>/<name>/list-base-image.sh   (optional)
    <root>/<name>/stack.yml            (optional; description, default_version, versions)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants, Scripts
from errors import CatalogError

from .models import Buildpack, Buildpacks, BuildpackScripts, StackVersionCatalog

logger = logging.getLogger(__name__)


def _read(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise CatalogError(f"unable to read file {path}: {e}", {"path": path}) from e


def _read_stack_file(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"unable to parse {path}: {e}", {"path": path}) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CatalogError(
            f"{path} must contain a mapping, got {type(data).__name__}",
            {"path": path},
        )
    return data


def _merge_stack(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Overlay settings-file values onto stack.yml; version tables merge per target."""
    merged: Dict[str, Any] = dict(base)
    if not override:
        return merged
    for key, value in override.items():
        if key == "versions" and isinstance(value, dict):
            versions = {str(v): dict(t or {}) for v, t in (merged.get("versions") or {}).items()}
            for version, table in value.items():
                versions.setdefault(str(version), {}).update(table or {})
            merged["versions"] = versions
        else:
            merged[key] = value
    return merged


def _catalog(name: str, raw: Any, path: str) -> StackVersionCatalog:
    if raw is None:
        return StackVersionCatalog({})
    if not isinstance(raw, dict):
        raise CatalogError(f"buildpack {name}: 'versions' in {path} must be a mapping", {"path": path})
    images: Dict[str, Dict[str, str]] = {}
    for version, table in raw.items():
        if not isinstance(table, dict):
            raise CatalogError(
                f"buildpack {name}: version {version} in {path} must map target names to images",
                {"path": path, "version": str(version)},
            )
        images[str(version)] = {str(t): str(img) for t, img in table.items()}
    return StackVersionCatalog(images)


def load_buildpack(path: str, common: str = "", override: Optional[Mapping[str, Any]] = None) -> Buildpack:
    """Parse a single buildpack directory.

    Args:
        path: Buildpack directory; its base name is the buildpack name.
        common: Shared prelude text.
        override: Settings-file entry for this buildpack, if any.

    Raises:
        CatalogError: A required script is missing or stack.yml is invalid.
    """
    name = os.path.basename(os.path.normpath(path))

    def read(script: Scripts) -> str:
        return _read(os.path.join(path, script.value))

    list_base_image_path = os.path.join(path, Constants.LIST_BASE_IMAGE_SCRIPT)
    scripts = BuildpackScripts(
        common=common,
        base=read(Scripts.BASE),
        command=read(Scripts.COMMAND),
        compile=read(Scripts.COMPILE),
        detect=read(Scripts.DETECT),
        test=read(Scripts.TEST),
        list_base_image=_read(list_base_image_path) if os.path.isfile(list_base_image_path) else None,
    )

    stack_path = os.path.join(path, Constants.STACK_FILE)
    stack = _merge_stack(_read_stack_file(stack_path), override)

    return Buildpack(
        name=name,
        description=str(stack.get("description") or ""),
        scripts=scripts,
        default_version_range=str(stack.get("default_version") or ""),
        stack_versions=_catalog(name, stack.get("versions"), stack_path),
    )


def load_buildpacks(root: str, overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Buildpacks:
    """Load every buildpack below ``root``.

    Args:
        root: Catalog directory.
        overrides: Per-buildpack settings keyed by buildpack name.

    Returns:
        Buildpacks in directory-name order.

    Raises:
        CatalogError: The root is missing or any buildpack fails to parse.
    """
    if not os.path.isdir(root):
        raise CatalogError(f"buildpack dir not found: {root}", {"path": root})

    common_path = os.path.join(root, Constants.COMMON_SCRIPT)
    common = _read(common_path) if os.path.isfile(common_path) else ""

    packs = []
    for entry in sorted(os.scandir(root), key=lambda e: e.name):
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        try:
            pack = load_buildpack(entry.path, common, (overrides or {}).get(entry.name))
        except CatalogError as e:
            raise CatalogError(f"error parsing buildpack at {entry.path}: {e}", e.details) from e
        logger.debug("Loaded buildpack %s (%d stack versions)", pack.name, len(pack.stack_versions.versions()))
        packs.append(pack)

    logger.info("Loaded %d buildpack(s) from %s", len(packs), root)
    return Buildpacks(packs)
