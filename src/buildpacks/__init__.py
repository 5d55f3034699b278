"""Buildpack catalog loading and project detection."""

from .catalog import load_buildpack, load_buildpacks
from .detect import detect, detect_all, detect_any
from .models import Buildpack, Buildpacks, BuildpackScripts, RunnableBuildpack, StackVersionCatalog

__all__ = [
    "Buildpack",
    "Buildpacks",
    "BuildpackScripts",
    "RunnableBuildpack",
    "StackVersionCatalog",
    "detect",
    "detect_all",
    "detect_any",
    "load_buildpack",
    "load_buildpacks",
]
