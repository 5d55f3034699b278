"""Stack version range parsing and resolution."""

from .models import ResolutionResult, VersionRange
from .resolver import best_match, parse_range, resolve, version_list

__all__ = ["ResolutionResult", "VersionRange", "best_match", "parse_range", "resolve", "version_list"]
