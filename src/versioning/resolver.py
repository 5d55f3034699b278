"""Semver range parsing and best-match selection over a version catalog."""

import re
from typing import Iterable, List, Optional

import semantic_version

from .models import ResolutionResult, VersionRange

_PRERELEASE_MARKERS = ("pre", "rc", "alpha", "beta")


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax (hyphen, x-ranges) into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return s


def parse_range(spec_str: str) -> VersionRange:
    """Parse a semver range expression.

    Accepts npm-style ranges (``^2``, ``~1.2``, ``1.x``, ``>=1 <3``,
    ``1.2.3 - 1.4.5``) and bare versions, which match exactly.

    Args:
        spec_str: Range text, e.g. as printed by a detect script.

    Returns:
        VersionRange

    Raises:
        ValueError: If the text is not a valid range.
    """
    if spec_str is None or not str(spec_str).strip():
        raise ValueError("empty version range")
    raw = str(spec_str).strip()
    include_prerelease = any(p in raw.lower() for p in _PRERELEASE_MARKERS)
    try:
        spec = semantic_version.NpmSpec(raw)
    except ValueError:
        # NpmSpec and SimpleSpec share the match() API
        try:
            spec = semantic_version.SimpleSpec(_normalize_spec(raw))
        except ValueError as e:
            raise ValueError(f"invalid semver range {raw!r}: {e}") from e
    return VersionRange(raw=raw, spec=spec, include_prerelease=include_prerelease)


def version_list(versions: Iterable[str]) -> List[semantic_version.Version]:
    """Parse version strings, skipping ones that are not valid semver.

    Partial versions such as ``"6"`` or ``"6.9"`` are coerced.
    """
    parsed = []
    for v in versions:
        try:
            parsed.append(semantic_version.Version(v))
        except ValueError:
            try:
                parsed.append(semantic_version.Version.coerce(v))
            except ValueError:
                continue  # Skip invalid versions
    return parsed


def best_match(version_range: VersionRange, versions: Iterable[str]) -> Optional[semantic_version.Version]:
    """Return the highest version satisfying ``version_range``, or None."""
    matching = [v for v in version_list(versions) if version_range.matches(v)]
    if not matching:
        return None
    return max(matching)


def resolve(version_range: VersionRange, versions: Iterable[str]) -> ResolutionResult:
    """Pick the best version and return it as the original catalog string.

    Catalog keys are returned verbatim so that table lookups keyed on them
    keep working even when the key was coerced during parsing.
    """
    candidates = sorted(set(versions), key=_sort_key)
    by_version = {}
    for raw in candidates:
        for parsed in version_list([raw]):
            by_version.setdefault(parsed, raw)
    best = best_match(version_range, candidates)
    return ResolutionResult(
        requested=version_range.raw,
        resolved_version=by_version.get(best) if best is not None else None,
        candidates=candidates,
    )


def _sort_key(raw: str):
    parsed = version_list([raw])
    return (0, parsed[0], raw) if parsed else (1, semantic_version.Version("0.0.0"), raw)
