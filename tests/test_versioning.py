"""Tests for semver range parsing and best-match selection."""

import pytest
import semantic_version

from versioning.resolver import best_match, parse_range, resolve, version_list

CATALOG = ["4.4.7", "6.9.1", "6.2.0", "7.0.0-rc.1", "not-a-version"]


class TestParseRange:
    """Range syntax accepted by detect scripts and buildpack defaults."""

    @pytest.mark.parametrize("text", ["^2", "~1.2", "1.x", ">=1 <3", "1.2.3 - 1.4.5", "6.9.1", "*"])
    def test_valid_ranges(self, text):
        assert parse_range(text).raw == text

    @pytest.mark.parametrize("text", ["", "   ", "not a range", ">=>=1"])
    def test_invalid_ranges_raise_value_error(self, text):
        with pytest.raises(ValueError):
            parse_range(text)

    def test_str_is_raw_text(self):
        assert str(parse_range(" ^6 ")) == "^6"


class TestBestMatch:
    """Highest satisfying version, skipping junk and prereleases."""

    def test_caret_picks_highest_in_major(self):
        assert best_match(parse_range("^6"), CATALOG) == semantic_version.Version("6.9.1")

    def test_exact_version(self):
        assert best_match(parse_range("4.4.7"), CATALOG) == semantic_version.Version("4.4.7")

    def test_no_match_returns_none(self):
        assert best_match(parse_range("^8"), CATALOG) is None

    def test_prerelease_excluded_unless_requested(self):
        assert best_match(parse_range(">=7.0.0-rc.0"), CATALOG) == semantic_version.Version("7.0.0-rc.1")
        assert best_match(parse_range("^7 || ^6"), CATALOG) == semantic_version.Version("6.9.1")

    def test_order_of_catalog_does_not_matter(self):
        assert best_match(parse_range("^6"), list(reversed(CATALOG))) == semantic_version.Version("6.9.1")

    @pytest.mark.parametrize("text,expected", [("^2", "2.4.15"), ("^3", "3.3.4"), ("^9", None)])
    def test_npm_catalog(self, text, expected):
        match = best_match(parse_range(text), ["2.4.15", "3.3.4"])
        assert (str(match) if match else None) == expected

    def test_version_list_skips_invalid(self):
        parsed = version_list(["1.0.0", "garbage", "2"])
        assert [str(v) for v in parsed] == ["1.0.0", "2.0.0"]


class TestResolve:
    """Resolution results returned to detection."""

    def test_returns_catalog_key_verbatim(self):
        result = resolve(parse_range("^6"), ["6.9", "4.4.7"])
        assert result.found
        assert result.resolved_version == "6.9"

    def test_not_found_lists_sorted_candidates(self):
        result = resolve(parse_range("^9"), ["6.9.1", "4.4.7"])
        assert not result.found
        assert result.resolved_version is None
        assert result.candidates == ["4.4.7", "6.9.1"]
        assert result.requested == "^9"
