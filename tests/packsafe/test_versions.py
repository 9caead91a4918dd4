"""Tests for version cleaning, ordering and range membership."""

from __future__ import annotations

import pytest
from semantic_version import Version

from packsafe.engines.dependency_analyzer.manifest import (
    ManifestError,
    dev_dependency_names,
    merge_dependencies,
)
from packsafe.engines.dependency_analyzer.versions import (
    VersionRange,
    clean_version,
    compare_versions,
    is_outdated,
    parse_version,
    update_severity,
)


# ── clean_version ─────────────────────────────────────────────────────────


class TestCleanVersion:
    @pytest.mark.parametrize(
        "declared, expected",
        [
            ("^4.17.20", "4.17.20"),
            ("~1.2.3", "1.2.3"),
            (">=1.2.0", "1.2.0"),
            (">=1.2.0 <2.0.0", "1.2.0"),
            ("1.x || 2.x", "1.x"),
            ("v2.0.1", "2.0.1"),
            ("1.2.3", "1.2.3"),
        ],
    )
    def test_strips_operators(self, declared, expected):
        assert clean_version(declared) == expected

    def test_empty(self):
        assert clean_version("") == ""
        assert clean_version(None) == ""
        assert clean_version("^") == ""

    def test_non_numeric_kept(self):
        assert clean_version("latest") == "latest"


# ── parse / compare ───────────────────────────────────────────────────────


class TestParseVersion:
    def test_full_version(self):
        assert parse_version("1.2.3") == Version("1.2.3")

    def test_missing_parts_are_zero(self):
        assert parse_version("2") == Version("2.0.0")
        assert parse_version("2.5") == Version("2.5.0")

    def test_prerelease_kept_build_dropped(self):
        assert parse_version("1.2.3-beta.1") == Version("1.2.3-beta.1")
        assert parse_version("1.2.3+build.7") == Version("1.2.3")

    def test_wildcard_component(self):
        assert parse_version("1.x") == Version("1.0.0")

    def test_leading_zeros(self):
        assert parse_version("01.02.03") == Version("1.2.3")

    def test_unparseable(self):
        assert parse_version("latest") is None
        assert parse_version("*") is None
        assert parse_version("") is None


class TestCompare:
    def test_numeric_not_lexical(self):
        assert compare_versions("1.10.0", "1.9.0") == 1
        assert compare_versions("4.17.9", "4.17.10") == -1

    def test_equal(self):
        assert compare_versions("1.0", "1.0.0") == 0

    def test_prerelease_ignored(self):
        assert compare_versions("1.2.3-beta.1", "1.2.3") == 0
        assert is_outdated("1.2.3-beta.1", "1.2.3") is False

    def test_unparseable_raises(self):
        with pytest.raises(ValueError):
            compare_versions("latest", "1.0.0")

    def test_is_outdated(self):
        assert is_outdated("4.17.20", "4.17.21") is True
        assert is_outdated("4.17.21", "4.17.21") is False
        assert is_outdated("5.0.0", "4.17.21") is False

    def test_is_outdated_unknown(self):
        assert is_outdated("1.0.0", None) is False
        assert is_outdated("latest", "1.0.0") is False
        assert is_outdated("", "1.0.0") is False


class TestUpdateSeverity:
    def test_major(self):
        assert update_severity("17.0.2", "18.2.0") == "high"

    def test_minor(self):
        assert update_severity("4.17.1", "4.18.2") == "medium"

    def test_patch(self):
        assert update_severity("4.17.20", "4.17.21") == "low"


# ── ranges ────────────────────────────────────────────────────────────────


class TestVersionRange:
    def test_parse_bounded(self):
        rng = VersionRange.parse(">= 4.0.0, < 4.17.21")
        assert rng.contains("4.0.0")
        assert rng.contains("4.17.20")
        assert not rng.contains("4.17.21")
        assert not rng.contains("3.9.9")

    def test_numeric_bounds(self):
        # a string comparison would put 4.9.0 above 4.17.21
        rng = VersionRange.parse("< 4.17.21")
        assert rng.contains("4.9.0")
        assert not rng.contains("4.100.0")

    def test_prerelease_of_fixed_version_is_affected(self):
        rng = VersionRange.parse("< 4.17.21")
        assert rng.contains("4.17.21-beta.1")
        assert not rng.contains("4.17.21")

    def test_prerelease_below_lower_bound(self):
        rng = VersionRange.parse(">= 2.0.0, < 2.5.0")
        assert not rng.contains("2.0.0-rc.1")
        assert rng.contains("2.0.1-rc.1")

    def test_inclusive_upper(self):
        rng = VersionRange.parse("<= 1.2.3")
        assert rng.contains("1.2.3")
        assert not rng.contains("1.2.4")

    def test_exclusive_lower(self):
        rng = VersionRange.parse("> 1.0.0")
        assert not rng.contains("1.0.0")
        assert rng.contains("1.0.1")

    def test_exact(self):
        rng = VersionRange.parse("= 0.19.0")
        assert rng.contains("0.19.0")
        assert not rng.contains("0.19.1")

    def test_unsupported_clause(self):
        with pytest.raises(ValueError):
            VersionRange.parse(">= banana")

    def test_unparseable_version_not_contained(self):
        assert not VersionRange.below("2.0.0").contains("latest")

    def test_below(self):
        assert VersionRange.below("2.0.0").contains("1.9.9")
        assert not VersionRange.below("2.0.0").contains("2.0.0")

    def test_below_without_fix_matches_everything(self):
        assert VersionRange.below(None).contains("99.0.0")


# ── manifest ──────────────────────────────────────────────────────────────


class TestManifest:
    def test_merge(self):
        merged = merge_dependencies(
            {"dependencies": {"a": "^1.0.0"}, "devDependencies": {"b": "~2.0.0"}}
        )
        assert merged == {"a": "^1.0.0", "b": "~2.0.0"}

    def test_dev_wins_on_clash(self):
        merged = merge_dependencies(
            {"dependencies": {"a": "^1.0.0"}, "devDependencies": {"a": "^2.0.0"}}
        )
        assert merged == {"a": "^2.0.0"}

    def test_missing_sections(self):
        assert merge_dependencies({"name": "x"}) == {}
        assert merge_dependencies({"dependencies": None}) == {}

    def test_not_an_object(self):
        with pytest.raises(ManifestError):
            merge_dependencies(["a"])

    def test_bad_section(self):
        with pytest.raises(ManifestError):
            merge_dependencies({"dependencies": ["a"]})

    def test_dev_names(self):
        assert dev_dependency_names({"devDependencies": {"jest": "1"}}) == {"jest"}
        assert dev_dependency_names({}) == set()
