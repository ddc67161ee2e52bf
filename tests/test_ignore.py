"""Tests for .vscodeignore matching."""

from __future__ import annotations

from pathlib import Path

import pytest

from extravsix.ignore import IgnoreMatcher, expand_braces


def test_defaults_exclude_tooling_files() -> None:
    """Default patterns should drop lockfiles, VCS metadata and old packages."""
    matcher = IgnoreMatcher.from_lines([])
    assert matcher.is_ignored("package-lock.json")
    assert matcher.is_ignored(".vscodeignore")
    assert matcher.is_ignored(".github/workflows/ci.yml")
    assert matcher.is_ignored("old/widget-1.0.0.vsix")
    assert matcher.is_ignored("src/.DS_Store")
    assert matcher.is_ignored(".eslintrc.json")
    assert not matcher.is_ignored("package.json")
    assert not matcher.is_ignored("out/extension.js")


def test_default_root_patterns_do_not_match_nested_files() -> None:
    """Patterns without a slash are anchored at the project root."""
    matcher = IgnoreMatcher.from_lines([])
    assert not matcher.is_ignored("docs/CONTRIBUTING.md")
    assert matcher.is_ignored("CONTRIBUTING.md")


def test_single_star_stays_in_segment() -> None:
    matcher = IgnoreMatcher.from_lines(["src/*.ts"], defaults=())
    assert matcher.is_ignored("src/extension.ts")
    assert not matcher.is_ignored("src/nested/extension.ts")


def test_double_star_spans_segments() -> None:
    matcher = IgnoreMatcher.from_lines(["**/*.map"], defaults=())
    assert matcher.is_ignored("extension.js.map")
    assert matcher.is_ignored("out/deep/extension.js.map")
    assert not matcher.is_ignored("out/extension.js")


def test_trailing_slash_matches_directory_contents() -> None:
    matcher = IgnoreMatcher.from_lines(["test/"], defaults=())
    assert matcher.is_ignored("test/suite/index.ts")
    assert not matcher.is_ignored("testing.md")


def test_directory_pattern_excludes_children() -> None:
    """Matching a parent directory should exclude everything below it."""
    matcher = IgnoreMatcher.from_lines(["src"], defaults=())
    assert matcher.is_ignored("src/extension.ts")
    assert matcher.is_ignored("src/a/b/c.ts")


def test_negation_reincludes_regardless_of_order() -> None:
    matcher = IgnoreMatcher.from_lines(["!src/keep.ts", "src/**"], defaults=())
    assert matcher.is_ignored("src/extension.ts")
    assert not matcher.is_ignored("src/keep.ts")


def test_comments_and_blank_lines_are_skipped() -> None:
    matcher = IgnoreMatcher.from_lines(["# comment", "", "   "], defaults=())
    assert matcher.ignore == []
    assert matcher.negate == []


def test_braces_and_classes() -> None:
    matcher = IgnoreMatcher.from_lines(["*.{ts,tsx}", "file[0-9].txt"], defaults=())
    assert matcher.is_ignored("app.ts")
    assert matcher.is_ignored("app.tsx")
    assert not matcher.is_ignored("app.js")
    assert matcher.is_ignored("file1.txt")
    assert not matcher.is_ignored("fileA.txt")


def test_expand_braces_nested() -> None:
    assert expand_braces("a.{js,ts}") == ["a.js", "a.ts"]
    assert expand_braces("{x,y}/{1,2}") == ["x/1", "x/2", "y/1", "y/2"]
    assert expand_braces("plain") == ["plain"]


def test_leading_slash_and_dot_slash_are_stripped() -> None:
    matcher = IgnoreMatcher.from_lines(["/build", "./tmp/"], defaults=())
    assert matcher.is_ignored("build/out.js")
    assert matcher.is_ignored("tmp/cache")


def test_from_project_reads_vscodeignore(tmp_path: Path) -> None:
    (tmp_path / ".vscodeignore").write_text("src/**\n")
    matcher = IgnoreMatcher.from_project(tmp_path)
    assert matcher.is_ignored("src/extension.ts")
    assert matcher.is_ignored("yarn.lock")


def test_from_project_explicit_file(tmp_path: Path) -> None:
    """An explicit ignore file replaces .vscodeignore."""
    (tmp_path / ".vscodeignore").write_text("src/**\n")
    (tmp_path / "custom.ignore").write_text("docs/**\n")
    matcher = IgnoreMatcher.from_project(tmp_path, "custom.ignore")
    assert matcher.is_ignored("docs/guide.md")
    assert not matcher.is_ignored("src/extension.ts")


def test_from_project_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        IgnoreMatcher.from_project(tmp_path, "missing.ignore")


def test_filter_preserves_order() -> None:
    matcher = IgnoreMatcher.from_lines(["b.txt"], defaults=())
    assert matcher.filter(["c.txt", "b.txt", "a.txt"]) == ["c.txt", "a.txt"]
