"""Ignore-file matching for packaging (.vscodeignore).

Patterns are globs matched against paths relative to the project root, with
forward slashes:

- ``*`` and ``?`` stay within one path segment, ``**`` spans segments
- ``{a,b}`` alternatives and ``[abc]`` classes are supported
- dotfiles are matched like any other name
- a trailing ``/`` matches everything below that directory
- a pattern matching a parent directory excludes everything below it
- ``!pattern`` re-includes files regardless of where it appears
- blank lines and ``#`` comments are skipped
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

IGNORE_FILENAME = ".vscodeignore"

DEFAULT_IGNORE: tuple[str, ...] = (
    ".vscodeignore",
    "package-lock.json",
    "npm-debug.log",
    "yarn.lock",
    "yarn-error.log",
    "npm-shrinkwrap.json",
    ".editorconfig",
    ".npmrc",
    ".yarnrc",
    ".gitattributes",
    "*.todo",
    "tslint.yaml",
    ".eslintrc*",
    ".babelrc*",
    ".prettierrc*",
    ".cz-config.js",
    ".commitlintrc*",
    "webpack.config.js",
    "ISSUE_TEMPLATE.md",
    "CONTRIBUTING.md",
    "PULL_REQUEST_TEMPLATE.md",
    "CODE_OF_CONDUCT.md",
    ".github",
    ".travis.yml",
    "appveyor.yml",
    "**/.git/**",
    "**/*.vsix",
    "**/.DS_Store",
    "**/*.vsixmanifest",
    "**/.vscode-test/**",
    "**/.vscode-test-web/**",
)


def expand_braces(pattern: str) -> list[str]:
    """Expand the first ``{a,b}`` group, recursively."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match or "," not in match.group(1):
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a single (brace-free) glob into an anchored regex."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                at_end = i + 2 == n or pattern[i + 2] == "/"
                if at_start and at_end:
                    if i + 2 < n:
                        # "**/" matches zero or more leading directories
                        out.append("(?:[^/]+/)*")
                        i += 3
                    else:
                        out.append(".*")
                        i += 2
                    continue
                out.append("[^/]*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _normalize(pattern: str) -> str:
    pattern = pattern.strip().lstrip("/")
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if pattern.endswith("/"):
        pattern += "**"
    return pattern


def _parents(path: str) -> list[str]:
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


@dataclass
class IgnoreMatcher:
    """Decides which project files are left out of a package."""

    ignore: list[str] = field(default_factory=list)
    negate: list[str] = field(default_factory=list)

    @classmethod
    def from_lines(
        cls, lines: Iterable[str], defaults: Iterable[str] = DEFAULT_IGNORE
    ) -> IgnoreMatcher:
        """Build a matcher from ignore-file lines on top of the defaults."""
        matcher = cls(ignore=[_normalize(p) for p in defaults])
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("!"):
                matcher.negate.append(_normalize(line[1:]))
            else:
                matcher.ignore.append(_normalize(line))
        return matcher

    @classmethod
    def from_project(
        cls, cwd: Path, ignore_file: str | Path | None = None
    ) -> IgnoreMatcher:
        """Load the matcher for a project folder.

        Args:
            cwd: Project root.
            ignore_file: Explicit ignore file, relative to cwd or absolute.
                Defaults to ``<cwd>/.vscodeignore`` when that exists.
        """
        path = Path(ignore_file) if ignore_file else cwd / IGNORE_FILENAME
        if ignore_file and not path.is_absolute():
            path = cwd / path
        if ignore_file and not path.exists():
            raise FileNotFoundError(f"Ignore file not found: {path}")
        lines = path.read_text(encoding="utf-8").splitlines() if path.exists() else []
        return cls.from_lines(lines)

    @staticmethod
    def _matches(path: str, patterns: list[str]) -> bool:
        candidates = [path, *_parents(path)]
        for pattern in patterns:
            for variant in expand_braces(pattern):
                regex = glob_to_regex(variant)
                if any(regex.match(c) for c in candidates):
                    return True
        return False

    def is_ignored(self, relative_path: str) -> bool:
        """Whether a file (posix path relative to the root) is left out."""
        if self.negate and self._matches(relative_path, self.negate):
            return False
        return self._matches(relative_path, self.ignore)

    def filter(self, relative_paths: Iterable[str]) -> list[str]:
        """Return the kept paths, preserving order."""
        return [p for p in relative_paths if not self.is_ignored(p)]
