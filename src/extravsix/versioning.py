"""Version bumping via ``npm version``.

npm rewrites package.json (and the lockfile), commits and tags when run
inside a git repository. We only validate the requested version and forward
the command's output.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TextIO

from extravsix.exceptions import InvalidVersionError, UnsupportedVersionError
from extravsix.manifest import read_manifest
from extravsix.process import CommandRunner, run_and_forward

RELEASE_KEYWORDS = frozenset({"major", "minor", "patch"})
UNSUPPORTED_KEYWORDS = frozenset(
    {"premajor", "preminor", "prepatch", "prerelease", "from-git"}
)

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string  # noqa: E501
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def is_valid_semver(version: str) -> bool:
    """Check a version literal against the semantic versioning grammar.

    One leading ``=``, ``v`` or ``=v`` is tolerated, as npm does.
    """
    literal = re.sub(r"^=?v?", "", version.strip(), count=1)
    return SEMVER_PATTERN.match(literal) is not None


def check_version(version: str) -> None:
    """Validate a requested version before anything is run.

    Raises:
        UnsupportedVersionError: For pre-release keywords and from-git.
        InvalidVersionError: For literals that are not semantic versions.
    """
    if version in RELEASE_KEYWORDS:
        return
    if version in UNSUPPORTED_KEYWORDS:
        raise UnsupportedVersionError(version)
    if not is_valid_semver(version):
        raise InvalidVersionError(version)


def build_version_command(
    version: str, commit_message: str | None = None
) -> list[str]:
    """Build the ``npm version`` argument list."""
    command = ["npm", "version", version]
    if commit_message:
        command += ["-m", commit_message]
    return command


async def version_bump(
    cwd: str | Path | None = None,
    version: str | None = None,
    commit_message: str | None = None,
    *,
    runner: CommandRunner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> None:
    """Bump the extension version with ``npm version``.

    Does nothing when no version is requested or the manifest is already at
    the requested version.

    Args:
        cwd: Project folder containing package.json.
        version: major, minor, patch or an explicit semantic version.
        commit_message: Optional commit message passed as ``-m``.
        runner: Command runner, defaults to an asyncio subprocess.
        stdout: Stream receiving the command's stdout.
        stderr: Stream receiving the command's stderr.
    """
    if not version:
        return

    folder = Path(cwd) if cwd else Path.cwd()
    manifest = read_manifest(folder)

    if manifest.version == version:
        return

    check_version(version)

    await run_and_forward(
        build_version_command(version, commit_message),
        folder,
        description=f"npm version {version}",
        runner=runner,
        stdout=stdout,
        stderr=stderr,
    )
