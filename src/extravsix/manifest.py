"""Reading extension manifests from project folders and VSIX archives.

A manifest is the extension's ``package.json``. Inside a packaged VSIX it
lives at ``extension/package.json``.
"""

from __future__ import annotations

import json
import re
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from extravsix.exceptions import (
    ArchiveOpenError,
    MalformedManifestError,
    ManifestNotFoundError,
)

if TYPE_CHECKING:
    from extravsix.gallery import ExtensionsReport

MANIFEST_FILENAME = "package.json"
PACKAGE_MANIFEST_PATTERN = re.compile(r"^extension/package\.json$", re.IGNORECASE)

REQUIRED_FIELDS = ("publisher", "name", "version")


@dataclass(frozen=True)
class Manifest:
    """The subset of package.json that packaging and publishing rely on."""

    publisher: str
    name: str
    version: str
    display_name: str = ""
    description: str = ""
    enable_proposed_api: bool = False
    extension_kind: tuple[str, ...] | None = None
    main: str | None = None
    browser: str | None = None
    engines: dict[str, str] = field(default_factory=dict)
    keywords: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    repository: str | dict[str, Any] | None = None
    scripts: dict[str, str] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        """Extension identity, ``publisher.name``."""
        return f"{self.publisher}.{self.name}"

    @property
    def full_name(self) -> str:
        """Release key, ``publisher.name@version``."""
        return f"{self.id}@{self.version}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], location: str = "") -> Manifest:
        """Create a Manifest from parsed package.json content.

        Raises:
            MalformedManifestError: If the content is not an object or a
                required field is missing.
        """
        if not isinstance(data, dict):
            raise MalformedManifestError(location, "expected a JSON object")
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        if missing:
            raise MalformedManifestError(
                location, f"missing required field(s): {', '.join(missing)}"
            )

        kind = data.get("extensionKind")
        if isinstance(kind, str):
            # A bare "ui" also allows running in the workspace
            extension_kind: tuple[str, ...] | None = (
                ("ui", "workspace") if kind == "ui" else (kind,)
            )
        elif isinstance(kind, list):
            extension_kind = tuple(kind)
        else:
            extension_kind = None

        return cls(
            publisher=str(data["publisher"]),
            name=str(data["name"]),
            version=str(data["version"]),
            display_name=data.get("displayName", ""),
            description=data.get("description", ""),
            enable_proposed_api=bool(data.get("enableProposedApi", False)),
            extension_kind=extension_kind,
            main=data.get("main"),
            browser=data.get("browser"),
            engines=dict(data.get("engines") or {}),
            keywords=tuple(data.get("keywords") or ()),
            categories=tuple(data.get("categories") or ()),
            repository=data.get("repository"),
            scripts=dict(data.get("scripts") or {}),
            dependencies=dict(data.get("dependencies") or {}),
            raw=data,
        )


# --- Project manifest ---


def read_manifest(cwd: str | Path | None = None) -> Manifest:
    """Read package.json from a project folder.

    Args:
        cwd: Project folder. Defaults to the current directory.

    Returns:
        The parsed Manifest.
    """
    folder = Path(cwd) if cwd else Path.cwd()
    path = folder / MANIFEST_FILENAME
    if not path.exists():
        raise ManifestNotFoundError(str(path))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MalformedManifestError(str(path), str(e)) from e
    return Manifest.from_dict(data, str(path))


# --- Packaged manifest ---


def iter_archive_entries(archive: zipfile.ZipFile) -> Iterator[zipfile.ZipInfo]:
    """Yield archive entries one at a time, in archive order."""
    yield from archive.infolist()


def read_manifest_from_package(package_path: str | Path) -> Manifest:
    """Read the manifest embedded in a VSIX archive.

    Entries are scanned in order and the first one named
    ``extension/package.json`` (any case) wins. Later matches are ignored.

    Raises:
        ArchiveOpenError: If the file is missing, not a zip archive, or the
            manifest entry is corrupt.
        ManifestNotFoundError: If every entry was scanned without a match.
        MalformedManifestError: If the matched entry is not valid JSON.
    """
    path = Path(package_path)
    try:
        archive = zipfile.ZipFile(path)
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveOpenError(str(path), str(e)) from e

    with archive:
        entries = iter_archive_entries(archive)
        match = next(
            (e for e in entries if PACKAGE_MANIFEST_PATTERN.match(e.filename)),
            None,
        )
        if match is None:
            raise ManifestNotFoundError(
                str(path), f"Manifest not found in package {path}"
            )

        location = f"{path}!{match.filename}"
        try:
            raw = archive.read(match)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveOpenError(str(path), str(e)) from e
        try:
            data = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedManifestError(location, str(e)) from e

    return Manifest.from_dict(data, location)


# --- Web extension checks ---


def get_extension_kind(manifest: Manifest) -> tuple[str, ...]:
    """Return where the extension can run: ui, workspace and/or web."""
    if manifest.extension_kind is not None:
        return manifest.extension_kind
    if manifest.main:
        if manifest.browser:
            return ("workspace", "web")
        return ("workspace",)
    if manifest.browser:
        return ("web",)
    raw = manifest.raw
    if raw.get("extensionPack") or raw.get("extensionDependencies"):
        return ("workspace",)
    # Declarative-only extensions (themes, grammars, snippets) run anywhere
    return ("ui", "workspace", "web")


def is_web_kind(manifest: Manifest) -> bool:
    """Whether the manifest declares that it runs in the browser."""
    return "web" in get_extension_kind(manifest)


def is_supported_web_extension(
    manifest: Manifest, extensions_report: ExtensionsReport
) -> bool:
    """Whether the marketplace report allows publishing this web extension."""
    return (
        manifest.publisher in extensions_report.web_publishers
        or manifest.id in extensions_report.web_extensions
    )
