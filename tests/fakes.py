"""Fake implementations for testing ExtensionPublisher.

These fakes let tests control the gallery, the confirmation prompt and
external commands without network access or npm.
"""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any

from extravsix.exceptions import GalleryError, NotFoundError
from extravsix.gallery import ExtensionsReport, PublishedExtension
from extravsix.process import CommandResult

DEFAULT_MANIFEST: dict[str, Any] = {
    "name": "widget",
    "publisher": "acme",
    "version": "1.2.3",
    "displayName": "Widget",
    "description": "Adds widgets",
    "engines": {"vscode": "^1.80.0"},
    "main": "./out/extension.js",
    "repository": "https://github.com/acme/widget",
}


class FakeGallery:
    """In-memory gallery that records every call.

    ``extension`` is what lookups return; None means the gallery answers
    404. Each ``*_error`` is raised by the matching method when set.
    """

    def __init__(
        self,
        extension: PublishedExtension | None = None,
        lookup_error: GalleryError | None = None,
        create_error: GalleryError | None = None,
        update_error: GalleryError | None = None,
        delete_error: GalleryError | None = None,
        publisher_error: GalleryError | None = None,
    ) -> None:
        self.extension = extension
        self.lookup_error = lookup_error
        self.create_error = create_error
        self.update_error = update_error
        self.delete_error = delete_error
        self.publisher_error = publisher_error
        self.calls: list[tuple[Any, ...]] = []
        self.uploads: list[bytes] = []
        self.closed = False

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def get_extension(
        self, publisher: str, name: str, include_versions: bool = True
    ) -> PublishedExtension:
        self.calls.append(("get_extension", publisher, name, include_versions))
        if self.lookup_error:
            raise self.lookup_error
        if self.extension is None:
            raise NotFoundError(f"Not found: {publisher}.{name}", status_code=404)
        return self.extension

    async def create_extension(self, package: bytes) -> PublishedExtension:
        self.calls.append(("create_extension",))
        self.uploads.append(package)
        if self.create_error:
            raise self.create_error
        return PublishedExtension(publisher="acme", name="widget")

    async def update_extension(
        self, package: bytes, publisher: str, name: str
    ) -> PublishedExtension:
        self.calls.append(("update_extension", publisher, name))
        self.uploads.append(package)
        if self.update_error:
            raise self.update_error
        return PublishedExtension(publisher=publisher, name=name)

    async def delete_extension(self, publisher: str, name: str) -> None:
        self.calls.append(("delete_extension", publisher, name))
        if self.delete_error:
            raise self.delete_error

    async def get_publisher(self, publisher: str) -> dict[str, Any]:
        self.calls.append(("get_publisher", publisher))
        if self.publisher_error:
            raise self.publisher_error
        return {"publisherName": publisher}

    async def close(self) -> None:
        self.closed = True


class FakeGalleryFactory:
    """Hands out one FakeGallery and remembers the PATs it was asked for."""

    def __init__(self, gallery: FakeGallery) -> None:
        self.gallery = gallery
        self.pats: list[str] = []

    def __call__(self, pat: str) -> FakeGallery:
        self.pats.append(pat)
        return self.gallery


class FakePublicGallery:
    """Serves a fixed extensions report."""

    def __init__(self, report: ExtensionsReport | None = None) -> None:
        self.report = report or ExtensionsReport()
        self.requests = 0
        self.closed = False

    async def get_extensions_report(self) -> ExtensionsReport:
        self.requests += 1
        return self.report

    async def close(self) -> None:
        self.closed = True


class ScriptedPrompt:
    """Answers every prompt with a fixed reply."""

    def __init__(self, answer: str) -> None:
        self.answer = answer
        self.questions: list[str] = []

    async def __call__(self, question: str) -> str:
        self.questions.append(question)
        return self.answer


class RecordingRunner:
    """Command runner that records commands instead of running them."""

    def __init__(
        self, returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> None:
        self.result = CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)
        self.commands: list[tuple[list[str], Path]] = []

    async def __call__(self, args: list[str], cwd: Path) -> CommandResult:
        self.commands.append((list(args), cwd))
        return self.result


def write_project(
    root: Path,
    manifest: dict[str, Any] | None = None,
    files: dict[str, str] | None = None,
) -> Path:
    """Create an extension project folder with a package.json."""
    root.mkdir(parents=True, exist_ok=True)
    data = dict(DEFAULT_MANIFEST) if manifest is None else manifest
    (root / "package.json").write_text(json.dumps(data, indent=2))
    for rel, content in (files or {}).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def build_vsix(path: Path, entries: dict[str, str | bytes]) -> Path:
    """Write a zip archive with the given entries, in order."""
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return path
