"""Shared test fixtures for extravsix."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from extravsix.config import Settings, get_settings
from extravsix.publish import ExtensionPublisher
from extravsix.store import CredentialStore

from tests.fakes import (
    DEFAULT_MANIFEST,
    FakeGallery,
    FakeGalleryFactory,
    FakePublicGallery,
    RecordingRunner,
    ScriptedPrompt,
    build_vsix,
    write_project,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep host PATs, cached settings and CLI log sinks out of the tests."""
    monkeypatch.delenv("VSCE_PAT", raising=False)
    monkeypatch.delenv("EXTRAVSIX_PAT", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    # main() points loguru at the captured stdout of the test that ran it
    logger.remove()


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Capture loguru messages as plain strings."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level=0)
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        store_path=tmp_path / "config" / "store.json",
        marketplace_url="https://gallery.test",
        pat=None,
    )


@pytest.fixture
def store(settings: Settings) -> CredentialStore:
    return CredentialStore(settings.store_path)


@pytest.fixture
def gallery() -> FakeGallery:
    return FakeGallery()


@pytest.fixture
def gallery_factory(gallery: FakeGallery) -> FakeGalleryFactory:
    return FakeGalleryFactory(gallery)


@pytest.fixture
def public_gallery() -> FakePublicGallery:
    return FakePublicGallery()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def prompt() -> ScriptedPrompt:
    return ScriptedPrompt("y")


@pytest.fixture
def publisher(
    settings: Settings,
    store: CredentialStore,
    gallery_factory: FakeGalleryFactory,
    public_gallery: FakePublicGallery,
    prompt: ScriptedPrompt,
    runner: RecordingRunner,
) -> ExtensionPublisher:
    """ExtensionPublisher wired to fakes only."""
    return ExtensionPublisher(
        settings=settings,
        store=store,
        gallery_factory=gallery_factory,  # type: ignore[arg-type]
        public_gallery_factory=lambda: public_gallery,  # type: ignore[return-value]
        prompt=prompt,
        runner=runner,
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal extension project."""
    return write_project(
        tmp_path / "widget",
        files={
            "out/extension.js": "exports.activate = () => {};\n",
            "README.md": "# Widget\n",
        },
    )


@pytest.fixture
def vsix(tmp_path: Path) -> Path:
    """A packaged extension built from the default manifest."""
    return build_vsix(
        tmp_path / "widget-1.2.3.vsix",
        {
            "extension.vsixmanifest": "<PackageManifest/>",
            "extension/package.json": json.dumps(DEFAULT_MANIFEST),
            "extension/out/extension.js": "exports.activate = () => {};\n",
        },
    )
