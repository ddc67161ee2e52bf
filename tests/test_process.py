"""Tests for running external commands and for settings."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from extravsix.config import Settings
from extravsix.exceptions import ExternalCommandError
from extravsix.process import resolve_executable, run_and_forward
from tests.fakes import RecordingRunner


def test_missing_executable() -> None:
    with pytest.raises(ExternalCommandError) as exc_info:
        resolve_executable("extravsix-no-such-tool")
    assert "not found in PATH" in str(exc_info.value)


@pytest.mark.asyncio
async def test_run_and_forward_exit_code_without_stderr(tmp_path: Path) -> None:
    """The exit code is reported when the command printed nothing."""
    runner = RecordingRunner(returncode=2)
    with pytest.raises(ExternalCommandError) as exc_info:
        await run_and_forward(
            ["npm", "run", "x"],
            tmp_path,
            description="npm run x",
            runner=runner,
            stdout=io.StringIO(),
            stderr=io.StringIO(),
        )
    assert str(exc_info.value) == "npm run x failed: exit code 2"


def test_settings_pat_from_vsce_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """VSCE_PAT is accepted as the PAT fallback."""
    monkeypatch.setenv("VSCE_PAT", "from-ci")
    assert Settings(_env_file=None).pat == "from-ci"


def test_settings_urls() -> None:
    settings = Settings(_env_file=None, marketplace_url="https://gallery.test/")
    assert settings.published_url("acme.widget") == (
        "https://gallery.test/items?itemName=acme.widget"
    )
    assert settings.hub_url("acme", "widget") == (
        "https://gallery.test/manage/publishers/acme/extensions/widget/hub"
    )
