"""Local credential store mapping publisher names to personal access tokens.

Stored as JSON with secure file permissions (readable only by owner):

    {"publishers": [{"name": "acme", "pat": "..."}]}
"""

from __future__ import annotations

import json
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from extravsix.exceptions import ExtravsixError, PublisherNotFoundError
from extravsix.logging import logger

DEFAULT_STORE_PATH = Path.home() / ".config" / "extravsix" / "store.json"


@dataclass(frozen=True)
class Publisher:
    """A publisher and its personal access token."""

    name: str
    pat: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"name": self.name, "pat": self.pat}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Publisher:
        """Create Publisher from dictionary."""
        return cls(name=data["name"], pat=data["pat"])


class CredentialStore:
    """Reads and writes the publisher store file.

    Args:
        path: Store file location. Defaults to ~/.config/extravsix/store.json
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_STORE_PATH

    @property
    def path(self) -> Path:
        """Location of the store file."""
        return self._path

    def list_publishers(self) -> list[Publisher]:
        """Return all stored publishers, sorted by name."""
        return sorted(self._load().values(), key=lambda p: p.name)

    def get_publisher(self, name: str) -> Publisher:
        """Look up a publisher's PAT.

        Raises:
            PublisherNotFoundError: If the publisher was never added.
        """
        publisher = self._load().get(name)
        if publisher is None:
            raise PublisherNotFoundError(name)
        return publisher

    def add_publisher(self, name: str, pat: str) -> Publisher:
        """Store (or replace) a publisher's PAT."""
        publishers = self._load()
        if name in publishers:
            logger.info(f"Replacing existing PAT for publisher '{name}'")
        publisher = Publisher(name=name, pat=pat)
        publishers[name] = publisher
        self._save(publishers)
        return publisher

    def remove_publisher(self, name: str) -> None:
        """Forget a publisher.

        Raises:
            PublisherNotFoundError: If the publisher was never added.
        """
        publishers = self._load()
        if name not in publishers:
            raise PublisherNotFoundError(name)
        del publishers[name]
        self._save(publishers)

    def _load(self) -> dict[str, Publisher]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
            return {
                entry["name"]: Publisher.from_dict(entry)
                for entry in data.get("publishers", [])
            }
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            raise ExtravsixError(f"Invalid credential store {self._path}: {e}") from e

    def _save(self, publishers: dict[str, Publisher]) -> None:
        """Save the store with secure permissions."""
        # Create parent directory with secure permissions (0700)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.parent.chmod(stat.S_IRWXU)

        # Write to temp file, set permissions, then rename atomically
        data = {
            "publishers": [
                p.to_dict() for p in sorted(publishers.values(), key=lambda p: p.name)
            ]
        }
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(data, indent=2))
        temp_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0600
        temp_path.replace(self._path)
