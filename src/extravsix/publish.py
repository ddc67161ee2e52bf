"""Publishing and unpublishing extensions on the marketplace.

ExtensionPublisher wires together packaging, version bumps, manifest checks,
the credential store and the gallery. Every collaborator can be replaced at
construction time, which is how the tests drive it.
"""

from __future__ import annotations

import asyncio
import enum
import re
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from extravsix.config import Settings, get_settings
from extravsix.exceptions import (
    AbortedError,
    ConflictError,
    DuplicateVersionError,
    GalleryError,
    InvalidOptionsError,
    NotFoundError,
    ProposedApiNotAllowedError,
    PublishError,
    WebExtensionNotSupportedError,
)
from extravsix.gallery import GalleryClient, PublicGalleryClient, PublishedExtension
from extravsix.logging import done, logger
from extravsix.manifest import (
    Manifest,
    is_supported_web_extension,
    is_web_kind,
    read_manifest,
    read_manifest_from_package,
)
from extravsix.packager import PackOptions, pack
from extravsix.process import CommandRunner
from extravsix.store import CredentialStore
from extravsix.versioning import version_bump

PAT_HELP_URL = "https://aka.ms/vscodepat"
INVALID_RESOURCE_PATTERN = re.compile(r"Invalid Resource")
EXPIRED_PAT_HINT = (
    "\n\nYou're likely using an expired Personal Access Token, "
    f"please get a new PAT.\nMore info: {PAT_HELP_URL}"
)

Prompt = Callable[[str], Awaitable[str]]
GalleryFactory = Callable[[str], GalleryClient]
PublicGalleryFactory = Callable[[], PublicGalleryClient]


# --- Options ---


@dataclass
class PublishOptions:
    """Options for publish.

    Either ``package_path`` points at an existing VSIX, or the project in
    ``cwd`` is packaged first. The two modes are mutually exclusive with
    ``version`` and ``web``.
    """

    package_path: str | Path | None = None
    version: str | None = None
    commit_message: str | None = None
    cwd: str | Path | None = None
    pat: str | None = None
    github_branch: str | None = None
    base_content_url: str | None = None
    base_images_url: str | None = None
    use_yarn: bool = False
    no_verify: bool = False
    ignore_file: str | Path | None = None
    web: bool = False


@dataclass
class UnpublishOptions(PublishOptions):
    """Options for unpublish. ``id`` is ``publisher.name``."""

    id: str | None = None
    force: bool = False


# --- Publish decision ---


class PublishAction(enum.Enum):
    """What to do with a package given the gallery's current record."""

    CREATE = "create"
    UPDATE = "update"
    REJECT_DUPLICATE = "reject_duplicate"


def decide_action(
    extension: PublishedExtension | None, version: str
) -> PublishAction:
    """Pick create, update or reject from the lookup result."""
    if extension is None:
        return PublishAction.CREATE
    if extension.has_version(version):
        return PublishAction.REJECT_DUPLICATE
    return PublishAction.UPDATE


def with_pat_hint(message: str) -> str:
    """Append the expired-PAT hint to 'Invalid Resource' failures."""
    if INVALID_RESOURCE_PATTERN.search(message):
        return message + EXPIRED_PAT_HINT
    return message


def parse_extension_id(extension_id: str) -> tuple[str, str]:
    """Split ``publisher.name`` on the first dot."""
    publisher, sep, name = extension_id.partition(".")
    if not sep or not publisher or not name:
        raise InvalidOptionsError(
            f"Invalid extension id '{extension_id}'. Expected <publisher>.<name>"
        )
    return publisher, name


async def read_line(prompt: str) -> str:
    """Read one line from the terminal. End of input counts as no answer."""
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return ""


# --- Publisher ---


class ExtensionPublisher:
    """Publishes and unpublishes extensions.

    Example:
        >>> publisher = ExtensionPublisher()
        >>> await publisher.publish(PublishOptions(cwd="./my-extension"))
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: CredentialStore | None = None,
        gallery_factory: GalleryFactory | None = None,
        public_gallery_factory: PublicGalleryFactory | None = None,
        prompt: Prompt | None = None,
        runner: CommandRunner | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store or CredentialStore(self._settings.store_path)
        self._gallery_factory = gallery_factory or self._default_gallery
        self._public_gallery_factory = (
            public_gallery_factory or self._default_public_gallery
        )
        self._prompt = prompt or read_line
        self._runner = runner
        self._stdout = stdout
        self._stderr = stderr

    def _default_gallery(self, pat: str) -> GalleryClient:
        return GalleryClient(
            pat,
            base_url=self._settings.marketplace_url,
            timeout=self._settings.timeout,
        )

    def _default_public_gallery(self) -> PublicGalleryClient:
        return PublicGalleryClient(
            report_url=self._settings.extensions_report_url,
            timeout=self._settings.timeout,
        )

    # --- Publish ---

    async def publish(self, options: PublishOptions | None = None) -> None:
        """Publish an existing package, or package the project and publish it."""
        options = options or PublishOptions()

        if options.package_path:
            if options.version:
                raise InvalidOptionsError("Not supported: packagePath and version.")
            if options.web:
                raise InvalidOptionsError("Not supported: packagePath and web.")
            package_path = Path(options.package_path)
            manifest = read_manifest_from_package(package_path)
            await self._publish_checked(package_path, manifest, options)
            return

        await version_bump(
            options.cwd,
            options.version,
            options.commit_message,
            runner=self._runner,
            stdout=self._stdout,
            stderr=self._stderr,
        )

        temp_path = _temp_package_path()
        try:
            result = await pack(
                PackOptions(
                    cwd=options.cwd,
                    package_path=temp_path,
                    github_branch=options.github_branch,
                    base_content_url=options.base_content_url,
                    base_images_url=options.base_images_url,
                    use_yarn=options.use_yarn,
                    ignore_file=options.ignore_file,
                    web=options.web,
                ),
                runner=self._runner,
                stdout=self._stdout,
                stderr=self._stderr,
            )
            await self._publish_checked(result.package_path, result.manifest, options)
        finally:
            temp_path.unlink(missing_ok=True)

    async def _publish_checked(
        self, package_path: Path, manifest: Manifest, options: PublishOptions
    ) -> None:
        await self.verify_manifest(manifest, options)
        pat = self.resolve_pat(manifest.publisher, options.pat)
        await self.publish_package(package_path, pat, manifest)

    async def verify_manifest(
        self, manifest: Manifest, options: PublishOptions
    ) -> None:
        """Reject manifests that cannot be published with these options."""
        if not options.no_verify and manifest.enable_proposed_api:
            raise ProposedApiNotAllowedError()

        if options.web:
            if not is_web_kind(manifest):
                raise WebExtensionNotSupportedError(
                    "Extensions which are not web kind can't be published "
                    "to the Marketplace as a web extension"
                )
            public = self._public_gallery_factory()
            try:
                report = await public.get_extensions_report()
            finally:
                await public.close()
            if not is_supported_web_extension(manifest, report):
                raise WebExtensionNotSupportedError(
                    "Extensions which are not supported can't be published "
                    "to the Marketplace as a web extension"
                )

    def resolve_pat(self, publisher: str, pat: str | None = None) -> str:
        """Explicit PAT, then the configured PAT, then the credential store."""
        if pat:
            return pat
        if self._settings.pat:
            return self._settings.pat
        return self._store.get_publisher(publisher).pat

    async def publish_package(
        self, package_path: str | Path, pat: str, manifest: Manifest
    ) -> PublishAction:
        """Upload a package, creating or updating the gallery extension.

        Returns:
            The action that was carried out (CREATE or UPDATE).

        Raises:
            DuplicateVersionError: If the version is already published.
            PublishError: If the gallery rejects the upload.
        """
        full_name = manifest.full_name
        logger.info(f"Publishing {full_name}...")
        package = Path(package_path).read_bytes()

        gallery = self._gallery_factory(pat)
        try:
            extension = await self._lookup(gallery, manifest)
            action = decide_action(extension, manifest.version)

            if action is PublishAction.REJECT_DUPLICATE:
                raise DuplicateVersionError(
                    full_name,
                    f"{full_name} already exists. Version number cannot be the same.",
                )
            if action is PublishAction.UPDATE:
                try:
                    await gallery.update_extension(
                        package, manifest.publisher, manifest.name
                    )
                except ConflictError as e:
                    raise DuplicateVersionError(full_name) from e
            else:
                await gallery.create_extension(package)
        except GalleryError as e:
            raise PublishError(with_pat_hint(str(e)), status_code=e.status_code) from e
        finally:
            await gallery.close()

        logger.info(
            "Extension URL (might take a few minutes): "
            f"{self._settings.published_url(manifest.id)}"
        )
        hub_url = self._settings.hub_url(manifest.publisher, manifest.name)
        logger.info(f"Hub URL: {hub_url}")
        done(f"Published {full_name}.")
        return action

    @staticmethod
    async def _lookup(
        gallery: GalleryClient, manifest: Manifest
    ) -> PublishedExtension | None:
        try:
            return await gallery.get_extension(
                manifest.publisher, manifest.name, include_versions=True
            )
        except NotFoundError:
            return None

    # --- Unpublish ---

    async def unpublish(self, options: UnpublishOptions | None = None) -> None:
        """Delete an extension from the marketplace, after confirmation."""
        options = options or UnpublishOptions()

        if options.id:
            publisher, name = parse_extension_id(options.id)
        else:
            manifest = read_manifest(options.cwd)
            publisher, name = manifest.publisher, manifest.name

        full_name = f"{publisher}.{name}"

        if not options.force:
            answer = await self._prompt(
                f"This will FOREVER delete '{full_name}'! Are you sure? [y/N] "
            )
            if not re.fullmatch(r"y", answer.strip(), re.IGNORECASE):
                raise AbortedError()

        pat = self.resolve_pat(publisher, options.pat)
        gallery = self._gallery_factory(pat)
        try:
            await gallery.delete_extension(publisher, name)
        except GalleryError as e:
            raise PublishError(with_pat_hint(str(e)), status_code=e.status_code) from e
        finally:
            await gallery.close()

        done(f"Deleted extension: {full_name}!")

    # --- Credentials ---

    async def login(self, publisher: str, pat: str) -> None:
        """Check a PAT against the gallery and store it for the publisher."""
        gallery = self._gallery_factory(pat)
        try:
            await gallery.get_publisher(publisher)
        except GalleryError as e:
            raise PublishError(
                with_pat_hint(f"Failed request: ({e.status_code}) {e}"),
                status_code=e.status_code,
            ) from e
        finally:
            await gallery.close()

        self._store.add_publisher(publisher, pat)
        done(
            "The Personal Access Token verification succeeded "
            f"for publisher '{publisher}'."
        )

    def logout(self, publisher: str) -> None:
        """Forget a publisher's PAT."""
        self._store.remove_publisher(publisher)
        done(f"Removed publisher '{publisher}'.")

    def list_publishers(self) -> list[str]:
        """Names of publishers with a stored PAT."""
        return [p.name for p in self._store.list_publishers()]


def _temp_package_path() -> Path:
    """Reserve a fresh temporary file for one packaging run."""
    handle = tempfile.NamedTemporaryFile(
        prefix="extravsix-", suffix=".vsix", delete=False
    )
    handle.close()
    return Path(handle.name)
