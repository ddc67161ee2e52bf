"""Custom exceptions for extravsix."""

from __future__ import annotations


class ExtravsixError(Exception):
    """Base exception for all extravsix errors."""

    pass


class InvalidOptionsError(ExtravsixError):
    """Raised when mutually exclusive options are combined."""

    pass


# --- Manifest extraction ---


class ManifestError(ExtravsixError):
    """Base exception for manifest-related errors."""

    pass


class ManifestNotFoundError(ManifestError):
    """Raised when no manifest exists at the expected location."""

    def __init__(self, location: str, message: str | None = None) -> None:
        self.location = location
        super().__init__(message or f"Manifest not found: {location}")


class MalformedManifestError(ManifestError):
    """Raised when the manifest content cannot be parsed or is incomplete."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Invalid manifest {location}: {reason}")


class ArchiveOpenError(ManifestError):
    """Raised when a package archive cannot be opened."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot open package {path}: {reason}")


# --- Version bump ---


class VersionError(ExtravsixError):
    """Base exception for version bump errors."""

    pass


class UnsupportedVersionError(VersionError):
    """Raised for version keywords that cannot be published."""

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Not supported: {version}")


class InvalidVersionError(VersionError):
    """Raised when a version literal is not a valid semantic version."""

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Invalid version {version}")


class ExternalCommandError(ExtravsixError):
    """Raised when an external command fails to run or exits non-zero."""

    def __init__(
        self,
        command: list[str],
        message: str,
        returncode: int | None = None,
    ) -> None:
        self.command = command
        self.returncode = returncode
        super().__init__(message)


# --- Packaging ---


class PackagingError(ExtravsixError):
    """Raised when a project cannot be packaged."""

    pass


# --- Validation ---


class ProposedApiNotAllowedError(ExtravsixError):
    """Raised when publishing an extension that enables proposed APIs."""

    def __init__(self) -> None:
        super().__init__(
            "Extensions using proposed API (enableProposedApi: true) "
            "can't be published to the Marketplace"
        )


class WebExtensionNotSupportedError(ExtravsixError):
    """Raised when an extension cannot be published as a web extension."""

    pass


# --- Publishing ---


class PublishError(ExtravsixError):
    """Raised when a gallery operation fails during publish."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class DuplicateVersionError(PublishError):
    """Raised when the version being published already exists."""

    def __init__(self, full_name: str, message: str | None = None) -> None:
        self.full_name = full_name
        super().__init__(message or f"{full_name} already exists.", status_code=409)


class AbortedError(ExtravsixError):
    """Raised when the user declines a destructive operation."""

    def __init__(self) -> None:
        super().__init__("Aborted")


class PublisherNotFoundError(ExtravsixError):
    """Raised when no PAT is stored for a publisher."""

    def __init__(self, publisher: str) -> None:
        self.publisher = publisher
        super().__init__(
            f"Publisher '{publisher}' is not known. "
            f"Run 'extravsix login {publisher}' first."
        )


# --- Gallery transport ---


class GalleryError(ExtravsixError):
    """Base exception for marketplace transport errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(GalleryError):
    """Raised when the marketplace rejects the PAT (401/403)."""

    pass


class NotFoundError(GalleryError):
    """Raised when an extension or publisher does not exist (404)."""

    pass


class ConflictError(GalleryError):
    """Raised when the marketplace reports a conflicting resource (409)."""

    pass


class APIError(GalleryError):
    """Raised for other marketplace API errors."""

    pass
