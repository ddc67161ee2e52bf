"""extravsix - package and publish VS Code extensions.

Build a VSIX from an extension folder, publish it to the marketplace
(creating or updating the listing), and unpublish it again.
"""

__version__ = "0.1.0"

from extravsix.exceptions import (
    AbortedError,
    ArchiveOpenError,
    DuplicateVersionError,
    ExternalCommandError,
    ExtravsixError,
    InvalidOptionsError,
    InvalidVersionError,
    MalformedManifestError,
    ManifestNotFoundError,
    PackagingError,
    ProposedApiNotAllowedError,
    PublishError,
    PublisherNotFoundError,
    UnsupportedVersionError,
    WebExtensionNotSupportedError,
)
from extravsix.gallery import (
    ExtensionsReport,
    GalleryClient,
    PublicGalleryClient,
    PublishedExtension,
)
from extravsix.manifest import Manifest, read_manifest, read_manifest_from_package
from extravsix.packager import PackageResult, PackOptions, pack
from extravsix.publish import (
    ExtensionPublisher,
    PublishAction,
    PublishOptions,
    UnpublishOptions,
    decide_action,
)
from extravsix.store import CredentialStore, Publisher
from extravsix.versioning import version_bump

__all__ = [
    "AbortedError",
    "ArchiveOpenError",
    "CredentialStore",
    "DuplicateVersionError",
    "ExtensionPublisher",
    "ExtensionsReport",
    "ExternalCommandError",
    "ExtravsixError",
    "GalleryClient",
    "InvalidOptionsError",
    "InvalidVersionError",
    "MalformedManifestError",
    "Manifest",
    "ManifestNotFoundError",
    "PackOptions",
    "PackageResult",
    "PackagingError",
    "ProposedApiNotAllowedError",
    "PublicGalleryClient",
    "PublishAction",
    "PublishError",
    "PublishOptions",
    "PublishedExtension",
    "Publisher",
    "PublisherNotFoundError",
    "UnpublishOptions",
    "UnsupportedVersionError",
    "WebExtensionNotSupportedError",
    "__version__",
    "decide_action",
    "pack",
    "read_manifest",
    "read_manifest_from_package",
    "version_bump",
]
