"""Packaging an extension project into a VSIX archive.

The archive layout mirrors what vsce emits:

    extension.vsixmanifest     # Identity, properties and assets (XML)
    [Content_Types].xml        # MIME types per file extension
    extension/package.json     # The manifest
    extension/...              # Every other packaged project file

Entries are written in sorted order with a fixed timestamp, so the same
project contents always produce the same archive bytes.
"""

from __future__ import annotations

import json
import os
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO
from xml.etree import ElementTree as ET

from extravsix.exceptions import PackagingError
from extravsix.ignore import IgnoreMatcher
from extravsix.logging import logger
from extravsix.manifest import Manifest, get_extension_kind, read_manifest
from extravsix.process import CommandRunner, run_and_forward
from extravsix.versioning import is_valid_semver

PREPUBLISH_SCRIPT = "vscode:prepublish"

# Fixed entry timestamp for reproducible archives (zip epoch)
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o100644

VSIX_NS = "http://schemas.microsoft.com/developer/vsx-schema/2011"
VSIX_DESIGN_NS = "http://schemas.microsoft.com/developer/vsx-schema-design/2011"
CONTENT_TYPES_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

# Content type per file extension; anything else is DEFAULT_CONTENT_TYPE
CONTENT_TYPES = {
    ".vsixmanifest": "text/xml",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".cjs": "application/javascript",
    ".map": "application/json",
    ".json": "application/json",
    ".md": "text/markdown",
    ".ts": "text/plain",
    ".txt": "text/plain",
    ".html": "text/html",
    ".css": "text/css",
    ".xml": "text/xml",
    ".yml": "text/yaml",
    ".yaml": "text/yaml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".wasm": "application/wasm",
    ".ttf": "font/ttf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

MARKDOWN_FILES = ("README.md", "CHANGELOG.md")

# [text](target) and ![alt](target), target up to whitespace or ")". A link label
# may itself hold an image, as in a linked badge: [![alt](image)](target)
MARKDOWN_LINK_PATTERN = re.compile(
    r"(!?)\[((?:[^\]\[]|!\[[^\]\[]*\]\([^)]*\))*)\]\(\s*([^)\s]+)([^)]*)\)"
)
ABSOLUTE_LINK_PATTERN = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|#|/)", re.IGNORECASE)

GITHUB_URL_PATTERN = re.compile(
    r"github\.com[/:]([^/]+)/([^/#?]+?)(?:\.git)?(?:[/#?].*)?$", re.IGNORECASE
)
GITHUB_SHORTHAND_PATTERN = re.compile(r"^(?:github:)?([\w.-]+)/([\w.-]+)$")


@dataclass
class PackOptions:
    """Options for building a VSIX archive."""

    cwd: str | Path | None = None
    package_path: str | Path | None = None
    github_branch: str | None = None
    base_content_url: str | None = None
    base_images_url: str | None = None
    use_yarn: bool = False
    ignore_file: str | Path | None = None
    web: bool = False


@dataclass(frozen=True)
class PackageResult:
    """A packaged archive and the manifest it was built from."""

    manifest: Manifest
    package_path: Path
    files: tuple[str, ...] = ()


# --- Manifest validation ---


def validate_manifest(manifest: Manifest) -> None:
    """Check the fields the marketplace requires before packaging."""
    if not re.match(r"^[a-z0-9][a-z0-9\-]*$", manifest.name, re.IGNORECASE):
        raise PackagingError(f"Invalid extension name '{manifest.name}'")
    if not re.match(r"^[a-z0-9][a-z0-9\-]*$", manifest.publisher, re.IGNORECASE):
        raise PackagingError(f"Invalid publisher name '{manifest.publisher}'")
    if not is_valid_semver(manifest.version):
        raise PackagingError(f"Invalid extension version '{manifest.version}'")
    if not manifest.engines.get("vscode"):
        raise PackagingError("Manifest missing field: engines.vscode")


# --- Prepublish ---


async def prepublish(
    manifest: Manifest,
    cwd: Path,
    *,
    use_yarn: bool = False,
    runner: CommandRunner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> None:
    """Run the manifest's vscode:prepublish script, if any."""
    if PREPUBLISH_SCRIPT not in manifest.scripts:
        return
    tool = "yarn" if use_yarn else "npm"
    logger.info(f"Executing prepublish script '{tool} run {PREPUBLISH_SCRIPT}'...")
    await run_and_forward(
        [tool, "run", PREPUBLISH_SCRIPT],
        cwd,
        description=f"{tool} run {PREPUBLISH_SCRIPT}",
        runner=runner,
        stdout=stdout,
        stderr=stderr,
    )


# --- File collection ---


def _walk(root: Path, base: Path, skip_dirs: set[str]) -> list[str]:
    """List files below root as posix paths relative to base."""
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Mutate dirnames in-place so os.walk skips excluded directories.
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
        rel_dir = Path(dirpath).relative_to(base)
        for filename in sorted(filenames):
            files.append((rel_dir / filename).as_posix())
    return files


def _read_dependencies(package_dir: Path) -> list[str]:
    package_json = package_dir / "package.json"
    if not package_json.exists():
        return []
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return []
    return sorted((data.get("dependencies") or {}).keys())


def resolve_production_dependencies(cwd: Path, manifest: Manifest) -> list[Path]:
    """Find installed production dependency folders, transitively.

    Each dependency is looked up in the nearest ``node_modules`` walking up
    from the package that requires it, as Node resolves modules.
    """
    seen: set[Path] = set()
    ordered: list[Path] = []
    pending: list[tuple[Path, str]] = [
        (cwd, name) for name in sorted(manifest.dependencies)
    ]

    while pending:
        requirer, name = pending.pop(0)
        found: Path | None = None
        search = requirer
        while True:
            candidate = search / "node_modules" / name
            if candidate.is_dir():
                found = candidate
                break
            if search == cwd or cwd not in search.parents:
                break
            search = search.parent
        if found is None:
            logger.warning(f"Dependency '{name}' is not installed, skipping")
            continue
        found = found.resolve()
        if found in seen:
            continue
        seen.add(found)
        ordered.append(found)
        pending.extend((found, dep) for dep in _read_dependencies(found))

    return ordered


def collect_files(cwd: Path, manifest: Manifest, matcher: IgnoreMatcher) -> list[str]:
    """Collect the project files to package, relative to cwd.

    ``node_modules`` is never walked directly; only production dependencies
    are added back.
    """
    files = _walk(cwd, cwd, skip_dirs={"node_modules"})

    root = cwd.resolve()
    for dep_dir in resolve_production_dependencies(root, manifest):
        if root not in dep_dir.parents:
            continue
        files.extend(
            p
            for p in _walk(dep_dir, root, skip_dirs={"node_modules"})
            if "/.bin/" not in p
        )

    return sorted(set(matcher.filter(files)))


# --- README / CHANGELOG link rewriting ---


def github_base_urls(
    repository: str | dict | None, branch: str | None = None
) -> tuple[str, str] | None:
    """Derive content and image base URLs from a GitHub repository field."""
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not repository:
        return None

    match = GITHUB_URL_PATTERN.search(repository) or GITHUB_SHORTHAND_PATTERN.match(
        repository
    )
    if not match:
        return None

    owner, repo = match.group(1), match.group(2)
    ref = branch or "HEAD"
    return (
        f"https://github.com/{owner}/{repo}/blob/{ref}",
        f"https://github.com/{owner}/{repo}/raw/{ref}",
    )


def rewrite_markdown_links(
    text: str,
    base_content_url: str | None,
    base_images_url: str | None,
    filename: str = "README.md",
) -> str:
    """Make relative links and images in Markdown absolute.

    Raises:
        PackagingError: If a relative link is found but no base URL is known.
    """

    def replace(match: re.Match[str]) -> str:
        bang, label, target, rest = match.groups()
        if not bang and "![" in label:
            label = MARKDOWN_LINK_PATTERN.sub(replace, label)
        if ABSOLUTE_LINK_PATTERN.match(target):
            if label == match.group(2):
                return match.group(0)
            return f"{bang}[{label}]({target}{rest})"
        base = base_images_url if bang else base_content_url
        if not base:
            raise PackagingError(
                f"Couldn't detect the repository where this extension is "
                f"published. The {'image' if bang else 'link'} '{target}' will "
                f"be broken in {filename}. Please provide the repository URL "
                f"in package.json or use the --base-content-url and "
                f"--base-images-url options."
            )
        relative = target[2:] if target.startswith("./") else target
        return f"{bang}[{label}]({base.rstrip('/')}/{relative}{rest})"

    return MARKDOWN_LINK_PATTERN.sub(replace, text)


# --- Archive metadata ---


def _add_property(parent: ET.Element, prop_id: str, value: str) -> None:
    ET.SubElement(
        parent, f"{{{VSIX_NS}}}Property", attrib={"Id": prop_id, "Value": value}
    )


def build_vsix_manifest(manifest: Manifest, files: list[str], web: bool = False) -> str:
    """Build the extension.vsixmanifest XML document."""
    ET.register_namespace("", VSIX_NS)
    ET.register_namespace("d", VSIX_DESIGN_NS)

    root = ET.Element(f"{{{VSIX_NS}}}PackageManifest", attrib={"Version": "2.0.0"})
    metadata = ET.SubElement(root, f"{{{VSIX_NS}}}Metadata")
    ET.SubElement(
        metadata,
        f"{{{VSIX_NS}}}Identity",
        attrib={
            "Language": "en-US",
            "Id": manifest.name,
            "Version": manifest.version,
            "Publisher": manifest.publisher,
        },
    )
    ET.SubElement(metadata, f"{{{VSIX_NS}}}DisplayName").text = (
        manifest.display_name or manifest.name
    )
    description = ET.SubElement(
        metadata, f"{{{VSIX_NS}}}Description", attrib={"xml:space": "preserve"}
    )
    description.text = manifest.description
    ET.SubElement(metadata, f"{{{VSIX_NS}}}Tags").text = ",".join(manifest.keywords)
    ET.SubElement(metadata, f"{{{VSIX_NS}}}Categories").text = ",".join(
        manifest.categories
    )
    ET.SubElement(metadata, f"{{{VSIX_NS}}}GalleryFlags").text = "Public"

    properties = ET.SubElement(metadata, f"{{{VSIX_NS}}}Properties")
    raw = manifest.raw
    _add_property(
        properties, "Microsoft.VisualStudio.Code.Engine", manifest.engines["vscode"]
    )
    _add_property(
        properties,
        "Microsoft.VisualStudio.Code.ExtensionDependencies",
        ",".join(raw.get("extensionDependencies") or []),
    )
    _add_property(
        properties,
        "Microsoft.VisualStudio.Code.ExtensionPack",
        ",".join(raw.get("extensionPack") or []),
    )
    _add_property(
        properties,
        "Microsoft.VisualStudio.Code.ExtensionKind",
        ",".join(get_extension_kind(manifest)),
    )
    localized = [
        entry["languageId"]
        for entry in (raw.get("contributes") or {}).get("localizations") or []
        if entry.get("languageId")
    ]
    _add_property(
        properties,
        "Microsoft.VisualStudio.Code.LocalizedLanguages",
        ",".join(localized),
    )
    if web:
        _add_property(properties, "Microsoft.VisualStudio.Code.WebExtension", "true")
    _add_property(
        properties, "Microsoft.VisualStudio.Services.GitHubFlavoredMarkdown", "true"
    )
    _add_property(
        properties,
        "Microsoft.VisualStudio.Services.Content.Pricing",
        raw.get("pricing", "Free"),
    )

    if raw.get("icon"):
        ET.SubElement(metadata, f"{{{VSIX_NS}}}Icon").text = f"extension/{raw['icon']}"

    installation = ET.SubElement(root, f"{{{VSIX_NS}}}Installation")
    ET.SubElement(
        installation,
        f"{{{VSIX_NS}}}InstallationTarget",
        attrib={"Id": "Microsoft.VisualStudio.Code"},
    )
    ET.SubElement(root, f"{{{VSIX_NS}}}Dependencies")

    assets = ET.SubElement(root, f"{{{VSIX_NS}}}Assets")
    asset_types = [("Microsoft.VisualStudio.Code.Manifest", "package.json")]
    lowered = {f.lower(): f for f in files}
    for asset_type, name in (
        ("Microsoft.VisualStudio.Services.Content.Details", "readme.md"),
        ("Microsoft.VisualStudio.Services.Content.Changelog", "changelog.md"),
        ("Microsoft.VisualStudio.Services.Content.License", "license"),
        ("Microsoft.VisualStudio.Services.Content.License", "license.md"),
        ("Microsoft.VisualStudio.Services.Content.License", "license.txt"),
    ):
        if name in lowered:
            asset_types.append((asset_type, lowered[name]))
    if raw.get("icon") and raw["icon"] in files:
        asset_types.append(
            ("Microsoft.VisualStudio.Services.Icons.Default", raw["icon"])
        )

    for asset_type, path in asset_types:
        ET.SubElement(
            assets,
            f"{{{VSIX_NS}}}Asset",
            attrib={
                "Type": asset_type,
                "Path": f"extension/{path}",
                "Addressable": "true",
            },
        )

    xml_bytes = ET.tostring(root, encoding="utf-8", xml_declaration=True)
    return xml_bytes.decode("utf-8")


def build_content_types(files: list[str]) -> str:
    """Build the [Content_Types].xml document for the packaged files."""
    content_types = {".vsixmanifest": CONTENT_TYPES[".vsixmanifest"]}
    for path in files:
        ext = Path(path).suffix.lower()
        if ext:
            content_types[ext] = CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)

    root = ET.Element("Types", attrib={"xmlns": CONTENT_TYPES_NS})
    for extension, content_type in sorted(content_types.items()):
        ET.SubElement(
            root,
            "Default",
            attrib={"Extension": extension, "ContentType": content_type},
        )
    xml_bytes = ET.tostring(root, encoding="utf-8", xml_declaration=True)
    return xml_bytes.decode("utf-8")


def _zip_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = FILE_MODE << 16
    return info


def write_archive(
    package_path: Path,
    manifest: Manifest,
    files: list[str],
    contents: dict[str, bytes],
    web: bool = False,
) -> None:
    """Write the VSIX archive deterministically.

    Args:
        package_path: Destination archive.
        manifest: Manifest the archive is built from.
        files: Sorted project-relative paths to include.
        contents: Bytes for every path in files.
        web: Mark the package as a web extension.
    """
    package_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(package_path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            _zip_info("extension.vsixmanifest"),
            build_vsix_manifest(manifest, files, web=web),
        )
        archive.writestr(_zip_info("[Content_Types].xml"), build_content_types(files))
        for path in files:
            archive.writestr(_zip_info(f"extension/{path}"), contents[path])


# --- Entry point ---


def default_package_path(cwd: Path, manifest: Manifest) -> Path:
    return cwd / f"{manifest.name}-{manifest.version}.vsix"


async def pack(
    options: PackOptions,
    *,
    runner: CommandRunner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> PackageResult:
    """Package a project folder into a VSIX archive.

    Args:
        options: Packaging options.
        runner: Command runner for the prepublish script.
        stdout: Stream receiving the prepublish script's stdout.
        stderr: Stream receiving the prepublish script's stderr.

    Returns:
        PackageResult with the manifest, archive path and packaged files.
    """
    cwd = Path(options.cwd) if options.cwd else Path.cwd()
    manifest = read_manifest(cwd)
    validate_manifest(manifest)

    await prepublish(
        manifest,
        cwd,
        use_yarn=options.use_yarn,
        runner=runner,
        stdout=stdout,
        stderr=stderr,
    )

    try:
        matcher = IgnoreMatcher.from_project(cwd, options.ignore_file)
    except FileNotFoundError as e:
        raise PackagingError(str(e)) from e
    files = collect_files(cwd, manifest, matcher)
    if "package.json" not in files:
        files = sorted([*files, "package.json"])

    github = github_base_urls(manifest.repository, options.github_branch)
    content_base = options.base_content_url or (github[0] if github else None)
    images_base = options.base_images_url or options.base_content_url
    if not images_base and github:
        images_base = github[1]

    contents: dict[str, bytes] = {}
    for path in files:
        data = (cwd / path).read_bytes()
        if path in MARKDOWN_FILES:
            try:
                markdown = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise PackagingError(f"{path} is not valid UTF-8: {e}") from e
            text = rewrite_markdown_links(
                markdown, content_base, images_base, filename=path
            )
            data = text.encode("utf-8")
        contents[path] = data

    package_path = (
        Path(options.package_path)
        if options.package_path
        else default_package_path(cwd, manifest)
    )
    write_archive(package_path, manifest, files, contents, web=options.web)

    logger.debug(f"Packaged {len(files)} files into {package_path}")
    return PackageResult(
        manifest=manifest, package_path=package_path, files=tuple(files)
    )
