"""CLI entry point for extravsix.

Usage:
    python -m extravsix package [--out PATH] [--web] [--yarn] [--ignore-file FILE]
    python -m extravsix publish [VERSION] [--packagePath VSIX] [--pat PAT] [--web]
    python -m extravsix unpublish [ID] [--force] [--pat PAT]
    python -m extravsix login <publisher>
    python -m extravsix logout <publisher>
    python -m extravsix ls-publishers
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from extravsix.config import get_settings
from extravsix.exceptions import ExtravsixError
from extravsix.logging import done, setup_logging
from extravsix.packager import PackOptions, pack
from extravsix.publish import ExtensionPublisher, PublishOptions, UnpublishOptions


def _add_packaging_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by package and publish."""
    parser.add_argument(
        "--githubBranch",
        "--github-branch",
        dest="github_branch",
        help="The GitHub branch used to infer relative links in README.md",
    )
    parser.add_argument(
        "--baseContentUrl",
        "--base-content-url",
        dest="base_content_url",
        help="Prepend all relative links in README.md with this URL",
    )
    parser.add_argument(
        "--baseImagesUrl",
        "--base-images-url",
        dest="base_images_url",
        help="Prepend all relative image links in README.md with this URL",
    )
    parser.add_argument(
        "--yarn",
        dest="use_yarn",
        action="store_true",
        help="Use yarn instead of npm to run the prepublish script",
    )
    parser.add_argument(
        "--ignoreFile",
        "--ignore-file",
        dest="ignore_file",
        help="Indicate alternative .vscodeignore",
    )
    parser.add_argument(
        "--web",
        action="store_true",
        help="Package or publish as a web extension",
    )


# --- Command handlers ---


async def cmd_package(args: argparse.Namespace) -> int:
    """Package the extension in the current folder."""
    result = await pack(
        PackOptions(
            cwd=args.cwd,
            package_path=args.out,
            github_branch=args.github_branch,
            base_content_url=args.base_content_url,
            base_images_url=args.base_images_url,
            use_yarn=args.use_yarn,
            ignore_file=args.ignore_file,
            web=args.web,
        )
    )
    size_kb = result.package_path.stat().st_size / 1024
    done(
        f"Packaged: {result.package_path} "
        f"({len(result.files)} files, {size_kb:.2f}KB)"
    )
    return 0


async def cmd_publish(args: argparse.Namespace) -> int:
    """Publish the extension, packaging it first unless --packagePath is given."""
    publisher = ExtensionPublisher()
    await publisher.publish(
        PublishOptions(
            package_path=args.package_path,
            version=args.version,
            commit_message=args.message,
            cwd=args.cwd,
            pat=args.pat,
            github_branch=args.github_branch,
            base_content_url=args.base_content_url,
            base_images_url=args.base_images_url,
            use_yarn=args.use_yarn,
            no_verify=args.no_verify,
            ignore_file=args.ignore_file,
            web=args.web,
        )
    )
    return 0


async def cmd_unpublish(args: argparse.Namespace) -> int:
    """Remove an extension from the marketplace."""
    publisher = ExtensionPublisher()
    await publisher.unpublish(
        UnpublishOptions(id=args.id, cwd=args.cwd, pat=args.pat, force=args.force)
    )
    return 0


async def cmd_login(args: argparse.Namespace) -> int:
    """Store a PAT for a publisher after checking it against the gallery."""
    pat = args.pat or getpass.getpass("Personal Access Token for publisher: ")
    if not pat:
        print("Error: A Personal Access Token is required", file=sys.stderr)
        return 1
    await ExtensionPublisher().login(args.publisher, pat)
    return 0


async def cmd_logout(args: argparse.Namespace) -> int:
    """Forget the PAT stored for a publisher."""
    ExtensionPublisher().logout(args.publisher)
    return 0


async def cmd_ls_publishers(args: argparse.Namespace) -> int:  # noqa: ARG001
    """List publishers with a stored PAT."""
    for name in ExtensionPublisher().list_publishers():
        print(name)
    return 0


# --- CLI setup ---


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="extravsix",
        description="Package and publish VS Code extensions",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Minimum log level (default: INFO, or EXTRAVSIX_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # package
    package_parser = subparsers.add_parser("package", help="Package an extension")
    package_parser.add_argument(
        "-o", "--out", default=None, help="Output .vsix extension file"
    )
    package_parser.add_argument(
        "--cwd", type=Path, default=None, help="Extension folder (default: .)"
    )
    _add_packaging_arguments(package_parser)
    package_parser.set_defaults(func=cmd_package)

    # publish
    publish_parser = subparsers.add_parser("publish", help="Publish an extension")
    publish_parser.add_argument(
        "version",
        nargs="?",
        default=None,
        help="Bump the version first: major, minor, patch or an explicit x.y.z",
    )
    publish_parser.add_argument(
        "-p", "--pat", default=None, help="Personal Access Token"
    )
    publish_parser.add_argument(
        "-m",
        "--message",
        default=None,
        help="Commit message used when bumping the version",
    )
    publish_parser.add_argument(
        "-i",
        "--packagePath",
        "--package-path",
        dest="package_path",
        default=None,
        help="Publish this .vsix instead of packaging the current folder",
    )
    publish_parser.add_argument(
        "--noVerify",
        "--no-verify",
        dest="no_verify",
        action="store_true",
        help="Allow publishing extensions that use proposed API",
    )
    publish_parser.add_argument(
        "--cwd", type=Path, default=None, help="Extension folder (default: .)"
    )
    _add_packaging_arguments(publish_parser)
    publish_parser.set_defaults(func=cmd_publish)

    # unpublish
    unpublish_parser = subparsers.add_parser(
        "unpublish", help="Unpublish an extension"
    )
    unpublish_parser.add_argument(
        "id",
        nargs="?",
        default=None,
        help="Extension id as <publisher>.<name> (default: from package.json)",
    )
    unpublish_parser.add_argument(
        "-p", "--pat", default=None, help="Personal Access Token"
    )
    unpublish_parser.add_argument(
        "-f", "--force", action="store_true", help="Skip confirmation prompt"
    )
    unpublish_parser.add_argument(
        "--cwd", type=Path, default=None, help="Extension folder (default: .)"
    )
    unpublish_parser.set_defaults(func=cmd_unpublish)

    # login
    login_parser = subparsers.add_parser(
        "login", help="Add a publisher to the known publishers list"
    )
    login_parser.add_argument("publisher", help="Publisher name")
    login_parser.add_argument(
        "-p", "--pat", default=None, help="Personal Access Token (prompted if omitted)"
    )
    login_parser.set_defaults(func=cmd_login)

    # logout
    logout_parser = subparsers.add_parser(
        "logout", help="Remove a publisher from the known publishers list"
    )
    logout_parser.add_argument("publisher", help="Publisher name")
    logout_parser.set_defaults(func=cmd_logout)

    # ls-publishers
    ls_parser = subparsers.add_parser("ls-publishers", help="List all known publishers")
    ls_parser.set_defaults(func=cmd_ls_publishers)

    return parser


async def _run(args: argparse.Namespace) -> int:
    try:
        result: int = await args.func(args)
        return result
    except ExtravsixError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or get_settings().log_level)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
