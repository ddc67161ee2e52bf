"""Marketplace gallery clients.

- GalleryClient: authenticated publisher API (lookup, create, update, delete)
- PublicGalleryClient: anonymous access to the public extensions report
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from typing import Any

import certifi
import httpx

from extravsix.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    GalleryError,
    NotFoundError,
)

DEFAULT_MARKETPLACE_URL = "https://marketplace.visualstudio.com"
DEFAULT_EXTENSIONS_REPORT_URL = (
    "https://az764295.vo.msecnd.net/extensions/marketplace.json"
)
DEFAULT_TIMEOUT = 60
API_VERSION = "7.1-preview.1"

# ExtensionQueryFlags
FLAG_INCLUDE_VERSIONS = 0x1


# --- Data classes ---


@dataclass(frozen=True)
class PublishedExtension:
    """Server-side record of an extension and its version history."""

    publisher: str
    name: str
    versions: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    def has_version(self, version: str) -> bool:
        return version in self.versions


@dataclass(frozen=True)
class ExtensionsReport:
    """Marketplace-wide report listing publishers and extensions allowed on the web."""

    web_publishers: tuple[str, ...] = ()
    web_extensions: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)


# --- Parsing helpers ---


def _parse_extension(data: dict[str, Any]) -> PublishedExtension:
    publisher = data.get("publisher") or {}
    return PublishedExtension(
        publisher=publisher.get("publisherName", ""),
        name=data.get("extensionName", ""),
        versions=tuple(v.get("version", "") for v in data.get("versions") or []),
        raw=data,
    )


def _parse_extensions_report(data: dict[str, Any]) -> ExtensionsReport:
    web = data.get("web") or {}
    return ExtensionsReport(
        web_publishers=tuple(web.get("publishers") or ()),
        web_extensions=tuple(web.get("extensions") or ()),
        raw=data,
    )


def _error_message(response: httpx.Response) -> str:
    """Prefer the server's JSON message over the raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text


def _handle_http_error(e: httpx.HTTPStatusError) -> GalleryError:
    """Convert HTTP errors to gallery exceptions."""
    status = e.response.status_code
    message = _error_message(e.response)
    if status in (401, 403):
        return AuthenticationError(
            f"Access denied ({status}): {message}", status_code=status
        )
    if status == 404:
        return NotFoundError(f"Not found: {message}", status_code=status)
    if status == 409:
        return ConflictError(f"Conflict: {message}", status_code=status)
    return APIError(f"API error ({status}): {message}", status_code=status)


def _ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


# --- Authenticated gallery ---


class GalleryClient:
    """Client for the marketplace publisher API.

    Example:
        >>> gallery = GalleryClient(pat="...")
        >>> extension = await gallery.get_extension("acme", "widget")
        >>> await gallery.close()
    """

    def __init__(
        self,
        pat: str,
        base_url: str = DEFAULT_MARKETPLACE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            pat: Personal access token with Marketplace (Manage) scope.
            base_url: Marketplace root URL.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        kwargs: dict[str, Any] = {}
        if transport is not None:
            kwargs["transport"] = transport
        else:
            kwargs["verify"] = _ssl_context()
        self._client = httpx.AsyncClient(
            timeout=timeout,
            auth=httpx.BasicAuth("OAuth", pat),
            headers={"Accept": f"application/json;api-version={API_VERSION}"},
            **kwargs,
        )

    async def __aenter__(self) -> GalleryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _extension_url(self, publisher: str, name: str) -> str:
        return (
            f"{self._base_url}/_apis/gallery/publishers/{publisher}/extensions/{name}"
        )

    async def get_extension(
        self, publisher: str, name: str, include_versions: bool = True
    ) -> PublishedExtension:
        """Fetch an extension record.

        Raises:
            NotFoundError: If the extension does not exist.
        """
        params = {"flags": FLAG_INCLUDE_VERSIONS if include_versions else 0}
        data = await self._request(
            "GET", self._extension_url(publisher, name), params=params
        )
        return _parse_extension(data)

    async def create_extension(self, package: bytes) -> PublishedExtension:
        """Upload a VSIX for an extension that does not exist yet."""
        data = await self._request(
            "POST", f"{self._base_url}/_apis/gallery/extensions", content=package
        )
        return _parse_extension(data)

    async def update_extension(
        self, package: bytes, publisher: str, name: str
    ) -> PublishedExtension:
        """Upload a new version of an existing extension.

        Raises:
            ConflictError: If the version already exists (409).
        """
        data = await self._request(
            "PUT", self._extension_url(publisher, name), content=package
        )
        return _parse_extension(data)

    async def delete_extension(self, publisher: str, name: str) -> None:
        """Delete an extension and all its versions."""
        await self._request("DELETE", self._extension_url(publisher, name))

    async def get_publisher(self, publisher: str) -> dict[str, Any]:
        """Fetch a publisher record. Used to check that a PAT is valid."""
        return await self._request(
            "GET", f"{self._base_url}/_apis/gallery/publishers/{publisher}"
        )

    # --- HTTP helpers ---

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
    ) -> dict[str, Any]:
        headers = {"Content-Type": "application/octet-stream"} if content else None
        try:
            resp = await self._client.request(
                method, url, params=params, content=content, headers=headers
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _handle_http_error(e) from e
        except httpx.RequestError as e:
            raise GalleryError(f"Network error: {e}") from e

        if not resp.content:
            return {}
        try:
            result: dict[str, Any] = resp.json()
        except ValueError as e:
            raise GalleryError(f"Invalid response from {url}: {e}") from e
        return result


# --- Public gallery ---


class PublicGalleryClient:
    """Anonymous client for public marketplace data."""

    def __init__(
        self,
        report_url: str = DEFAULT_EXTENSIONS_REPORT_URL,
        timeout: int = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._report_url = report_url
        kwargs: dict[str, Any] = {}
        if transport is not None:
            kwargs["transport"] = transport
        else:
            kwargs["verify"] = _ssl_context()
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            **kwargs,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_extensions_report(self) -> ExtensionsReport:
        """Fetch the marketplace extensions report."""
        try:
            resp = await self._client.get(self._report_url)
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except httpx.HTTPStatusError as e:
            raise _handle_http_error(e) from e
        except httpx.RequestError as e:
            raise GalleryError(f"Network error: {e}") from e
        except ValueError as e:
            raise GalleryError(f"Invalid extensions report: {e}") from e
        return _parse_extensions_report(data)
