"""Fetching of external documents referenced through ``$ref``."""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path
from typing import Protocol
from urllib.parse import urljoin, urlparse

import httpx

_DEFAULT_TIMEOUT = 10.0


def is_url(uri: str) -> bool:
    return urlparse(uri).scheme in ("http", "https")


def resolve_uri(base: str, ref_location: str) -> str:
    """Resolve the document part of a ``$ref`` against the referring document."""
    if is_url(ref_location):
        return ref_location
    if is_url(base):
        return urljoin(base, ref_location)
    if posixpath.isabs(ref_location):
        return posixpath.normpath(ref_location)
    if base.startswith("<"):
        # In-memory documents resolve relative to the working directory
        return posixpath.normpath(ref_location)
    return posixpath.normpath(posixpath.join(posixpath.dirname(base), ref_location))


class DocumentFetcher(Protocol):
    """Returns the raw text of an external document."""

    async def fetch(self, uri: str) -> str: ...


class DefaultFetcher:
    """Reads local paths from disk and ``http(s)`` URIs with httpx.

    With ``allow_local_files=False`` (used by the API) only URLs are fetched.
    """

    def __init__(self, timeout: float = _DEFAULT_TIMEOUT, allow_local_files: bool = True) -> None:
        self._timeout = timeout
        self._allow_local_files = allow_local_files

    async def fetch(self, uri: str) -> str:
        if is_url(uri):
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(uri)
                response.raise_for_status()
                return response.text
        if not self._allow_local_files:
            raise PermissionError(f"Local file references are disabled: {uri}")
        return await asyncio.to_thread(Path(uri).read_text, encoding="utf-8")
