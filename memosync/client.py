"""
HTTP client for the Memos API.

Fetches memos page by page under a hard item budget and downloads
attachments. Reads ``api_url``/``access_token``/``sync_limit`` from the
[memos] section of memosync.toml.

No retries at this layer: a retrieval failure aborts the whole sync run.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from .config import API_PATH_SEGMENT
from .errors import ConfigurationError, FormatError, NetworkUnreachableError, TransportError
from .types import RemoteRecord, ResourceRef

# Server-side maximum page size
MAX_PAGE_SIZE = 100

# Timeouts
DEFAULT_TIMEOUT = 30.0
DOWNLOAD_TIMEOUT = 120.0


class MemosClient:
    """HTTP client for a Memos server (v1 API)."""

    def __init__(
        self,
        api_url: str,
        access_token: str,
        *,
        logger: Optional[logging.Logger] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            api_url: Base API address, e.g. "https://memos.example.com/api/v1"
            access_token: Bearer token
            logger: Component logger; defaults to this module's logger

        Raises:
            ConfigurationError: If api_url lacks the /api/v1 segment
        """
        self._log = logger or logging.getLogger(__name__)
        self._api_url = api_url.rstrip("/")
        if API_PATH_SEGMENT not in self._api_url:
            raise ConfigurationError(
                f"Memos API URL must include {API_PATH_SEGMENT} (got {api_url})"
            )
        self._origin = self._api_url.replace(API_PATH_SEGMENT, "", 1)
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
        )
        self._log.debug(
            "Memos client for %s (token %s)", self._api_url,
            "set" if access_token else "not set",
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    def _get_page(self, page_size: int, page_token: Optional[str]) -> tuple[list, Optional[str]]:
        """GET /memos -> (raw memo dicts, next page token)."""
        url = f"{self._api_url}/memos"
        params: dict[str, str] = {"rowStatus": "NORMAL", "limit": str(page_size)}
        if page_token:
            params["pageToken"] = page_token
        self._log.debug("GET %s params=%s", url, params)

        try:
            resp = self._client.get(url, params=params)
        except httpx.TransportError as e:
            raise NetworkUnreachableError(self._api_url, str(e)) from e

        if resp.status_code != 200:
            raise TransportError(
                f"HTTP {resp.status_code}: request failed\nResponse: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
                url=url,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise FormatError(f"Invalid response: body is not JSON ({e})") from e

        if not isinstance(data, dict) or not isinstance(data.get("memos"), list):
            raise FormatError("Invalid response: body does not contain a memos array")

        return data["memos"], data.get("nextPageToken") or None

    def fetch_all(self, limit: int) -> list[RemoteRecord]:
        """
        Fetch up to ``limit`` memos, newest first.

        Each call starts again from the first page.

        Raises:
            ValueError: If limit is not positive
            TransportError: On a non-200 response
            NetworkUnreachableError: If the server cannot be reached
            FormatError: If a response is not a memo collection
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive (got {limit})")

        page_size = min(MAX_PAGE_SIZE, limit)
        records: list[RemoteRecord] = []
        seen: set[str] = set()
        page_token: Optional[str] = None

        while True:
            memos, page_token = self._get_page(page_size, page_token)
            if not memos:
                break

            remaining = limit - len(records)
            for raw in memos[:remaining]:
                try:
                    record = RemoteRecord.from_dict(raw)
                except ValueError as e:
                    raise FormatError(f"Invalid memo in response: {e}") from e
                if record.name in seen:
                    continue
                seen.add(record.name)
                records.append(record)
            self._log.debug("Fetched page of %d, total %d/%d", len(memos), len(records), limit)

            if len(records) >= limit or not page_token:
                break

        self._log.debug("Returning %d memos", len(records))
        return sorted(records, key=lambda r: r.created, reverse=True)

    def resource_url(self, resource: ResourceRef) -> str:
        return (
            f"{self._origin}/file/resources/{resource.resource_id}/"
            f"{quote(resource.filename, safe='')}"
        )

    def download_resource(self, resource: ResourceRef) -> bytes:
        """
        GET /file/resources/{id}/{filename} -> raw bytes.

        Raises:
            TransportError: On a non-200 response or connection failure
        """
        url = self.resource_url(resource)
        self._log.debug("Downloading resource %s", url)
        try:
            resp = self._client.get(url, timeout=DOWNLOAD_TIMEOUT)
        except httpx.TransportError as e:
            raise NetworkUnreachableError(url, str(e)) from e
        if resp.status_code != 200:
            raise TransportError(
                f"Resource download failed: HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:500],
                url=url,
            )
        return resp.content

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "MemosClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
