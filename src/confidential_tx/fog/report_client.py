"""
FogReportClient: fetches fog reports over HTTP ahead of transaction building.

Fog report urls use the fog:// scheme, which maps to https on the same host.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from confidential_tx.errors import FogPubkeyError
from confidential_tx.fog.resolver import FogReportResponse, FogResolver

logger = logging.getLogger("confidential_tx.fog")

REPORTS_PATH = "/reports"


def report_endpoint(fog_report_url: str) -> str:
    """Map a fog report url to the HTTP endpoint serving its reports."""
    url = fog_report_url.rstrip("/")
    if url.startswith("insecure-fog://"):
        url = "http://" + url[len("insecure-fog://"):]
    elif url.startswith("fog://"):
        url = "https://" + url[len("fog://"):]
    return f"{url}{REPORTS_PATH}"


class FogReportClient:
    """
    Synchronous client for fog report servers.

    Usage:
        with FogReportClient() as client:
            resolver = client.build_resolver([addr.fog_report_url for addr in recipients])
    """

    def __init__(
        self,
        timeout: float = 15.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        all_headers: dict[str, str] = {"Content-Type": "application/json"}
        if headers:
            all_headers.update(headers)
        self._client = httpx.Client(headers=all_headers, timeout=timeout, transport=transport)

    def fetch_report(self, fog_report_url: str) -> FogReportResponse:
        """
        Fetch and parse the report response for one fog url.

        Raises:
            FogPubkeyError: On HTTP errors or an unparseable body.
        """
        data = self._get(report_endpoint(fog_report_url))
        try:
            return FogReportResponse.model_validate(data)
        except ValueError as e:
            raise FogPubkeyError(f"Malformed fog report from {fog_report_url}: {e}") from e

    def fetch_reports(self, fog_report_urls: list[str]) -> dict[str, FogReportResponse]:
        """Fetch each distinct url once."""
        responses: dict[str, FogReportResponse] = {}
        for url in fog_report_urls:
            if url and url not in responses:
                responses[url] = self.fetch_report(url)
        return responses

    def build_resolver(self, fog_report_urls: list[str]) -> FogResolver:
        return FogResolver(self.fetch_reports(fog_report_urls))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, url: str) -> Any:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Fog report request to {url} failed: {e}")
            raise FogPubkeyError(f"Request to {url} failed: {e}") from e
        if response.status_code != 200:
            raise FogPubkeyError(f"API error {response.status_code} for {url}: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise FogPubkeyError(f"Response from {url} is not JSON: {e}") from e

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> FogReportClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
