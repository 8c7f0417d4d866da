"""
Fog pubkey resolution.

The transaction builder never talks to the network. Callers fetch fog
reports up front (see FogReportClient), wrap them in a FogResolver, and the
builder asks the resolver for each recipient's validated fog pubkey.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from confidential_tx.crypto.curve import InvalidCurvePoint, decode_point
from confidential_tx.errors import FogPubkeyError

logger = logging.getLogger("confidential_tx.fog")


class FullyValidatedFogPubkey(BaseModel):
    """A fog ingest pubkey, with the last block at which it may be used."""
    model_config = ConfigDict(frozen=True)

    pubkey: str
    pubkey_expiry: int


class FogPubkeyResolver(Protocol):
    def get_fog_pubkey(self, address) -> FullyValidatedFogPubkey:
        """
        Resolve the fog pubkey for an address.

        Raises:
            FogPubkeyError: If no validated pubkey is available.
        """
        ...


class FogReport(BaseModel):
    """One report published by a fog service."""
    fog_report_id: str = ""
    pubkey: str
    pubkey_expiry: int


class FogReportResponse(BaseModel):
    """Everything a fog report server returns for one url."""
    reports: list[FogReport] = Field(default_factory=list)
    chain: list[str] = Field(default_factory=list)
    signature: str = ""


class FogResolver:
    """
    Resolver over fog report responses that were fetched in advance.

    Usage:
        responses = client.fetch_reports([addr.fog_report_url])
        resolver = FogResolver(responses)
        builder = TransactionBuilder(version, fee, resolver, memo_builder)
    """

    def __init__(self, responses: dict[str, FogReportResponse]) -> None:
        self._responses = dict(responses)

    def get_fog_pubkey(self, address) -> FullyValidatedFogPubkey:
        url = address.fog_report_url
        response = self._responses.get(url)
        if response is None:
            raise FogPubkeyError(f"No fog report response for url {url!r}")

        report = next(
            (r for r in response.reports if r.fog_report_id == address.fog_report_id),
            None,
        )
        if report is None:
            raise FogPubkeyError(
                f"No report with id {address.fog_report_id!r} from {url!r}"
            )

        try:
            decode_point(report.pubkey)
        except InvalidCurvePoint as e:
            raise FogPubkeyError(f"Invalid fog pubkey from {url!r}: {e}") from e

        logger.debug(f"Resolved fog pubkey for {url} (expiry {report.pubkey_expiry})")
        return FullyValidatedFogPubkey(pubkey=report.pubkey, pubkey_expiry=report.pubkey_expiry)


class MockFogResolver:
    """Resolver backed by a fixed url -> pubkey mapping, for tests."""

    def __init__(self, pubkeys: dict[str, FullyValidatedFogPubkey] | None = None) -> None:
        self._pubkeys = dict(pubkeys or {})

    def get_fog_pubkey(self, address) -> FullyValidatedFogPubkey:
        try:
            return self._pubkeys[address.fog_report_url]
        except KeyError:
            raise FogPubkeyError(f"No fog pubkey for url {address.fog_report_url!r}") from None
