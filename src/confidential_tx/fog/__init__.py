"""Fog pubkey resolution and report fetching."""
from confidential_tx.fog.report_client import FogReportClient
from confidential_tx.fog.resolver import (
    FogPubkeyResolver,
    FogReport,
    FogReportResponse,
    FogResolver,
    FullyValidatedFogPubkey,
    MockFogResolver,
)

__all__ = [
    "FogPubkeyResolver",
    "FogReport",
    "FogReportClient",
    "FogReportResponse",
    "FogResolver",
    "FullyValidatedFogPubkey",
    "MockFogResolver",
]
