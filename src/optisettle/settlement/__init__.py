"""
Boundary with the primary settlement layer: signed root anchors going out,
verification/finalization and bridge events coming in.
"""

from .anchor import Ed25519RootSigner, RootAnchor, RootAnchorer, RootVerifier
from .events import SettlementEvent, SettlementEventHandler

__all__ = [
    "Ed25519RootSigner",
    "RootAnchor",
    "RootAnchorer",
    "RootVerifier",
    "SettlementEvent",
    "SettlementEventHandler",
]
