"""
Root Anchoring

Produces signed commitments of batch roots for the primary settlement layer.

REQUIREMENTS:
- Signatures use Ed25519
- Key IDs are the first 16 hex chars of SHA-256 over the raw public key
- Verification is offline (public keys are pre-loaded)

An anchor signs the canonical JSON of
``{batchId, transactionsRoot, leafCount, createdAt}``; the settlement layer
only ever sees the digest, never the transactions.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from optisettle.protocol.models import Batch
from optisettle.utils.encoding import canonical_json
from optisettle.utils.timestamps import to_iso

logger = logging.getLogger(__name__)


# ===========================================================================
# Root Anchor
# ===========================================================================


@dataclass(frozen=True)
class RootAnchor:
    """
    Signed commitment of one batch root.

    Attributes:
        batch_id: Batch the root belongs to
        transactions_root: Commitment tree root
        leaf_count: Number of committed transactions
        created_at: Batch creation time (ISO-8601)
        key_id: Signing key identifier
        signature: Base64 Ed25519 signature over ``signing_payload()``
    """

    batch_id: str
    transactions_root: str
    leaf_count: int
    created_at: str
    key_id: str
    signature: str

    def signing_payload(self) -> bytes:
        return anchor_payload(self.batch_id, self.transactions_root, self.leaf_count, self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "transactionsRoot": self.transactions_root,
            "leafCount": self.leaf_count,
            "createdAt": self.created_at,
            "keyId": self.key_id,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RootAnchor":
        return cls(
            batch_id=data["batchId"],
            transactions_root=data["transactionsRoot"],
            leaf_count=data["leafCount"],
            created_at=data["createdAt"],
            key_id=data["keyId"],
            signature=data["signature"],
        )


def anchor_payload(batch_id: str, transactions_root: str, leaf_count: int, created_at: str) -> bytes:
    content = {
        "batchId": batch_id,
        "transactionsRoot": transactions_root,
        "leafCount": leaf_count,
        "createdAt": created_at,
    }
    return canonical_json(content, sort_keys=True)


# ===========================================================================
# Signing
# ===========================================================================


def _key_id(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return hashlib.sha256(raw).hexdigest()[:16]


class Ed25519RootSigner:
    """
    Ed25519 signer for batch root anchors.

    Usage:
        signer = Ed25519RootSigner.from_pem_file("/path/to/operator.pem")
        signer = Ed25519RootSigner.generate()  # tests only
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._key_id = _key_id(self._public_key)

    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    @classmethod
    def generate(cls) -> "Ed25519RootSigner":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "Ed25519RootSigner":
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def from_pem_file(cls, path: str, password: Optional[bytes] = None) -> "Ed25519RootSigner":
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key)}")
        return cls(private_key)

    def export_public_pem(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


class RootAnchorer:
    """
    Signs batch roots and hands the anchors to a sink (the settlement layer
    submitter). The default sink only logs.
    """

    def __init__(
        self,
        signer: Ed25519RootSigner,
        sink: Optional[Callable[[RootAnchor], None]] = None,
    ) -> None:
        self._signer = signer
        self._sink = sink

    @property
    def key_id(self) -> str:
        return self._signer.key_id

    def anchor(self, batch: Batch) -> RootAnchor:
        created_at = to_iso(batch.created_at)
        payload = anchor_payload(batch.batch_id, batch.transactions_root, batch.leaf_count, created_at)
        anchor = RootAnchor(
            batch_id=batch.batch_id,
            transactions_root=batch.transactions_root,
            leaf_count=batch.leaf_count,
            created_at=created_at,
            key_id=self._signer.key_id,
            signature=base64.b64encode(self._signer.sign(payload)).decode("ascii"),
        )
        return anchor

    def publish(self, batch: Batch) -> RootAnchor:
        anchor = self.anchor(batch)
        if self._sink is not None:
            self._sink(anchor)
        logger.info(
            "Anchored batch %s root %s (key %s)",
            anchor.batch_id,
            anchor.transactions_root,
            anchor.key_id,
        )
        return anchor


# ===========================================================================
# Verification
# ===========================================================================


class RootVerifier:
    """
    Offline verifier for root anchors.

    Usage:
        verifier = RootVerifier()
        verifier.add_public_key(signer.key_id, signer.public_key_bytes)
        verifier.verify(anchor)
    """

    def __init__(self) -> None:
        self._public_keys: Dict[str, Ed25519PublicKey] = {}

    def add_public_key(self, key_id: str, public_key_bytes: bytes) -> None:
        self._public_keys[key_id] = Ed25519PublicKey.from_public_bytes(public_key_bytes)

    def add_public_key_pem(self, pem_data: bytes) -> str:
        """Register a PEM public key under its derived key id. Returns the id."""
        public_key = serialization.load_pem_public_key(pem_data)
        if not isinstance(public_key, Ed25519PublicKey):
            raise TypeError(f"Expected Ed25519 public key, got {type(public_key)}")
        key_id = _key_id(public_key)
        self._public_keys[key_id] = public_key
        return key_id

    def has_key(self, key_id: str) -> bool:
        return key_id in self._public_keys

    def verify(self, anchor: RootAnchor) -> bool:
        public_key = self._public_keys.get(anchor.key_id)
        if public_key is None:
            return False
        try:
            signature = base64.b64decode(anchor.signature, validate=True)
            public_key.verify(signature, anchor.signing_payload())
            return True
        except (InvalidSignature, ValueError):
            return False
