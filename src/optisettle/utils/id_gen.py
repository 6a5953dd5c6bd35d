"""
ID generators used across optisettle.
"""

from __future__ import annotations

import uuid


def generate_uuid() -> str:
    """Generate a UUIDv4 string."""
    return str(uuid.uuid4())


def generate_batch_id() -> str:
    """Batch ids are UUIDv4, unique for the lifetime of the process and beyond."""
    return generate_uuid()
