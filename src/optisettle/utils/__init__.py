from .encoding import canonical_json
from .id_gen import generate_uuid, generate_batch_id
from .logging import configure_logging
from .timestamps import utc_now, to_iso, from_iso

__all__ = [
    "canonical_json",
    "generate_uuid",
    "generate_batch_id",
    "configure_logging",
    "utc_now",
    "to_iso",
    "from_iso",
]
