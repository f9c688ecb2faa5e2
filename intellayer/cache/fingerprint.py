"""Deterministic request fingerprints for cache keys."""

import hashlib
import json
from typing import Any

FINGERPRINT_LENGTH = 32


def canonical_json(value: Any) -> str:
    """Compact JSON with object keys sorted at every depth.

    Array order is significant and kept as-is.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(tenant_id: str, process_id: str, canonical_input: dict[str, Any]) -> str:
    """SHA-256 of ``tenant:process:canonical_json(input)``, truncated to 32 hex chars.

    The tenant is part of the digest so identical inputs from two tenants
    never share an entry.
    """
    payload = f"{tenant_id}:{process_id}:{canonical_json(canonical_input)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
