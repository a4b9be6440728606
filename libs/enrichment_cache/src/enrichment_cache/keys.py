"""
Canonical cache keys for enrichment requests.

A key identifies the semantic identity of a request: tenant, provider,
enrichment type and parameters. Parameters are canonicalized first so that
mappings with the same content but different insertion order produce the
same key.

Key layout:
    {prefix}:{tenant_segment}:{provider}:{enrichment_type}:{sha256}

The tenant is embedded as a literal segment rather than folded into the digest,
so two tenants can never share a key even if the digest collides.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

# Segment used for requests without a tenant. Real tenants are always rendered
# as "t=<encoded>", so no tenant id can produce this segment.
NO_TENANT_SEGMENT = "no-tenant"

DEFAULT_KEY_PREFIX = "enrichment"

__all__ = [
    "DEFAULT_KEY_PREFIX",
    "NO_TENANT_SEGMENT",
    "build_cache_key",
    "canonicalize",
    "tenant_segment",
]


def canonicalize(value: Any) -> Any:
    """
    Convert a parameter value into a canonical, JSON-serializable structure.

    Mappings are sorted by (stringified) key, lists and tuples are canonicalized
    element-wise, sets are sorted, pydantic models and dataclasses are turned
    into plain data first. Anything else that JSON cannot represent falls back
    to ``repr()``.

    Args:
        value: Arbitrary parameter value

    Returns:
        Canonical structure built from dicts with sorted keys, lists and JSON scalars
    """
    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json"))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return canonicalize(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        items = sorted(
            ((str(k), canonicalize(v)) for k, v in value.items()),
            key=lambda item: item[0],
        )
        return dict(items)
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        canonical_items = [canonicalize(v) for v in value]
        return sorted(canonical_items, key=lambda v: json.dumps(v, sort_keys=True))
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


def tenant_segment(tenant: str | None) -> str:
    """Render the literal tenant segment of a cache key."""
    if not tenant:
        return NO_TENANT_SEGMENT
    return f"t={quote(tenant, safe='')}"


def build_cache_key(
    tenant: str | None,
    provider_name: str,
    enrichment_type: str,
    parameters: Mapping[str, Any] | None,
    prefix: str = DEFAULT_KEY_PREFIX,
) -> str:
    """
    Build the deterministic cache key for an enrichment request.

    Args:
        tenant: Tenant identifier; None or "" selects the fixed no-tenant sentinel
        provider_name: Name of the provider serving the request
        enrichment_type: Type of enrichment requested
        parameters: Provider parameters (order-insensitive)
        prefix: Key namespace prefix

    Returns:
        Cache key string, e.g. ``enrichment:t=acme:orbis:company-profile:3f1a...``
    """
    material = json.dumps(
        {
            "provider": provider_name.lower(),
            "type": enrichment_type,
            "parameters": canonicalize(parameters or {}),
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()

    return ":".join(
        [
            prefix,
            tenant_segment(tenant),
            quote(provider_name.lower(), safe=""),
            quote(enrichment_type, safe=""),
            digest,
        ]
    )
