"""Cache key derivation.

Keys are built from a namespace, an identifier and a stable hash of the
request parameters. ``None`` values are dropped before hashing so that
"unset" and "explicitly None" describe the same request. The identifier
segment is sanitized for readability only; the raw identifier is part
of the hash, so identifiers that sanitize alike still get distinct keys.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Mapping

import orjson

from dashvault.shared.constants import CacheConfig
from dashvault.shared.errors import DomainError, ErrorCode, ErrorContext

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key.

    Attributes:
        prefix: Product prefix shared by every key
        namespace: Logical grouping, e.g. ``workItems`` or ``iterations``
        identifier: Sub-identifier within the namespace
        params_hash: Truncated SHA-256 of the canonical parameters
    """

    prefix: str
    namespace: str
    identifier: str
    params_hash: str

    def __str__(self) -> str:
        return CacheConfig.KEY_SEPARATOR.join(
            (self.prefix, self.namespace, self.identifier, self.params_hash)
        )


def sanitize_key_part(part: object) -> str:
    """Replace characters unsafe in a key segment with underscores."""
    return _UNSAFE_KEY_CHARS.sub("_", str(part))


def canonical_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop ``None`` values, recursing into nested mappings.

    Values are otherwise left untouched: "Prod" and "prod" remain
    distinct parameters.
    """
    if not params:
        return {}
    canonical: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            value = canonical_params(value)
        canonical[str(key)] = value
    return canonical


def hash_params(params: Mapping[str, Any] | None) -> str:
    """Stable hash of a parameter mapping.

    Raises:
        DomainError: If a parameter value is not JSON-serializable
    """
    try:
        payload = orjson.dumps(canonical_params(params), option=orjson.OPT_SORT_KEYS)
    except TypeError as e:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR,
            f"Cache key parameters must be JSON-serializable: {e}",
            ErrorContext(operation="hash_params"),
            original_error=e,
        ) from e
    return hashlib.sha256(payload).hexdigest()[: CacheConfig.PARAMS_HASH_LENGTH]


def generate_cache_key(
    namespace: str,
    identifier: str | int,
    params: Mapping[str, Any] | None = None,
    *,
    prefix: str = CacheConfig.KEY_PREFIX,
) -> CacheKey:
    """Build the cache key for a request.

    Args:
        namespace: Cache namespace
        identifier: Identifier within the namespace (project, item id...)
        params: Request parameters; ``None`` values are ignored
        prefix: Product prefix

    Returns:
        CacheKey whose ``str()`` is ``<prefix>:<namespace>:<identifier>:<hash>``,
        where the hash covers both the raw identifier and the parameters

    Example:
        >>> a = generate_cache_key("workItems", "Alpha", {"state": "Active", "area": None})
        >>> b = generate_cache_key("workItems", "Alpha", {"state": "Active"})
        >>> a == b
        True
    """
    if not namespace:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR,
            "Cache namespace must not be empty",
            ErrorContext(operation="generate_cache_key"),
        )
    return CacheKey(
        prefix=sanitize_key_part(prefix),
        namespace=sanitize_key_part(namespace),
        identifier=sanitize_key_part(identifier),
        params_hash=hash_params({"identifier": str(identifier), "params": canonical_params(params)}),
    )


def namespace_pattern(namespace: str, *, prefix: str = CacheConfig.KEY_PREFIX) -> str:
    """Glob pattern matching every key under a namespace."""
    return CacheConfig.KEY_SEPARATOR.join(
        (sanitize_key_part(prefix), sanitize_key_part(namespace), "*")
    )
