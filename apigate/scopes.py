"""
Scope parsing for the authorization gate.

Turns a raw ``scope`` claim into ``ScopeDescriptor`` tokens and a raw
request method/path into a ``RequestDescriptor``.
"""

import re
from typing import Optional, Tuple

from .models import RequestDescriptor, ScopeDescriptor

SCOPE_PATTERN = re.compile(r"([a-z]+:[a-z]+)")


def capture_scopes(scope_claim: str) -> Tuple[ScopeDescriptor, ...]:
    """
    Capture every ``method:resource`` token in a scope claim, left to right.

    Tokens that do not fit the pattern (``openid``, ``profile`` ...) are dropped.
    """
    if not scope_claim:
        return ()
    descriptors = []
    for token in SCOPE_PATTERN.findall(scope_claim):
        method, resource = token.split(":", 1)
        descriptors.append(ScopeDescriptor(method=method, resource=resource))
    return tuple(descriptors)


def parse_scope(value: str) -> Optional[ScopeDescriptor]:
    """Parse a single ``method:resource`` string, or None when malformed."""
    parts = str(value).strip().split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return ScopeDescriptor(method=parts[0], resource=parts[1])


def base_resource(path: str) -> str:
    """Return the first path segment, lowercased (``/users/12`` -> ``users``)."""
    if not path:
        return ""
    path = path.split("?", 1)[0].split("#", 1)[0]
    return path.strip("/").split("/")[0].lower()


def describe_request(method: str, path: str) -> RequestDescriptor:
    return RequestDescriptor(method=str(method).strip().lower(), resource=base_resource(path))
