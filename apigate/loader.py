from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from .errors import ConfigUnavailableError
from .models import EntitlementMap, EntitlementRule, RequestDescriptor

logger = logging.getLogger(__name__)


class EntitlementMapLoader:
    """Loads the method -> resources entitlement map, fresh on every call."""

    def __init__(self, location: str = "config/entitlement_map.json") -> None:
        self._location = Path(location)

    @property
    def location(self) -> Path:
        return self._location

    def load(self) -> EntitlementMap:
        try:
            raw = self._read_document()
            return self._parse_document(raw)
        except (OSError, ValueError) as exc:
            logger.error(
                "Entitlement map unavailable",
                extra={"location": str(self._location), "error": str(exc)},
            )
            raise ConfigUnavailableError(
                details={"location": str(self._location)},
            ) from exc

    def requires_billing(self, request: RequestDescriptor) -> bool:
        return requires_billing(self.load(), request)

    def _read_document(self) -> dict:
        with self._location.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, dict):
            raise ValueError("entitlement map must contain a top-level object")
        return raw

    @staticmethod
    def _parse_document(raw: dict) -> EntitlementMap:
        scopes_raw = raw.get("scopes")
        if not isinstance(scopes_raw, list):
            raise ValueError("entitlement map must include a list field named 'scopes'")

        rules: List[EntitlementRule] = []
        for entry in scopes_raw:
            if not isinstance(entry, dict):
                raise ValueError(f"entitlement map entry must be an object: {entry!r}")
            method = entry.get("method")
            resource = entry.get("baseURL")
            if not isinstance(method, str) or not isinstance(resource, str):
                raise ValueError(f"entitlement map entry needs string 'method' and 'baseURL': {entry!r}")
            rules.append(EntitlementRule(method=method, resource=resource))

        return EntitlementMap(rules=tuple(rules))


def requires_billing(entitlement_map: EntitlementMap, request: RequestDescriptor) -> bool:
    """True when the map lists the request's resource under its method."""
    if not request.resource:
        return False
    return request.resource in entitlement_map.resources_for(request.method)
