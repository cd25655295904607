from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Dict, Mapping, Optional

import redis

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1


class VerificationCache:
    """Redis-backed cache of verified claims keyed by raw credential, with in-memory fallback.

    Redis errors after startup degrade to a cache miss; verification then runs as if
    nothing were cached.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: int = 300) -> None:
        self._ttl_seconds = ttl_seconds
        self._redis = None
        self._mem: Dict[str, tuple[float, dict]] = {}

        if redis_url:
            try:
                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except Exception as exc:
                logger.warning(
                    "Redis unavailable for verification cache - using in-memory fallback",
                    extra={"error": str(exc)},
                )
                self._redis = None

    @staticmethod
    def _key(raw_credential: str) -> str:
        digest = hashlib.sha256(raw_credential.encode("utf-8")).hexdigest()
        return f"verified_claims:v1:{digest}"

    def _ttl_for(self, claims: Mapping[str, Any], now: float) -> int:
        ttl = self._ttl_seconds
        exp = claims.get("exp")
        if isinstance(exp, (int, float)):
            ttl = min(ttl, int(exp - now))
        return ttl

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._mem.items() if expires_at <= now]
        for key in expired:
            del self._mem[key]

    def get(self, raw_credential: str) -> Optional[dict]:
        if not raw_credential:
            return None
        key = self._key(raw_credential)

        if self._redis is not None:
            try:
                raw = self._redis.get(key)
            except redis.RedisError as exc:
                logger.warning(
                    "Verification cache read failed - treating as miss",
                    extra={"error": str(exc)},
                )
                return None
            if not raw:
                return None
            return _decode_claims(json.loads(raw))

        data = self._mem.get(key)
        if not data:
            return None

        expires_at, payload = data
        if time.time() >= expires_at:
            self._mem.pop(key, None)
            return None
        return _decode_claims(payload)

    def set(self, raw_credential: str, claims: Mapping[str, Any]) -> None:
        """Cache claims until the configured TTL or the token's ``exp``, whichever is first."""
        if not raw_credential:
            return
        now = time.time()
        ttl = self._ttl_for(claims, now)
        if ttl <= 0:
            return

        key = self._key(raw_credential)
        payload = _encode_claims(claims)
        if self._redis is not None:
            try:
                self._redis.setex(key, ttl, json.dumps(payload))
            except redis.RedisError as exc:
                logger.warning(
                    "Verification cache write failed - claims not cached",
                    extra={"error": str(exc)},
                )
            return

        # only live entries are kept
        self._purge_expired(now)
        self._mem[key] = (now + ttl, payload)

    def invalidate(self, raw_credential: str) -> None:
        key = self._key(raw_credential)
        if self._redis is not None:
            try:
                self._redis.delete(key)
            except redis.RedisError as exc:
                logger.warning(
                    "Verification cache delete failed",
                    extra={"error": str(exc)},
                )
        self._mem.pop(key, None)


def _encode_claims(claims: Mapping[str, Any]) -> dict:
    return {"schema_version": CACHE_SCHEMA_VERSION, "claims": dict(claims)}


def _decode_claims(raw: dict) -> dict:
    if int(raw.get("schema_version", CACHE_SCHEMA_VERSION)) != CACHE_SCHEMA_VERSION:
        raise ValueError("Unsupported verification cache schema version")
    return dict(raw["claims"])
