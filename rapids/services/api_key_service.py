"""API key lifecycle: create, validate, revoke, mutate, list."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from fastapi import Request

from rapids.auth.key_codec import generate_api_key, hash_key
from rapids.auth.rate_limiter import RateLimiter
from rapids.exceptions import InvalidKeyConfigError
from rapids.models.api_key import (
    ApiKey,
    ApiKeyConfig,
    ApiKeyCreateResult,
    ApiKeyListOptions,
    ApiKeyStats,
    ApiKeyValidationResult,
)
from rapids.services.key_store import KeyFilter, KeyStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApiKeyService:
    """Issues and checks API keys against a ``KeyStore``.

    Holds no state between calls; every read goes to the store. Store errors
    propagate unchanged.
    """

    def __init__(self, store: KeyStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.rate_limiter = RateLimiter(store)
        self._clock = clock

    def now(self) -> datetime:
        """Current time from the injected clock."""
        return self._clock()

    async def create(self, config: ApiKeyConfig | None = None) -> ApiKeyCreateResult:
        """Create a key. The raw key in the result cannot be retrieved again.

        An ``expires_in`` of None or 0 never expires; a negative one is
        already expired.
        """
        config = config or ApiKeyConfig()
        now = self._clock()
        expires_at = None
        if config.expires_in:
            try:
                expires_at = now + timedelta(seconds=config.expires_in)
            except OverflowError:
                raise InvalidKeyConfigError(f"expires_in out of range: {config.expires_in}") from None

        raw_key, key_hash, suffix = generate_api_key(config.prefix, config.length, config.charset)

        record = ApiKey(
            id=str(uuid.uuid4()),
            key_hash=key_hash,
            prefix=config.prefix,
            suffix=suffix,
            name=config.name,
            created_at=now,
            expires_at=expires_at,
            last_used_at=None,
            is_active=True,
            metadata=config.metadata,
            scopes=config.scopes,
            rate_limit=config.rate_limit,
        )
        await self.store.insert(record)
        logger.info("Created API key %s (%s...%s)", record.id, record.prefix, record.suffix)
        return ApiKeyCreateResult(key=raw_key, record=record)

    async def validate(
        self,
        raw_key: str,
        update_last_used: bool = True,
        check_rate_limit: bool = True,
    ) -> ApiKeyValidationResult:
        """Check a presented key.

        Reasons are reported in a fixed order: not_found, revoked, expired,
        rate_limited. Callers map rate_limited to 429 and the rest to 401.
        """
        record = await self.store.get_by_hash(hash_key(raw_key))
        if record is None:
            return ApiKeyValidationResult(valid=False, reason="not_found")

        if not record.is_active:
            return ApiKeyValidationResult(valid=False, reason="revoked", key=record)

        now = self._clock()
        if record.is_expired(now):
            return ApiKeyValidationResult(valid=False, reason="expired", key=record)

        if check_rate_limit and record.rate_limit is not None:
            if not await self.rate_limiter.allow(record.id, record.rate_limit, now):
                return ApiKeyValidationResult(valid=False, reason="rate_limited", key=record)

        if update_last_used:
            await self.store.update(record.id, {"last_used_at": now})
            record.last_used_at = now

        return ApiKeyValidationResult(valid=True, key=record)

    async def revoke(self, key_id: str) -> bool:
        """Deactivate a key. True whenever the key exists, even if already revoked."""
        revoked = await self.store.update(key_id, {"is_active": False})
        if revoked:
            logger.info("Revoked API key %s", key_id)
        return revoked

    async def delete(self, key_id: str) -> bool:
        deleted = await self.store.delete(key_id)
        if deleted:
            logger.info("Deleted API key %s", key_id)
        return deleted

    async def get_by_id(self, key_id: str) -> ApiKey | None:
        return await self.store.get_by_id(key_id)

    async def list(self, options: ApiKeyListOptions | None = None) -> list[ApiKey]:
        options = options or ApiKeyListOptions()
        key_filter = KeyFilter(
            now=self._clock(),
            is_active=options.is_active,
            prefix=options.prefix,
            expired=None if options.include_expired else False,
        )
        return await self.store.list(key_filter, limit=options.limit, offset=options.offset)

    async def update_metadata(self, key_id: str, metadata: dict[str, Any]) -> bool:
        return await self.store.update(key_id, {"metadata": metadata})

    async def update_scopes(self, key_id: str, scopes: list[str]) -> bool:
        return await self.store.update(key_id, {"scopes": scopes})

    async def rename(self, key_id: str, name: str | None) -> bool:
        return await self.store.update(key_id, {"name": name})

    async def get_stats(self) -> ApiKeyStats:
        # Independent counts: a revoked key past its expiry is in both
        # ``expired`` and ``revoked``, so the buckets need not sum to total.
        now = self._clock()
        return ApiKeyStats(
            total=await self.store.count(KeyFilter(now=now)),
            active=await self.store.count(KeyFilter(now=now, is_active=True, expired=False)),
            expired=await self.store.count(KeyFilter(now=now, expired=True)),
            revoked=await self.store.count(KeyFilter(now=now, is_active=False)),
        )

    async def purge_rate_windows(self) -> int:
        return await self.rate_limiter.purge(self._clock())


def get_api_key_service(request: Request) -> ApiKeyService:
    service = getattr(request.app.state, "api_key_service", None)
    if service is None:
        raise RuntimeError("ApiKeyService not initialized. Build it in the application lifespan first.")
    return service
