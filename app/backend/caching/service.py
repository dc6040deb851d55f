"""
Response cache, attachment cache and in-flight registry behind one handle.

A CacheService is built once at application startup and passed to whatever
calls the upstream API, so cache lifetime follows the application and tests
get isolated instances.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar, Union

from caching.inflight import InFlightRegistry
from caching.keys import canonicalize, content_hash
from caching.lru import BoundedLRUCache, DisposeCallback, log_disposal
from caching.models import AttachmentEntry, CacheEntry
from caching.ttl_policy import CacheTTL

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_ENTRY_SIZE = 1000


@dataclass(frozen=True)
class CacheLimits:
    response_max_entries: int = 500
    response_max_size: int = 50 * 1024 * 1024
    attachment_max_entries: int = 100
    attachment_max_size: int = 100 * 1024 * 1024


def estimate_size(data: Any) -> int:
    """Approximate footprint of a response: length of its JSON encoding."""
    try:
        return len(json.dumps(data))
    except Exception:
        return FALLBACK_ENTRY_SIZE


class CacheService:
    def __init__(
        self,
        limits: Optional[CacheLimits] = None,
        clock: Callable[[], float] = time.monotonic,
        on_response_dispose: Optional[DisposeCallback] = None,
        on_attachment_dispose: Optional[DisposeCallback] = None,
    ):
        self.limits = limits or CacheLimits()
        self._responses: BoundedLRUCache[CacheEntry] = BoundedLRUCache(
            max_entries=self.limits.response_max_entries,
            max_size=self.limits.response_max_size,
            default_ttl=CacheTTL.GENERAL,
            size_of=lambda entry: entry.approximate_size,
            on_dispose=on_response_dispose or log_disposal("Response"),
            clock=clock,
        )
        self._attachments: BoundedLRUCache[AttachmentEntry] = BoundedLRUCache(
            max_entries=self.limits.attachment_max_entries,
            max_size=self.limits.attachment_max_size,
            default_ttl=CacheTTL.ATTACHMENT,
            size_of=lambda entry: entry.size,
            on_dispose=on_attachment_dispose or log_disposal("Attachment"),
            clock=clock,
        )
        self._inflight = InFlightRegistry()

    @staticmethod
    def generate_cache_key(params: Mapping[str, Any]) -> str:
        return canonicalize(params)

    # Response cache

    def get_cached_response(self, key: str) -> Optional[CacheEntry]:
        cached = self._responses.get(key)
        if cached is not None:
            logger.debug(
                "Response cache hit: %s... model=%s age=%.1fs",
                key[:16], cached.model, time.time() - cached.created_at,
            )
        return cached

    def set_cached_response(self, key: str, data: Any, model: str, ttl: Optional[float] = None):
        entry = CacheEntry(
            data=data,
            created_at=time.time(),
            model=model,
            approximate_size=estimate_size(data),
        )
        if self._responses.set(key, entry, ttl=ttl):
            logger.debug(
                "Response cached: %s... model=%s ttl=%ss size=%d",
                key[:16], model, self._responses.default_ttl if ttl is None else ttl,
                entry.approximate_size,
            )

    # Request deduplication

    async def run_deduplicated(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        return await self._inflight.run_deduplicated(key, fetcher)

    def is_in_flight(self, key: str) -> bool:
        return self._inflight.is_pending(key)

    # Attachment cache

    @staticmethod
    def attachment_hash(content: Union[str, bytes]) -> str:
        return content_hash(content)

    def get_cached_attachment(self, content_key: str) -> Optional[AttachmentEntry]:
        cached = self._attachments.get(content_key)
        if cached is not None:
            logger.debug(
                "Attachment cache hit: %s... mime=%s size=%d",
                content_key[:16], cached.mime_type, cached.size,
            )
        return cached

    def set_cached_attachment(self, content_key: str, entry: AttachmentEntry):
        if self._attachments.set(content_key, entry):
            logger.debug(
                "Attachment cached: %s... mime=%s size=%d source=%s",
                content_key[:16], entry.mime_type, entry.size,
                entry.source_url[:50] if entry.source_url else None,
            )

    # Introspection

    def stats(self) -> Dict[str, Any]:
        responses = self._responses.stats()
        attachments = self._attachments.stats()
        return {
            "response_cache": {
                "entry_count": responses["entry_count"],
                "approximate_size": responses["approximate_size"],
            },
            "attachment_cache": {
                "entry_count": attachments["entry_count"],
                "approximate_size": attachments["approximate_size"],
            },
            "in_flight_count": len(self._inflight),
        }

    def clear_all(self):
        self._responses.clear()
        self._attachments.clear()
        self._inflight.clear()
        logger.info("All caches cleared")
