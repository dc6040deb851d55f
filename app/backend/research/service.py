"""
Cached, deduplicated access to the upstream research API.

Lookup order for every request: response cache, then an already running
identical request, then a fresh upstream call whose result is cached with a
lifetime chosen from the request's volatility.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict

from caching.service import CacheService
from caching.ttl_policy import classify_volatility

logger = logging.getLogger(__name__)

# Only these fields change the upstream answer; ids and logging context never enter the key.
CACHE_KEY_FIELDS = (
    "model",
    "messages",
    "search_domain_filter",
    "search_recency_filter",
    "search_after_date_filter",
    "search_before_date_filter",
    "search_mode",
    "reasoning_effort",
    "temperature",
    "max_tokens",
    "return_related_questions",
)


@dataclass
class CompletionResult:
    data: Dict[str, Any]
    cache_hit: bool = False
    deduplicated: bool = False


def cache_key_params(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {name: payload.get(name) for name in CACHE_KEY_FIELDS}


class ResearchService:
    def __init__(self, client, cache: CacheService):
        self.client = client
        self.cache = cache

    async def chat_completion(self, payload: Dict[str, Any]) -> CompletionResult:
        if payload.get("stream"):
            logger.warning("Stream parameter is not supported and will be ignored.")
            payload = {**payload, "stream": False}

        key = self.cache.generate_cache_key(cache_key_params(payload))

        cached = self.cache.get_cached_response(key)
        if cached is not None:
            logger.info("Cache hit - returning cached response (model=%s, key=%s...)", cached.model, key[:16])
            return CompletionResult(data=cached.data, cache_hit=True)

        joined = self.cache.is_in_flight(key)

        async def fetch() -> Dict[str, Any]:
            response = await self.client.chat_completion(payload)
            volatility = classify_volatility(payload)
            logger.debug("Caching %s... as %s for %ss", key[:16], volatility["classification"], volatility["ttl"])
            self.cache.set_cached_response(
                key, response, response.get("model", payload["model"]), ttl=volatility["ttl"]
            )
            return response

        data = await self.cache.run_deduplicated(key, fetch)
        return CompletionResult(data=data, deduplicated=joined)
