import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """The research API could not produce a response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(UpstreamError):
    pass


class PerplexityClient:
    """
    Async client for the Perplexity chat completions endpoint.

    One instance (and its underlying connection pool) is created at startup
    and closed on shutdown. Timeouts belong here; the cache layer imposes none.
    """

    def __init__(self, api_key: str, base_url: str = "https://api.perplexity.ai", timeout: float = 600.0, transport=None):
        self._api_key = api_key
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self._api_key:
            raise ConfigurationError("PERPLEXITY_API_KEY environment variable is not set.")

        logger.info("Initiating chat completion request (model=%s)", payload.get("model"))
        try:
            response = await self._http.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Error communicating with research API: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"Research API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Research API returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
            ) from e
        logger.info("Received chat completion %s", data.get("id"))
        return data

    async def aclose(self):
        await self._http.aclose()
