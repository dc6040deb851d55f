import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, model_validator

load_dotenv()

from config import Settings
from caching.service import CacheService
from research.client import ConfigurationError, PerplexityClient, UpstreamError
from research.service import ResearchService
from research.tools import build_payload
from query_logging.query_logger import log_query_async

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("research_bridge")


# The cache and the upstream client are created once per process here and
# handed to the research service; nothing else holds them.
@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.perplexity_api_key:
        logger.warning("PERPLEXITY_API_KEY environment variable is not set. Upstream calls will fail.")
    cache = CacheService(settings.cache_limits)
    client = PerplexityClient(
        api_key=settings.perplexity_api_key,
        base_url=settings.perplexity_base_url,
        timeout=settings.perplexity_timeout_seconds,
    )
    app.state.research_service = ResearchService(client, cache)
    logger.info("Research bridge ready (response cache %d entries / %d bytes)",
                settings.cache_limits.response_max_entries, settings.cache_limits.response_max_size)
    yield
    await client.aclose()
    logger.info("Research bridge shutting down.")


app = FastAPI(title="Research Bridge API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API Contract Models
class FileInput(BaseModel):
    url: Optional[str] = None
    base64: Optional[str] = None
    file_name: Optional[str] = None

    @model_validator(mode="after")
    def _url_or_base64(self):
        if not self.url and not self.base64:
            raise ValueError("Either 'url' or 'base64' must be provided for each file.")
        return self


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)
    files: Optional[List[FileInput]] = None
    return_related_questions: bool = False
    search_recency_filter: Optional[str] = None
    search_domain_filter: Optional[List[str]] = Field(default=None, max_length=20)
    search_after_date_filter: Optional[str] = None
    search_before_date_filter: Optional[str] = None
    search_mode: Optional[Literal["web", "academic"]] = None


class DeepResearchRequest(QueryRequest):
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None


class TokenUsage(BaseModel):
    input: int
    output: int


class MetadataResponse(BaseModel):
    model_used: str
    response_id: str
    tokens: TokenUsage
    latency_ms: int
    cache_hit: bool = False
    deduplicated: bool = False


class SourceResponse(BaseModel):
    title: str
    url: str
    date: Optional[str] = None


class QueryResponse(BaseModel):
    answer: str
    metadata: MetadataResponse
    sources: List[SourceResponse]


async def _run_tool(http_request: Request, tool: str, request: QueryRequest) -> QueryResponse:
    start_time = time.time()
    service: ResearchService = http_request.app.state.research_service

    options = request.model_dump(exclude={"query", "files"})
    files = [f.model_dump() for f in request.files] if request.files else None
    payload = build_payload(service.cache, tool, request.query, files, **options)

    try:
        result = await service.chat_completion(payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))

    data = result.data
    choices = data.get("choices") or []
    answer = (choices[0].get("message") or {}).get("content") if choices else None
    if not answer:
        raise HTTPException(status_code=503, detail="Research API returned an empty response.")

    usage = data.get("usage") or {}
    total_latency = int((time.time() - start_time) * 1000)

    metadata = MetadataResponse(
        model_used=data.get("model", payload["model"]),
        response_id=data.get("id", ""),
        tokens=TokenUsage(input=usage.get("prompt_tokens", 0), output=usage.get("completion_tokens", 0)),
        latency_ms=total_latency,
        cache_hit=result.cache_hit,
        deduplicated=result.deduplicated,
    )
    sources = [
        SourceResponse(title=s.get("title", ""), url=s.get("url", ""), date=s.get("date"))
        for s in data.get("search_results") or []
    ]

    # Query logging
    log_data = {
        "tool":           tool,
        "query":          request.query,
        "model_used":     metadata.model_used,
        "cache_hit":      result.cache_hit,
        "deduplicated":   result.deduplicated,
        "tokens_input":   metadata.tokens.input,
        "tokens_output":  metadata.tokens.output,
        "latency_ms":     total_latency,
        "num_sources":    len(sources),
    }
    asyncio.create_task(log_query_async(log_data))

    return QueryResponse(answer=answer, metadata=metadata, sources=sources)


# Endpoints
@app.get("/")
def read_root(http_request: Request):
    return {
        "message": "Research bridge is running",
        "cache_stats": http_request.app.state.research_service.cache.stats(),
    }


@app.post("/ask", response_model=QueryResponse)
async def ask_endpoint(request: QueryRequest, http_request: Request):
    return await _run_tool(http_request, "ask", request)


@app.post("/think", response_model=QueryResponse)
async def think_endpoint(request: QueryRequest, http_request: Request):
    return await _run_tool(http_request, "think", request)


@app.post("/deep_research", response_model=QueryResponse)
async def deep_research_endpoint(request: DeepResearchRequest, http_request: Request):
    return await _run_tool(http_request, "deep_research", request)


@app.get("/cache/stats")
def cache_stats(http_request: Request):
    return http_request.app.state.research_service.cache.stats()


@app.post("/cache/clear")
def cache_clear(http_request: Request):
    http_request.app.state.research_service.cache.clear_all()
    return {"status": "cleared"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="127.0.0.1", port=int(os.getenv("PORT", 8000)))
