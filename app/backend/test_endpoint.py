import asyncio
import os
import time

import httpx

# Production-ready: Use environment variable if provided, default to localhost
BASE_URL = os.getenv("TEST_API_URL", "http://localhost:8000")

queries = [
    # Second identical query should be served from the cache
    ("ask", {"query": "What is the base url of the Perplexity API?"}),
    ("ask", {"query": "What is the base url of the Perplexity API?"}),
    # Day filter gets the short volatile lifetime
    ("ask", {"query": "Latest AI chip announcements", "search_recency_filter": "day"}),
    ("think", {"query": "Compare optimistic and pessimistic locking for a cache registry."}),
]


def run_tests():
    print(f"Starting endpoint verification at: {BASE_URL}\n")
    with httpx.Client(base_url=BASE_URL, timeout=120) as client:
        for tool, body in queries:
            print(f"[{tool}] '{body['query']}'")
            try:
                start = time.time()
                response = client.post(f"/{tool}", json=body)
                latency = int((time.time() - start) * 1000)

                if response.status_code == 200:
                    data = response.json()
                    meta = data["metadata"]
                    print(f"  [200 OK] in {latency}ms")
                    print(f"  Model: {meta['model_used']} cache_hit={meta['cache_hit']} deduplicated={meta['deduplicated']}")
                    print(f"  Answer Preview: {data['answer'][:80]}...")
                    print(f"  Sources: {len(data['sources'])}")
                else:
                    print(f"  [Error {response.status_code}]: {response.text}")
            except httpx.HTTPError as e:
                print(f"  [Fail]: {e}")
            print("-" * 50)
        print(f"Cache stats: {client.get('/cache/stats').json()}")


async def run_concurrent(n: int = 5):
    """Fires n identical requests at once; the server should make one upstream call."""
    body = {"query": "Summarize the history of the LRU eviction policy."}
    async with httpx.AsyncClient(base_url=BASE_URL, timeout=120) as client:
        responses = await asyncio.gather(*(client.post("/ask", json=body) for _ in range(n)))
    flags = [r.json()["metadata"] for r in responses if r.status_code == 200]
    print(f"{len(flags)}/{n} succeeded, {sum(m['deduplicated'] for m in flags)} coalesced, "
          f"{sum(m['cache_hit'] for m in flags)} cache hits")


if __name__ == "__main__":
    run_tests()
    asyncio.run(run_concurrent())
