"""
Asynchronous JSONL logging of research queries and their cache outcome.

Writes go to a single background thread so disk I/O never blocks a request
handler. Each record notes whether the answer came from the cache, from an
already running identical request, or from a fresh upstream call.
"""
import asyncio
import concurrent.futures
import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)

_executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="query-logger")


def log_file_path() -> str:
    return os.getenv("QUERY_LOG_FILE", "query_logs.jsonl")


def _write_log_sync(log_data: Dict[str, Any], path: str):
    """Synchronous write, runs in the background thread."""
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_data, default=str) + "\n")
    except OSError as e:
        logger.error("Failed to write query log to %s: %s", path, e)


async def log_query_async(log_data: Dict[str, Any], path: str = None):
    """
    Submits the log write to the background thread.
    Call with: asyncio.create_task(log_query_async(data))
    """
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(_executor, _write_log_sync, log_data, path or log_file_path())


def log_query(log_data: Dict[str, Any], path: str = None):
    _write_log_sync(log_data, path or log_file_path())
