"""
The research tools exposed by the bridge and the upstream messages they send.

Each tool pins one upstream model and system prompt. File attachments given
as base64 are resolved through the attachment cache so repeated uploads of the
same content skip type detection and re-encoding.
"""
from typing import Any, Dict, List, Optional

from caching.models import AttachmentEntry
from caching.service import CacheService

TOOLS: Dict[str, Dict[str, str]] = {
    "ask": {
        "model": "sonar-pro",
        "system_prompt": (
            "You are an expert research assistant. Provide thorough, well-researched answers "
            "by synthesizing information from multiple authoritative sources. Support every "
            "claim with inline citations and organize the answer clearly."
        ),
    },
    "think": {
        "model": "sonar-reasoning-pro",
        "system_prompt": (
            "You are an analytical reasoning assistant. Break the problem into steps, reason "
            "through each one explicitly, weigh alternatives and cite the sources that "
            "support each conclusion before giving a final answer."
        ),
    },
    "deep_research": {
        "model": "sonar-deep-research",
        "system_prompt": (
            "You are a research analyst producing an exhaustive report. Investigate the topic "
            "across many sources, compare findings, note disagreements and finish with a "
            "structured summary of conclusions with citations."
        ),
    },
}

_IMAGE_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

_DOCUMENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
}


def guess_mime_type(name: Optional[str]) -> str:
    name = (name or "").lower()
    for ext, mime in {**_IMAGE_TYPES, **_DOCUMENT_TYPES}.items():
        if name.endswith(ext):
            return mime
    return "application/octet-stream"


def is_image(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def _base64_size(encoded: str) -> int:
    padding = encoded.count("=", -2) if encoded else 0
    return (len(encoded) * 3) // 4 - padding


def resolve_attachment(cache: CacheService, base64_content: str, file_name: Optional[str]) -> AttachmentEntry:
    """Returns the cached entry for this content, storing a new one on a miss."""
    content_key = cache.attachment_hash(base64_content)
    cached = cache.get_cached_attachment(content_key)
    if cached is not None:
        return cached

    mime_type = guess_mime_type(file_name)
    # images travel as data URIs, documents as raw base64
    content = f"data:{mime_type};base64,{base64_content}" if is_image(mime_type) else base64_content
    entry = AttachmentEntry(content=content, mime_type=mime_type, size=_base64_size(base64_content))
    cache.set_cached_attachment(content_key, entry)
    return entry


def build_user_message(cache: CacheService, query: str, files: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if not files:
        return {"role": "user", "content": query}

    content: List[Dict[str, Any]] = [{"type": "text", "text": query}]
    for f in files:
        file_name = f.get("file_name")
        if f.get("url"):
            url = f["url"]
            image = is_image(guess_mime_type(file_name or url))
        elif f.get("base64"):
            entry = resolve_attachment(cache, f["base64"], file_name)
            url = entry.content
            image = is_image(entry.mime_type)
        else:
            raise ValueError("File must have either url or base64")

        if image:
            content.append({"type": "image_url", "image_url": {"url": url}})
        else:
            part: Dict[str, Any] = {"type": "file_url", "file_url": {"url": url}}
            if file_name:
                part["file_name"] = file_name
            content.append(part)

    return {"role": "user", "content": content}


def build_payload(cache: CacheService, tool: str, query: str, files=None, **options) -> Dict[str, Any]:
    """Upstream request body for a tool call. Unset options are left out."""
    spec = TOOLS[tool]
    payload: Dict[str, Any] = {
        "model": spec["model"],
        "messages": [
            {"role": "system", "content": spec["system_prompt"]},
            build_user_message(cache, query, files),
        ],
        "stream": False,
    }
    for name, value in options.items():
        if value is not None and value is not False:
            payload[name] = value
    return payload
