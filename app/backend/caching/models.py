from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class CacheEntry:
    """A stored upstream response. Replaced wholesale, never mutated."""
    data: Any
    created_at: float
    model: str
    approximate_size: int


@dataclass(frozen=True)
class AttachmentEntry:
    """A file attachment keyed by the hash of its content."""
    content: Union[str, bytes]
    mime_type: str
    size: int
    source_url: Optional[str] = None
