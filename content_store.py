"""Filesystem blob store for extracted content and generated summaries.

Blobs are addressed by opaque string keys. The stories table only keeps
the key (content_ref / summary_ref); the payload lives here as JSON.

Key layout:
    content/<story_id>/<millis>.json   ExtractedContent
    summary/<story_id>/<millis>.json   Summary

Writes go to a temporary file first and are renamed into place, so a
reader never observes a partially written blob. Every failure surfaces
as ContentStoreError; the stage workers treat it as recoverable.
"""

import logging
import os
import time
from pathlib import Path

from pydantic import ValidationError

from models.content import ExtractedContent
from models.summary import Summary

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """Raised when a blob cannot be written, read or decoded."""


class ContentStore:
    """Key/value blob storage rooted at a directory.

    Example:
        >>> store = ContentStore(Path("content"))
        >>> key = store.save_content(42, content)
        >>> store.load_content(key).word_count
        812
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ContentStoreError(f"Key escapes store root: {key}")
        return path

    def put(self, key: str, data: bytes) -> None:
        """Write bytes under key, replacing any existing blob."""
        path = self._path_for(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            raise ContentStoreError(f"Failed to write {key}: {e}") from e
        logger.debug("Blob written | key=%s bytes=%d", key, len(data))

    def get(self, key: str) -> bytes:
        """Read the bytes stored under key."""
        try:
            return self._path_for(key).read_bytes()
        except OSError as e:
            raise ContentStoreError(f"Failed to read {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    @staticmethod
    def _new_key(kind: str, story_id: int) -> str:
        return f"{kind}/{story_id}/{int(time.time() * 1000)}.json"

    def save_content(self, story_id: int, content: ExtractedContent) -> str:
        """Persist extracted content and return its key."""
        key = self._new_key("content", story_id)
        self.put(key, content.model_dump_json().encode("utf-8"))
        return key

    def load_content(self, key: str) -> ExtractedContent:
        try:
            return ExtractedContent.model_validate_json(self.get(key))
        except ValidationError as e:
            raise ContentStoreError(f"Corrupt content blob {key}: {e}") from e

    def save_summary(self, story_id: int, summary: Summary) -> str:
        """Persist a summary and return its key."""
        key = self._new_key("summary", story_id)
        self.put(key, summary.model_dump_json().encode("utf-8"))
        return key

    def load_summary(self, key: str) -> Summary:
        try:
            return Summary.model_validate_json(self.get(key))
        except ValidationError as e:
            raise ContentStoreError(f"Corrupt summary blob {key}: {e}") from e
