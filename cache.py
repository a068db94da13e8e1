"""Content-addressed cache for enhancement records."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

from models import CacheEntry, EnhancementRecord, Reference

DEFAULT_TTL_SECONDS = 3600

LOGGER = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> EnhancementRecord | None: ...

    def put(self, key: str, record: EnhancementRecord, ttl_seconds: int) -> None: ...


def fingerprint(
    model_id: str,
    content: str,
    references: Sequence[Reference],
    prompt_version: str,
) -> str:
    """Stable cache key for (model, content, references, prompt version)."""
    content_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()
    refs_json = json.dumps([ref.to_dict() for ref in references], sort_keys=True, ensure_ascii=False)
    refs_hash = hashlib.sha256(refs_json.encode("utf-8")).hexdigest()
    raw = "|".join(("enhance", model_id, content_hash, refs_hash, prompt_version))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class NullCache:
    """Never stores anything."""

    def get(self, key: str) -> EnhancementRecord | None:
        return None

    def put(self, key: str, record: EnhancementRecord, ttl_seconds: int) -> None:
        return None


class InMemoryCache:
    """Process-local TTL map; last write wins. Records are copied in and out."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> EnhancementRecord | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return copy.deepcopy(entry.record)

    def put(self, key: str, record: EnhancementRecord, ttl_seconds: int) -> None:
        self._entries[key] = CacheEntry(key=key, record=copy.deepcopy(record), expires_at=self._clock() + ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCache:
    """Single JSON document on disk so repeated CLI runs share results."""

    def __init__(self, path: str | os.PathLike[str], clock: Callable[[], float] = time.time) -> None:
        self.path = Path(path)
        self._clock = clock

    def get(self, key: str) -> EnhancementRecord | None:
        entry = self._load().get(key)
        if not isinstance(entry, dict) or float(entry.get("expires_at", 0)) <= self._clock():
            return None
        return EnhancementRecord.from_dict(entry["record"])

    def put(self, key: str, record: EnhancementRecord, ttl_seconds: int) -> None:
        now = self._clock()
        entries = {
            k: v for k, v in self._load().items() if isinstance(v, dict) and float(v.get("expires_at", 0)) > now
        }
        entries[key] = {"expires_at": now + ttl_seconds, "record": record.to_dict()}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(entries, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Cache file {self.path} does not contain a JSON object")
        return data


class EnhancementCache:
    """Wraps a backend: failures read as misses and fallback records are never stored."""

    def __init__(self, backend: CacheBackend | None = None, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.backend = backend if backend is not None else NullCache()
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> EnhancementRecord | None:
        try:
            record = self.backend.get(key)
        except Exception as exc:  # broad: any backend failure degrades to a miss
            LOGGER.warning("Cache read failed for key=%s, treating as miss: %s", key[:12], exc)
            return None
        if record is not None:
            LOGGER.info("Cache hit for key=%s", key[:12])
        return record

    def put(self, key: str, record: EnhancementRecord) -> bool:
        if record.is_fallback:
            LOGGER.debug("Not caching fallback record for key=%s", key[:12])
            return False
        try:
            self.backend.put(key, record, self.ttl_seconds)
        except Exception as exc:  # broad: a failed write only costs a future miss
            LOGGER.warning("Cache write failed for key=%s: %s", key[:12], exc)
            return False
        return True
