import json
from datetime import UTC, datetime
from unittest.mock import MagicMock

from cache import EnhancementCache, InMemoryCache, JsonFileCache, NullCache, fingerprint
from models import EnhancementRecord, Reference

_REFS = [Reference(title="Guide", url="https://a.example/1", content="Bots reduce wait times.")]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _record(is_fallback: bool = False) -> EnhancementRecord:
    return EnhancementRecord(
        content="<h1>Chatbots</h1><p>Better support.</p>",
        summary="Better support.",
        references=tuple(_REFS),
        generated_at=datetime(2026, 1, 5, 12, 0, tzinfo=UTC),
        model="gemini-2.5-flash",
        prompt_version="v2.0",
        is_fallback=is_fallback,
        error="safety_blocked: blocked" if is_fallback else None,
    )


def test_fingerprint_is_stable_and_sensitive_to_every_input() -> None:
    base = fingerprint("gemini-2.5-flash", "content", _REFS, "v2.0")

    assert base == fingerprint("gemini-2.5-flash", "content", list(_REFS), "v2.0")
    assert len(base) == 64
    assert base != fingerprint("gpt-4o-mini", "content", _REFS, "v2.0")
    assert base != fingerprint("gemini-2.5-flash", "content!", _REFS, "v2.0")
    assert base != fingerprint("gemini-2.5-flash", "content", [], "v2.0")
    assert base != fingerprint("gemini-2.5-flash", "content", _REFS, "v2.1")


def test_in_memory_cache_expires_entries() -> None:
    clock = FakeClock()
    backend = InMemoryCache(clock=clock)
    cache = EnhancementCache(backend, ttl_seconds=60)

    assert cache.put("key", _record()) is True
    assert cache.get("key") == _record()

    clock.now += 60
    assert cache.get("key") is None
    assert len(backend) == 0


def test_in_memory_entries_are_isolated_from_callers() -> None:
    cache = EnhancementCache(InMemoryCache())
    record = _record()
    cache.put("key", record)

    record.metadata["late"] = "write"
    cache.get("key").metadata["usage"] = {"totalTokenCount": 1}

    assert cache.get("key").metadata == {}


def test_fallback_records_are_never_cached() -> None:
    backend = InMemoryCache()
    cache = EnhancementCache(backend)

    assert cache.put("key", _record(is_fallback=True)) is False
    assert cache.get("key") is None
    assert len(backend) == 0


def test_backend_failures_degrade_to_misses() -> None:
    backend = MagicMock()
    backend.get.side_effect = OSError("disk gone")
    backend.put.side_effect = OSError("disk full")
    cache = EnhancementCache(backend)

    assert cache.get("key") is None
    assert cache.put("key", _record()) is False


def test_null_cache_never_hits() -> None:
    cache = EnhancementCache(NullCache())

    cache.put("key", _record())

    assert cache.get("key") is None


def test_json_file_cache_round_trips_between_instances(tmp_path) -> None:
    path = tmp_path / "cache" / "enhancements.json"
    clock = FakeClock()

    JsonFileCache(path, clock=clock).put("key", _record(), ttl_seconds=300)
    restored = JsonFileCache(path, clock=clock).get("key")

    assert restored == _record()
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["key"]["expires_at"] == 1300.0
    assert stored["key"]["record"]["promptVersion"] == "v2.0"


def test_json_file_cache_drops_expired_entries_on_write(tmp_path) -> None:
    path = tmp_path / "enhancements.json"
    clock = FakeClock()
    cache = JsonFileCache(path, clock=clock)

    cache.put("old", _record(), ttl_seconds=10)
    clock.now += 20
    cache.put("new", _record(), ttl_seconds=10)

    assert cache.get("old") is None
    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"new"}


def test_corrupt_cache_file_reads_as_miss(tmp_path) -> None:
    path = tmp_path / "enhancements.json"
    path.write_text("not json", encoding="utf-8")

    assert EnhancementCache(JsonFileCache(path)).get("key") is None
