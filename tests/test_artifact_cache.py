"""Tests for the artifact cache: persistence, validation and single-flight fetching."""

import hashlib
import json
import threading
import time
from pathlib import Path

import pytest

from openml_catalog.cache.store import ArtifactCache
from openml_catalog.core.errors import FetchError, FetchTimeout, StorageError


class CountingFetcher:
    """Fetcher that counts calls and can block until released."""

    def __init__(self, data: bytes = b"@relation t\n", error: Exception = None, block: bool = False):
        self.data = data
        self.error = error
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self._lock = threading.Lock()

    def __call__(self) -> bytes:
        with self._lock:
            self.calls += 1
        self.started.set()
        self.release.wait(5)
        if self.error is not None:
            raise self.error
        return self.data


@pytest.fixture
def cache(tmp_path):
    return ArtifactCache(tmp_path / "cache")


class TestPersistence:
    def test_miss_then_hit(self, cache):
        fetcher = CountingFetcher(b"payload")
        first = cache.get_or_fetch(61, fetcher)
        second = cache.get_or_fetch(61, fetcher)
        assert first.data == second.data == b"payload"
        assert fetcher.calls == 1
        assert first.path == cache.root / "61.arff"
        assert first.file_format == "arff"

    def test_marker_records_size_and_digest(self, cache):
        cache.get_or_fetch(61, CountingFetcher(b"payload"))
        marker = json.loads((cache.root / "61.meta.json").read_text(encoding="utf-8"))
        assert marker["size"] == len(b"payload")
        assert marker["sha256"] == hashlib.sha256(b"payload").hexdigest()
        assert marker["dataset_id"] == 61

    def test_new_cache_object_reuses_files(self, cache):
        cache.get_or_fetch(61, CountingFetcher(b"payload"))
        fetcher = CountingFetcher(b"other")
        again = ArtifactCache(cache.root).get_or_fetch(61, fetcher)
        assert again.data == b"payload"
        assert fetcher.calls == 0

    def test_distinct_ids_are_independent(self, cache):
        cache.get_or_fetch(1, CountingFetcher(b"one"))
        cache.get_or_fetch(2, CountingFetcher(b"two"))
        assert [e.dataset_id for e in cache.entries()] == [1, 2]

    @pytest.mark.parametrize(
        "damage",
        [
            lambda p: p.write_bytes(b"PAYLOAD"),
            lambda p: p.write_bytes(b"pay"),
            lambda p: p.unlink(),
            lambda p: p.with_name("61.meta.json").unlink(),
            lambda p: p.with_name("61.meta.json").write_text("{not json", encoding="utf-8"),
        ],
    )
    def test_damaged_entry_is_refetched(self, cache, damage):
        stored = cache.get_or_fetch(61, CountingFetcher(b"payload"))
        damage(stored.path)
        assert not cache.contains(61)
        fetcher = CountingFetcher(b"payload")
        assert cache.get_or_fetch(61, fetcher).data == b"payload"
        assert fetcher.calls == 1
        assert cache.contains(61)

    def test_md5_match(self, cache):
        md5 = hashlib.md5(b"payload").hexdigest()
        assert cache.get_or_fetch(61, CountingFetcher(b"payload"), expected_md5=md5).data == b"payload"

    def test_md5_mismatch_is_not_persisted(self, cache):
        with pytest.raises(FetchError, match="Checksum mismatch"):
            cache.get_or_fetch(61, CountingFetcher(b"payload"), expected_md5="0" * 32)
        assert not cache.contains(61)
        assert cache.entries() == []

    def test_fetcher_must_return_bytes(self, cache):
        with pytest.raises(FetchError, match="not bytes"):
            cache.get_or_fetch(61, lambda: "text")

    def test_failed_write_leaves_no_partial_files(self, cache, monkeypatch):
        original = Path.replace

        def replace(self, target):
            if str(target).endswith(".meta.json"):
                raise OSError("disk full")
            return original(self, target)

        monkeypatch.setattr(Path, "replace", replace)
        with pytest.raises(StorageError, match="disk full"):
            cache.get_or_fetch(61, CountingFetcher(b"payload"))
        assert list(cache.root.glob("*.part")) == []
        assert not cache.contains(61)

    def test_fetcher_error_is_wrapped(self, cache):
        boom = RuntimeError("boom")
        with pytest.raises(FetchError) as exc:
            cache.get_or_fetch(61, CountingFetcher(error=boom))
        assert exc.value.__cause__ is boom


class TestSingleFlight:
    def _run_concurrently(self, cache, fetcher, n_threads=8):
        results = [None] * n_threads
        errors = [None] * n_threads

        def worker(i):
            try:
                results[i] = cache.get_or_fetch(61, fetcher)
            except FetchError as e:
                errors[i] = e

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
        threads[0].start()
        assert fetcher.started.wait(5)
        for t in threads[1:]:
            t.start()
        # Let the followers join the flight before the leader finishes
        time.sleep(0.2)
        fetcher.release.set()
        for t in threads:
            t.join(5)
        return results, errors

    def test_concurrent_callers_share_one_fetch(self, cache):
        fetcher = CountingFetcher(b"payload", block=True)
        results, errors = self._run_concurrently(cache, fetcher)
        assert fetcher.calls == 1
        assert errors == [None] * 8
        assert all(r.data == b"payload" for r in results)

    def test_concurrent_callers_share_one_failure(self, cache):
        fetcher = CountingFetcher(error=RuntimeError("boom"), block=True)
        results, errors = self._run_concurrently(cache, fetcher)
        assert fetcher.calls == 1
        assert results == [None] * 8
        assert len({id(e) for e in errors}) == 1
        assert isinstance(errors[0].__cause__, RuntimeError)

    def test_failure_is_not_remembered(self, cache):
        with pytest.raises(FetchError):
            cache.get_or_fetch(61, CountingFetcher(error=RuntimeError("boom")))
        assert cache.get_or_fetch(61, CountingFetcher(b"payload")).data == b"payload"

    def test_waiter_timeout(self, cache):
        fetcher = CountingFetcher(b"payload", block=True)
        leader = threading.Thread(target=cache.get_or_fetch, args=(61, fetcher))
        leader.start()
        assert fetcher.started.wait(5)
        with pytest.raises(FetchTimeout):
            cache.get_or_fetch(61, fetcher, timeout=0.05)
        fetcher.release.set()
        leader.join(5)
        # The abandoned flight still completed for everyone else
        assert cache.contains(61)
        assert fetcher.calls == 1


class TestEviction:
    def _fill(self, cache):
        for dataset_id, size in ((1, 10), (2, 20), (3, 30)):
            cache.get_or_fetch(dataset_id, CountingFetcher(b"x" * size))

    def test_entries_and_total(self, cache):
        self._fill(cache)
        assert [e.dataset_id for e in cache.entries()] == [1, 2, 3]
        assert cache.total_bytes() == 60

    def test_prune_evicts_oldest_first(self, cache):
        self._fill(cache)
        assert cache.prune(30) == [1, 2]
        assert [e.dataset_id for e in cache.entries()] == [3]

    def test_prune_rejects_negative(self, cache):
        with pytest.raises(ValueError):
            cache.prune(-1)

    def test_evict_and_clear(self, cache):
        self._fill(cache)
        assert cache.evict(2) is True
        assert cache.evict(2) is False
        assert cache.clear() == 2
        assert cache.entries() == []

    def test_empty_cache(self, cache):
        assert cache.entries() == []
        assert cache.total_bytes() == 0
        assert cache.clear() == 0

    def test_clear_removes_partial_files(self, cache):
        self._fill(cache)
        (cache.root / "7.arff.part").write_bytes(b"half")
        (cache.root / "7.meta.json.part").write_text("{", encoding="utf-8")
        assert cache.clear() == 3
        assert list(cache.root.glob("*.part")) == []
