"""Identifier-addressed artifact cache with single-flight fetching.

Layout under the cache root::

    <root>/<id>.<ext>          raw artifact bytes, exactly as received
    <root>/<id>.meta.json      marker: size, sha256, format, stored_at
    <root>/.locks/<id>.lock    cross-process lock (filelock)

An entry is valid only when both files exist and the data matches the size
and sha256 recorded in the marker. Anything else (interrupted write, edited
file) counts as absent and is fetched again. Entries are written data first,
marker last, each through a ``.part`` file and an atomic replace. A failed
write removes its ``.part`` files; ``clear`` also sweeps any left behind by
a crashed process.

Within a process, concurrent ``get_or_fetch`` calls for one identifier share
a single flight: the first caller runs the fetcher in its own thread and the
others wait for its result or its exception. Distinct identifiers proceed
independently. The cache key is the dataset identifier; an artifact is
assumed never to change under the same identifier.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from filelock import FileLock, Timeout

from openml_catalog.core.errors import FetchError, FetchTimeout, StorageError
from openml_catalog.core.utils import get_artifact_paths, md5_hex, sha256_hex


logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SEC = 600.0
LOCK_DIR_NAME = ".locks"
PART_SUFFIX = ".part"


@dataclass(frozen=True)
class RawArtifact:
    """Raw artifact bytes plus their format marker and stored location."""

    dataset_id: int
    data: bytes = field(repr=False)
    file_format: str
    path: Path

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CacheEntry:
    """Metadata of one valid cache entry."""

    dataset_id: int
    path: Path
    size: int
    sha256: str
    stored_at: str


def verify_md5(dataset_id: int, data: bytes, expected_md5: str) -> None:
    """Raise ``FetchError`` unless ``data`` has the md5 checksum ``expected_md5``."""
    digest = md5_hex(data)
    if digest.lower() != expected_md5.strip().lower():
        logger.error(
            "Checksum mismatch for dataset %s: expected=%s actual=%s",
            dataset_id,
            expected_md5,
            digest,
        )
        raise FetchError(
            f"Checksum mismatch for dataset {dataset_id}: expected {expected_md5}, got {digest}"
        )


class _Flight:
    """One in-progress load for an identifier, shared by all concurrent callers."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Optional[RawArtifact] = None
        self.error: Optional[BaseException] = None


class ArtifactCache:
    """Persistent cache mapping dataset identifiers to raw artifacts.

    Args:
        root: Cache directory; created on first write.
        file_format: Extension and format marker of stored artifacts.
        lock_timeout_sec: How long to wait for another process holding the
            same entry before raising ``StorageError``.
    """

    def __init__(
        self,
        root: Path,
        file_format: str = "arff",
        lock_timeout_sec: float = DEFAULT_LOCK_TIMEOUT_SEC,
    ) -> None:
        self.root = Path(root).expanduser()
        self.file_format = file_format
        self.lock_timeout_sec = lock_timeout_sec
        self._guard = threading.Lock()
        self._flights: Dict[int, _Flight] = {}

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def path_for(self, dataset_id: int) -> Path:
        return get_artifact_paths(dataset_id, self.root, self.file_format)[0]

    def _lock_for(self, dataset_id: int) -> FileLock:
        lock_dir = self.root / LOCK_DIR_NAME
        lock_dir.mkdir(parents=True, exist_ok=True)
        return FileLock(str(lock_dir / f"{int(dataset_id)}.lock"), timeout=self.lock_timeout_sec)

    # ------------------------------------------------------------------
    # Single-flight entry point
    # ------------------------------------------------------------------
    def get_or_fetch(
        self,
        dataset_id: int,
        fetcher: Callable[[], bytes],
        *,
        expected_md5: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RawArtifact:
        """Return the cached artifact for ``dataset_id``, fetching it at most once.

        Args:
            dataset_id: Catalog identifier; the cache key.
            fetcher: Zero-argument callable returning the artifact bytes.
                Not called when a valid entry exists.
            expected_md5: Optional checksum verified before persisting.
            timeout: Seconds a waiter is willing to wait for another caller's
                in-flight fetch. The fetch itself is not interrupted.

        Raises:
            FetchError: If the fetcher failed (its exception is the cause) or
                the checksum did not match. All concurrent waiters receive the
                same exception object.
            FetchTimeout: If ``timeout`` elapsed while waiting.
            StorageError: On local read/write failures.
        """
        dataset_id = int(dataset_id)
        with self._guard:
            flight = self._flights.get(dataset_id)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[dataset_id] = flight

        if not leader:
            logger.debug("Waiting for in-flight fetch of dataset %s", dataset_id)
            if not flight.done.wait(timeout):
                raise FetchTimeout(
                    f"Gave up waiting for dataset {dataset_id} after {timeout} seconds"
                )
            if flight.error is not None:
                raise flight.error
            assert flight.result is not None
            return flight.result

        try:
            flight.result = self._load_or_fetch(dataset_id, fetcher, expected_md5)
            return flight.result
        except (FetchError, StorageError) as e:
            flight.error = e
            raise
        except Exception as e:
            err = FetchError(f"Fetching dataset {dataset_id} failed: {e}")
            err.__cause__ = e
            flight.error = err
            raise err from e
        except BaseException as e:
            flight.error = FetchError(f"Fetching dataset {dataset_id} was interrupted")
            flight.error.__cause__ = e
            raise
        finally:
            with self._guard:
                self._flights.pop(dataset_id, None)
            flight.done.set()

    def _load_or_fetch(
        self, dataset_id: int, fetcher: Callable[[], bytes], expected_md5: Optional[str]
    ) -> RawArtifact:
        try:
            lock = self._lock_for(dataset_id)
            lock.acquire()
        except Timeout as e:
            raise StorageError(f"Timed out waiting for the cache lock of dataset {dataset_id}") from e
        except OSError as e:
            raise StorageError(f"Cannot create cache lock under {self.root}: {e}") from e
        try:
            cached = self._read_entry(dataset_id)
            if cached is not None:
                logger.debug("Cache hit for dataset %s (%d bytes)", dataset_id, cached.size)
                return cached
            logger.info("Cache miss for dataset %s; fetching", dataset_id)
            data = fetcher()
            if not isinstance(data, (bytes, bytearray)):
                raise FetchError(
                    f"Fetcher for dataset {dataset_id} returned {type(data).__name__}, not bytes"
                )
            data = bytes(data)
            if expected_md5:
                verify_md5(dataset_id, data, expected_md5)
            return self._write_entry(dataset_id, data)
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Entry I/O
    # ------------------------------------------------------------------
    def _read_marker(self, marker_path: Path) -> Optional[dict]:
        try:
            marker = json.loads(marker_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache marker %s: %s", marker_path, e)
            return None
        if not isinstance(marker, dict) or not {"size", "sha256"} <= set(marker):
            logger.warning("Malformed cache marker %s", marker_path)
            return None
        return marker

    def _read_entry(self, dataset_id: int) -> Optional[RawArtifact]:
        data_path, marker_path = get_artifact_paths(dataset_id, self.root, self.file_format)
        marker = self._read_marker(marker_path)
        if marker is None:
            if data_path.exists():
                logger.warning("Cache entry %s has no marker; treating as absent", data_path)
            return None
        try:
            if not data_path.exists() or data_path.stat().st_size != marker["size"]:
                logger.warning("Cache entry %s is incomplete; treating as absent", data_path)
                return None
            data = data_path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read cache entry {data_path}: {e}") from e
        if sha256_hex(data) != marker["sha256"]:
            logger.warning("Cache entry %s is corrupt; treating as absent", data_path)
            return None
        return RawArtifact(dataset_id, data, marker.get("format", self.file_format), data_path)

    def _write_entry(self, dataset_id: int, data: bytes) -> RawArtifact:
        data_path, marker_path = get_artifact_paths(dataset_id, self.root, self.file_format)
        marker = {
            "dataset_id": dataset_id,
            "format": self.file_format,
            "size": len(data),
            "sha256": sha256_hex(data),
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }
        tmp_data = data_path.with_suffix(data_path.suffix + PART_SUFFIX)
        tmp_marker = marker_path.with_suffix(marker_path.suffix + PART_SUFFIX)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            marker_path.unlink(missing_ok=True)
            tmp_data.write_bytes(data)
            tmp_data.replace(data_path)
            tmp_marker.write_text(json.dumps(marker, indent=2), encoding="utf-8")
            tmp_marker.replace(marker_path)
        except OSError as e:
            for p in (tmp_data, tmp_marker):
                try:
                    p.unlink(missing_ok=True)
                except OSError:
                    logger.warning("Cannot remove partial cache file %s", p)
            raise StorageError(f"Cannot write cache entry {data_path}: {e}") from e
        logger.info("Saved dataset %s → %s (%d bytes)", dataset_id, data_path, len(data))
        return RawArtifact(dataset_id, data, self.file_format, data_path)

    # ------------------------------------------------------------------
    # Inspection and eviction
    # ------------------------------------------------------------------
    def contains(self, dataset_id: int) -> bool:
        """True when a valid entry exists for ``dataset_id``."""
        return self._read_entry(int(dataset_id)) is not None

    def entries(self) -> List[CacheEntry]:
        """List entries that have a marker, oldest first."""
        out: List[CacheEntry] = []
        if not self.root.exists():
            return out
        for marker_path in self.root.glob("*.meta.json"):
            marker = self._read_marker(marker_path)
            if marker is None:
                continue
            try:
                dataset_id = int(marker_path.name.split(".", 1)[0])
            except ValueError:
                continue
            out.append(
                CacheEntry(
                    dataset_id=dataset_id,
                    path=self.path_for(dataset_id),
                    size=int(marker["size"]),
                    sha256=str(marker["sha256"]),
                    stored_at=str(marker.get("stored_at", "")),
                )
            )
        return sorted(out, key=lambda e: (e.stored_at, e.dataset_id))

    def total_bytes(self) -> int:
        return sum(e.size for e in self.entries())

    def evict(self, dataset_id: int) -> bool:
        """Remove the entry for ``dataset_id``; returns True if anything was removed."""
        data_path, marker_path = get_artifact_paths(dataset_id, self.root, self.file_format)
        removed = False
        try:
            with self._lock_for(dataset_id):
                for p in (marker_path, data_path):
                    if p.exists():
                        p.unlink()
                        removed = True
        except Timeout as e:
            raise StorageError(f"Timed out waiting for the cache lock of dataset {dataset_id}") from e
        except OSError as e:
            raise StorageError(f"Cannot evict cache entry {data_path}: {e}") from e
        if removed:
            logger.info("Evicted dataset %s from cache", dataset_id)
        return removed

    def prune(self, max_bytes: int) -> List[int]:
        """Evict the oldest entries until the cache holds at most ``max_bytes``.

        Entries with a fetch in progress in this process are left alone.

        Returns:
            Identifiers of the evicted entries.
        """
        if max_bytes < 0:
            raise ValueError("max_bytes must be >= 0")
        entries = self.entries()
        total = sum(e.size for e in entries)
        evicted: List[int] = []
        for entry in entries:
            if total <= max_bytes:
                break
            with self._guard:
                busy = entry.dataset_id in self._flights
            if busy:
                continue
            if self.evict(entry.dataset_id):
                total -= entry.size
                evicted.append(entry.dataset_id)
        return evicted

    def clear(self) -> int:
        """Evict every entry and stray ``.part`` file; returns the number of entries removed."""
        count = 0
        for entry in self.entries():
            if self.evict(entry.dataset_id):
                count += 1
        if self.root.exists():
            for part in self.root.glob("*" + PART_SUFFIX):
                try:
                    part.unlink(missing_ok=True)
                except OSError as e:
                    raise StorageError(f"Cannot remove partial cache file {part}: {e}") from e
                logger.debug("Removed partial cache file %s", part)
        return count


__all__ = ["ArtifactCache", "RawArtifact", "CacheEntry", "verify_md5"]
