"""Persistent, single-flight artifact cache."""

from .store import ArtifactCache, CacheEntry, RawArtifact, verify_md5

__all__ = ["ArtifactCache", "CacheEntry", "RawArtifact", "verify_md5"]
