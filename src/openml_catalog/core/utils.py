"""Core utility functions shared across the package."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Optional


def get_artifact_paths(
    dataset_id: int, cache_root: Path, file_format: str = "arff"
) -> tuple[Path, Path]:
    """Get the data and marker paths of a cached artifact.

    Constructs file paths following the cache naming convention:
    - Data: {cache_root}/{dataset_id}.{file_format}
    - Marker: {cache_root}/{dataset_id}.meta.json

    Args:
        dataset_id: Catalog identifier of the dataset.
        cache_root: Root directory of the artifact cache.
        file_format: Extension of the stored artifact.

    Returns:
        A tuple of (data_path, marker_path).

    Examples:
        >>> data_path, marker_path = get_artifact_paths(61, Path("cache"))
        >>> print(data_path)
        cache/61.arff
        >>> print(marker_path)
        cache/61.meta.json
    """
    data_path = cache_root / f"{int(dataset_id)}.{file_format}"
    marker_path = cache_root / f"{int(dataset_id)}.meta.json"
    return data_path, marker_path


def sha256_hex(data: bytes) -> str:
    """Return the hex sha256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def md5_hex(data: bytes) -> str:
    """Return the hex md5 digest of ``data`` (the catalog publishes md5 checksums)."""
    return hashlib.md5(data).hexdigest()  # noqa: S324


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    """Convert a CamelCase quality name to snake_case.

    Examples:
        >>> snake_case("MajorityClassSize")
        'majority_class_size'
    """
    return _CAMEL_BOUNDARY.sub("_", name.strip()).replace("-", "_").lower()


def parse_number(text: str) -> Optional[float]:
    """Return ``text`` as a float, or None when it is not numeric."""
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` when it is integral."""
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers here")
    if isinstance(value, int):
        return str(value)
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
