"""OpenML Catalog Tools: list, describe and load OpenML datasets.

Pipeline: filter compilation -> catalog requests -> artifact cache ->
ARFF parsing -> type coercion -> typed table.
"""

__all__ = [
    "__version__",
    "list_tags",
    "list_datasets",
    "describe_dataset",
    "load",
]

__version__ = "0.1.0"

from .api import describe_dataset, list_datasets, list_tags, load  # noqa: E402
