import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import colorlog

from openml_catalog import __version__ as _PACKAGE_VERSION
from openml_catalog import api
from openml_catalog.cache.store import ArtifactCache
from openml_catalog.catalog.client import CatalogClient
from openml_catalog.core.config import Settings, load_settings
from openml_catalog.core.errors import ConfigError, OpenMLCatalogError
from openml_catalog.sources.transport import HttpTransport

# Qualities shown by `list`, in column order
LIST_QUALITIES = ["number_instances", "number_features", "number_classes"]


def setup_logging(
    verbose: bool = False, warnings_only: bool = False, errors_only: bool = False
) -> None:
    logger = logging.getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    log_format = "%(asctime)s:%(levelname)s:%(name)s: %(message)s"
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    stream_handler = colorlog.StreamHandler(sys.stderr)
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if errors_only:
        logger.setLevel(logging.ERROR)
    elif warnings_only:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _settings(args: argparse.Namespace) -> Settings:
    path = Path(args.settings) if getattr(args, "settings", None) else None
    return load_settings(path)


def make_client(settings: Settings) -> Tuple[CatalogClient, HttpTransport]:
    """Build a catalog client over a fresh HTTP transport; the caller closes the transport."""
    transport = HttpTransport(timeout_sec=settings.timeout_sec, show_progress=settings.show_progress)
    return CatalogClient(transport, settings), transport


def _run_with_client(args: argparse.Namespace, command) -> int:
    """Resolve settings, build a client and run ``command(client, settings)``.

    Catalog errors map to exit code 2, configuration errors to 3.
    """
    try:
        settings = _settings(args)
    except ConfigError as e:
        logging.error("Invalid settings: %s", e)
        return 3
    client, transport = make_client(settings)
    try:
        return command(client, settings)
    except OpenMLCatalogError as e:
        logging.error("%s: %s", type(e).__name__, e)
        return 2
    finally:
        transport.close()


def cmd_tags(args: argparse.Namespace) -> int:
    def run(client: CatalogClient, settings: Settings) -> int:
        tags = api.list_tags(client=client)
        for tag in tags:
            print(tag)
        logging.info("%d tags", len(tags))
        return 0

    return _run_with_client(args, run)


def cmd_list(args: argparse.Namespace) -> int:
    """List datasets as tab-separated rows: id, name, version, status, headline qualities."""
    if args.limit is not None and args.limit < 0:
        logging.error("--limit must be >= 0")
        return 2

    def run(client: CatalogClient, settings: Settings) -> int:
        summaries = api.list_datasets(tag=args.tag, filter=args.filter, client=client)
        if args.limit is not None:
            summaries = summaries[: args.limit]
        print("\t".join(["id", "name", "version", "status"] + LIST_QUALITIES))
        for s in summaries:
            cells = [str(s.dataset_id), s.name, str(s.version), s.status]
            cells += [str(s.qualities.get(q, "")) for q in LIST_QUALITIES]
            print("\t".join(cells))
        logging.info("%d datasets", len(summaries))
        return 0

    return _run_with_client(args, run)


def cmd_describe(args: argparse.Namespace) -> int:
    def run(client: CatalogClient, settings: Settings) -> int:
        d = client.describe_dataset(args.dataset_id)
        print(f"{d.name} (id {d.dataset_id}, version {d.version}, {d.file_format})")
        if d.default_target_attribute:
            print(f"Target: {d.default_target_attribute}")
        if d.citation.creator:
            print(f"Creator: {', '.join(d.citation.creator)}")
        if d.citation.licence:
            print(f"Licence: {d.citation.licence}")
        print()
        print(d.description)
        if args.attributes and d.attributes:
            print()
            for a in d.attributes:
                levels = f" {{{', '.join(a.levels)}}}" if a.levels else ""
                print(f"{a.index}\t{a.name}\t{a.kind.value}{levels}")
        return 0

    return _run_with_client(args, run)


def cmd_load(args: argparse.Namespace) -> int:
    """Load a dataset and print its schema, optionally writing it to CSV or Parquet."""
    output: Optional[Path] = Path(args.output) if args.output else None
    if output is not None and output.suffix.lower() not in (".csv", ".parquet"):
        logging.error("--output must end in .csv or .parquet: %s", output)
        return 2

    def run(client: CatalogClient, settings: Settings) -> int:
        table = api.load(
            args.dataset_id,
            parser="auto" if args.auto else "arff",
            strict=not args.lenient,
            on_bad_row="skip" if args.lenient else "raise",
            client=client,
            cache=ArtifactCache(settings.cache_root),
        )
        for name, scitype in table.schema().items():
            print(f"{name}\t{scitype.value}")
        logging.info("Loaded dataset %s: %d rows", args.dataset_id, table.n_rows)
        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            if output.suffix.lower() == ".csv":
                table.to_pandas().to_csv(output, index=False)
            else:
                table.to_polars().write_parquet(output)
            logging.info("Wrote %s", output)
        return 0

    return _run_with_client(args, run)


def cmd_cache(args: argparse.Namespace) -> int:
    try:
        settings = _settings(args)
    except ConfigError as e:
        logging.error("Invalid settings: %s", e)
        return 3
    cache = ArtifactCache(settings.cache_root)
    try:
        if args.cache_command == "info":
            entries = cache.entries()
            for e in entries:
                print(f"{e.dataset_id}\t{e.size}\t{e.stored_at}")
            print(f"{len(entries)} entries, {sum(e.size for e in entries)} bytes in {cache.root}")
        elif args.cache_command == "prune":
            if args.max_bytes < 0:
                logging.error("--max-bytes must be >= 0")
                return 2
            evicted = cache.prune(args.max_bytes)
            logging.info("Evicted %d entries: %s", len(evicted), evicted)
        else:
            removed = cache.clear()
            logging.info("Removed %d entries from %s", removed, cache.root)
    except OpenMLCatalogError as e:
        logging.error("%s: %s", type(e).__name__, e)
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="openml-catalog",
        description=f"OpenML Catalog Tools (v{_PACKAGE_VERSION})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument(
        "--warnings-only",
        action="store_true",
        help="Show only warnings and errors (overrides --verbose)",
    )
    p.add_argument(
        "--errors-only",
        action="store_true",
        help="Show only errors (overrides --warnings-only and --verbose)",
    )
    p.add_argument(
        "--settings",
        default=None,
        help="YAML settings file with an 'openml_catalog:' section",
    )

    sub = p.add_subparsers(dest="command", required=True)

    p_tags = sub.add_parser("tags", help="List dataset tags")
    p_tags.set_defaults(func=cmd_tags)

    p_list = sub.add_parser("list", help="List datasets")
    p_list.add_argument("--tag", default=None, help="Only datasets with this tag")
    p_list.add_argument(
        "--filter",
        default=None,
        help="Filter path, e.g. number_instances/100..1000/number_features/1..10",
    )
    p_list.add_argument("--limit", type=int, default=None, help="Print at most N datasets")
    p_list.set_defaults(func=cmd_list)

    p_describe = sub.add_parser("describe", help="Show the description of a dataset")
    p_describe.add_argument("dataset_id", type=int)
    p_describe.add_argument(
        "--attributes", action="store_true", help="Also list the declared attributes"
    )
    p_describe.set_defaults(func=cmd_describe)

    p_load = sub.add_parser("load", help="Download (or reuse) and parse a dataset")
    p_load.add_argument("dataset_id", type=int)
    p_load.add_argument(
        "--auto", action="store_true", help="Detect scientific types instead of declared ones"
    )
    p_load.add_argument("--output", default=None, help="Write the table to .csv or .parquet")
    p_load.add_argument(
        "--lenient",
        action="store_true",
        help="Accept undeclared nominal values and skip malformed rows",
    )
    p_load.set_defaults(func=cmd_load)

    p_cache = sub.add_parser("cache", help="Inspect or trim the artifact cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command", required=True)
    cache_sub.add_parser("info", help="List cached datasets")
    p_prune = cache_sub.add_parser("prune", help="Evict oldest entries down to a size")
    p_prune.add_argument("--max-bytes", type=int, required=True)
    cache_sub.add_parser("clear", help="Remove every cached dataset")
    p_cache.set_defaults(func=cmd_cache)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=bool(args.verbose),
        warnings_only=bool(getattr(args, "warnings_only", False)),
        errors_only=bool(getattr(args, "errors_only", False)),
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
