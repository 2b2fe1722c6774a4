from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .api import evaluate
from .catalog import DEFAULT_FILTER_CATALOG, FilterCatalog, load_filter_catalog
from .errors import ChartConfigError
from .io import load_snapshot, read_table, write_snapshot
from .references import MAPPING_FIELDS
from .state import MonotonicClock, initial_snapshot
from .store import ConfigurationStore
from .wizard_lib import prompt_bool, prompt_issue_action

logger = logging.getLogger("chart_config")

CATALOG_ENV = "CHART_CONFIG_CATALOG"


def _path(p: str) -> Path:
    return Path(p).expanduser()


def _prompt(text: str) -> str:
    return input(text)


def _setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="chart-config")
    p.add_argument("--version", action="version", version=f"chart-config {__version__}")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)",
    )
    p.add_argument(
        "--catalog",
        type=_path,
        help=f"Filter catalog YAML (overrides ENV: {CATALOG_ENV}; default: bundled catalog)",
    )

    sub = p.add_subparsers(dest="cmd")

    def with_config(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
        parser.add_argument(
            "--config", type=_path, required=True, help="Chart configuration YAML"
        )
        return parser

    init = with_config(sub.add_parser("init", help="Write the demo configuration"))
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    status = with_config(sub.add_parser("status", help="Report step statuses and issues"))
    status.add_argument("--out", type=_path, help="Write the JSON report here instead of stdout")

    flt = with_config(sub.add_parser("filter", help="Change filter selection"))
    flt_group = flt.add_mutually_exclusive_group(required=True)
    flt_group.add_argument("--toggle", metavar="FILTER_ID", help="Select/deselect a filter")
    flt_group.add_argument(
        "--samples",
        nargs=2,
        metavar=("FILTER_ID", "VALUES"),
        help="Set comma-separated sample values for a selected filter",
    )

    qry = with_config(sub.add_parser("query", help="Edit the query statement"))
    qry_group = qry.add_mutually_exclusive_group(required=True)
    qry_group.add_argument("--set", dest="statement", help="Replace the statement")
    qry_group.add_argument("--file", type=_path, help="Read the statement from a file")
    qry_group.add_argument("--insert", metavar="FILTER_ID", help="Append a filter placeholder")

    run = with_config(sub.add_parser("run-query", help="Re-run the query and refresh the preview"))
    run.add_argument("--data", type=_path, help="CSV or Parquet result to load as the preview")
    run.add_argument("--limit", type=int, help="Only keep the first N rows")

    mp = with_config(sub.add_parser("map", help="Choose a preview column for a mapping field"))
    mp.add_argument("field", choices=list(MAPPING_FIELDS))
    mp.add_argument("column", nargs="?", default="", help="Column name (empty clears the field)")

    fix = with_config(sub.add_parser("fix", help="Apply a smart-assist action"))
    fix.add_argument("kind", help="Action kind, e.g. remove_reference_from_query")
    fix.add_argument("payload", help="Filter identifier, e.g. filter_country")

    with_config(sub.add_parser("assist", help="Walk through issues interactively"))

    export = with_config(sub.add_parser("export", help="Save a fully valid configuration"))
    export.add_argument("--out", type=_path, required=True, help="Destination YAML")

    return p


def _resolve_catalog(args: argparse.Namespace) -> FilterCatalog:
    catalog_path = getattr(args, "catalog", None)
    if catalog_path is None and os.environ.get(CATALOG_ENV):
        catalog_path = _path(os.environ[CATALOG_ENV])
    if catalog_path is None:
        return DEFAULT_FILTER_CATALOG
    logger.debug("Loading filter catalog from: %s", catalog_path)
    return load_filter_catalog(catalog_path)


def _open_store(args: argparse.Namespace) -> ConfigurationStore:
    logger.debug("Loading configuration from: %s", args.config)
    snapshot = load_snapshot(args.config)
    return ConfigurationStore(snapshot, catalog=_resolve_catalog(args))


def _write(store: ConfigurationStore, path: Path) -> None:
    logger.info("Writing configuration to: %s", path)
    write_snapshot(store.snapshot, path)


def _log_pending(store: ConfigurationStore) -> int:
    pending = store.steps_needing_attention()
    if pending:
        logger.warning("%d step(s) need attention: %s", len(pending), ", ".join(pending))
        return 2
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    if args.config.exists() and not args.force:
        logger.error("Refusing to overwrite %s (use --force)", args.config)
        return 1
    clock = MonotonicClock()
    write_snapshot(initial_snapshot(clock()), args.config)
    logger.info("Wrote demo configuration to: %s", args.config)
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    store = _open_store(args)
    report = evaluate(store.snapshot)
    if args.out:
        logger.info("Writing status report to: %s", args.out)
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
    else:
        json.dump(report.to_dict(), fp=sys.stdout, indent=2)
        sys.stdout.write("\n")
    logger.info(
        "Status: %s (%d issue(s))", report.overall_status, len(report.issues)
    )
    return 0 if report.is_ready else 2


def _cmd_filter(args: argparse.Namespace) -> int:
    store = _open_store(args)
    if args.toggle:
        store.toggle_filter(args.toggle)
        state = "selected" if store.snapshot.filters.is_selected(args.toggle) else "removed"
        logger.info("Filter %s %s", store.catalog.display_name(args.toggle), state)
    else:
        filter_id, raw = args.samples
        values = [v.strip() for v in raw.split(",") if v.strip()]
        store.set_sample_values(filter_id, values)
    _write(store, args.config)
    return _log_pending(store)


def _cmd_query(args: argparse.Namespace) -> int:
    store = _open_store(args)
    if args.insert:
        store.insert_filter_reference(args.insert)
    elif args.file:
        store.edit_query(args.file.read_text(encoding="utf-8"))
    else:
        store.edit_query(args.statement)
    logger.info(
        "Query references: %s",
        ", ".join(store.snapshot.query.referenced_filter_ids) or "(none)",
    )
    _write(store, args.config)
    return _log_pending(store)


def _cmd_run_query(args: argparse.Namespace) -> int:
    store = _open_store(args)
    if args.data:
        logger.debug("Reading preview data: %s", args.data)
        try:
            df = read_table(args.data, nrows=args.limit)
        except (OSError, ValueError) as e:
            logger.error("Failed to read preview data %s: %s", args.data, e)
            return 1
        store.run_query(lambda statement, filters: df)
    else:
        store.run_query()
    logger.info(
        "Preview refreshed: %d row(s), columns: %s",
        len(store.snapshot.preview.rows),
        ", ".join(store.snapshot.preview.columns),
    )
    _write(store, args.config)
    return _log_pending(store)


def _cmd_map(args: argparse.Namespace) -> int:
    store = _open_store(args)
    store.select_mapping(args.field, args.column)
    _write(store, args.config)
    return _log_pending(store)


def _cmd_fix(args: argparse.Namespace) -> int:
    store = _open_store(args)
    store.apply_action(args.kind, args.payload)
    _write(store, args.config)
    return _log_pending(store)


def _cmd_assist(args: argparse.Namespace) -> int:
    store = _open_store(args)
    issues = store.issues()
    if not issues:
        logger.info("No issues detected.")
        return _log_pending(store)

    changed = False
    for issue in issues:
        # Earlier fixes can resolve later issues.
        if issue not in store.issues():
            continue
        action = prompt_issue_action(_prompt, issue)
        if action is None:
            continue
        store.apply_action(action.kind, action.payload)
        changed = True

    if changed and prompt_bool(_prompt, f"Write changes to {args.config}? [Y/n] ", default=True):
        _write(store, args.config)
    return _log_pending(store)


def _cmd_export(args: argparse.Namespace) -> int:
    store = _open_store(args)
    store.save(lambda snapshot: write_snapshot(snapshot, args.out))
    logger.info("Saved configuration to: %s", args.out)
    return 0


COMMANDS = {
    "init": _cmd_init,
    "status": _cmd_status,
    "filter": _cmd_filter,
    "query": _cmd_query,
    "run-query": _cmd_run_query,
    "map": _cmd_map,
    "fix": _cmd_fix,
    "assist": _cmd_assist,
    "export": _cmd_export,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.log_level)

    if args.cmd is None:
        parser.print_help()
        return 0

    try:
        return COMMANDS[args.cmd](args)
    except ChartConfigError as e:
        logger.error("%s", e)
        return 1
    except Exception:
        logger.exception("Unexpected error occurred")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
