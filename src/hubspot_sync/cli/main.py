"""Main CLI entry point."""

import argparse
import json
import logging
import sys
from pathlib import Path

OBJECT_TYPES = ["contacts", "companies", "deals", "tickets", "engagements"]


def main() -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(prog="hubspot-sync", description="HubSpot CRM connector and sync pipeline")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # sync
    sync_parser = subparsers.add_parser("sync", help="Stream one object type from HubSpot")
    sync_parser.add_argument(
        "--source",
        default="hubspot",
        help="Source connector to sync from",
    )
    sync_parser.add_argument(
        "--object",
        default="deals",
        choices=OBJECT_TYPES,
        help="Object type to sync",
    )
    sync_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Connector config YAML (default: HUBSPOT_* environment variables)",
    )
    sync_parser.add_argument(
        "--store",
        type=Path,
        default=None,
        metavar="DB_PATH",
        help="Persist raw records, dead letters and normalized deals to SQLite",
    )
    sync_parser.add_argument(
        "--ingest-url",
        type=str,
        default=None,
        help="Forward raw records to an ingest endpoint (e.g. http://localhost:4000)",
    )
    sync_parser.add_argument(
        "--normalize",
        action="store_true",
        help="Normalize records and dead-letter failures",
    )
    sync_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall run timeout in seconds",
    )
    sync_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write raw records as JSON to file (when neither --store nor --ingest-url is set)",
    )

    # store
    store_parser = subparsers.add_parser("store", help="Query the raw record store")
    store_parser.add_argument(
        "--db",
        type=Path,
        default=Path("hubspot_sync.db"),
        help="Path to SQLite database",
    )
    store_parser.add_argument(
        "action",
        choices=["list", "count"],
        help="List raw records or show count",
    )
    store_parser.add_argument("--object", default="deals", choices=OBJECT_TYPES)

    # dead-letters
    dl_parser = subparsers.add_parser("dead-letters", help="Inspect dead-lettered records")
    dl_parser.add_argument("action", choices=["list", "count"])
    dl_parser.add_argument("--db", type=Path, default=Path("hubspot_sync.db"))
    dl_parser.add_argument("--object", default=None, choices=OBJECT_TYPES)

    # deals
    deals_parser = subparsers.add_parser("deals", help="Look up normalized deals")
    deals_parser.add_argument("--db", type=Path, default=Path("hubspot_sync.db"))
    deals_parser.add_argument("--id", dest="deal_id", default=None)
    deals_parser.add_argument("--name", default=None, help="Substring of the deal name")
    deals_parser.add_argument("--owner", default=None)
    deals_parser.add_argument("--stage", default=None)
    deals_parser.add_argument("--exclude-archived", action="store_true")
    deals_parser.add_argument("--limit", type=int, default=20)

    # trigger
    trigger_parser = subparsers.add_parser("trigger", help="Run a sync workflow")
    trigger_parser.add_argument("--workflow", default="hubspotDataSync")
    trigger_parser.add_argument("--force", action="store_true", help="Bypass the already-running guard")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "sync":
        _run_sync(args)
    elif args.command == "store":
        _run_store(args)
    elif args.command == "dead-letters":
        _run_dead_letters(args)
    elif args.command == "deals":
        _run_deals(args)
    elif args.command == "trigger":
        _run_trigger(args)
    else:
        parser.print_help()


def _run_sync(args: argparse.Namespace) -> None:
    """Run sync command."""
    from hubspot_sync.connectors.base import StreamOptions
    from hubspot_sync.connectors.registry import ConnectorRegistry
    from hubspot_sync.errors import ConfigError, ConnectorError
    from hubspot_sync.ingest import (
        CollectingSink,
        DealStoreSink,
        HttpIngestSink,
        RawRecordSink,
        dead_letter_stream_name,
        raw_stream_name,
    )
    from hubspot_sync.store import DeadLetterStore, DealStore, RawRecordStore
    from hubspot_sync.sync import SyncDriver
    from hubspot_sync.transform import DeadLetterRouter, InMemoryDeadLetterSink, TransformStage
    from hubspot_sync.transform.normalizer import DEFAULT_PROPERTIES

    try:
        connector = ConnectorRegistry.from_config(args.source, args.config)
    except ConfigError as e:
        raise SystemExit(str(e))

    run_store = RawRecordStore(args.store) if args.store else None
    if args.ingest_url:
        sink = HttpIngestSink(raw_stream_name(args.object), args.ingest_url)
    elif run_store is not None:
        sink = RawRecordSink(run_store)
    else:
        sink = CollectingSink()

    transform = None
    normalized_sink = None
    dl_sink = None
    if args.normalize:
        if args.store:
            dl_sink = DeadLetterStore(args.store)
        elif args.ingest_url:
            dl_sink = HttpIngestSink(dead_letter_stream_name(args.object), args.ingest_url)
        else:
            dl_sink = InMemoryDeadLetterSink()
        transform = TransformStage(DeadLetterRouter(dl_sink))
        if args.store and args.object == "deals":
            normalized_sink = DealStoreSink(DealStore(args.store))

    options = StreamOptions(properties=list(DEFAULT_PROPERTIES.get(args.object, ())))
    driver = SyncDriver(
        connector,
        sink,
        object_type=args.object,
        options=options,
        transform=transform,
        normalized_sink=normalized_sink,
        timeout=args.timeout,
        run_store=run_store,
    )
    try:
        summary = driver.run()
    except ConnectorError as e:
        print(json.dumps(driver.summary.model_dump(mode="json"), indent=2), file=sys.stderr)
        raise SystemExit(f"Sync failed: {e}")
    finally:
        sink.close()
        if isinstance(dl_sink, HttpIngestSink):
            dl_sink.close()

    if isinstance(sink, CollectingSink):
        output = json.dumps([r.to_ingest_payload() for r in sink.records], indent=2, default=str)
        if args.output:
            args.output.write_text(output, encoding="utf-8")
            print(f"Wrote {len(sink.records)} {args.object} to {args.output}")
        else:
            print(output)

    print(
        f"Sync: {summary.total} total, {summary.succeeded} succeeded, {summary.errors} errors, "
        f"{summary.dead_lettered} dead-lettered in {summary.duration_seconds:.1f}s",
        file=sys.stderr,
    )


def _run_store(args: argparse.Namespace) -> None:
    """Run store command."""
    from hubspot_sync.store import RawRecordStore

    store = RawRecordStore(args.db)
    if args.action == "list":
        records = store.get_all(args.object)
        output = json.dumps(
            [r.to_ingest_payload() for r in records],
            indent=2,
            default=str,
        )
        print(output)
    elif args.action == "count":
        print(store.count(args.object))


def _run_dead_letters(args: argparse.Namespace) -> None:
    """Run dead-letters command."""
    from hubspot_sync.store import DeadLetterStore

    store = DeadLetterStore(args.db)
    entries = store.list_entries(args.object)
    if args.action == "count":
        print(len(entries))
        return
    print(json.dumps([e.to_payload() for e in entries], indent=2, default=str))


def _run_deals(args: argparse.Namespace) -> None:
    """Run deals lookup command."""
    from hubspot_sync.store import DealQuery, DealStore

    query = DealQuery(
        deal_id=args.deal_id,
        name_contains=args.name,
        owner_id=args.owner,
        stage=args.stage,
        include_archived=not args.exclude_archived,
        limit=args.limit,
    )
    deals = DealStore(args.db).lookup(query)
    print(json.dumps([d.model_dump(mode="json") for d in deals], indent=2, default=str))


def _run_trigger(args: argparse.Namespace) -> None:
    """Run trigger command."""
    from hubspot_sync.trigger import WorkflowTrigger

    response = WorkflowTrigger().run_sync(args.workflow, force=args.force)
    print(json.dumps(response.model_dump(mode="json"), indent=2, default=str))
    if not response.success:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
