"""Main entry point for the Medistream watcher."""

import argparse
import logging
import os
import sys
import time
from datetime import datetime

from .area_classifier import AreaClassifier, medication_fields, row_fields
from .config import get_db_path, load_config
from .db import get_favorites, init_db, toggle_favorite
from .feedback import ImprovementRequest, submit_improvement_request
from .filters import FILTER_PRESETS, search, sort_rows
from .llm import create_llm_client
from .models import DATASET_KINDS, MEDICATIONS, get_dataset_table
from .session import MedistreamSession
from .settings import SettingsStore
from .stats import compute_stats
from .store_client import DataStoreClient, DatasetRepository, StoreError
from .tones import TONE_NAMES, ToneSynthesizer
from .workflows import WorkflowProxyClient, WorkflowStatusMonitor

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def _print_notification(record) -> None:
    details = record.details
    parts = [f"[{record.created_at.astimezone():%H:%M:%S}] {record.title}: {record.message}"]
    if details.laboratory:
        parts.append(f"lab={details.laboratory}")
    if details.drug:
        parts.append(f"drug={details.drug}")
    print(" | ".join(parts))


def _print_new_notifications(records, seen):
    """Print records not shown yet; returns the ids to remember for the next pass."""
    for record in reversed(records):
        if record.id not in seen:
            _print_notification(record)
    return {record.id for record in records}


def run_watch(args) -> int:
    """Poll every dataset until interrupted, printing new notifications."""
    config = load_config()
    session = MedistreamSession.create(config)
    seen = set()
    try:
        session.start(with_workflows=not args.no_workflows)
        logger.info("Watching for new rows (Ctrl+C to stop)...")
        while True:
            seen = _print_new_notifications(session.notifications.records, seen)
            for poller in session.pollers.values():
                if poller.error:
                    logger.warning(f"Could not refresh {poller.kind}: {poller.error}")
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping...")
    finally:
        session.dispose()
    return 0


def run_status(args) -> int:
    """Print the current state of every tracked workflow once."""
    config = load_config()
    client = WorkflowProxyClient(config.proxy)
    try:
        monitor = WorkflowStatusMonitor(client, config.proxy.workflows)
        statuses = monitor.fetch()
        for status in statuses:
            started = status.last_execution.get("startedAt") if status.last_execution else None
            print(f"{status.name:<20} {status.state or 'sin ejecuciones':<16} {status.progress:>3}%  {started or ''}")
        if monitor.error:
            logger.error(f"Some workflows could not be read: {monitor.error}")
            return 1
    finally:
        client.close()
    return 0


def run_check_proxy(args) -> int:
    config = load_config()
    client = WorkflowProxyClient(config.proxy)
    try:
        ok = client.test_connection()
    finally:
        client.close()
    print("Workflow relay reachable" if ok else "Workflow relay NOT reachable")
    return 0 if ok else 1


def run_settings(args) -> int:
    conn = init_db(get_db_path())
    try:
        store = SettingsStore(conn)
        enabled = True if args.enable else False if args.disable else None
        if enabled is not None or args.volume is not None or args.tone is not None:
            store.update(enabled=enabled, volume=args.volume, tone=args.tone)
        settings = store.settings
        print(f"enabled={settings.enabled} volume={settings.volume:.2f} tone={settings.tone}")
    finally:
        conn.close()
    return 0


def run_test_sound(args) -> int:
    conn = init_db(get_db_path())
    try:
        settings = SettingsStore(conn).settings
    finally:
        conn.close()
    tone = args.tone or settings.tone
    volume = args.volume if args.volume is not None else settings.volume
    synthesizer = ToneSynthesizer(background=False, release_delay=0)
    if not synthesizer.play(tone, volume):
        print("Nothing played (volume is 0)")
    return 0


def run_favorite(args) -> int:
    get_dataset_table(args.kind)
    conn = init_db(get_db_path())
    try:
        if args.item_id is not None:
            is_favorite = toggle_favorite(conn, args.kind, args.item_id)
            print(f"{args.kind} {args.item_id}: {'added to' if is_favorite else 'removed from'} favorites")
        for item_id in sorted(get_favorites(conn, args.kind)):
            print(item_id)
    finally:
        conn.close()
    return 0


def _parse_pairs(pairs, what="Filters"):
    result = {}
    for pair in pairs or []:
        column, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"{what} must look like column=value, got {pair!r}")
        result[column.strip()] = value.strip()
    return result


def run_list(args) -> int:
    """Fetch one dataset and print it filtered, searched and sorted."""
    config = load_config()
    table = get_dataset_table(args.kind)
    cascade = FILTER_PRESETS[args.kind]
    repository = DatasetRepository(DataStoreClient(config.store), table)
    try:
        rows = repository.list()
    except StoreError as e:
        logger.error(f"Could not fetch {args.kind}: {e}")
        return 1

    selections = {}
    for column, value in _parse_pairs(args.filter).items():
        selections = cascade.select(selections, column, value)

    favorites = None
    if args.favorites:
        conn = init_db(config.db_path)
        try:
            favorites = get_favorites(conn, args.kind)
        finally:
            conn.close()

    rows = cascade.apply(rows, selections, favorites=favorites)
    rows = search(rows, args.search)
    if args.sort:
        rows = sort_rows(rows, args.sort, descending=args.desc)

    if args.classify:
        if not config.llm.enabled:
            logger.error("LLM_API_KEY is not set; cannot classify areas")
            return 1
        classifier = AreaClassifier(create_llm_client(config.llm), config.llm)
        extractor = medication_fields if args.kind == MEDICATIONS else row_fields
        areas = classifier.classify_rows(rows, extractor)
        for row, area in zip(rows, areas):
            row["area_ia"] = area

    for row in rows:
        print(f"{row.get(table.key)}\t{row.get(table.lab_field) or '-'}\t{row.get(table.drug_field) or '-'}"
              + (f"\t{row['area_ia']}" if "area_ia" in row else ""))

    options = cascade.options(rows, selections)
    print(f"\n{len(rows)} row(s) at {datetime.now():%H:%M:%S}")
    for column, values in options.items():
        if values:
            print(f"  {column}: {', '.join(values[:10])}{' ...' if len(values) > 10 else ''}")
    return 0


def _repository(config, kind: str) -> DatasetRepository:
    return DatasetRepository(DataStoreClient(config.store), get_dataset_table(kind))


def run_stats(args) -> int:
    config = load_config()
    try:
        rows = _repository(config, args.kind).list()
    except StoreError as e:
        logger.error(f"Could not fetch {args.kind}: {e}")
        return 1
    for kpi in compute_stats(args.kind, rows):
        suffix = f"  ({kpi.description})" if kpi.description else ""
        print(f"{kpi.label:<24} {kpi.value:>6}{suffix}")
    return 0


def run_add(args) -> int:
    config = load_config()
    values = _parse_pairs(args.set, "Values")
    if not values:
        raise ValueError("Nothing to add: pass at least one --set column=value")
    try:
        row = _repository(config, args.kind).create(values)
    except StoreError as e:
        logger.error(f"Could not add {args.kind} row: {e}")
        return 1
    print(f"Added {args.kind} row {row.get(get_dataset_table(args.kind).key, '')}")
    return 0


def run_edit(args) -> int:
    config = load_config()
    changes = _parse_pairs(args.set, "Values")
    if not changes:
        raise ValueError("Nothing to change: pass at least one --set column=value")
    try:
        row = _repository(config, args.kind).update(args.item_id, changes)
    except StoreError as e:
        logger.error(f"Could not update {args.kind} row {args.item_id}: {e}")
        return 1
    if row is None:
        logger.error(f"No {args.kind} row with id {args.item_id}")
        return 1
    print(f"Updated {args.kind} row {args.item_id}")
    return 0


def run_delete(args) -> int:
    config = load_config()
    if not args.yes:
        logger.error(f"Refusing to delete {args.kind} row {args.item_id} without --yes")
        return 1
    try:
        _repository(config, args.kind).delete(args.item_id)
    except StoreError as e:
        logger.error(f"Could not delete {args.kind} row {args.item_id}: {e}")
        return 1
    print(f"Deleted {args.kind} row {args.item_id}")
    return 0


def run_feedback(args) -> int:
    """Send an improvement request to the commercial team's table."""
    config = load_config()
    request = ImprovementRequest(
        sector=args.sector,
        request=args.request,
        requester=args.requester or config.user_email or "",
    )
    try:
        submit_improvement_request(DataStoreClient(config.store), request)
    except StoreError as e:
        logger.error(f"Could not send the improvement request: {e}")
        return 1
    print("Improvement request sent")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Medistream: watch DrugDealer, Unmet Needs and Pharma Tactics for new rows"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Poll datasets and notify on new rows")
    watch.add_argument("--no-workflows", action="store_true", help="Do not poll workflow execution status")
    watch.set_defaults(func=run_watch)

    status = sub.add_parser("status", help="Show workflow automation status")
    status.set_defaults(func=run_status)

    check = sub.add_parser("check-proxy", help="Test the workflow relay connection")
    check.set_defaults(func=run_check_proxy)

    settings = sub.add_parser("settings", help="Show or change notification settings")
    toggle = settings.add_mutually_exclusive_group()
    toggle.add_argument("--enable", action="store_true", help="Turn sound and desktop notifications on")
    toggle.add_argument("--disable", action="store_true", help="Turn sound and desktop notifications off")
    settings.add_argument("--volume", type=float, default=None, help="Volume between 0 and 1")
    settings.add_argument("--tone", choices=TONE_NAMES, default=None, help="Notification tone")
    settings.set_defaults(func=run_settings)

    sound = sub.add_parser("test-sound", help="Play the notification tone")
    sound.add_argument("--tone", choices=TONE_NAMES, default=None)
    sound.add_argument("--volume", type=float, default=None)
    sound.set_defaults(func=run_test_sound)

    favorite = sub.add_parser("favorite", help="Toggle or list favorite items")
    favorite.add_argument("kind", choices=DATASET_KINDS)
    favorite.add_argument("item_id", nargs="?", default=None)
    favorite.set_defaults(func=run_favorite)

    listing = sub.add_parser("list", help="List a dataset with filters")
    listing.add_argument("kind", choices=DATASET_KINDS)
    listing.add_argument("--filter", action="append", metavar="COLUMN=VALUE",
                         help="Filter on a column; repeat for cascading filters")
    listing.add_argument("--search", default="", help="Free-text search")
    listing.add_argument("--sort", default=None, help="Column to sort by")
    listing.add_argument("--desc", action="store_true", help="Sort descending")
    listing.add_argument("--favorites", action="store_true", help="Only favorite items")
    listing.add_argument("--classify", action="store_true", help="Add an LLM-derived medical area")
    listing.set_defaults(func=run_list)

    stats = sub.add_parser("stats", help="Show headline figures for a dataset")
    stats.add_argument("kind", choices=DATASET_KINDS)
    stats.set_defaults(func=run_stats)

    add = sub.add_parser("add", help="Add a row to a dataset")
    add.add_argument("kind", choices=DATASET_KINDS)
    add.add_argument("--set", action="append", metavar="COLUMN=VALUE", help="Column value; repeat per column")
    add.set_defaults(func=run_add)

    edit = sub.add_parser("edit", help="Change columns of one row")
    edit.add_argument("kind", choices=DATASET_KINDS)
    edit.add_argument("item_id")
    edit.add_argument("--set", action="append", metavar="COLUMN=VALUE", help="Column value; repeat per column")
    edit.set_defaults(func=run_edit)

    delete = sub.add_parser("delete", help="Delete one row")
    delete.add_argument("kind", choices=DATASET_KINDS)
    delete.add_argument("item_id")
    delete.add_argument("--yes", action="store_true", help="Confirm the deletion")
    delete.set_defaults(func=run_delete)

    feedback = sub.add_parser("feedback", help="Send an improvement request")
    feedback.add_argument("--sector", required=True)
    feedback.add_argument("--request", required=True, help="The improvement being asked for")
    feedback.add_argument("--requester", default=None, help="Defaults to MEDISTREAM_USER_EMAIL")
    feedback.set_defaults(func=run_feedback)
    return parser


def main(argv=None) -> int:
    """Main entry point with command-line argument parsing."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as e:
        logger.error(f"{e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
