"""
main.py — entry point for the TenderIQ live feed client.

Usage:
    python main.py                          # Sync the latest feed once and export Excel
    python main.py --date-range last_5_days # Sync a rolling window instead
    python main.py --run-id <id>            # Sync one historical scrape run
    python main.py --search road --min-crore 5 --dry-run
    python main.py --watch                  # Keep re-syncing every few minutes
    python main.py --runs                   # List recent scrape runs
    python main.py --scrape <link>          # Ask the backend to scrape a tender link
    python main.py --clear-cache            # Forget every cached snapshot
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Optional

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  —  %(message)s",
    datefmt="%H:%M:%S",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("feed.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("main")

# ── Project imports ───────────────────────────────────────────────────────────
import config
from feed.client import FeedClient
from feed.models import Report, StreamStatus
from filters.tender_filter import filter_report
from output_engine.excel_exporter import export_to_excel
from storage.backends import FileBackend
from storage.snapshot_store import SnapshotStore, compute_cache_key
from stream.session import StreamSession, StreamSnapshot


def build_session(client: Optional[FeedClient] = None) -> StreamSession:
    """A session backed by the on-disk snapshot store from config."""
    store = SnapshotStore(FileBackend(config.CACHE_DIR, quota_bytes=config.CACHE_QUOTA_BYTES))
    return StreamSession(client or FeedClient(), store)


def run_sync(
    session: StreamSession,
    run_id: Optional[str] = None,
    date_range: Optional[str] = None,
    search: str = "",
    min_crore: float = 0,
    dry_run: bool = False,
) -> Optional[str]:
    """
    Full cycle:  cache → live feed → filter → export.
    Returns the path to the saved Excel file, or None on dry-run / no data.
    """
    run_start = datetime.now()
    logger.info("=" * 60)
    logger.info("TenderIQ sync starting at %s", run_start.strftime("%d %b %Y %H:%M:%S"))
    logger.info("=" * 60)

    snap = session.sync(run_id, date_range)

    if snap.error:
        logger.error("%s", snap.error)
    if snap.report is None or snap.report.total_tenders() == 0:
        logger.warning("No tenders available (status=%s).", snap.status.value)
        return None

    shown = filter_report(snap.report, search=search, min_value_crore=min_crore)
    _print_summary(shown, snap, run_start)

    if dry_run:
        logger.info("Dry-run mode — no Excel file saved.")
        return None

    filepath = export_to_excel(shown.all_tenders(), snap.report.all_tenders())
    logger.info("Report saved: %s", filepath)
    return filepath


def _print_summary(shown: Report, snap: StreamSnapshot, run_start: datetime) -> None:
    """Print a readable summary table to stdout."""
    elapsed = (datetime.now() - run_start).seconds
    tenders = shown.all_tenders()

    print()
    print("━" * 72)
    print(f"  TENDERIQ LIVE FEED  —  {datetime.now().strftime('%d %b %Y')}")
    print("━" * 72)
    print(f"  In feed  : {snap.report.total_tenders():>4}")
    print(f"  Shown    : {len(tenders):>4}")
    print(f"  Status   : {snap.status.value}")
    print(f"  Elapsed  : {elapsed}s")
    print("━" * 72)

    if not tenders:
        print("  No tenders match. Try a broader search or a lower --min-crore.")
        print()
        return

    print(f"  {'#':>3}  {'Published':<10}  {'City':<14}  {'Title':<38}  {'Value'}")
    print(f"  {'─'*3}  {'─'*10}  {'─'*14}  {'─'*38}  {'─'*14}")

    for i, t in enumerate(tenders[:30], 1):   # Show top 30 in console
        name = t.tender_name or "—"
        title = (name[:37] + "…") if len(name) > 38 else name.ljust(38)
        city = (t.city or "—")[:14]
        published = (t.publish_date or "—")[:10]
        print(f"  {i:>3}  {published:<10}  {city:<14}  {title}  {t.display_value()[:14]}")

    if len(tenders) > 30:
        print(f"  … and {len(tenders) - 30} more — see the Excel file for full list.")
    print("━" * 72)


def _print_runs(client: FeedClient, limit: int) -> int:
    runs = client.get_scrape_runs(limit=limit)
    if runs is None:
        print("Could not fetch scrape runs — is the backend running?")
        return 1
    if not runs:
        print("No scrape runs yet.")
        return 0
    print(f"  {'Run ID':<38}  {'Date':<12}  {'New':>5}  Name")
    for r in runs:
        print(f"  {(r.id or ''):<38}  {(r.date_str or '—'):<12}  {(r.no_of_new_tenders or '—'):>5}  {r.name or ''}")
    return 0


def _print_run_details(client: FeedClient, run_id: str) -> int:
    details = client.get_scrape_run_details(run_id)
    if details is None:
        print(f"Could not fetch details for run {run_id}.")
        return 1
    print(f"  Run {details.id}  —  {details.date_str or details.run_at or ''}")
    for q in details.queries:
        name = q.get("query_name") or ""
        count = str(q.get("number_of_tenders") or 0)
        print(f"    {name:<40}  {count:>5} tender(s)")
    return 0


# ── CLI ───────────────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="TenderIQ live tender feed client")
    parser.add_argument("--run-id", default=None, help="Sync one historical scrape run")
    parser.add_argument(
        "--date-range",
        default=None,
        choices=config.QUICK_DATE_RANGES,
        help="Sync a rolling window instead of the latest run",
    )
    parser.add_argument("--search", default="", help="Only show tenders matching this text")
    parser.add_argument(
        "--min-crore", type=float, default=0, help="Only show tenders worth at least this many crore"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print results to console only — do not save Excel",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and re-sync every WATCH_INTERVAL_MINUTES",
    )
    parser.add_argument("--runs", action="store_true", help="List recent scrape runs and exit")
    parser.add_argument("--limit", type=int, default=10, help="How many runs --runs lists")
    parser.add_argument("--run-details", metavar="RUN_ID", help="Show one scrape run and exit")
    parser.add_argument("--scrape", metavar="LINK", help="Trigger a scrape for a tender link and exit")
    parser.add_argument("--clear-cache", action="store_true", help="Delete all cached snapshots and exit")
    args = parser.parse_args(argv)

    client = FeedClient()

    if args.runs:
        return _print_runs(client, args.limit)
    if args.run_details:
        return _print_run_details(client, args.run_details)
    if args.scrape:
        reply = client.trigger_scrape(args.scrape)
        if reply is None:
            print("Scrape request failed.")
            return 1
        print(f"{reply.get('status', '')}: {reply.get('message', '')}")
        return 0

    session = build_session(client)

    if args.clear_cache:
        removed = session.store.clear()
        print(f"Removed {removed} cached snapshot(s).")
        return 0

    sync_kwargs = {
        "run_id": args.run_id,
        "date_range": args.date_range,
        "search": args.search,
        "min_crore": args.min_crore,
        "dry_run": args.dry_run,
    }

    if args.watch:
        _run_watch(session, sync_kwargs)
        return 0

    run_sync(session, **sync_kwargs)
    return 1 if session.snapshot().status == StreamStatus.ERROR else 0


def _watch_tick(session: StreamSession, sync_kwargs: dict) -> None:
    """One scheduled cycle. Skipped while the cached snapshot is still fresh."""
    key = compute_cache_key(sync_kwargs["run_id"], sync_kwargs["date_range"])
    if session.store.is_fresh(key):
        logger.info("Cache %s is still fresh — skipping this cycle.", key)
        return
    run_sync(session, **sync_kwargs)


def _run_watch(session: StreamSession, sync_kwargs: dict) -> None:
    """Sync now, then re-sync on an interval using APScheduler."""
    try:
        from apscheduler.schedulers.blocking import BlockingScheduler
        from apscheduler.triggers.interval import IntervalTrigger
    except ImportError:
        logger.error(
            "APScheduler not installed. Run: pip install apscheduler\n"
            "Or run without --watch for a one-off sync."
        )
        sys.exit(1)

    logger.info("Watch mode: re-syncing every %d minute(s)", config.WATCH_INTERVAL_MINUTES)

    run_sync(session, **sync_kwargs)

    scheduler = BlockingScheduler()
    scheduler.add_job(
        func=_watch_tick,
        trigger=IntervalTrigger(minutes=config.WATCH_INTERVAL_MINUTES),
        args=[session, sync_kwargs],
        id="feed_sync",
        name="TenderIQ feed sync",
        max_instances=1,
        replace_existing=True,
    )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        session.close()
        logger.info("Watch mode stopped by user.")


if __name__ == "__main__":
    sys.exit(main())
