from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path

from .alerts.engine import AlertEvent
from .app import AppContext
from .config import load_settings
from .errors import SearchError
from .geo.projection import SINGAPORE_BOUNDS, find_tile_bounds
from .logger import setup_logging

log = logging.getLogger(__name__)


class _PrintSubscriber:
    def on_alert(self, event: AlertEvent) -> None:
        print(
            f"[{event.timestamp:%H:%M:%S}] {event.category.value.upper():7s} "
            f"{event.title} - {event.message}",
            flush=True,
        )


def run_prefetch(ctx: AppContext, zoom: int) -> None:
    """Warm the tile cache for the whole Singapore map."""
    grid = find_tile_bounds(SINGAPORE_BOUNDS, zoom)
    print(f"Prefetching {grid.count} tiles at zoom {zoom} into {ctx.tile_cache.root}")
    report = ctx.tile_fetcher.fetch_grid(grid, zoom, keep_images=False)
    print(report.summary())


def run_search(ctx: AppContext, query: str) -> None:
    try:
        results = ctx.search.search(query)
    except SearchError as exc:
        log.error("%s", exc)
        return
    if not results:
        print(f"No places found for {query!r}")
    for r in results:
        print(f"{r.name:30s} {r.lon:10.5f} {r.lat:9.5f}  {r.place_type or '-'}  {r.detail}")


def run_watch(ctx: AppContext, once: bool) -> None:
    ctx.bus.register(_PrintSubscriber())
    if once:
        ctx.cluster_store.refresh()
        events = ctx.scheduler.tick() or []
        print(f"{len(events)} alert(s)")
        return

    ctx.start()
    print("Watching for nearby dengue clusters (Ctrl-C to quit)")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("\nStopping.")


def main() -> None:
    parser = argparse.ArgumentParser(
        description=(
            "Idenguefy core.\n"
            "  prefetch    - download and cache the Singapore map tiles\n"
            "  watch       - evaluate proximity alerts periodically\n"
            "  clear-cache - delete all cached tiles\n"
            "  stats       - print tile cache statistics\n"
            "  search      - geocode a place name (needs --query)"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=["prefetch", "watch", "clear-cache", "stats", "search"],
        default="watch",
        help="What to run.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON settings file (defaults to $IDENGUEFY_CONFIG if set).",
    )
    parser.add_argument(
        "--zoom",
        type=int,
        default=None,
        help="Zoom level for 'prefetch' (default: settings zoom).",
    )
    parser.add_argument(
        "--query",
        default=None,
        help="Place to look up in 'search' mode.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="In 'watch' mode, refresh clusters, evaluate once, then exit.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    args = parser.parse_args()
    if args.mode == "search" and not args.query:
        parser.error("--mode search requires --query")

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    settings = load_settings(args.config)
    ctx = AppContext(settings)

    try:
        if args.mode == "prefetch":
            run_prefetch(ctx, args.zoom if args.zoom is not None else settings.zoom)
        elif args.mode == "clear-cache":
            n = ctx.tile_cache.clear()
            print(f"Deleted {n} cached tiles")
        elif args.mode == "stats":
            print(json.dumps(ctx.tile_cache.stats(), indent=2))
        elif args.mode == "search":
            run_search(ctx, args.query)
        else:
            run_watch(ctx, once=args.once)
    finally:
        ctx.stop()


if __name__ == "__main__":
    main()
