#!/usr/bin/env python3
"""Passive live map probe.

Mounts a headless view against a running live map deployment and prints
every view event:
1) the region overlay as loaded from the region service,
2) marker deltas from the position push stream,
3) connection health transitions,
4) results of an optional search or deep link.

Configuration comes from ``LIVEMAP_*`` environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pylivemap import LiveMapClient, LiveMapConfig  # noqa: E402
from pylivemap.state.events import (  # noqa: E402
    ConnectionHealthChanged,
    DetailViewRequested,
    MarkerDelta,
    OverlayReplaced,
    SearchResults,
    ViewEvent,
    ViewportChange,
)


@dataclass
class ProbeStats:
    started_at: float
    snapshots: int = 0
    upserts: int = 0
    removals: int = 0
    reconnects: int = 0


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Passive probe for a live map deployment.")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--search",
        default=None,
        help="Run one hybrid search after mounting and print the results.",
    )
    parser.add_argument(
        "--link",
        default=None,
        help="Resolve a deep-link query string, e.g. '?region=<uuid>&details=true'.",
    )
    parser.add_argument(
        "--transport",
        choices=("websocket", "mqtt"),
        default=None,
        help="Override LIVEMAP_POSITION_TRANSPORT.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_event(event: ViewEvent, stats: ProbeStats) -> None:
    if isinstance(event, MarkerDelta):
        stats.snapshots += 1
        stats.upserts += len(event.to_upsert)
        stats.removals += len(event.to_remove)
        moved = ", ".join(f"{m.display_name}@{m.last_coordinates}" for m in event.to_upsert)
        print(f"[probe] markers tick={event.sequence} -{len(event.to_remove)} +{len(event.to_upsert)} {moved}")
    elif isinstance(event, OverlayReplaced):
        print(f"[probe] overlay revision={event.overlay.revision} regions={len(event.overlay)}")
    elif isinstance(event, ConnectionHealthChanged):
        if event.health == "connected":
            stats.reconnects += 1
        print(f"[probe] connection {event.health} at {event.observed_at.isoformat()}")
    elif isinstance(event, SearchResults):
        suffix = f" (failed: {', '.join(sorted(event.failed_sources))})" if event.failed_sources else ""
        print(f"[probe] search {event.query!r} -> {len(event.results)} result(s){suffix}")
        for result in event.results:
            print(f"[probe]   [{result.source}] {result.title} - {result.description} @ {result.lat}, {result.lon}")
    elif isinstance(event, ViewportChange):
        print(f"[probe] camera -> {event.lat}, {event.lon} zoom={event.zoom}")
    elif isinstance(event, DetailViewRequested):
        print(f"[probe] details requested for region {event.region_id} owned by {event.owner_name}")


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s  : {runtime:.1f}")
    print(f"[probe]   snapshots  : {stats.snapshots}")
    print(f"[probe]   upserts    : {stats.upserts}")
    print(f"[probe]   removals   : {stats.removals}")
    print(f"[probe]   connects   : {stats.reconnects}")


async def _run(args: argparse.Namespace) -> ProbeStats:
    overrides = {"position_transport": args.transport} if args.transport else {}
    config = LiveMapConfig.from_env(**overrides)
    stats = ProbeStats(started_at=time.time())

    async with LiveMapClient(config) as client:
        if args.search:
            client.submit_search(args.search)
        if args.link:
            await client.navigate(args.link)

        async def consume() -> None:
            async for event in client.events():
                _print_event(event, stats)

        consumer = asyncio.create_task(consume())
        try:
            if args.duration > 0:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            consumer.cancel()
    return stats


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        stats = asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("[probe] Interrupted")
        return 0
    except Exception as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Probe failed: {exc}", file=sys.stderr)
        return 2

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
