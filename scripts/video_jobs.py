from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure `import coursevideo...` works when running from the repo root.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from coursevideo.core.logging_config import configure_logging  # noqa: E402
from coursevideo.core.settings import get_settings  # noqa: E402
from coursevideo.db.session import dispose_engines  # noqa: E402
from coursevideo.engine import build_engine  # noqa: E402


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run course video maintenance jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("reconcile", help="Sync queued/in-progress videos with the stream provider.")
    sub.add_parser("retry-all", help="Retry every video in error state.")

    stuck = sub.add_parser("stuck", help="List videos that stopped making progress.")
    stuck.add_argument("--minutes", type=int, default=None, help="Staleness threshold (default: settings).")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    engine = build_engine(settings)

    try:
        if args.command == "reconcile":
            checked = await engine.reconciler.reconcile_batch()
            print(f"Checked {checked} processing videos")
        elif args.command == "retry-all":
            recovered = await engine.retry.retry_all()
            print(f"Recovered {recovered} failed videos")
        elif args.command == "stuck":
            minutes = args.minutes or settings.stuck_threshold_minutes
            stuck = await engine.stuck.find_stuck(minutes)
            for video in stuck:
                print(f"{video.id}\t{video.status.value}\t{video.updated_at.isoformat()}\t{video.title}")
            print(f"{len(stuck)} videos stuck for more than {minutes} minutes")
    finally:
        await engine.aclose()
        await dispose_engines()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
