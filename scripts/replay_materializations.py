#!/usr/bin/env python3
"""Retry quiz materialization for sessions in the dead-letter table.

Usage:
    python scripts/replay_materializations.py [--limit N]

Reads DATABASE_PATH / DATABASE_URL from .env like the server does. Entries
whose session already has a quiz are marked resolved without rebuilding it.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from adaptive_quiz.db.database import close_db, get_db  # noqa: E402
from adaptive_quiz.services.materializer import replay_failed_materializations  # noqa: E402

logger = logging.getLogger("replay_materializations")


async def replay(limit: int) -> dict:
    connections = get_db()
    db = await connections.__anext__()
    try:
        return await replay_failed_materializations(db, limit=limit)
    finally:
        await connections.aclose()
        await close_db()


def main():
    parser = argparse.ArgumentParser(
        description="Retry failed adaptive quiz materializations"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of dead-letter entries to process (default: 100)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s [%(name)s] %(message)s")

    result = asyncio.run(replay(args.limit))
    logger.info("Replay finished: %d resolved, %d still failing", result["resolved"], result["failed"])
    sys.exit(1 if result["failed"] else 0)


if __name__ == "__main__":
    main()
