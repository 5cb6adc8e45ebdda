#!/usr/bin/env python3
"""
Seed the memory pool from a text file (one memory per line).

Usage:
    python scripts/seed_memory_pool.py memories.txt
    python scripts/seed_memory_pool.py memories.txt --create-tables
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from app.database import AsyncSessionLocal, create_tables, engine
from app.services.deck_generator import RECOMMENDED_POOL_RATIO
from app.config import settings
from app.services.memory_pool import seed_memory_pool

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Backup Deathmatch memory pool seeder")
    parser.add_argument("source", type=Path, help="File with one memory per line")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (local SQLite databases)",
    )
    return parser.parse_args()


async def run(source: Path, create: bool) -> int:
    if create:
        await create_tables()

    memories = source.read_text(encoding="utf-8").splitlines()
    async with AsyncSessionLocal() as db:
        added = await seed_memory_pool(db, memories)
    await engine.dispose()
    return added


def main():
    args = parse_args()
    if not args.source.is_file():
        logger.error("Source file not found: %s", args.source)
        sys.exit(1)

    added = asyncio.run(run(args.source, args.create_tables))
    logger.info("Added %d memories from %s", added, args.source)

    recommended = settings.game.total_cards * RECOMMENDED_POOL_RATIO
    if added < recommended:
        logger.info("Tip: at least %d memories keep consecutive matches varied", recommended)


if __name__ == "__main__":
    main()
