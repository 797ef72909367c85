from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone

from decision_maker.core.constants import (
    EVENTBRITE_CACHE_COLLECTION,
    EVENTBRITE_CACHE_TTL_SECONDS,
    SPOONACULAR_CACHE_COLLECTION,
    SPOONACULAR_CACHE_TTL_SECONDS,
    TMDB_CACHE_COLLECTION,
    TMDB_CACHE_TTL_SECONDS,
    YELP_CACHE_COLLECTION,
    YELP_CACHE_TTL_SECONDS,
)
from decision_maker.db.repositories.response_cache import purge_older_than
from decision_maker.db.session import dispose_engine
from decision_maker.db.utils import get_session

COLLECTION_TTLS = {
    EVENTBRITE_CACHE_COLLECTION: EVENTBRITE_CACHE_TTL_SECONDS,
    SPOONACULAR_CACHE_COLLECTION: SPOONACULAR_CACHE_TTL_SECONDS,
    TMDB_CACHE_COLLECTION: TMDB_CACHE_TTL_SECONDS,
    YELP_CACHE_COLLECTION: YELP_CACHE_TTL_SECONDS,
}


def parse_args():
    p = argparse.ArgumentParser(description="Delete expired response cache documents")
    p.add_argument("--collection", choices=sorted(COLLECTION_TTLS), help="only purge this collection")
    p.add_argument("--dry-run", action="store_true")
    return p.parse_args()


async def purge(collections: list[str], now: datetime | None = None) -> dict[str, int]:
    now = now or datetime.now(timezone.utc)
    removed: dict[str, int] = {}
    async with get_session() as session:
        for collection in collections:
            cutoff = now - timedelta(seconds=COLLECTION_TTLS[collection])
            removed[collection] = await purge_older_than(session, collection, cutoff)
    return removed


async def main():
    args = parse_args()
    collections = [args.collection] if args.collection else sorted(COLLECTION_TTLS)

    if args.dry_run:
        for collection in collections:
            print(f"{collection}: entries older than {COLLECTION_TTLS[collection]}s would be deleted")
        return

    try:
        removed = await purge(collections)
    finally:
        await dispose_engine()

    for collection, count in removed.items():
        print(f"{collection}: deleted {count}")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
