from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_maker.db.models import ResponseCacheEntry


async def get_entry(session: AsyncSession, collection: str, doc_id: str) -> ResponseCacheEntry | None:
    q = select(ResponseCacheEntry).where(
        ResponseCacheEntry.collection == collection,
        ResponseCacheEntry.id == doc_id,
    )
    return (await session.execute(q)).scalar_one_or_none()


async def upsert_entry(
    session: AsyncSession,
    collection: str,
    doc_id: str,
    key_parts: list[str],
    status: int,
    content_type: str,
    body: str,
    metadata: dict | None,
    fetched_at: datetime | None = None,
) -> None:
    entry = await get_entry(session, collection, doc_id)
    now = fetched_at or datetime.now(timezone.utc)

    if entry is None:
        session.add(
            ResponseCacheEntry(
                collection=collection,
                id=doc_id,
                key_parts=key_parts,
                status=status,
                content_type=content_type,
                body=body,
                metadata_json=metadata,
                fetched_at=now,
            )
        )
        await session.commit()
        return

    entry.key_parts = key_parts
    entry.status = status
    entry.content_type = content_type
    entry.body = body
    entry.metadata_json = metadata
    entry.fetched_at = now
    await session.commit()


async def purge_older_than(session: AsyncSession, collection: str, cutoff: datetime) -> int:
    res = await session.execute(
        delete(ResponseCacheEntry).where(
            ResponseCacheEntry.collection == collection,
            ResponseCacheEntry.fetched_at < cutoff,
        )
    )
    await session.commit()
    return res.rowcount or 0
