from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_maker.db.models import PreferenceDocument


async def get_preference_document(session: AsyncSession, user_id: str, domain: str) -> PreferenceDocument | None:
    q = select(PreferenceDocument).where(
        PreferenceDocument.user_id == user_id,
        PreferenceDocument.domain == domain,
    )
    return (await session.execute(q)).scalar_one_or_none()


async def load_preferences(session: AsyncSession, user_id: str, domain: str) -> dict:
    doc = await get_preference_document(session, user_id, domain)
    if doc is None or not isinstance(doc.prefs_json, dict):
        return {}
    return dict(doc.prefs_json)


async def save_preferences(session: AsyncSession, user_id: str, domain: str, prefs: dict) -> None:
    doc = await get_preference_document(session, user_id, domain)
    now = datetime.now(timezone.utc)

    if doc is None:
        session.add(PreferenceDocument(user_id=user_id, domain=domain, prefs_json=prefs, updated_at=now))
        await session.commit()
        return

    doc.prefs_json = prefs
    doc.updated_at = now
    await session.commit()
