from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from decision_maker.db.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class ResponseCacheEntry(Base):
    __tablename__ = "response_cache"

    # collection + base64url cache id
    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(1024), primary_key=True)

    key_parts: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    status: Mapped[int] = mapped_column(Integer, nullable=False, server_default="200")
    content_type: Mapped[str] = mapped_column(String(128), nullable=False, server_default="application/json")
    body: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[Optional[dict]] = mapped_column("metadata", JsonType, nullable=True)

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_response_cache_fetched", "collection", "fetched_at"),
    )


class PreferenceDocument(Base):
    __tablename__ = "preference_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # comedy / shows / movies
    domain: Mapped[str] = mapped_column(String(32), nullable=False)
    prefs_json: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "domain", name="uq_preference_user_domain"),
    )
