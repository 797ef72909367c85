"""create response cache and preference documents

Revision ID: 5b2e7c1d9a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '5b2e7c1d9a40'
down_revision = None
branch_labels = None
depends_on = None

JsonType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "response_cache",
        sa.Column("collection", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=1024), nullable=False),
        sa.Column("key_parts", JsonType, nullable=False),
        sa.Column("status", sa.Integer(), server_default="200", nullable=False),
        sa.Column("content_type", sa.String(length=128), server_default="application/json", nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("metadata", JsonType, nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("collection", "id"),
    )
    op.create_index("ix_response_cache_fetched", "response_cache", ["collection", "fetched_at"])

    op.create_table(
        "preference_documents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("domain", sa.String(length=32), nullable=False),
        sa.Column("prefs_json", JsonType, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "domain", name="uq_preference_user_domain"),
    )
    op.create_index("ix_preference_documents_user_id", "preference_documents", ["user_id"])


def downgrade():
    op.drop_index("ix_preference_documents_user_id", table_name="preference_documents")
    op.drop_table("preference_documents")
    op.drop_index("ix_response_cache_fetched", table_name="response_cache")
    op.drop_table("response_cache")
