"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates:
- file (uploaded documents, written by the upload service)
- message (chat history per file)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create file and message tables."""
    op.create_table(
        "file",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("upload_status", sa.Text(), server_default="PENDING", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("key", name="uq_file_key"),
        sa.CheckConstraint(
            "upload_status IN ('PENDING', 'PROCESSING', 'SUCCESS', 'FAILED')",
            name="ck_file_upload_status",
        ),
    )
    op.create_index("idx_file_user_created", "file", ["user_id", "created_at"])

    op.create_table(
        "message",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("file_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("is_user_message", sa.Boolean(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["file_id"], ["file.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_message_file_created", "message", ["file_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_message_file_created", table_name="message")
    op.drop_table("message")
    op.drop_index("idx_file_user_created", table_name="file")
    op.drop_table("file")
