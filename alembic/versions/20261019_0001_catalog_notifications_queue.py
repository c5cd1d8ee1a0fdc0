"""Create catalog entries, notifications and local queue tables."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entries",
        sa.Column("entry_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("parent_id", sa.String(), nullable=False, server_default="null"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("original_filename", sa.String(), nullable=True),
        sa.Column("filesize", sa.String(), nullable=True),
        sa.Column("download_url", sa.String(), nullable=True),
        sa.Column("created_date", sa.String(), nullable=False),
        sa.Column("modified_date", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("entry_id", "kind", name="pk_entries"),
    )
    op.create_index("idx_entries_parent", "entries", ["parent_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_date", sa.String(), nullable=False),
        sa.Column("attributes_json", sa.Text(), nullable=False, server_default="{}"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id"], unique=False)

    op.create_table(
        "queue_messages",
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("queue_name", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("receipt_handle", sa.String(), nullable=True),
        sa.Column("receive_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("visible_after", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("message_id"),
    )
    op.create_index(
        "idx_queue_messages_queue_visible",
        "queue_messages",
        ["queue_name", "visible_after"],
        unique=False,
    )
    op.create_index(
        "idx_queue_messages_receipt",
        "queue_messages",
        ["receipt_handle"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("idx_queue_messages_receipt", table_name="queue_messages")
    op.drop_index("idx_queue_messages_queue_visible", table_name="queue_messages")
    op.drop_table("queue_messages")
    op.drop_index("idx_notifications_user", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_entries_parent", table_name="entries")
    op.drop_table("entries")
