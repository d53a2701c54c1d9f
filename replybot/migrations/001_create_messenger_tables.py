"""Create the tenant, catalogue, conversation and message tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001_create_messenger_tables"
down_revision = None
branch_labels = None
depends_on = None


_UUID = postgresql.UUID(as_uuid=True)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    """Create the four core tables and the indexes the pipeline relies on."""

    op.create_table(
        "businesses",
        sa.Column(
            "id",
            _UUID,
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "bot_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("opening_hours", postgresql.JSONB(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("facebook_page_id", sa.String(length=64), nullable=True),
        sa.Column("facebook_access_token", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index(
        "ux_businesses_facebook_page_id",
        "businesses",
        ["facebook_page_id"],
        unique=True,
        postgresql_where=sa.text("facebook_page_id IS NOT NULL"),
    )

    op.create_table(
        "products",
        sa.Column(
            "id",
            _UUID,
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "tenant_id",
            _UUID,
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "currency",
            sa.String(length=3),
            nullable=False,
            server_default=sa.text("'USD'"),
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        _timestamp("created_at"),
        sa.CheckConstraint("currency IN ('USD', 'KHR')", name="ck_products_currency"),
    )
    op.create_index("ix_products_tenant_id", "products", ["tenant_id"])

    op.create_table(
        "conversations",
        sa.Column(
            "id",
            _UUID,
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "tenant_id",
            _UUID,
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("facebook_sender_id", sa.String(length=64), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default=sa.text("'active'"),
        ),
        sa.Column("handover_reason", sa.String(length=32), nullable=True),
        _timestamp("last_message_at"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint(
            "tenant_id", "facebook_sender_id", name="ux_conversations_tenant_sender"
        ),
        sa.CheckConstraint(
            "status IN ('active', 'bot_handled', 'needs_attention', 'owner_handled')",
            name="ck_conversations_status",
        ),
    )
    op.create_index(
        "ix_conversations_tenant_customer",
        "conversations",
        ["tenant_id", "customer_id"],
    )

    op.create_table(
        "messages",
        sa.Column(
            "id",
            _UUID,
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "tenant_id",
            _UUID,
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "conversation_id",
            _UUID,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("facebook_message_id", sa.String(length=255), nullable=True),
        sa.Column(
            "is_handover_trigger",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("handover_reason", sa.String(length=32), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "sender_type IN ('customer', 'bot', 'owner')",
            name="ck_messages_sender_type",
        ),
    )
    op.create_index(
        "ux_messages_facebook_message_id",
        "messages",
        ["facebook_message_id"],
        unique=True,
        postgresql_where=sa.text("facebook_message_id IS NOT NULL"),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])


def downgrade() -> None:
    """Drop the tables created in :func:`upgrade`."""

    op.drop_index("ix_messages_conversation_id", table_name="messages")
    op.drop_index("ux_messages_facebook_message_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_tenant_customer", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("ix_products_tenant_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ux_businesses_facebook_page_id", table_name="businesses")
    op.drop_table("businesses")
