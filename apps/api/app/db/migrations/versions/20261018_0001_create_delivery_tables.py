"""create carriers, delivery_notes, delivery_items, delivery_events

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

carrier_provider = sa.Enum("DHL", "UPS", "GLS", "GENERIC", name="carrier_provider")
delivery_status = sa.Enum(
    "PENDING",
    "DISPATCHED",
    "IN_TRANSIT",
    "DELIVERED",
    "RETURNED",
    "CANCELED",
    name="delivery_status",
)
delivery_event_type = sa.Enum(
    "CREATED",
    "DISPATCHED",
    "IN_TRANSIT",
    "DELIVERED",
    "RETURNED",
    "CANCELED",
    name="delivery_event_type",
)


def upgrade() -> None:
    op.create_table(
        "carriers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("api_endpoint", sa.String(length=1024), nullable=False),
        sa.Column("tracking_url_template", sa.String(length=1024), nullable=False),
        sa.Column("api_key", sa.String(length=512), nullable=True),
        sa.Column("api_secret", sa.String(length=512), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("provider", carrier_provider, nullable=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_carriers_tenant_id"), "carriers", ["tenant_id"], unique=False)

    op.create_table(
        "delivery_notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("delivery_number", sa.String(length=32), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("delivery_address_id", sa.String(length=64), nullable=False),
        sa.Column("status", delivery_status, nullable=False),
        sa.Column("carrier_id", sa.Uuid(), nullable=True),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("proof_of_delivery_url", sa.String(length=1024), nullable=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["carrier_id"], ["carriers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_delivery_notes_delivery_number"),
        "delivery_notes",
        ["delivery_number"],
        unique=True,
    )
    op.create_index(op.f("ix_delivery_notes_order_id"), "delivery_notes", ["order_id"], unique=False)
    op.create_index(
        op.f("ix_delivery_notes_customer_id"), "delivery_notes", ["customer_id"], unique=False
    )
    op.create_index(
        op.f("ix_delivery_notes_carrier_id"), "delivery_notes", ["carrier_id"], unique=False
    )
    op.create_index(op.f("ix_delivery_notes_tenant_id"), "delivery_notes", ["tenant_id"], unique=False)

    op.create_table(
        "delivery_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("delivery_note_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["delivery_note_id"], ["delivery_notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_delivery_items_delivery_note_id"),
        "delivery_items",
        ["delivery_note_id"],
        unique=False,
    )

    op.create_table(
        "delivery_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("delivery_note_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", delivery_event_type, nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["delivery_note_id"], ["delivery_notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_delivery_events_delivery_note_id"),
        "delivery_events",
        ["delivery_note_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_delivery_events_tenant_id"), "delivery_events", ["tenant_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_delivery_events_tenant_id"), table_name="delivery_events")
    op.drop_index(op.f("ix_delivery_events_delivery_note_id"), table_name="delivery_events")
    op.drop_table("delivery_events")

    op.drop_index(op.f("ix_delivery_items_delivery_note_id"), table_name="delivery_items")
    op.drop_table("delivery_items")

    op.drop_index(op.f("ix_delivery_notes_tenant_id"), table_name="delivery_notes")
    op.drop_index(op.f("ix_delivery_notes_carrier_id"), table_name="delivery_notes")
    op.drop_index(op.f("ix_delivery_notes_customer_id"), table_name="delivery_notes")
    op.drop_index(op.f("ix_delivery_notes_order_id"), table_name="delivery_notes")
    op.drop_index(op.f("ix_delivery_notes_delivery_number"), table_name="delivery_notes")
    op.drop_table("delivery_notes")

    op.drop_index(op.f("ix_carriers_tenant_id"), table_name="carriers")
    op.drop_table("carriers")

    bind = op.get_bind()
    delivery_event_type.drop(bind, checkfirst=True)
    delivery_status.drop(bind, checkfirst=True)
    carrier_provider.drop(bind, checkfirst=True)
