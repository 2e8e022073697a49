"""booking_core

Revision ID: b7c41e9d2f10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7c41e9d2f10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "listings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("host_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("base_guests", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("extra_guest_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("max_guests", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_listings_host_id", "listings", ["host_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("listing_id", sa.Uuid(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guest_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("payment_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("check_out > check_in", name="ck_bookings_range"),
        sa.CheckConstraint("guests >= 1", name="ck_bookings_guests"),
    )
    op.create_index("ix_bookings_listing_id", "bookings", ["listing_id"])
    op.create_index("ix_bookings_guest_id", "bookings", ["guest_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_listing_dates", "bookings", ["listing_id", "check_in", "check_out"])

    # No two active bookings on one listing may overlap. daterange() is
    # half-open by default ('[)'), matching check-in inclusive / check-out exclusive.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute("""
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_no_overlap
        EXCLUDE USING gist (
            listing_id WITH =,
            daterange(check_in, check_out) WITH &&
        )
        WHERE (status IN ('pending', 'confirmed'))
    """)

    op.create_table(
        "reconciliation_failures",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("payment_session_id", sa.String(255), nullable=False, unique=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("listing_id", sa.Uuid(), nullable=True),
        sa.Column("guest_id", sa.Uuid(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=True),
        sa.Column("check_out", sa.Date(), nullable=True),
        sa.Column("guests", sa.Integer(), nullable=True),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_reconciliation_failures_listing_id", "reconciliation_failures", ["listing_id"])


def downgrade() -> None:
    op.drop_index("ix_reconciliation_failures_listing_id", table_name="reconciliation_failures")
    op.drop_table("reconciliation_failures")
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_no_overlap")
    op.drop_index("ix_bookings_listing_dates", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_guest_id", table_name="bookings")
    op.drop_index("ix_bookings_listing_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_listings_host_id", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
