"""create identity, exchange and contact tables

Revision ID: 4b1e7c2d9a10
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b1e7c2d9a10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "identity_user",
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        sa.Column(
            "role",
            sa.Enum("REGULAR", "ADMIN", name="userrole", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_identity_user_email"), "identity_user", ["email"], unique=True)
    op.create_index(op.f("ix_identity_user_role"), "identity_user", ["role"])

    op.create_table(
        "exchange_currency",
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("symbol", sa.String(length=10), nullable=False),
        sa.Column("rate_to_usd", sa.Numeric(precision=24, scale=12), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_exchange_currency_code"), "exchange_currency", ["code"], unique=True
    )
    op.create_index(op.f("ix_exchange_currency_is_active"), "exchange_currency", ["is_active"])

    op.create_table(
        "exchange_rate_history",
        sa.Column("currency_id", sa.Uuid(), nullable=False),
        sa.Column("currency_code", sa.String(length=10), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("previous_rate", sa.Numeric(precision=24, scale=12), nullable=True),
        sa.Column("new_rate", sa.Numeric(precision=24, scale=12), nullable=False),
        sa.Column("changed_by", sa.Uuid(), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["currency_id"], ["exchange_currency.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "currency_id", "sequence", name="uq_rate_history_currency_sequence"
        ),
    )
    op.create_index(
        op.f("ix_exchange_rate_history_currency_id"), "exchange_rate_history", ["currency_id"]
    )
    op.create_index(
        op.f("ix_exchange_rate_history_currency_code"), "exchange_rate_history", ["currency_code"]
    )
    op.create_index(
        op.f("ix_exchange_rate_history_changed_by"), "exchange_rate_history", ["changed_by"]
    )

    op.create_table(
        "contact_message",
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_contact_message_email"), "contact_message", ["email"])
    op.create_index(op.f("ix_contact_message_created_at"), "contact_message", ["created_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_contact_message_created_at"), table_name="contact_message")
    op.drop_index(op.f("ix_contact_message_email"), table_name="contact_message")
    op.drop_table("contact_message")
    op.drop_index(op.f("ix_exchange_rate_history_changed_by"), table_name="exchange_rate_history")
    op.drop_index(
        op.f("ix_exchange_rate_history_currency_code"), table_name="exchange_rate_history"
    )
    op.drop_index(op.f("ix_exchange_rate_history_currency_id"), table_name="exchange_rate_history")
    op.drop_table("exchange_rate_history")
    op.drop_index(op.f("ix_exchange_currency_is_active"), table_name="exchange_currency")
    op.drop_index(op.f("ix_exchange_currency_code"), table_name="exchange_currency")
    op.drop_table("exchange_currency")
    op.drop_index(op.f("ix_identity_user_role"), table_name="identity_user")
    op.drop_index(op.f("ix_identity_user_email"), table_name="identity_user")
    op.drop_table("identity_user")
