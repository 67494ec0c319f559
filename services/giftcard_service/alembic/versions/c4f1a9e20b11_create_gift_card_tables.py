"""create_gift_card_tables

Revision ID: c4f1a9e20b11
Revises:
Create Date: 2026-10-18 09:12:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "c4f1a9e20b11"
down_revision = None
branch_labels = None
depends_on = None


gift_card_status_enum = postgresql.ENUM(
    "active",
    "redeemed",
    "suspended",
    "cancelled",
    "expired",
    name="gift_card_status_enum",
    create_type=False,
)
issuer_type_enum = postgresql.ENUM(
    "booking_agent",
    "admin_agent",
    "platform",
    name="gift_card_issuer_type_enum",
    create_type=False,
)
recipient_type_enum = postgresql.ENUM(
    "user",
    "venue",
    "studio",
    "band",
    name="gift_card_recipient_type_enum",
    create_type=False,
)
transaction_type_enum = postgresql.ENUM(
    "purchase",
    "award",
    "redeem",
    "admin_edit",
    name="gift_card_transaction_type_enum",
    create_type=False,
)
audit_action_enum = postgresql.ENUM(
    "suspend",
    "unsuspend",
    "cancel",
    "edit_allocation",
    "update_notes",
    "set_monthly_limit",
    name="gift_card_audit_action_enum",
    create_type=False,
)

ALL_ENUMS = (
    gift_card_status_enum,
    issuer_type_enum,
    recipient_type_enum,
    transaction_type_enum,
    audit_action_enum,
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "gift_cards",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("face_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("remaining_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", gift_card_status_enum, nullable=False),
        sa.Column("issuer_id", sa.String(), nullable=False),
        sa.Column("issuer_type", issuer_type_enum, nullable=False),
        sa.Column("purchase_payment_method", sa.String(), nullable=True),
        sa.Column("purchase_reference", sa.String(), nullable=True),
        sa.Column("recipient_id", sa.String(), nullable=True),
        sa.Column("recipient_type", recipient_type_enum, nullable=True),
        sa.Column("recipient_email", sa.String(), nullable=True),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("awarded_by", sa.String(), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_by", sa.String(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_by", sa.String(), nullable=True),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("face_amount_cents > 0", name="ck_gift_card_face_positive"),
        sa.CheckConstraint(
            "remaining_balance_cents >= 0", name="ck_gift_card_remaining_non_negative"
        ),
        sa.CheckConstraint(
            "remaining_balance_cents <= face_amount_cents",
            name="ck_gift_card_remaining_lte_face",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_gift_cards_code", "gift_cards", ["code"], unique=True)
    op.create_index("ix_gift_cards_status", "gift_cards", ["status"])
    op.create_index("ix_gift_cards_issuer_id", "gift_cards", ["issuer_id"])
    op.create_index("ix_gift_cards_recipient_id", "gift_cards", ["recipient_id"])
    op.create_index(
        "ix_gift_cards_issuer_issued", "gift_cards", ["issuer_id", "issued_at"]
    )

    op.create_table(
        "gift_card_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("gift_card_id", sa.Uuid(), nullable=False),
        sa.Column("transaction_type", transaction_type_enum, nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("balance_before_cents", sa.BigInteger(), nullable=False),
        sa.Column("balance_after_cents", sa.BigInteger(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=False),
        sa.Column("service_type", sa.String(), nullable=True),
        sa.Column("service_reference", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column(
            "entry_metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_gift_card_txn_amount_non_negative"
        ),
        sa.ForeignKeyConstraint(["gift_card_id"], ["gift_cards.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_gift_card_transactions_gift_card_id",
        "gift_card_transactions",
        ["gift_card_id"],
    )
    op.create_index(
        "ix_gift_card_transactions_actor_id", "gift_card_transactions", ["actor_id"]
    )
    op.create_index(
        "ix_gift_card_transactions_idempotency_key",
        "gift_card_transactions",
        ["idempotency_key"],
        unique=True,
    )
    op.create_index(
        "ix_gift_card_transactions_card_created",
        "gift_card_transactions",
        ["gift_card_id", "created_at"],
    )

    op.create_table(
        "gift_card_issuance_limits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("agent_id", sa.String(), nullable=False),
        sa.Column("monthly_limit_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "monthly_limit_cents >= 0", name="ck_issuance_limit_non_negative"
        ),
        sa.UniqueConstraint("agent_id", "currency", name="uq_issuance_limit_agent_currency"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_gift_card_issuance_limits_agent_id",
        "gift_card_issuance_limits",
        ["agent_id"],
    )

    op.create_table(
        "gift_card_audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("gift_card_id", sa.Uuid(), nullable=True),
        sa.Column("action", audit_action_enum, nullable=False),
        sa.Column("performed_by", sa.String(), nullable=False),
        sa.Column("old_value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("new_value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_gift_card_audit_logs_gift_card_id", "gift_card_audit_logs", ["gift_card_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_gift_card_audit_logs_gift_card_id", table_name="gift_card_audit_logs")
    op.drop_table("gift_card_audit_logs")
    op.drop_index(
        "ix_gift_card_issuance_limits_agent_id", table_name="gift_card_issuance_limits"
    )
    op.drop_table("gift_card_issuance_limits")
    for index_name in (
        "ix_gift_card_transactions_card_created",
        "ix_gift_card_transactions_idempotency_key",
        "ix_gift_card_transactions_actor_id",
        "ix_gift_card_transactions_gift_card_id",
    ):
        op.drop_index(index_name, table_name="gift_card_transactions")
    op.drop_table("gift_card_transactions")
    for index_name in (
        "ix_gift_cards_issuer_issued",
        "ix_gift_cards_recipient_id",
        "ix_gift_cards_issuer_id",
        "ix_gift_cards_status",
        "ix_gift_cards_code",
    ):
        op.drop_index(index_name, table_name="gift_cards")
    op.drop_table("gift_cards")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
