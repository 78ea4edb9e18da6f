"""init inquiry tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001_init_inquiries"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    # Stored as VARCHAR on every dialect so new states never need ALTER TYPE.
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=False)


def upgrade() -> None:
    inquiry_status = _enum("pending", "replied", "closed", "deleted", name="inquirystatus")
    moderation_status = _enum("pending", "approved", "rejected", name="moderationstatus")
    role_name = _enum("buyer", "supplier", "admin", name="rolename")

    op.create_table(
        "inquiries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("buyer_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", inquiry_status, nullable=False, server_default="pending"),
        sa.Column("status_before_delete", inquiry_status, nullable=True),
        sa.Column("supplier_reply", sa.Text(), nullable=True),
        sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("buyer_reply", sa.Text(), nullable=True),
        sa.Column("buyer_replied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "moderation_status", moderation_status, nullable=False, server_default="pending"
        ),
        sa.Column("moderated_by", sa.Integer(), nullable=True),
        sa.Column("moderated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("closed_by", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "(supplier_reply IS NULL) = (replied_at IS NULL)",
            name="ck_inquiries_supplier_reply_timestamp",
        ),
        sa.CheckConstraint(
            "(buyer_reply IS NULL) = (buyer_replied_at IS NULL)",
            name="ck_inquiries_buyer_reply_timestamp",
        ),
        sa.CheckConstraint(
            "buyer_reply IS NULL OR supplier_reply IS NOT NULL",
            name="ck_inquiries_buyer_reply_after_supplier",
        ),
        sa.CheckConstraint("quantity > 0", name="ck_inquiries_quantity_positive"),
    )
    op.create_index("ix_inquiries_buyer_id", "inquiries", ["buyer_id"])
    op.create_index("ix_inquiries_supplier_id", "inquiries", ["supplier_id"])
    op.create_index("ix_inquiries_product_id", "inquiries", ["product_id"])
    op.create_index("ix_inquiries_status", "inquiries", ["status"])
    op.create_index("ix_inquiries_moderation_status", "inquiries", ["moderation_status"])
    op.create_index("ix_inquiries_created_at", "inquiries", ["created_at"])
    op.create_index("ix_inquiries_buyer_created", "inquiries", ["buyer_id", "created_at"])
    op.create_index("ix_inquiries_supplier_created", "inquiries", ["supplier_id", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column("recipient_role", role_name, nullable=False),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("inquiry_id", sa.Integer(), sa.ForeignKey("inquiries.id"), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_notifications_kind", "notifications", ["kind"])
    op.create_index("ix_notifications_inquiry_id", "notifications", ["inquiry_id"])
    op.create_index(
        "ix_notifications_recipient",
        "notifications",
        ["recipient_role", "recipient_id", "is_read"],
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(length=32), nullable=True),
        sa.Column("inquiry_id", sa.Integer(), sa.ForeignKey("inquiries.id"), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_inquiry_id", "audit_logs", ["inquiry_id"])
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("inquiries")
