"""create lease engine tables

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:12:44.204113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(*values, name):
    return sa.Enum(*values, name=name, native_enum=False)


TRIGGERS = (
    "PAYMENT_REMINDER",
    "PAYMENT_LATE",
    "PAYMENT_CONFIRMED",
    "LEASE_EXPIRING",
    "LEASE_EXPIRED",
    "MANUAL",
)
CHANNELS = ("EMAIL", "WHATSAPP", "TELEGRAM")


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_properties_organization_id", "properties", ["organization_id"])
    op.create_index("ix_properties_name", "properties", ["name"])

    op.create_table(
        "units",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "property_id",
            sa.Uuid(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_unavailable", sa.Boolean(), nullable=True),
        sa.UniqueConstraint("property_id", "name", name="uq_unit_name"),
    )
    op.create_index("ix_units_property_id", "units", ["property_id"])

    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column(
            "status",
            _enum("LEAD", "BOOKED", "ACTIVE", "EXPIRED", name="tenantstatus"),
            nullable=True,
        ),
        sa.Column("prefer_email", sa.Boolean(), nullable=True),
        sa.Column("prefer_whatsapp", sa.Boolean(), nullable=True),
        sa.Column("prefer_telegram", sa.Boolean(), nullable=True),
        sa.UniqueConstraint("organization_id", "email", name="uq_tenant_org_email"),
    )
    op.create_index("ix_tenants_organization_id", "tenants", ["organization_id"])

    op.create_table(
        "lease_agreements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("unit_id", sa.Uuid(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column(
            "payment_cycle",
            _enum("DAILY", "MONTHLY", "ANNUAL", name="paymentcycle"),
            nullable=False,
        ),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("grace_period_days", sa.Integer(), nullable=True),
        sa.Column("is_auto_renew", sa.Boolean(), nullable=True),
        sa.Column("auto_renewal_notice_days", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            _enum("DRAFT", "ACTIVE", "ENDED", "CANCELLED", name="leasestatus"),
            nullable=False,
        ),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column(
            "renewed_from_id",
            sa.Uuid(),
            sa.ForeignKey("lease_agreements.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "renewed_to_id",
            sa.Uuid(),
            sa.ForeignKey("lease_agreements.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_lease_agreements_tenant_id", "lease_agreements", ["tenant_id"])
    op.create_index("ix_lease_unit_status", "lease_agreements", ["unit_id", "status"])
    op.create_index(
        "ix_lease_org_status", "lease_agreements", ["organization_id", "status"]
    )

    op.create_table(
        "notification_rules",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("trigger", _enum(*TRIGGERS, name="notificationtrigger"), nullable=False),
        sa.Column("days_offset", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column(
            "recipient_type", _enum("TENANT", "USER", name="recipienttype"), nullable=True
        ),
        sa.Column(
            "recipient_user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True
        ),
    )
    op.create_index(
        "ix_notification_rules_organization_id", "notification_rules", ["organization_id"]
    )
    op.create_index("ix_notification_rules_trigger", "notification_rules", ["trigger"])

    op.create_table(
        "notification_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("trigger", _enum(*TRIGGERS, name="notificationtrigger"), nullable=False),
        sa.Column("channel", _enum(*CHANNELS, name="notificationchannel"), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
    )
    op.create_index(
        "ix_notification_templates_organization_id",
        "notification_templates",
        ["organization_id"],
    )

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("trigger", _enum(*TRIGGERS, name="notificationtrigger"), nullable=False),
        sa.Column("channel", _enum(*CHANNELS, name="notificationchannel"), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "status",
            _enum("PENDING", "SENT", "FAILED", name="notificationstatus"),
            nullable=False,
        ),
        sa.Column("related_entity_id", sa.Uuid(), nullable=True),
        sa.Column("provider_message_id", sa.String(255), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("failed_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_notification_log_dedup",
        "notification_logs",
        ["organization_id", "trigger", "related_entity_id", "channel"],
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service",
            _enum("RESEND_EMAIL", "WHATSAPP_META", "TELEGRAM_BOT", name="apikeyservice"),
            nullable=False,
        ),
        sa.Column("encrypted_value", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("organization_id", "service", name="uq_api_key_service"),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column(
            "type",
            _enum(
                "TENANT_STATUS_CHANGED",
                "LEASE_CREATED",
                "LEASE_UPDATED",
                "LEASE_TERMINATED",
                "NOTIFICATION_SENT",
                name="activitytype",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("property_id", sa.Uuid(), nullable=True),
        sa.Column("unit_id", sa.Uuid(), nullable=True),
        sa.Column("lease_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_activities_organization_id", "activities", ["organization_id"])


def downgrade():
    op.drop_table("activities")
    op.drop_table("api_keys")
    op.drop_table("notification_logs")
    op.drop_table("notification_templates")
    op.drop_table("notification_rules")
    op.drop_table("lease_agreements")
    op.drop_table("tenants")
    op.drop_table("units")
    op.drop_table("properties")
    op.drop_table("users")
    op.drop_table("organizations")
