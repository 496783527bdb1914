from enum import Enum


class PaymentCycle(str, Enum):
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


class LeaseStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"


class TenantStatus(str, Enum):
    LEAD = "LEAD"
    BOOKED = "BOOKED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class NotificationTrigger(str, Enum):
    PAYMENT_REMINDER = "PAYMENT_REMINDER"
    PAYMENT_LATE = "PAYMENT_LATE"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    LEASE_EXPIRING = "LEASE_EXPIRING"
    LEASE_EXPIRED = "LEASE_EXPIRED"
    MANUAL = "MANUAL"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    TELEGRAM = "TELEGRAM"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class RecipientType(str, Enum):
    TENANT = "TENANT"
    USER = "USER"


class ApiKeyService(str, Enum):
    RESEND_EMAIL = "RESEND_EMAIL"
    WHATSAPP_META = "WHATSAPP_META"
    TELEGRAM_BOT = "TELEGRAM_BOT"


class ActivityType(str, Enum):
    TENANT_STATUS_CHANGED = "TENANT_STATUS_CHANGED"
    LEASE_CREATED = "LEASE_CREATED"
    LEASE_UPDATED = "LEASE_UPDATED"
    LEASE_TERMINATED = "LEASE_TERMINATED"
    NOTIFICATION_SENT = "NOTIFICATION_SENT"


# Triggers evaluated on every scheduler tick, in processing order.
SCHEDULED_TRIGGERS = (
    NotificationTrigger.PAYMENT_REMINDER,
    NotificationTrigger.PAYMENT_LATE,
    NotificationTrigger.LEASE_EXPIRING,
)

EVENT_TRIGGERS = (
    NotificationTrigger.PAYMENT_CONFIRMED,
    NotificationTrigger.LEASE_EXPIRED,
)

OCCUPYING_STATUSES = (LeaseStatus.DRAFT, LeaseStatus.ACTIVE)

LEASE_TRANSITIONS = {
    LeaseStatus.DRAFT: {LeaseStatus.ACTIVE, LeaseStatus.CANCELLED},
    LeaseStatus.ACTIVE: {LeaseStatus.ENDED, LeaseStatus.CANCELLED},
    LeaseStatus.ENDED: set(),
    LeaseStatus.CANCELLED: set(),
}

CHANNEL_API_KEY_SERVICE = {
    NotificationChannel.EMAIL: ApiKeyService.RESEND_EMAIL,
    NotificationChannel.WHATSAPP: ApiKeyService.WHATSAPP_META,
    NotificationChannel.TELEGRAM: ApiKeyService.TELEGRAM_BOT,
}
