import uuid
from collections import Counter
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from core.errors import TransactionError
from models.enums import LeaseStatus, NotificationStatus, PaymentCycle, RecipientType
from schemas.schema import ChannelResult

ORG_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")


def make_property(name="Sunset Court", organization_id=ORG_ID):
    return SimpleNamespace(id=uuid.uuid4(), organization_id=organization_id, name=name)


def make_unit(name="A1", prop=None, is_unavailable=False):
    prop = prop or make_property()
    return SimpleNamespace(
        id=uuid.uuid4(),
        property_id=prop.id,
        property=prop,
        name=name,
        is_unavailable=is_unavailable,
    )


def make_tenant(email="ada@example.com", full_name="Ada Obi", **overrides):
    data = dict(
        id=uuid.uuid4(),
        organization_id=ORG_ID,
        full_name=full_name,
        email=email,
        phone=None,
        prefer_email=True,
        prefer_whatsapp=False,
        prefer_telegram=False,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def make_lease(**overrides):
    tenant = overrides.pop("tenant", None) or make_tenant()
    unit = overrides.pop("unit", None) or make_unit()
    data = dict(
        id=uuid.uuid4(),
        organization_id=ORG_ID,
        tenant_id=tenant.id,
        tenant=tenant,
        unit_id=unit.id,
        unit=unit,
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 12, 31),
        payment_cycle=PaymentCycle.MONTHLY,
        rent_amount=Decimal("1200.00"),
        deposit_amount=Decimal("0"),
        grace_period_days=0,
        is_auto_renew=False,
        auto_renewal_notice_days=None,
        status=LeaseStatus.ACTIVE,
        paid_at=None,
        renewed_from_id=None,
        renewed_to_id=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def make_rule(trigger, days_offset=0, recipient_type=RecipientType.TENANT, **overrides):
    data = dict(
        id=uuid.uuid4(),
        organization_id=ORG_ID,
        name=f"{trigger.value.lower()} rule",
        trigger=trigger,
        days_offset=days_offset,
        is_active=True,
        recipient_type=recipient_type,
        recipient_user=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class FakeLeaseRepo:
    def __init__(self, leases=()):
        self.leases = {lease.id: lease for lease in leases}
        self.calls = Counter()
        self.created = []
        self.fail_renewal_for = set()
        self.fail_create_when = None

    async def get_with_details(self, lease_id, organization_id=None):
        self.calls["get_with_details"] += 1
        lease = self.leases.get(lease_id)
        if lease and organization_id and lease.organization_id != organization_id:
            return None
        return lease

    def _occupying(self, unit_ids):
        return [
            lease
            for lease in self.leases.values()
            if lease.unit_id in unit_ids
            and lease.status in (LeaseStatus.DRAFT, LeaseStatus.ACTIVE)
        ]

    async def get_occupying_for_unit(self, unit_id, exclude_lease_id=None, organization_id=None):
        self.calls["get_occupying_for_unit"] += 1
        return [
            l
            for l in self._occupying({unit_id})
            if l.id != exclude_lease_id
            and (organization_id is None or l.unit.property.organization_id == organization_id)
        ]

    async def get_occupying_for_units(self, unit_ids, organization_id=None):
        self.calls["get_occupying_for_units"] += 1
        return self._occupying(set(unit_ids))

    async def has_future_lease(self, lease):
        return any(
            other.start_date > lease.end_date
            for other in self._occupying({lease.unit_id})
            if other.id != lease.id
        )

    async def get_auto_renew_candidates(self, organization_id=None):
        return sorted(
            (
                lease
                for lease in self.leases.values()
                if lease.is_auto_renew
                and lease.status == LeaseStatus.ACTIVE
                and lease.auto_renewal_notice_days is not None
                and lease.renewed_to_id is None
            ),
            key=lambda lease: lease.end_date,
        )

    async def create_renewal(self, original, start_date, end_date):
        if original.id in self.fail_renewal_for:
            raise TransactionError(f"Renewal of lease {original.id} failed: boom")
        renewal = make_lease(
            tenant=original.tenant,
            unit=original.unit,
            start_date=start_date,
            end_date=end_date,
            payment_cycle=original.payment_cycle,
            is_auto_renew=original.is_auto_renew,
            auto_renewal_notice_days=original.auto_renewal_notice_days,
            status=LeaseStatus.DRAFT,
            renewed_from_id=original.id,
        )
        self.leases[renewal.id] = renewal
        original.status = LeaseStatus.ENDED
        original.renewed_to_id = renewal.id
        return renewal

    async def create(self, lease_data):
        if self.fail_create_when and self.fail_create_when(lease_data):
            raise TransactionError("insert rejected")
        lease = SimpleNamespace(id=uuid.uuid4(), **lease_data)
        self.leases[lease.id] = lease
        self.created.append(lease)
        return lease

    async def update_status(self, lease, status):
        lease.status = status
        return lease

    async def get_unpaid_active_starting_between(self, organization_id, start, end):
        return [
            lease
            for lease in self.leases.values()
            if lease.organization_id == organization_id
            and lease.status == LeaseStatus.ACTIVE
            and lease.paid_at is None
            and start <= lease.start_date < end
        ]

    async def get_active_ending_between(self, organization_id, start, end):
        return [
            lease
            for lease in self.leases.values()
            if lease.organization_id == organization_id
            and lease.status == LeaseStatus.ACTIVE
            and start <= lease.end_date < end
        ]

    async def get_overdue_drafts(self, organization_id, now):
        return [
            lease
            for lease in self.leases.values()
            if lease.organization_id == organization_id
            and lease.status == LeaseStatus.DRAFT
            and lease.paid_at is None
            and lease.start_date < now
        ]

    async def get_expired_active(self, now):
        return [
            lease
            for lease in self.leases.values()
            if lease.status == LeaseStatus.ACTIVE and lease.end_date < now
        ]

    async def get_unpaid_drafts_with_grace(self):
        return [
            lease
            for lease in self.leases.values()
            if lease.status == LeaseStatus.DRAFT
            and lease.paid_at is None
            and lease.grace_period_days is not None
        ]

    async def count_other_active_for_tenant(self, tenant_id, exclude_lease_id):
        return sum(
            1
            for lease in self.leases.values()
            if lease.tenant_id == tenant_id
            and lease.status == LeaseStatus.ACTIVE
            and lease.id != exclude_lease_id
        )


class FakeTenantRepo:
    def __init__(self, tenants=()):
        self.tenants = list(tenants)
        self.calls = Counter()
        self.status_updates = []

    async def get_by_emails(self, organization_id, emails):
        self.calls["get_by_emails"] += 1
        wanted = {email.lower() for email in emails}
        return {t.email.lower(): t for t in self.tenants if t.email.lower() in wanted}

    async def update_status(self, tenant_id, status):
        self.status_updates.append((tenant_id, status))
        for tenant in self.tenants:
            if tenant.id == tenant_id:
                tenant.status = status
                return tenant
        return None


class FakePropertyRepo:
    def __init__(self, units=()):
        self.units = list(units)
        self.calls = Counter()

    async def get_unit_for_organization(self, unit_id, organization_id):
        self.calls["get_unit_for_organization"] += 1
        for unit in self.units:
            if unit.id == unit_id and unit.property.organization_id == organization_id:
                return unit
        return None

    async def get_units_by_names(self, organization_id, pairs):
        self.calls["get_units_by_names"] += 1
        wanted = {(p.strip().lower(), u.strip().lower()) for p, u in pairs}
        found = {}
        for unit in self.units:
            key = (unit.property.name.lower(), unit.name.lower())
            if key in wanted:
                found[key] = unit
        return found


class FakeActivityRepo:
    def __init__(self, fail=False):
        self.created = []
        self.fail = fail

    async def create(self, activity_data):
        if self.fail:
            raise TransactionError("activity insert failed")
        self.created.append(activity_data)
        return SimpleNamespace(id=uuid.uuid4(), **activity_data)


class FakeRuleRepo:
    def __init__(self, rules=(), templates=(), organizations=()):
        self.rules = list(rules)
        self.templates = list(templates)
        self.organizations = list(organizations)

    async def get_active_rules(self, organization_id, trigger):
        return [
            rule
            for rule in self.rules
            if rule.organization_id == organization_id
            and rule.trigger == trigger
            and rule.is_active
        ]

    async def get_organizations_with_active_rules(self):
        return self.organizations

    async def get_template(self, organization_id, trigger, channel):
        for template in self.templates:
            if template.trigger == trigger and template.channel == channel:
                return template
        return None


class FakeLogRepo:
    def __init__(self):
        self.logs = []
        self.history = []

    async def create_pending(self, log_data):
        log = SimpleNamespace(
            id=uuid.uuid4(),
            status=NotificationStatus.PENDING,
            sent_at=None,
            failed_reason=None,
            provider_message_id=None,
            **log_data,
        )
        self.logs.append(log)
        self.history.append((log.id, NotificationStatus.PENDING))
        return log

    async def mark_sent(self, log, sent_at, provider_message_id):
        log.status = NotificationStatus.SENT
        log.sent_at = sent_at
        log.provider_message_id = provider_message_id
        self.history.append((log.id, NotificationStatus.SENT))
        return log

    async def mark_failed(self, log, reason):
        log.status = NotificationStatus.FAILED
        log.failed_reason = reason
        self.history.append((log.id, NotificationStatus.FAILED))
        return log

    async def exists_sent_on_day(
        self, organization_id, trigger, related_entity_id, channel, day_start
    ):
        return any(
            log.organization_id == organization_id
            and log.trigger == trigger
            and log.related_entity_id == related_entity_id
            and log.channel == channel
            and log.status == NotificationStatus.SENT
            and log.created_at.date() == day_start.date()
            for log in self.logs
        )


class FakeApiKeyRepo:
    def __init__(self, keys=()):
        self.keys = list(keys)
        self.touched = []
        self.requested = []

    async def get_active(self, organization_id, services):
        self.requested = list(services)
        return [key for key in self.keys if key.is_active]

    async def touch(self, key_ids, used_at):
        self.touched.append((list(key_ids), used_at))


class RecordingChannel:
    """Stands in for a channel client and remembers every send."""

    def __init__(self, result=None, error=None):
        self.sent = []
        self.result = result or ChannelResult(success=True, provider_message_id="msg-1")
        self.error = error

    async def send(self, *args):
        self.sent.append(args)
        if self.error:
            raise self.error
        return self.result


class FakeCredentialResolver:
    def __init__(self, credentials):
        self.credentials = credentials
        self.calls = 0

    async def resolve(self, organization_id, now):
        self.calls += 1
        return self.credentials
