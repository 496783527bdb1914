import logging
import uuid
from datetime import datetime
from typing import List

from core.date_helper import calculate_renewal_dates, renewal_deadline
from core.errors import LeaseStateError, NotFoundError
from core.isolation import run_isolated
from models.enums import (
    LEASE_TRANSITIONS,
    ActivityType,
    LeaseStatus,
    NotificationTrigger,
)
from models.models import LeaseAgreement
from repos.activity_repo import ActivityRepo
from repos.lease_repo import LeaseRepo
from schemas.schema import EligibleRenewal, RenewalDetail, RenewalSummary

logger = logging.getLogger(__name__)


def should_auto_renew(lease: LeaseAgreement, now: datetime) -> bool:
    if not lease.is_auto_renew or not lease.auto_renewal_notice_days:
        return False
    if lease.status != LeaseStatus.ACTIVE or lease.renewed_to_id is not None:
        return False
    return now >= renewal_deadline(lease.end_date, lease.auto_renewal_notice_days)


def can_cancel_auto_renewal(lease: LeaseAgreement, now: datetime) -> bool:
    if not lease.auto_renewal_notice_days:
        return False
    return now < renewal_deadline(lease.end_date, lease.auto_renewal_notice_days)


def can_transition(current: LeaseStatus, target: LeaseStatus) -> bool:
    return LeaseStatus(target) in LEASE_TRANSITIONS[LeaseStatus(current)]


def ensure_transition(lease: LeaseAgreement, target: LeaseStatus) -> None:
    if not can_transition(lease.status, target):
        raise LeaseStateError(
            f"Cannot move lease {lease.id} from {LeaseStatus(lease.status).value} "
            f"to {LeaseStatus(target).value}"
        )


def tenant_name(lease: LeaseAgreement) -> str:
    tenant = getattr(lease, "tenant", None)
    return tenant.full_name if tenant else "Unknown"


def unit_label(lease: LeaseAgreement) -> str:
    unit = getattr(lease, "unit", None)
    if not unit:
        return "Unknown"
    prop = getattr(unit, "property", None)
    return f"{prop.name} - {unit.name}" if prop else unit.name


class LeaseRenewalService:
    def __init__(self, db, notification_service=None):
        self.lease_repo = LeaseRepo(db)
        self.activity_repo = ActivityRepo(db)
        self.notification_service = notification_service

    async def _insert_renewal(self, original: LeaseAgreement) -> LeaseAgreement:
        if original.status != LeaseStatus.ACTIVE:
            raise LeaseStateError(
                f"Only ACTIVE leases can be renewed (lease {original.id} is "
                f"{LeaseStatus(original.status).value})"
            )
        if original.renewed_to_id is not None:
            raise LeaseStateError(f"Lease {original.id} has already been renewed")

        start, end = calculate_renewal_dates(original.end_date, original.payment_cycle)
        renewal = await self.lease_repo.create_renewal(original, start, end)

        logger.info(
            f"Lease {original.id} renewed as {renewal.id} "
            f"({start:%Y-%m-%d} to {end:%Y-%m-%d})"
        )
        return renewal

    async def create_renewal_lease(
        self, original: LeaseAgreement, now: datetime
    ) -> LeaseAgreement:
        renewal = await self._insert_renewal(original)
        await self._after_renewal(original, renewal, now)
        return renewal

    async def _after_renewal(
        self, original: LeaseAgreement, renewal: LeaseAgreement, now: datetime
    ) -> None:
        unit = getattr(original, "unit", None)
        lease_id, organization_id = original.id, original.organization_id
        activity = await run_isolated(
            lease_id,
            self.activity_repo.create,
            {
                "organization_id": organization_id,
                "type": ActivityType.LEASE_CREATED,
                "description": (
                    f"Auto-renewed lease for {tenant_name(original)} at "
                    f"{unit_label(original)}"
                ),
                "tenant_id": original.tenant_id,
                "property_id": unit.property_id if unit else None,
                "unit_id": original.unit_id,
                "lease_id": renewal.id,
                "created_at": now,
            },
        )
        if not activity.success:
            logger.error(f"Renewal activity for lease {lease_id} not recorded")

        if self.notification_service is None:
            return
        event = await run_isolated(
            lease_id,
            self.notification_service.process_event,
            organization_id,
            NotificationTrigger.LEASE_EXPIRED,
            lease_id,
            now,
        )
        if not event.success:
            logger.error(f"LEASE_EXPIRED notification for lease {lease_id} failed")

    async def _renew_by_id(self, lease_id: uuid.UUID, now: datetime) -> uuid.UUID:
        # Reloaded per item: a rollback in an earlier item expires loaded instances.
        lease = await self.lease_repo.get_with_details(lease_id)
        if not lease:
            raise NotFoundError(f"Lease {lease_id} not found", field="Lease")
        renewal = await self._insert_renewal(lease)
        # Side effects may roll the session back, so the id is read first.
        renewal_id = renewal.id
        await self._after_renewal(lease, renewal, now)
        return renewal_id

    async def process_auto_renewals(
        self, now: datetime, organization_id: uuid.UUID | None = None
    ) -> RenewalSummary:
        candidates = await self.lease_repo.get_auto_renew_candidates(organization_id)
        eligible = [
            (lease.id, tenant_name(lease), unit_label(lease))
            for lease in candidates
            if should_auto_renew(lease, now)
        ]

        summary = RenewalSummary()
        for lease_id, tenant, unit in eligible:
            outcome = await run_isolated(lease_id, self._renew_by_id, lease_id, now)
            summary.processed += 1
            if outcome.success:
                summary.succeeded += 1
            else:
                summary.failed += 1
            summary.details.append(
                RenewalDetail(
                    lease_id=lease_id,
                    tenant_name=tenant,
                    unit_name=unit,
                    success=outcome.success,
                    renewal_lease_id=outcome.value if outcome.success else None,
                    error=outcome.error,
                )
            )

        logger.info(
            f"Auto-renewal run: {summary.processed} processed, "
            f"{summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    async def list_eligible_renewals(
        self, now: datetime, organization_id: uuid.UUID | None = None
    ) -> List[EligibleRenewal]:
        candidates = await self.lease_repo.get_auto_renew_candidates(organization_id)
        eligible = []
        for lease in candidates:
            if not should_auto_renew(lease, now):
                continue
            start, end = calculate_renewal_dates(lease.end_date, lease.payment_cycle)
            eligible.append(
                EligibleRenewal(
                    lease_id=lease.id,
                    tenant_name=tenant_name(lease),
                    unit_name=unit_label(lease),
                    end_date=lease.end_date,
                    renewal_deadline=renewal_deadline(
                        lease.end_date, lease.auto_renewal_notice_days
                    ),
                    new_start_date=start,
                    new_end_date=end,
                )
            )
        return eligible
