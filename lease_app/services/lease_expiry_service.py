import logging
import uuid
from datetime import datetime
from typing import List

from core.date_helper import is_lease_overdue
from core.errors import NotFoundError
from core.isolation import run_isolated
from models.enums import ActivityType, LeaseStatus, NotificationTrigger, TenantStatus
from models.models import LeaseAgreement
from repos.activity_repo import ActivityRepo
from repos.lease_repo import LeaseRepo
from repos.tenant_repo import TenantRepo
from schemas.schema import JobSummary
from services.lease_renewal_service import ensure_transition, tenant_name, unit_label

logger = logging.getLogger(__name__)


class LeaseExpiryService:
    def __init__(self, db, notification_service=None):
        self.lease_repo = LeaseRepo(db)
        self.tenant_repo = TenantRepo(db)
        self.activity_repo = ActivityRepo(db)
        self.notification_service = notification_service

    async def _activity(
        self,
        lease: LeaseAgreement,
        type_: ActivityType,
        description: str,
        now: datetime,
        **extra,
    ):
        await self.activity_repo.create(
            {
                "organization_id": lease.organization_id,
                "type": type_,
                "description": description,
                "tenant_id": lease.tenant_id,
                "created_at": now,
                **extra,
            }
        )

    async def end_lease(self, lease: LeaseAgreement, now: datetime) -> None:
        ensure_transition(lease, LeaseStatus.ENDED)
        await self.lease_repo.update_status(lease, LeaseStatus.ENDED)
        await self._activity(
            lease,
            ActivityType.LEASE_TERMINATED,
            f"Lease for {tenant_name(lease)} at {unit_label(lease)} ended (expired)",
            now,
            lease_id=lease.id,
            unit_id=lease.unit_id,
            property_id=lease.unit.property_id if lease.unit else None,
        )

        remaining = await self.lease_repo.count_other_active_for_tenant(
            lease.tenant_id, lease.id
        )
        if remaining == 0:
            await self.tenant_repo.update_status(lease.tenant_id, TenantStatus.EXPIRED)
            await self._activity(
                lease,
                ActivityType.TENANT_STATUS_CHANGED,
                f"Tenant {tenant_name(lease)} status changed to EXPIRED (all leases ended)",
                now,
            )

        if self.notification_service is not None:
            await self.notification_service.process_event(
                lease.organization_id, NotificationTrigger.LEASE_EXPIRED, lease.id, now
            )

    async def _apply(self, action, lease_id: uuid.UUID, now: datetime) -> None:
        # Reloaded per item: a rollback in an earlier item expires loaded instances.
        lease = await self.lease_repo.get_with_details(lease_id)
        if not lease:
            raise NotFoundError(f"Lease {lease_id} not found", field="Lease")
        await action(lease, now)

    async def _run_batch(
        self, lease_ids: List[uuid.UUID], action, now: datetime
    ) -> JobSummary:
        summary = JobSummary()
        for lease_id in lease_ids:
            outcome = await run_isolated(lease_id, self._apply, action, lease_id, now)
            summary.processed += 1
            if outcome.success:
                summary.succeeded += 1
            else:
                summary.failed += 1
                summary.errors.append(f"Lease {lease_id}: {outcome.error}")
        return summary

    async def end_expired_leases(self, now: datetime) -> JobSummary:
        expired = await self.lease_repo.get_expired_active(now)
        summary = await self._run_batch(
            [lease.id for lease in expired], self.end_lease, now
        )
        logger.info(
            f"[end-expired-leases] {summary.succeeded} of {summary.processed} leases ended"
        )
        return summary

    async def cancel_lease(self, lease: LeaseAgreement, now: datetime) -> None:
        ensure_transition(lease, LeaseStatus.CANCELLED)
        await self.lease_repo.update_status(lease, LeaseStatus.CANCELLED)
        await self._activity(
            lease,
            ActivityType.LEASE_TERMINATED,
            f"Auto-cancelled lease for {tenant_name(lease)} at {unit_label(lease)} "
            f"(unpaid after grace period)",
            now,
            lease_id=lease.id,
            unit_id=lease.unit_id,
            property_id=lease.unit.property_id if lease.unit else None,
        )

    async def cancel_unpaid_leases(self, now: datetime) -> JobSummary:
        drafts = await self.lease_repo.get_unpaid_drafts_with_grace()
        overdue = [
            lease.id
            for lease in drafts
            if is_lease_overdue(lease.start_date, lease.grace_period_days, now)
        ]
        summary = await self._run_batch(overdue, self.cancel_lease, now)
        logger.info(
            f"[cancel-unpaid-leases] cancelled {summary.succeeded} of {summary.processed} overdue drafts"
        )
        return summary
