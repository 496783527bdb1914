import logging

import dramatiq

from core.date_helper import utc_now
from core.get_db import AsyncSessionLocal
from services.lease_expiry_service import LeaseExpiryService
from services.lease_renewal_service import LeaseRenewalService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def create_process_notifications_task():
    @dramatiq.actor(
        queue_name="process_notifications",
        max_retries=0,
        time_limit=600_000,
    )
    async def process_notifications():
        async with AsyncSessionLocal() as db:
            report = await NotificationService(db).run_tick(utc_now())
            return report.model_dump(mode="json")

    return process_notifications


def create_auto_renewal_task():
    @dramatiq.actor(
        queue_name="process_auto_renewals",
        max_retries=0,
        time_limit=600_000,
    )
    async def process_auto_renewals():
        async with AsyncSessionLocal() as db:
            service = LeaseRenewalService(db, notification_service=NotificationService(db))
            summary = await service.process_auto_renewals(utc_now())
            if summary.failed:
                logger.warning(
                    f"{summary.failed} auto-renewals failed: "
                    + "; ".join(f"{d.lease_id}: {d.error}" for d in summary.details if not d.success)
                )
            return summary.model_dump(mode="json")

    return process_auto_renewals


def create_end_expired_leases_task():
    @dramatiq.actor(
        queue_name="end_expired_leases",
        max_retries=0,
        time_limit=600_000,
    )
    async def end_expired_leases():
        async with AsyncSessionLocal() as db:
            service = LeaseExpiryService(db, notification_service=NotificationService(db))
            summary = await service.end_expired_leases(utc_now())
            return summary.model_dump(mode="json")

    return end_expired_leases


def create_cancel_unpaid_leases_task():
    @dramatiq.actor(
        queue_name="cancel_unpaid_leases",
        max_retries=0,
        time_limit=600_000,
    )
    async def cancel_unpaid_leases():
        async with AsyncSessionLocal() as db:
            summary = await LeaseExpiryService(db).cancel_unpaid_leases(utc_now())
            return summary.model_dump(mode="json")

    return cancel_unpaid_leases
