from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.cron_auth import verify_cron_secret
from core.date_helper import utc_now
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from schemas.schema import JobSummary, RenewalSummary, RunReport
from services.lease_expiry_service import LeaseExpiryService
from services.lease_renewal_service import LeaseRenewalService
from services.notification_service import NotificationService

router = APIRouter(tags=["Scheduled Jobs"], dependencies=[Depends(verify_cron_secret)])


@cbv(router=router)
class CronRoutes:
    db: AsyncSession = Depends(get_db_async)

    @router.post("/process-notifications", response_model=RunReport)
    @safe_handler
    async def process_notifications(self):
        return await NotificationService(self.db).run_tick(utc_now())

    @router.post("/process-auto-renewals", response_model=RenewalSummary)
    @safe_handler
    async def process_auto_renewals(self):
        service = LeaseRenewalService(
            self.db, notification_service=NotificationService(self.db)
        )
        return await service.process_auto_renewals(utc_now())

    @router.post("/end-expired-leases", response_model=JobSummary)
    @safe_handler
    async def end_expired_leases(self):
        service = LeaseExpiryService(
            self.db, notification_service=NotificationService(self.db)
        )
        return await service.end_expired_leases(utc_now())

    @router.post("/cancel-unpaid-leases", response_model=JobSummary)
    @safe_handler
    async def cancel_unpaid_leases(self):
        return await LeaseExpiryService(self.db).cancel_unpaid_leases(utc_now())
