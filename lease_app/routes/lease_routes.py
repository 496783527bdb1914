import uuid
from typing import List

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.date_helper import to_midnight, utc_now
from core.get_db import get_db_async
from core.get_organization import get_organization_id, get_user_id
from core.safe_handler import safe_handler
from schemas.schema import (
    AvailabilityCheck,
    AvailabilityResult,
    BulkImportRequest,
    EligibleRenewal,
    FutureLeaseOut,
    ImportReport,
    RenewalSummary,
)
from services.lease_availability_service import LeaseAvailabilityService
from services.lease_import_service import LeaseImportService
from services.lease_renewal_service import LeaseRenewalService
from services.notification_service import NotificationService

router = APIRouter(tags=["Leases"])


@cbv(router=router)
class LeaseRoutes:
    db: AsyncSession = Depends(get_db_async)
    organization_id: uuid.UUID = Depends(get_organization_id)

    @router.post("/bulk-import", response_model=ImportReport)
    @safe_handler
    async def bulk_import(
        self,
        payload: BulkImportRequest,
        user_id: uuid.UUID | None = Depends(get_user_id),
    ):
        return await LeaseImportService(self.db).import_leases(
            self.organization_id,
            payload.rows,
            dry_run=payload.dry_run,
            now=utc_now(),
            user_id=user_id,
        )

    @router.post("/availability", response_model=AvailabilityResult)
    @safe_handler
    async def check_availability(self, payload: AvailabilityCheck):
        return await LeaseAvailabilityService(self.db).check_availability(
            payload.unit_id,
            to_midnight(payload.start_date),
            to_midnight(payload.end_date),
            exclude_lease_id=payload.exclude_lease_id,
            organization_id=self.organization_id,
        )

    @router.get("/process-renewals", response_model=List[EligibleRenewal])
    @safe_handler
    async def preview_renewals(self):
        return await LeaseRenewalService(self.db).list_eligible_renewals(
            utc_now(), self.organization_id
        )

    @router.post("/process-renewals", response_model=RenewalSummary)
    @safe_handler
    async def process_renewals(self):
        service = LeaseRenewalService(
            self.db, notification_service=NotificationService(self.db)
        )
        return await service.process_auto_renewals(utc_now(), self.organization_id)

    @router.get("/{lease_id}/check-future-lease", response_model=FutureLeaseOut)
    @safe_handler
    async def check_future_lease(self, lease_id: uuid.UUID):
        return await LeaseAvailabilityService(self.db).has_future_lease(
            lease_id, self.organization_id
        )
