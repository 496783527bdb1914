import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.date_helper import utc_now
from core.get_db import get_db_async
from core.get_organization import get_organization_id
from core.safe_handler import safe_handler
from schemas.schema import DispatchOutcome, ManualNotificationIn
from services.notification_service import NotificationService

router = APIRouter(tags=["Notifications"])


@cbv(router=router)
class NotificationRoutes:
    @router.post("/send", response_model=DispatchOutcome)
    @safe_handler
    async def send(
        self,
        payload: ManualNotificationIn,
        organization_id: uuid.UUID = Depends(get_organization_id),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).send_manual(
            organization_id, payload, utc_now()
        )
