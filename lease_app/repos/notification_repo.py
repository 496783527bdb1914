import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import NotificationChannel, NotificationStatus, NotificationTrigger
from models.models import (
    NotificationLog,
    NotificationRule,
    NotificationTemplate,
    Organization,
)


class NotificationRuleRepo:
    def __init__(self, db):
        self.db = db

    async def get_active_rules(
        self, organization_id: uuid.UUID, trigger: NotificationTrigger
    ) -> List[NotificationRule]:
        stmt = (
            select(NotificationRule)
            .options(selectinload(NotificationRule.recipient_user))
            .where(
                NotificationRule.organization_id == organization_id,
                NotificationRule.trigger == trigger,
                NotificationRule.is_active.is_(True),
            )
            .order_by(NotificationRule.id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_organizations_with_active_rules(self) -> List[Organization]:
        stmt = (
            select(Organization)
            .where(
                Organization.id.in_(
                    select(NotificationRule.organization_id).where(
                        NotificationRule.is_active.is_(True)
                    )
                )
            )
            .order_by(Organization.id)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_template(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        channel: NotificationChannel,
    ) -> Optional[NotificationTemplate]:
        stmt = select(NotificationTemplate).where(
            NotificationTemplate.organization_id == organization_id,
            NotificationTemplate.trigger == trigger,
            NotificationTemplate.channel == channel,
            NotificationTemplate.is_active.is_(True),
        )
        result = await self.db.execute(stmt.limit(1))
        return result.scalars().first()


class NotificationLogRepo:
    def __init__(self, db):
        self.db = db

    async def create_pending(self, log_data: dict) -> NotificationLog:
        try:
            log = NotificationLog(status=NotificationStatus.PENDING, **log_data)
            self.db.add(log)
            await self.db.commit()
            await self.db.refresh(log)
            return log
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def _finish(self, log: NotificationLog, values: dict) -> NotificationLog:
        try:
            await self.db.execute(
                update(NotificationLog)
                .where(NotificationLog.id == log.id)
                .values(**values)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        for key, value in values.items():
            setattr(log, key, value)
        return log

    async def mark_sent(
        self, log: NotificationLog, sent_at: datetime, provider_message_id: str | None
    ) -> NotificationLog:
        return await self._finish(
            log,
            {
                "status": NotificationStatus.SENT,
                "sent_at": sent_at,
                "provider_message_id": provider_message_id,
            },
        )

    async def mark_failed(self, log: NotificationLog, reason: str) -> NotificationLog:
        return await self._finish(
            log, {"status": NotificationStatus.FAILED, "failed_reason": reason}
        )

    async def exists_sent_on_day(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        related_entity_id: uuid.UUID,
        channel: NotificationChannel,
        day_start: datetime,
    ) -> bool:
        stmt = select(NotificationLog.id).where(
            NotificationLog.organization_id == organization_id,
            NotificationLog.trigger == trigger,
            NotificationLog.related_entity_id == related_entity_id,
            NotificationLog.channel == channel,
            NotificationLog.status == NotificationStatus.SENT,
            NotificationLog.created_at >= day_start,
            NotificationLog.created_at < day_start + timedelta(days=1),
        )
        result = await self.db.execute(stmt.limit(1))
        return result.first() is not None
