import uuid
from datetime import datetime
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import ApiKeyService
from models.models import ApiKey


class ApiKeyRepo:
    def __init__(self, db):
        self.db = db

    async def get_active(
        self, organization_id: uuid.UUID, services: Iterable[ApiKeyService]
    ) -> List[ApiKey]:
        stmt = select(ApiKey).where(
            ApiKey.organization_id == organization_id,
            ApiKey.service.in_(list(services)),
            ApiKey.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def touch(self, key_ids: List[uuid.UUID], used_at: datetime) -> None:
        if not key_ids:
            return
        try:
            await self.db.execute(
                update(ApiKey).where(ApiKey.id.in_(key_ids)).values(last_used_at=used_at)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
