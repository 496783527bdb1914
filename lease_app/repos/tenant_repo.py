import uuid
from typing import Dict, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import TenantStatus
from models.models import Tenant


class TenantRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, tenant_id: uuid.UUID) -> Tenant | None:
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    async def get_by_emails(
        self, organization_id: uuid.UUID, emails: Iterable[str]
    ) -> Dict[str, Tenant]:
        """One query for every email in the batch, keyed by lowercased email."""
        lowered = {email.strip().lower() for email in emails if email}
        if not lowered:
            return {}

        stmt = select(Tenant).where(
            Tenant.organization_id == organization_id,
            func.lower(Tenant.email).in_(lowered),
        )
        result = await self.db.execute(stmt)
        return {tenant.email.lower(): tenant for tenant in result.scalars().all()}

    async def update_status(
        self, tenant_id: uuid.UUID, status: TenantStatus
    ) -> Optional[Tenant]:
        try:
            stmt = (
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(status=status)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_by_id(tenant_id)
