import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from core.errors import TransactionError
from models.enums import OCCUPYING_STATUSES, LeaseStatus
from models.models import LeaseAgreement, Property, Unit


class LeaseRepo:
    def __init__(self, db):
        self.db = db

    def _with_details(self, stmt):
        return stmt.options(
            selectinload(LeaseAgreement.tenant),
            selectinload(LeaseAgreement.unit).selectinload(Unit.property),
        )

    async def get_by_id(self, lease_id: uuid.UUID) -> Optional[LeaseAgreement]:
        stmt = select(LeaseAgreement).where(LeaseAgreement.id == lease_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_with_details(
        self, lease_id: uuid.UUID, organization_id: uuid.UUID | None = None
    ) -> Optional[LeaseAgreement]:
        stmt = self._with_details(
            select(LeaseAgreement).where(LeaseAgreement.id == lease_id)
        )
        if organization_id is not None:
            stmt = stmt.where(LeaseAgreement.organization_id == organization_id)
        # Refresh rows the session may hold expired after an earlier rollback.
        result = await self.db.execute(
            stmt.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _owned_by(self, stmt, organization_id: uuid.UUID):
        return (
            stmt.join(Unit, Unit.id == LeaseAgreement.unit_id)
            .join(Property, Property.id == Unit.property_id)
            .where(Property.organization_id == organization_id)
        )

    async def get_occupying_for_unit(
        self,
        unit_id: uuid.UUID,
        exclude_lease_id: uuid.UUID | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> List[LeaseAgreement]:
        stmt = select(LeaseAgreement).where(
            LeaseAgreement.unit_id == unit_id,
            LeaseAgreement.status.in_(OCCUPYING_STATUSES),
        )
        if exclude_lease_id is not None:
            stmt = stmt.where(LeaseAgreement.id != exclude_lease_id)
        if organization_id is not None:
            stmt = self._owned_by(stmt, organization_id)
        result = await self.db.execute(stmt.order_by(LeaseAgreement.start_date))
        return result.scalars().all()

    async def get_occupying_for_units(
        self,
        unit_ids: Iterable[uuid.UUID],
        organization_id: uuid.UUID | None = None,
    ) -> List[LeaseAgreement]:
        ids = list(set(unit_ids))
        if not ids:
            return []

        stmt = select(LeaseAgreement).where(
            LeaseAgreement.unit_id.in_(ids),
            LeaseAgreement.status.in_(OCCUPYING_STATUSES),
        )
        if organization_id is not None:
            stmt = self._owned_by(stmt, organization_id)
        result = await self.db.execute(stmt.order_by(LeaseAgreement.start_date))
        return result.scalars().all()

    async def has_future_lease(self, lease: LeaseAgreement) -> bool:
        stmt = select(LeaseAgreement.id).where(
            LeaseAgreement.unit_id == lease.unit_id,
            LeaseAgreement.id != lease.id,
            LeaseAgreement.status.in_(OCCUPYING_STATUSES),
            LeaseAgreement.start_date > lease.end_date,
        )
        result = await self.db.execute(stmt.limit(1))
        return result.first() is not None

    async def get_auto_renew_candidates(
        self, organization_id: uuid.UUID | None = None
    ) -> List[LeaseAgreement]:
        stmt = self._with_details(
            select(LeaseAgreement).where(
                LeaseAgreement.is_auto_renew.is_(True),
                LeaseAgreement.status == LeaseStatus.ACTIVE,
                LeaseAgreement.auto_renewal_notice_days.is_not(None),
                LeaseAgreement.renewed_to_id.is_(None),
            )
        )
        if organization_id is not None:
            stmt = stmt.where(LeaseAgreement.organization_id == organization_id)
        result = await self.db.execute(
            stmt.order_by(LeaseAgreement.end_date, LeaseAgreement.id)
        )
        return result.scalars().all()

    async def get_unpaid_active_starting_between(
        self, organization_id: uuid.UUID, window_start: datetime, window_end: datetime
    ) -> List[LeaseAgreement]:
        stmt = select(LeaseAgreement).where(
            LeaseAgreement.organization_id == organization_id,
            LeaseAgreement.status == LeaseStatus.ACTIVE,
            LeaseAgreement.paid_at.is_(None),
            LeaseAgreement.start_date >= window_start,
            LeaseAgreement.start_date < window_end,
        )
        result = await self.db.execute(stmt.order_by(LeaseAgreement.id))
        return result.scalars().all()

    async def get_active_ending_between(
        self, organization_id: uuid.UUID, window_start: datetime, window_end: datetime
    ) -> List[LeaseAgreement]:
        stmt = select(LeaseAgreement).where(
            LeaseAgreement.organization_id == organization_id,
            LeaseAgreement.status == LeaseStatus.ACTIVE,
            LeaseAgreement.end_date >= window_start,
            LeaseAgreement.end_date < window_end,
        )
        result = await self.db.execute(stmt.order_by(LeaseAgreement.id))
        return result.scalars().all()

    async def get_overdue_drafts(
        self, organization_id: uuid.UUID, now: datetime
    ) -> List[LeaseAgreement]:
        stmt = select(LeaseAgreement).where(
            LeaseAgreement.organization_id == organization_id,
            LeaseAgreement.status == LeaseStatus.DRAFT,
            LeaseAgreement.paid_at.is_(None),
            LeaseAgreement.start_date < now,
        )
        result = await self.db.execute(stmt.order_by(LeaseAgreement.id))
        return result.scalars().all()

    async def get_expired_active(self, now: datetime) -> List[LeaseAgreement]:
        stmt = self._with_details(
            select(LeaseAgreement).where(
                LeaseAgreement.status == LeaseStatus.ACTIVE,
                LeaseAgreement.end_date < now,
            )
        )
        result = await self.db.execute(stmt.order_by(LeaseAgreement.id))
        return result.scalars().all()

    async def get_unpaid_drafts_with_grace(self) -> List[LeaseAgreement]:
        stmt = self._with_details(
            select(LeaseAgreement).where(
                LeaseAgreement.status == LeaseStatus.DRAFT,
                LeaseAgreement.paid_at.is_(None),
                LeaseAgreement.grace_period_days.is_not(None),
            )
        )
        result = await self.db.execute(stmt.order_by(LeaseAgreement.id))
        return result.scalars().all()

    async def count_other_active_for_tenant(
        self, tenant_id: uuid.UUID, exclude_lease_id: uuid.UUID
    ) -> int:
        stmt = select(func.count(LeaseAgreement.id)).where(
            LeaseAgreement.tenant_id == tenant_id,
            LeaseAgreement.status == LeaseStatus.ACTIVE,
            LeaseAgreement.id != exclude_lease_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def create(self, lease_data: dict) -> LeaseAgreement:
        try:
            lease = LeaseAgreement(**lease_data)
            self.db.add(lease)
            await self.db.commit()
            await self.db.refresh(lease)
            return lease
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def update_status(
        self, lease: LeaseAgreement, status: LeaseStatus
    ) -> LeaseAgreement:
        try:
            await self.db.execute(
                update(LeaseAgreement)
                .where(LeaseAgreement.id == lease.id)
                .values(status=status)
            )
            await self.db.commit()
            lease.status = status
            return lease
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def create_renewal(
        self,
        original: LeaseAgreement,
        start_date: datetime,
        end_date: datetime,
    ) -> LeaseAgreement:
        """Insert the successor and end the predecessor in one transaction."""
        lease_id = original.id
        renewal = LeaseAgreement(
            id=uuid.uuid4(),
            organization_id=original.organization_id,
            tenant_id=original.tenant_id,
            unit_id=original.unit_id,
            start_date=start_date,
            end_date=end_date,
            payment_cycle=original.payment_cycle,
            rent_amount=original.rent_amount,
            deposit_amount=original.deposit_amount,
            grace_period_days=original.grace_period_days,
            is_auto_renew=original.is_auto_renew,
            auto_renewal_notice_days=original.auto_renewal_notice_days,
            status=LeaseStatus.DRAFT,
            renewed_from_id=lease_id,
        )
        try:
            self.db.add(renewal)
            await self.db.flush()
            result = await self.db.execute(
                update(LeaseAgreement)
                .where(
                    LeaseAgreement.id == lease_id,
                    LeaseAgreement.status == LeaseStatus.ACTIVE,
                    LeaseAgreement.renewed_to_id.is_(None),
                )
                .values(status=LeaseStatus.ENDED, renewed_to_id=renewal.id)
            )
            if result.rowcount != 1:
                raise TransactionError(
                    f"Lease {lease_id} was renewed or ended concurrently"
                )
            await self.db.commit()
        except TransactionError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise TransactionError(f"Renewal of lease {lease_id} failed: {e}") from e

        original.status = LeaseStatus.ENDED
        original.renewed_to_id = renewal.id
        return renewal
