import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from core.errors import NotFoundError, ValidationError
from models.models import LeaseAgreement
from repos.lease_repo import LeaseRepo
from repos.property_repo import PropertyRepo
from schemas.schema import AvailabilityResult, FutureLeaseOut

logger = logging.getLogger(__name__)

AUTO_RENEW_BLOCK_REASON = (
    "Unit has an active auto-renewal lease. "
    "The lease must be ended before booking future dates."
)
OVERLAP_REASON = "Unit already has an overlapping lease for these dates"
UNIT_UNAVAILABLE_REASON = "This unit is marked as unavailable"

Candidate = Tuple[uuid.UUID, datetime, datetime]


def lease_blocks(lease: LeaseAgreement, start: datetime, end: datetime) -> bool:
    """Whether an existing DRAFT/ACTIVE lease blocks the candidate range.

    An auto-renewing lease has no fixed end, so it occupies the unit from its
    start date onwards. Every other lease occupies the closed interval
    [start_date, end_date].
    """
    if lease.is_auto_renew:
        return lease.start_date <= end
    return lease.start_date <= end and lease.end_date >= start


def availability_key(unit_id: uuid.UUID, start: datetime, end: datetime) -> str:
    return f"{unit_id}::{start.isoformat()}::{end.isoformat()}"


def ranges_overlap(a: Tuple[datetime, datetime], b: Tuple[datetime, datetime]) -> bool:
    return a[0] <= b[1] and a[1] >= b[0]


class LeaseAvailabilityService:
    def __init__(self, db):
        self.lease_repo = LeaseRepo(db)
        self.property_repo = PropertyRepo(db)

    async def is_available(
        self,
        unit_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_lease_id: uuid.UUID | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> bool:
        leases = await self.lease_repo.get_occupying_for_unit(
            unit_id, exclude_lease_id, organization_id
        )
        return not any(lease_blocks(lease, start, end) for lease in leases)

    async def check_availability(
        self,
        unit_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_lease_id: uuid.UUID | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> AvailabilityResult:
        """Explain whether the unit can take a lease over [start, end].

        With an organization the unit must belong to it (through its property);
        a unit outside the organization is reported as not found.
        """
        if start >= end:
            raise ValidationError("End date must be after start date", field="Dates")

        if organization_id is not None:
            unit = await self.property_repo.get_unit_for_organization(
                unit_id, organization_id
            )
            if not unit:
                raise NotFoundError("Unit not found", field="Unit")
            if unit.is_unavailable:
                return AvailabilityResult(
                    available=False, reason=UNIT_UNAVAILABLE_REASON
                )

        leases = await self.lease_repo.get_occupying_for_unit(
            unit_id, exclude_lease_id, organization_id
        )
        blocking = [lease for lease in leases if lease_blocks(lease, start, end)]
        if not blocking:
            return AvailabilityResult(available=True)

        if any(lease.is_auto_renew for lease in blocking):
            return AvailabilityResult(available=False, reason=AUTO_RENEW_BLOCK_REASON)
        return AvailabilityResult(available=False, reason=OVERLAP_REASON)

    async def batch_is_available(
        self,
        candidates: Sequence[Candidate],
        organization_id: uuid.UUID | None = None,
    ) -> Dict[str, bool]:
        """Resolve many candidates against one bulk fetch of existing leases."""
        if not candidates:
            return {}

        leases = await self.lease_repo.get_occupying_for_units(
            (unit_id for unit_id, _, _ in candidates), organization_id
        )

        by_unit: Dict[uuid.UUID, List[LeaseAgreement]] = defaultdict(list)
        for lease in leases:
            by_unit[lease.unit_id].append(lease)

        availability: Dict[str, bool] = {}
        for unit_id, start, end in candidates:
            existing = by_unit.get(unit_id, [])
            availability[availability_key(unit_id, start, end)] = not any(
                lease_blocks(lease, start, end) for lease in existing
            )

        logger.info(
            f"Batch availability: {len(candidates)} candidates across "
            f"{len(by_unit)} occupied units"
        )
        return availability

    async def has_future_lease(
        self, lease_id: uuid.UUID, organization_id: uuid.UUID | None = None
    ) -> FutureLeaseOut:
        lease = await self.lease_repo.get_with_details(lease_id, organization_id)
        if not lease:
            raise NotFoundError("Lease not found", field="Lease")
        return FutureLeaseOut(
            lease_id=lease.id,
            has_future_lease=await self.lease_repo.has_future_lease(lease),
        )


def find_intra_batch_overlaps(candidates: Iterable[Tuple[int, Candidate]]) -> set:
    """Return the positions of candidates that collide with an earlier one on the same unit."""
    seen: Dict[uuid.UUID, List[Tuple[datetime, datetime]]] = defaultdict(list)
    clashes = set()
    for position, (unit_id, start, end) in candidates:
        if any(ranges_overlap((start, end), taken) for taken in seen[unit_id]):
            clashes.add(position)
            continue
        seen[unit_id].append((start, end))
    return clashes
