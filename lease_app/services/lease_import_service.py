import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as SchemaError

from core.date_helper import parse_spreadsheet_date
from core.errors import ValidationError
from core.isolation import run_isolated
from core.settings import settings
from models.enums import ActivityType, LeaseStatus, TenantStatus
from repos.activity_repo import ActivityRepo
from repos.property_repo import PropertyRepo, unit_lookup_key
from repos.tenant_repo import TenantRepo
from schemas.schema import BulkLeaseRow, ImportReport, ImportRow, ImportSummary
from services.lease_availability_service import (
    LeaseAvailabilityService,
    availability_key,
    find_intra_batch_overlaps,
)

logger = logging.getLogger(__name__)


@dataclass
class StagedRow:
    row_index: int
    row: BulkLeaseRow
    start: datetime
    end: datetime
    tenant_id: Optional[uuid.UUID] = None
    tenant_name: Optional[str] = None
    unit_id: Optional[uuid.UUID] = None
    property_id: Optional[uuid.UUID] = None
    errors: List[str] = field(default_factory=list)

    def as_import_row(self) -> ImportRow:
        return ImportRow(
            row_index=self.row_index,
            data=self.row.model_dump(by_alias=True, mode="json"),
            errors=list(self.errors),
        )


def schema_errors(error: SchemaError) -> List[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


class LeaseImportService:
    def __init__(self, db):
        self.availability = LeaseAvailabilityService(db)
        self.lease_repo = self.availability.lease_repo
        self.tenant_repo = TenantRepo(db)
        self.property_repo = PropertyRepo(db)
        self.activity_repo = ActivityRepo(db)

    def _validate_rows(
        self, rows: Sequence[Dict[str, Any]]
    ) -> tuple[List[StagedRow], List[ImportRow]]:
        staged: List[StagedRow] = []
        invalid: List[ImportRow] = []

        for index, raw in enumerate(rows):
            row_index = index + 2
            try:
                row = BulkLeaseRow.model_validate(raw)
            except SchemaError as e:
                invalid.append(
                    ImportRow(row_index=row_index, data=raw, errors=schema_errors(e))
                )
                continue

            errors = []
            start = parse_spreadsheet_date(row.start_date)
            end = parse_spreadsheet_date(row.end_date)
            if not start:
                errors.append("Start Date: Invalid date format")
            if not end:
                errors.append("End Date: Invalid date format")
            if start and end and start >= end:
                errors.append("Dates: Start date must be before end date")
            if row.is_auto_renew and not row.auto_renewal_notice_days:
                errors.append("Auto Renewal Notice Days: Required when Auto Renew is TRUE")

            if errors:
                invalid.append(
                    ImportRow(
                        row_index=row_index,
                        data=row.model_dump(by_alias=True, mode="json"),
                        errors=errors,
                    )
                )
                continue
            staged.append(
                StagedRow(row_index=row_index, row=row, start=start, end=end)
            )

        return staged, invalid

    async def _resolve_references(
        self, organization_id: uuid.UUID, staged: List[StagedRow]
    ) -> None:
        tenants = await self.tenant_repo.get_by_emails(
            organization_id, (s.row.tenant_email for s in staged)
        )
        units = await self.property_repo.get_units_by_names(
            organization_id, ((s.row.property_name, s.row.unit_name) for s in staged)
        )

        # Plain values only: a failed insert later rolls back and expires ORM instances.
        for item in staged:
            tenant = tenants.get(item.row.tenant_email.lower())
            if tenant:
                item.tenant_id, item.tenant_name = tenant.id, tenant.full_name
            else:
                item.errors.append("Tenant Email: Tenant not found")

            unit = units.get(unit_lookup_key(item.row.property_name, item.row.unit_name))
            if not unit:
                item.errors.append("Unit: Unit not found in specified property")
            elif unit.is_unavailable:
                item.errors.append("Unit: Unit is marked as unavailable")
            else:
                item.unit_id, item.property_id = unit.id, unit.property_id

    async def _check_availability(
        self, organization_id: uuid.UUID, staged: List[StagedRow]
    ) -> None:
        resolved = [s for s in staged if not s.errors]
        availability = await self.availability.batch_is_available(
            [(s.unit_id, s.start, s.end) for s in resolved], organization_id
        )
        for item in resolved:
            if not availability.get(availability_key(item.unit_id, item.start, item.end), True):
                item.errors.append(
                    "Unit: Not available for selected dates (overlapping lease exists)"
                )

        # Rows in the same file may also collide with each other.
        remaining = [s for s in resolved if not s.errors]
        clashes = find_intra_batch_overlaps(
            (
                position,
                (item.unit_id, item.start, datetime.max if item.row.is_auto_renew else item.end),
            )
            for position, item in enumerate(remaining)
        )
        for position in clashes:
            remaining[position].errors.append("Unit: Overlaps another row in this import")

    async def _create_lease(
        self,
        organization_id: uuid.UUID,
        item: StagedRow,
        now: datetime,
        user_id: uuid.UUID | None,
    ) -> uuid.UUID:
        row = item.row
        lease = await self.lease_repo.create(
            {
                "organization_id": organization_id,
                "tenant_id": item.tenant_id,
                "unit_id": item.unit_id,
                "start_date": item.start,
                "end_date": item.end,
                "payment_cycle": row.payment_cycle,
                "rent_amount": row.rent_amount,
                "deposit_amount": row.deposit_amount or 0,
                "grace_period_days": row.grace_period_days or 0,
                "is_auto_renew": row.is_auto_renew,
                "auto_renewal_notice_days": row.auto_renewal_notice_days,
                "status": LeaseStatus.DRAFT,
                "created_at": now,
            }
        )
        await self.tenant_repo.update_status(item.tenant_id, TenantStatus.BOOKED)
        await self.activity_repo.create(
            {
                "organization_id": organization_id,
                "user_id": user_id,
                "type": ActivityType.LEASE_CREATED,
                "description": (
                    f"Created lease for {item.tenant_name} at "
                    f"{row.property_name} - {row.unit_name}"
                ),
                "tenant_id": item.tenant_id,
                "property_id": item.property_id,
                "unit_id": item.unit_id,
                "lease_id": lease.id,
                "created_at": now,
            }
        )
        return lease.id

    async def import_leases(
        self,
        organization_id: uuid.UUID,
        rows: Sequence[Dict[str, Any]],
        dry_run: bool,
        now: datetime,
        user_id: uuid.UUID | None = None,
    ) -> ImportReport:
        if not rows:
            raise ValidationError("No rows provided")
        if len(rows) > settings.BULK_IMPORT_MAX_ROWS:
            raise ValidationError(
                f"Maximum {settings.BULK_IMPORT_MAX_ROWS} rows allowed per import"
            )

        staged, invalid = self._validate_rows(rows)
        if staged:
            await self._resolve_references(organization_id, staged)
            await self._check_availability(organization_id, staged)

        invalid.extend(s.as_import_row() for s in staged if s.errors)
        accepted = [s for s in staged if not s.errors]

        created_ids: List[uuid.UUID] = []
        if not dry_run:
            for item in list(accepted):
                outcome = await run_isolated(
                    item.row_index, self._create_lease, organization_id, item, now, user_id
                )
                if outcome.success:
                    created_ids.append(outcome.value)
                    continue
                item.errors.append(f"Lease: {outcome.error}")
                accepted.remove(item)
                invalid.append(item.as_import_row())

        invalid.sort(key=lambda r: r.row_index)
        report = ImportReport(
            summary=ImportSummary(
                total=len(rows),
                valid=len(accepted),
                invalid=len(invalid),
                created=len(created_ids),
            ),
            valid_rows=[s.as_import_row() for s in accepted],
            invalid_rows=invalid,
            created_ids=created_ids,
            dry_run=dry_run,
        )
        logger.info(
            f"Lease import for organization {organization_id}: {report.summary.total} rows, "
            f"{report.summary.valid} valid, {report.summary.invalid} invalid, "
            f"{report.summary.created} created{' (dry run)' if dry_run else ''}"
        )
        return report
