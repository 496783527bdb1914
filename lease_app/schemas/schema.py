from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

import phonenumbers
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from core.date_helper import parse_boolean_field
from models.enums import (
    NotificationChannel,
    NotificationStatus,
    NotificationTrigger,
    PaymentCycle,
)


class AvailabilityCheck(BaseModel):
    unit_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    exclude_lease_id: Optional[uuid.UUID] = None


class AvailabilityResult(BaseModel):
    available: bool
    reason: Optional[str] = None


class FutureLeaseOut(BaseModel):
    lease_id: uuid.UUID
    has_future_lease: bool


class RenewalDetail(BaseModel):
    lease_id: uuid.UUID
    tenant_name: str
    unit_name: str
    success: bool
    renewal_lease_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


class RenewalSummary(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    details: List[RenewalDetail] = Field(default_factory=list)


class EligibleRenewal(BaseModel):
    lease_id: uuid.UUID
    tenant_name: str
    unit_name: str
    end_date: datetime
    renewal_deadline: datetime
    new_start_date: datetime
    new_end_date: datetime


class ChannelResult(BaseModel):
    """What a channel client reports back for one send."""

    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class DispatchOutcome(BaseModel):
    success: bool
    channel: NotificationChannel
    recipient: str
    status: NotificationStatus
    log_id: Optional[uuid.UUID] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    missing_credentials: bool = False


class TriggerResult(BaseModel):
    organization: uuid.UUID
    organization_name: Optional[str] = None
    trigger: NotificationTrigger
    processed: int = 0
    sent: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class RunReport(BaseModel):
    processed_organizations: int = 0
    per_trigger_results: List[TriggerResult] = Field(default_factory=list)


class JobSummary(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class ManualNotificationIn(BaseModel):
    channel: NotificationChannel
    recipient: str = Field(..., min_length=1)
    subject: Optional[str] = None
    body: str = Field(..., min_length=1)
    lease_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def check_recipient(self):
        if self.channel == NotificationChannel.EMAIL:
            if not self.subject:
                raise ValueError("Subject is required for email notifications")
            if "@" not in self.recipient:
                raise ValueError("Recipient must be an email address")
        if self.channel == NotificationChannel.WHATSAPP:
            try:
                parsed = phonenumbers.parse(self.recipient, None)
            except phonenumbers.NumberParseException:
                raise ValueError(
                    "Phone number must be in international format (e.g., +1234567890)"
                )
            if not phonenumbers.is_possible_number(parsed):
                raise ValueError("Invalid phone number")
        return self


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BulkLeaseRow(BaseModel):
    tenant_email: EmailStr = Field(..., alias="Tenant Email")
    property_name: str = Field(..., alias="Property Name", min_length=1)
    unit_name: str = Field(..., alias="Unit Name", min_length=1)
    start_date: Union[str, int, float, datetime] = Field(..., alias="Start Date")
    end_date: Union[str, int, float, datetime] = Field(..., alias="End Date")
    payment_cycle: PaymentCycle = Field(..., alias="Payment Cycle")
    rent_amount: Decimal = Field(..., alias="Rent Amount")
    deposit_amount: Optional[Decimal] = Field(None, alias="Deposit Amount", ge=0)
    grace_period_days: Optional[int] = Field(None, alias="Grace Period Days", ge=0)
    is_auto_renew: bool = Field(False, alias="Auto Renew")
    auto_renewal_notice_days: Optional[int] = Field(
        None, alias="Auto Renewal Notice Days", ge=1
    )

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @field_validator("tenant_email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def require_date(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            label = "Start date" if info.field_name == "start_date" else "End date"
            raise ValueError(f"{label} is required")
        return value

    @field_validator("payment_cycle", mode="before")
    @classmethod
    def upper_cycle(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("rent_amount")
    @classmethod
    def positive_rent(cls, value: Decimal):
        if value <= 0:
            raise ValueError("Rent amount must be greater than 0")
        return value

    @field_validator(
        "deposit_amount",
        "grace_period_days",
        "auto_renewal_notice_days",
        mode="before",
    )
    @classmethod
    def empty_cell(cls, value):
        return _blank_to_none(value)

    @field_validator("is_auto_renew", mode="before")
    @classmethod
    def parse_auto_renew(cls, value):
        if value is None or value == "":
            return False
        return parse_boolean_field(value)


class BulkImportRequest(BaseModel):
    dry_run: bool = Field(False, alias="dryRun")
    rows: List[Dict[str, Any]]

    model_config = {"populate_by_name": True}


class ImportRow(BaseModel):
    row_index: int
    data: Dict[str, Any]
    errors: List[str] = Field(default_factory=list)


class ImportSummary(BaseModel):
    total: int
    valid: int
    invalid: int
    created: int = 0


class ImportReport(BaseModel):
    summary: ImportSummary
    valid_rows: List[ImportRow] = Field(default_factory=list)
    invalid_rows: List[ImportRow] = Field(default_factory=list)
    created_ids: List[uuid.UUID] = Field(default_factory=list)
    dry_run: bool = False
