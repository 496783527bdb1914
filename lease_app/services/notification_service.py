import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from core.date_helper import to_midnight
from core.isolation import run_isolated
from core.settings import settings
from models.enums import (
    EVENT_TRIGGERS,
    SCHEDULED_TRIGGERS,
    NotificationChannel,
    NotificationTrigger,
    RecipientType,
)
from models.models import LeaseAgreement
from repos.lease_repo import LeaseRepo
from repos.notification_repo import NotificationLogRepo, NotificationRuleRepo
from schemas.schema import (
    DispatchOutcome,
    ManualNotificationIn,
    RunReport,
    TriggerResult,
)
from services.credential_service import CredentialResolver, OrganizationCredentials
from services.notification_dispatch import NotificationDispatcher, render_template
from services.notification_rule_service import NotificationRuleEvaluator, RuleTarget

logger = logging.getLogger(__name__)


@dataclass
class Recipient:
    kind: RecipientType
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    channels: Tuple[NotificationChannel, ...] = ()

    def contact_for(self, channel: NotificationChannel) -> Optional[str]:
        if channel == NotificationChannel.EMAIL:
            return self.email
        return self.phone


@dataclass(frozen=True)
class TemplateText:
    subject: Optional[str]
    body: str


@dataclass
class LeaseNotificationResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def lease_variables(lease: LeaseAgreement) -> Dict[str, str]:
    unit = lease.unit
    return {
        "tenantName": lease.tenant.full_name,
        "leaseStartDate": f"{lease.start_date:%Y-%m-%d}",
        "leaseEndDate": f"{lease.end_date:%Y-%m-%d}",
        "rentAmount": str(lease.rent_amount),
        "propertyName": unit.property.name if unit.property else "",
        "unitName": unit.name,
    }


def recipients_for(rule: RuleTarget, lease: LeaseAgreement) -> List[Recipient]:
    if rule.recipient_type == RecipientType.USER:
        if not rule.recipient_email:
            return []
        return [
            Recipient(
                kind=RecipientType.USER,
                name=rule.recipient_name or rule.recipient_email,
                email=rule.recipient_email,
                channels=(NotificationChannel.EMAIL,),
            )
        ]

    tenant = lease.tenant
    preferred = []
    if tenant.prefer_email:
        preferred.append(NotificationChannel.EMAIL)
    if tenant.prefer_whatsapp:
        preferred.append(NotificationChannel.WHATSAPP)
    if tenant.prefer_telegram:
        preferred.append(NotificationChannel.TELEGRAM)
    return [
        Recipient(
            kind=RecipientType.TENANT,
            name=tenant.full_name,
            email=tenant.email,
            phone=tenant.phone,
            channels=tuple(preferred),
        )
    ]


class NotificationService:
    """Drives scheduled ticks, event triggers and manual sends."""

    def __init__(self, db, dispatcher: NotificationDispatcher | None = None):
        self.lease_repo = LeaseRepo(db)
        self.rule_repo = NotificationRuleRepo(db)
        self.log_repo = NotificationLogRepo(db)
        self.evaluator = NotificationRuleEvaluator(db)
        self.credential_resolver = CredentialResolver(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self._templates: Dict[tuple, Optional[TemplateText]] = {}

    async def _template(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        channel: NotificationChannel,
    ) -> Optional[TemplateText]:
        key = (organization_id, trigger, channel)
        if key not in self._templates:
            row = await self.rule_repo.get_template(organization_id, trigger, channel)
            self._templates[key] = (
                TemplateText(subject=row.subject, body=row.body) if row else None
            )
        return self._templates[key]

    async def _already_sent_today(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        lease_id: uuid.UUID,
        channel: NotificationChannel,
        now: datetime,
    ) -> bool:
        if not settings.NOTIFICATION_DEDUP_ENABLED:
            return False
        return await self.log_repo.exists_sent_on_day(
            organization_id, trigger, lease_id, channel, to_midnight(now)
        )

    async def process_lease(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        rule: RuleTarget,
        lease_id: uuid.UUID,
        credentials: OrganizationCredentials,
        now: datetime,
    ) -> LeaseNotificationResult:
        result = LeaseNotificationResult()
        lease = await self.lease_repo.get_with_details(lease_id, organization_id)
        if not lease:
            result.errors.append(f"Lease {lease_id} not found")
            return result

        recipients = recipients_for(rule, lease)
        if not recipients:
            result.errors.append(f"No recipients found for rule: {rule.name}")
            return result

        variables = lease_variables(lease)
        for recipient in recipients:
            for channel in recipient.channels:
                template = await self._template(organization_id, trigger, channel)
                if not template:
                    result.errors.append(
                        f"No template found for trigger {trigger.value} and channel {channel.value}"
                    )
                    continue

                contact = recipient.contact_for(channel)
                if not contact:
                    result.failed += 1
                    result.errors.append(
                        f"No {channel.value.lower()} contact for recipient: {recipient.name}"
                    )
                    continue

                if await self._already_sent_today(
                    organization_id, trigger, lease.id, channel, now
                ):
                    result.skipped += 1
                    logger.info(
                        f"Skipping {trigger.value}/{channel.value} for lease {lease.id}: already sent today"
                    )
                    continue

                rendered = {**variables, "recipientName": recipient.name}
                outcome: DispatchOutcome = await self.dispatcher.dispatch(
                    organization_id=organization_id,
                    trigger=trigger,
                    channel=channel,
                    recipient=contact,
                    subject=render_template(template.subject, rendered)
                    if template.subject
                    else None,
                    body=render_template(template.body, rendered),
                    credentials=credentials,
                    now=now,
                    related_entity_id=lease.id,
                )
                if outcome.success:
                    result.sent += 1
                else:
                    result.failed += 1
                    result.errors.append(
                        f"Failed to send {channel.value} to {contact}: {outcome.error}"
                    )
        return result

    def _absorb(self, totals: TriggerResult, match_key, outcome) -> None:
        totals.processed += 1
        if not outcome.success:
            totals.failed += 1
            totals.errors.append(f"{match_key}: {outcome.error}")
            return
        totals.sent += outcome.value.sent
        totals.failed += outcome.value.failed
        totals.errors.extend(outcome.value.errors)

    async def run_tick(self, now: datetime) -> RunReport:
        organizations = await self.rule_repo.get_organizations_with_active_rules()
        report = RunReport(processed_organizations=len(organizations))

        for organization_id, organization_name in [(o.id, o.name) for o in organizations]:
            creds = await run_isolated(
                organization_id, self.credential_resolver.resolve, organization_id, now
            )
            credentials = creds.value if creds.success else OrganizationCredentials()

            for trigger in SCHEDULED_TRIGGERS:
                totals = TriggerResult(
                    organization=organization_id,
                    organization_name=organization_name,
                    trigger=trigger,
                )
                if not creds.success:
                    totals.errors.append(f"Credentials unavailable: {creds.error}")

                evaluated = await run_isolated(
                    (organization_id, trigger),
                    self.evaluator.evaluate,
                    organization_id,
                    trigger,
                    now,
                )
                if not evaluated.success:
                    totals.errors.append(f"Rule evaluation failed: {evaluated.error}")
                    report.per_trigger_results.append(totals)
                    continue

                for match in evaluated.value:
                    outcome = await run_isolated(
                        match.lease_id,
                        self.process_lease,
                        organization_id,
                        trigger,
                        match.rule,
                        match.lease_id,
                        credentials,
                        now,
                    )
                    self._absorb(totals, f"Lease {match.lease_id}", outcome)

                if totals.processed or totals.errors:
                    report.per_trigger_results.append(totals)

        logger.info(
            f"Notification tick at {now:%Y-%m-%d %H:%M}: "
            f"{report.processed_organizations} organizations, "
            f"{sum(r.sent for r in report.per_trigger_results)} sent, "
            f"{sum(r.failed for r in report.per_trigger_results)} failed"
        )
        return report

    async def process_event(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        lease_id: uuid.UUID,
        now: datetime,
    ) -> TriggerResult:
        trigger = NotificationTrigger(trigger)
        if trigger not in EVENT_TRIGGERS:
            raise ValueError(f"{trigger.value} is not an event trigger")

        totals = TriggerResult(organization=organization_id, trigger=trigger)
        rules = [
            RuleTarget.from_rule(rule)
            for rule in await self.rule_repo.get_active_rules(organization_id, trigger)
        ]
        if not rules:
            return totals

        credentials = await self.credential_resolver.resolve(organization_id, now)
        for rule in rules:
            outcome = await run_isolated(
                lease_id,
                self.process_lease,
                organization_id,
                trigger,
                rule,
                lease_id,
                credentials,
                now,
            )
            self._absorb(totals, f"Rule {rule.name}", outcome)
        return totals

    async def send_manual(
        self,
        organization_id: uuid.UUID,
        payload: ManualNotificationIn,
        now: datetime,
    ) -> DispatchOutcome:
        credentials = await self.credential_resolver.resolve(organization_id, now)
        return await self.dispatcher.dispatch(
            organization_id=organization_id,
            trigger=NotificationTrigger.MANUAL,
            channel=payload.channel,
            recipient=payload.recipient,
            subject=payload.subject,
            body=payload.body,
            credentials=credentials,
            now=now,
            related_entity_id=payload.lease_id,
        )
