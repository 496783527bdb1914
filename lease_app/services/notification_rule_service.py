import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from core.date_helper import day_window
from models.enums import SCHEDULED_TRIGGERS, NotificationTrigger, RecipientType
from models.models import LeaseAgreement, NotificationRule
from repos.lease_repo import LeaseRepo
from repos.notification_repo import NotificationRuleRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleTarget:
    """Plain copy of the rule fields a dispatch needs.

    Matches outlive the session state of the rows they came from: a failed
    write in one item rolls the session back and expires every loaded row.
    """

    id: uuid.UUID
    name: str
    recipient_type: RecipientType
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None

    @classmethod
    def from_rule(cls, rule: NotificationRule) -> "RuleTarget":
        user = rule.recipient_user
        return cls(
            id=rule.id,
            name=rule.name,
            recipient_type=RecipientType(rule.recipient_type),
            recipient_name=user.name if user else None,
            recipient_email=user.email if user else None,
        )


@dataclass(frozen=True)
class RuleMatch:
    organization_id: uuid.UUID
    trigger: NotificationTrigger
    rule: RuleTarget
    lease_id: uuid.UUID


class NotificationRuleEvaluator:
    """Turns active rules into (organization, trigger, lease) matches for one tick."""

    def __init__(self, db):
        self.rule_repo = NotificationRuleRepo(db)
        self.lease_repo = LeaseRepo(db)

    async def matching_leases(
        self, rule: NotificationRule, now: datetime
    ) -> List[LeaseAgreement]:
        trigger = NotificationTrigger(rule.trigger)

        if trigger == NotificationTrigger.PAYMENT_REMINDER:
            window_start, window_end = day_window(now, rule.days_offset or 0)
            return await self.lease_repo.get_unpaid_active_starting_between(
                rule.organization_id, window_start, window_end
            )

        if trigger == NotificationTrigger.LEASE_EXPIRING:
            window_start, window_end = day_window(now, rule.days_offset or 0)
            return await self.lease_repo.get_active_ending_between(
                rule.organization_id, window_start, window_end
            )

        if trigger == NotificationTrigger.PAYMENT_LATE:
            return await self.lease_repo.get_overdue_drafts(rule.organization_id, now)

        raise ValueError(f"{trigger.value} is not evaluated on a schedule")

    async def evaluate(
        self,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        now: datetime,
    ) -> List[RuleMatch]:
        trigger = NotificationTrigger(trigger)
        if trigger not in SCHEDULED_TRIGGERS:
            raise ValueError(f"{trigger.value} is not evaluated on a schedule")

        rules = await self.rule_repo.get_active_rules(organization_id, trigger)
        matches: List[RuleMatch] = []
        for rule in rules:
            target = RuleTarget.from_rule(rule)
            for lease in await self.matching_leases(rule, now):
                matches.append(
                    RuleMatch(
                        organization_id=organization_id,
                        trigger=trigger,
                        rule=target,
                        lease_id=lease.id,
                    )
                )

        logger.info(
            f"{trigger.value} for organization {organization_id}: "
            f"{len(rules)} rules, {len(matches)} matches"
        )
        return matches
