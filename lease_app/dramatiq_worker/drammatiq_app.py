import logging

import dramatiq
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AgeLimit, AsyncIO, Callbacks, Retries, TimeLimit

from core.settings import settings
from drammtiq_tasks.lease_jobs import (
    create_auto_renewal_task,
    create_cancel_unpaid_leases_task,
    create_end_expired_leases_task,
    create_process_notifications_task,
)

logger = logging.getLogger(__name__)

DAILY_JOBS = (
    ("process_notifications", "NOTIFICATIONS_CRON_HOUR"),
    ("process_auto_renewals", "AUTO_RENEWALS_CRON_HOUR"),
    ("end_expired_leases", "END_EXPIRED_CRON_HOUR"),
    ("cancel_unpaid_leases", "CANCEL_UNPAID_CRON_HOUR"),
)


class DramatiqManager:
    def __init__(self, start_scheduler: bool = True):
        self.REDIS_URL = settings.DRAMATIQ_REDIS_URL

        self.broker = RedisBroker(url=self.REDIS_URL)
        self.broker.add_middleware(AgeLimit(max_age=3600000))
        self.broker.add_middleware(TimeLimit(time_limit=600000))
        self.broker.add_middleware(Retries(max_retries=0))
        self.broker.add_middleware(Callbacks())
        self.broker.add_middleware(AsyncIO())

        dramatiq.set_broker(self.broker)

        self._register_tasks()

        self.scheduler = BackgroundScheduler(timezone="UTC")
        self._register_cron_jobs()
        if start_scheduler:
            self.scheduler.start()

    def _register_tasks(self):
        create_process_notifications_task()
        create_auto_renewal_task()
        create_end_expired_leases_task()
        create_cancel_unpaid_leases_task()

    def _register_cron_jobs(self):
        """One tick per job per day; a single scheduler instance is assumed."""
        for actor_name, hour_setting in DAILY_JOBS:
            self.scheduler.add_job(
                func=self.delay,
                args=(actor_name,),
                trigger=CronTrigger(hour=getattr(settings, hour_setting), minute=0),
                id=f"{actor_name.replace('_', '-')}-daily",
                replace_existing=True,
            )

    def delay(self, actor_name: str, *args, **kwargs):
        actor = self.broker.get_actor(actor_name)
        logger.info(f"Enqueueing {actor_name}")
        return actor.send(*args, **kwargs)


dramatiq_app = DramatiqManager()
