"""Database-wide statistics and maintenance use cases."""

import asyncio
import logging
from datetime import datetime, time
from typing import Callable, Optional, Tuple

from core.errors import storage_guard
from core.models import DatabaseStats, TodayStats
from core.repositories import (
    DoseReminderRepository,
    MedicineRepository,
    ScheduleRepository,
    TransactionManager
)

logger = logging.getLogger(__name__)


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """First and last representable instant of the local calendar day containing moment."""
    return (
        datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo),
        datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo),
    )


class GetDatabaseStatsUseCase:
    """Counts medicines, schedules and dose reminders."""

    def __init__(
        self,
        medicine_repository: MedicineRepository,
        schedule_repository: ScheduleRepository,
        dose_reminder_repository: DoseReminderRepository,
        clock: Callable[[], datetime] = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.medicine_repository = medicine_repository
        self.schedule_repository = schedule_repository
        self.dose_reminder_repository = dose_reminder_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(self) -> DatabaseStats:
        """
        Fetch the three collections concurrently and count them.

        Raises:
            StorageError: If any fetch fails; no partial counts are returned
        """
        async with storage_guard("get database stats", self.logger):
            tasks = [
                asyncio.ensure_future(self.medicine_repository.find_all()),
                asyncio.ensure_future(self.schedule_repository.find_all()),
                asyncio.ensure_future(self.dose_reminder_repository.find_all()),
            ]
            try:
                medicines, schedules, reminders = await asyncio.gather(*tasks)
            except BaseException:
                # First failure wins; stop the siblings and collect their outcomes
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return DatabaseStats(
            medicines=len(medicines),
            schedules=len(schedules),
            dose_reminders=len(reminders)
        )

    async def get_today_stats(self) -> TodayStats:
        """Base counts plus reminders scheduled for today."""
        base = await self.execute()
        start, end = day_bounds(self.clock())

        async with storage_guard("get today stats", self.logger):
            today = await self.dose_reminder_repository.find_by_date_range(start, end)

        return TodayStats(**base.model_dump(), today_reminders=len(today))


class ClearDatabaseUseCase:
    """Deletes every reminder, schedule and medicine in one transaction."""

    def __init__(
        self,
        medicine_repository: MedicineRepository,
        schedule_repository: ScheduleRepository,
        dose_reminder_repository: DoseReminderRepository,
        transaction_manager: TransactionManager,
        log: Optional[logging.Logger] = None
    ):
        self.medicine_repository = medicine_repository
        self.schedule_repository = schedule_repository
        self.dose_reminder_repository = dose_reminder_repository
        self.transaction_manager = transaction_manager
        self.logger = log or logger

    async def execute(self) -> DatabaseStats:
        """
        Remove all treatment data.

        Children go first: reminders, then schedules, then medicines.

        Returns:
            Counts of the deleted rows
        """
        async with storage_guard("clear database", self.logger):
            async with self.transaction_manager.transaction():
                reminders = await self.dose_reminder_repository.find_all()
                for reminder in reminders:
                    await self.dose_reminder_repository.delete(reminder.id)

                schedules = await self.schedule_repository.find_all()
                for schedule in schedules:
                    await self.schedule_repository.delete(schedule.id)

                medicines = await self.medicine_repository.find_all()
                for medicine in medicines:
                    await self.medicine_repository.delete(medicine.id)

        self.logger.info(
            "Database cleared",
            extra={
                "deleted_reminders": len(reminders),
                "deleted_schedules": len(schedules),
                "deleted_medicines": len(medicines),
            }
        )
        return DatabaseStats(
            medicines=len(medicines),
            schedules=len(schedules),
            dose_reminders=len(reminders)
        )
