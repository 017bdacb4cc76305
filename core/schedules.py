"""Dose scheduling use cases: create plans, take and skip doses, read history."""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from core.errors import ConflictError, InvalidInputError, NotFoundError, storage_guard
from core.models import DoseReminder, DoseReminderView, Medicine, Schedule
from core.repositories import (
    DoseReminderRepository,
    MedicineRepository,
    ScheduleRepository,
    TransactionManager
)
from core.scheduling import check_horizon, expand_schedule, parse_start_time

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CreateScheduleUseCase:
    """Validates a plan, stores it and stores every dose it implies, atomically."""

    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        dose_reminder_repository: DoseReminderRepository,
        transaction_manager: TransactionManager,
        clock: Clock = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.schedule_repository = schedule_repository
        self.dose_reminder_repository = dose_reminder_repository
        self.transaction_manager = transaction_manager
        self.clock = clock
        self.logger = log or logger

    async def execute(
        self,
        medicine_id: int,
        interval_hours: int,
        duration_days: int,
        start_time: str,
        notes: Optional[str] = None
    ) -> Schedule:
        """
        Create a schedule and its dose reminders.

        The schedule row and all reminder rows are written in one
        transaction: if any write fails nothing is kept.

        Args:
            medicine_id: Medicine the plan is for (existence is not checked)
            interval_hours: Hours between doses, > 0
            duration_days: Length of the treatment in days, > 0
            start_time: First dose of the day, "HH:MM"
            notes: Optional free text

        Returns:
            The persisted schedule

        Raises:
            InvalidInputError: On invalid parameters, before any storage call
            StorageError: If the storage collaborator fails
        """
        if interval_hours <= 0:
            raise InvalidInputError(
                "Interval between doses must be greater than 0",
                interval_hours=interval_hours
            )
        if duration_days <= 0:
            raise InvalidInputError(
                "Treatment duration must be greater than 0",
                duration_days=duration_days
            )
        if not start_time:
            raise InvalidInputError("Start time is required")
        parse_start_time(start_time)

        now = self.clock()
        check_horizon(now, duration_days)
        schedule = Schedule.create(
            medicine_id=medicine_id,
            interval_hours=interval_hours,
            duration_days=duration_days,
            start_time=start_time,
            notes=notes,
            now=now
        )

        async with storage_guard("create schedule", self.logger, medicine_id=medicine_id):
            async with self.transaction_manager.transaction():
                created = await self.schedule_repository.create(schedule)

                if created.id is None:
                    self.logger.warning(
                        "Schedule persisted without an id, no reminders generated",
                        extra={"medicine_id": medicine_id}
                    )
                    return created

                reminders = expand_schedule(created, now=now)
                for reminder in reminders:
                    await self.dose_reminder_repository.create(reminder)

        self.logger.info(
            f"Created schedule {created.id} with {len(reminders)} reminders",
            extra={"schedule_id": created.id, "medicine_id": medicine_id}
        )
        return created


class MarkDoseAsTakenUseCase:
    """Moves one reminder from pending to taken."""

    def __init__(
        self,
        dose_reminder_repository: DoseReminderRepository,
        clock: Clock = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.dose_reminder_repository = dose_reminder_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(self, reminder_id: int) -> DoseReminder:
        """
        Mark a dose as taken.

        Raises:
            NotFoundError: If no reminder has this id
            ConflictError: If the dose was already taken
        """
        async with storage_guard("mark dose as taken", self.logger, reminder_id=reminder_id):
            reminder = await self.dose_reminder_repository.find_by_id(reminder_id)
            if reminder is None:
                raise NotFoundError("Dose reminder not found", reminder_id=reminder_id)
            if reminder.is_taken:
                raise ConflictError(
                    "This dose has already been marked as taken",
                    reminder_id=reminder_id
                )

            updated = await self.dose_reminder_repository.update(
                reminder.mark_as_taken(self.clock())
            )

        self.logger.info(f"Dose {reminder_id} marked as taken", extra={"reminder_id": reminder_id})
        return updated


class SkipDoseUseCase:
    """Moves one pending reminder to skipped."""

    def __init__(
        self,
        dose_reminder_repository: DoseReminderRepository,
        log: Optional[logging.Logger] = None
    ):
        self.dose_reminder_repository = dose_reminder_repository
        self.logger = log or logger

    async def execute(self, reminder_id: int) -> DoseReminder:
        async with storage_guard("skip dose", self.logger, reminder_id=reminder_id):
            reminder = await self.dose_reminder_repository.find_by_id(reminder_id)
            if reminder is None:
                raise NotFoundError("Dose reminder not found", reminder_id=reminder_id)
            if not reminder.is_pending():
                raise ConflictError(
                    f"This dose is already {reminder.status().value}",
                    reminder_id=reminder_id
                )

            updated = await self.dose_reminder_repository.update(reminder.mark_as_skipped())

        self.logger.info(f"Dose {reminder_id} skipped", extra={"reminder_id": reminder_id})
        return updated


class SetScheduleActiveUseCase:
    """Activates or deactivates a schedule."""

    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        log: Optional[logging.Logger] = None
    ):
        self.schedule_repository = schedule_repository
        self.logger = log or logger

    async def execute(self, schedule_id: int, active: bool) -> Schedule:
        async with storage_guard("update schedule", self.logger, schedule_id=schedule_id):
            schedule = await self.schedule_repository.find_by_id(schedule_id)
            if schedule is None:
                raise NotFoundError("Schedule not found", schedule_id=schedule_id)

            toggled = schedule.activate() if active else schedule.deactivate()
            return await self.schedule_repository.update(toggled)


class GetDoseRemindersUseCase:
    """Dose history joined with medicine names, newest first."""

    def __init__(
        self,
        dose_reminder_repository: DoseReminderRepository,
        medicine_repository: MedicineRepository,
        clock: Clock = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.dose_reminder_repository = dose_reminder_repository
        self.medicine_repository = medicine_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(
        self,
        medicine_id: Optional[int] = None,
        taken: Optional[bool] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[DoseReminderView]:
        """
        List reminders matching every given filter.

        Args:
            medicine_id: Only reminders for this medicine
            taken: Only taken (True) or not taken (False) reminders
            start: Window start, inclusive (requires end)
            end: Window end, inclusive (requires start)
        """
        if (start is None) != (end is None):
            raise InvalidInputError("start and end must be given together")
        if start is not None and start > end:
            raise InvalidInputError("start must not be after end", start=start, end=end)

        async with storage_guard("load dose history", self.logger):
            if start is not None:
                reminders = await self.dose_reminder_repository.find_by_date_range(start, end)
            elif medicine_id is not None:
                reminders = await self.dose_reminder_repository.find_by_medicine_id(medicine_id)
            elif taken:
                reminders = await self.dose_reminder_repository.find_taken()
            else:
                reminders = await self.dose_reminder_repository.find_all()

            if medicine_id is not None:
                reminders = [r for r in reminders if r.medicine_id == medicine_id]
            if taken is not None:
                reminders = [r for r in reminders if r.is_taken == taken]

            medicines: Dict[int, Optional[Medicine]] = {}
            for medicine_key in {r.medicine_id for r in reminders}:
                medicines[medicine_key] = await self.medicine_repository.find_by_id(medicine_key)

        now = self.clock()
        views = []
        for reminder in reminders:
            medicine = medicines.get(reminder.medicine_id)
            views.append(DoseReminderView(
                reminder=reminder,
                medicine_name=medicine.name if medicine else "Unknown medicine",
                dosage=medicine.dosage if medicine else "",
                status=reminder.status(now)
            ))

        views.sort(key=lambda view: view.reminder.scheduled_time, reverse=True)
        return views

    async def get_by_date_range(self, start: datetime, end: datetime) -> List[DoseReminderView]:
        return await self.execute(start=start, end=end)

    async def get_taken(self) -> List[DoseReminderView]:
        return await self.execute(taken=True)
