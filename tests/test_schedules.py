"""Tests for the dose scheduling use cases."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from core.errors import ConflictError, InvalidInputError, NotFoundError, StorageError
from core.models import DoseReminder, DoseStatus, Medicine, Schedule
from core.repositories import DoseReminderRepository, ScheduleRepository
from core.schedules import (
    CreateScheduleUseCase,
    GetDoseRemindersUseCase,
    MarkDoseAsTakenUseCase,
    SetScheduleActiveUseCase,
    SkipDoseUseCase
)
from db.memory import InMemoryDoseReminderRepository, InMemoryStore

# Matches the default of the clock fixture
FIXED_NOW = datetime(2026, 3, 10, 6, 0)


class FlakyReminderRepository(InMemoryDoseReminderRepository):
    """Fails on the Nth create call, like a dropped connection mid-batch."""

    def __init__(self, store: InMemoryStore, fail_on: int):
        super().__init__(store)
        self.fail_on = fail_on
        self.calls = 0

    async def create(self, reminder):
        self.calls += 1
        if self.calls == self.fail_on:
            raise ConnectionError("connection reset by peer")
        return await super().create(reminder)


def create_use_case(store: InMemoryStore, clock, reminders=None) -> CreateScheduleUseCase:
    return CreateScheduleUseCase(
        store.schedules,
        reminders or store.dose_reminders,
        store,
        clock=clock
    )


async def seed_reminder(store: InMemoryStore, **fields) -> DoseReminder:
    reminder = DoseReminder.create(
        schedule_id=1,
        medicine_id=1,
        scheduled_time=FIXED_NOW + timedelta(hours=2),
        now=FIXED_NOW
    )
    return await store.dose_reminders.create(reminder.model_copy(update=fields))


@pytest.mark.asyncio
async def test_create_schedule_persists_schedule_and_reminders(store, clock):
    schedule = await create_use_case(store, clock).execute(
        medicine_id=1, interval_hours=8, duration_days=2, start_time="06:00", notes="after meals"
    )

    assert schedule.id is not None
    assert schedule.is_active
    assert schedule.created_at == FIXED_NOW
    assert await store.schedules.find_by_id(schedule.id) == schedule

    reminders = await store.dose_reminders.find_by_schedule_id(schedule.id)
    assert len(reminders) == 6
    assert {r.scheduled_time.hour for r in reminders} == {6, 14, 22}
    assert all(r.medicine_id == 1 and r.id is not None for r in reminders)


@pytest.mark.asyncio
async def test_create_schedule_anchors_on_creation_time(store, clock):
    clock.now = datetime(2026, 7, 1, 23, 50)

    schedule = await create_use_case(store, clock).execute(
        medicine_id=1, interval_hours=24, duration_days=2, start_time="08:00"
    )

    reminders = await store.dose_reminders.find_by_schedule_id(schedule.id)
    assert [r.scheduled_time for r in reminders] == [
        datetime(2026, 7, 1, 8, 0),
        datetime(2026, 7, 2, 8, 0),
    ]


@pytest.mark.asyncio
async def test_reminders_persisted_in_expansion_order(clock):
    schedules = AsyncMock(spec=ScheduleRepository)
    schedules.create.side_effect = lambda s: s.with_id(11)
    reminders = AsyncMock(spec=DoseReminderRepository)
    reminders.create.side_effect = lambda r: r

    await CreateScheduleUseCase(schedules, reminders, InMemoryStore(), clock=clock).execute(
        medicine_id=2, interval_hours=6, duration_days=1, start_time="08:00"
    )

    persisted = [call.args[0].scheduled_time for call in reminders.create.await_args_list]
    assert persisted == [
        datetime(2026, 3, 10, 8, 0),
        datetime(2026, 3, 10, 14, 0),
        datetime(2026, 3, 10, 20, 0),
        datetime(2026, 3, 11, 2, 0),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("interval_hours, duration_days, start_time, message", [
    (0, 1, "08:00", "Interval"),
    (-4, 1, "08:00", "Interval"),
    (0, 0, "", "Interval"),
    (8, 0, "08:00", "duration"),
    (8, -1, "08:00", "duration"),
    (8, 1, "", "Start time is required"),
    (8, 1, "8am", "HH:MM"),
    (8, 1, "25:00", "valid clock time"),
    (8, 10_000_000, "08:00", "too long"),
])
async def test_create_schedule_validation_fails_before_storage(
    clock, interval_hours, duration_days, start_time, message
):
    schedules = AsyncMock(spec=ScheduleRepository)
    reminders = AsyncMock(spec=DoseReminderRepository)
    use_case = CreateScheduleUseCase(schedules, reminders, InMemoryStore(), clock=clock)

    with pytest.raises(InvalidInputError, match=message):
        await use_case.execute(
            medicine_id=1,
            interval_hours=interval_hours,
            duration_days=duration_days,
            start_time=start_time
        )

    assert schedules.method_calls == []
    assert reminders.method_calls == []
    assert schedules.create.await_count == 0
    assert reminders.create.await_count == 0


@pytest.mark.asyncio
async def test_create_schedule_without_id_skips_reminders(clock):
    schedules = AsyncMock(spec=ScheduleRepository)
    schedules.create.side_effect = lambda s: s  # Backend that assigns no id
    reminders = AsyncMock(spec=DoseReminderRepository)

    result = await CreateScheduleUseCase(schedules, reminders, InMemoryStore(), clock=clock).execute(
        medicine_id=1, interval_hours=8, duration_days=1, start_time="08:00"
    )

    assert result.id is None
    assert reminders.create.await_count == 0


@pytest.mark.asyncio
async def test_failure_mid_batch_rolls_back_everything(store, clock):
    flaky = FlakyReminderRepository(store, fail_on=3)

    with pytest.raises(StorageError) as exc_info:
        await create_use_case(store, clock, reminders=flaky).execute(
            medicine_id=1, interval_hours=8, duration_days=2, start_time="08:00"
        )

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert "connection reset" not in str(exc_info.value)
    assert await store.schedules.find_all() == []
    assert await store.dose_reminders.find_all() == []


@pytest.mark.asyncio
async def test_schedule_repository_failure_aborts_reminder_generation(store, clock):
    schedules = AsyncMock(spec=ScheduleRepository)
    schedules.create.side_effect = OSError("disk full")
    reminders = AsyncMock(spec=DoseReminderRepository)

    with pytest.raises(StorageError):
        await CreateScheduleUseCase(schedules, reminders, store, clock=clock).execute(
            medicine_id=1, interval_hours=8, duration_days=1, start_time="08:00"
        )

    assert reminders.create.await_count == 0


@pytest.mark.asyncio
async def test_domain_errors_from_storage_are_not_wrapped(clock):
    schedules = AsyncMock(spec=ScheduleRepository)
    schedules.create.side_effect = NotFoundError("Medicine not found", medicine_id=99)

    with pytest.raises(NotFoundError):
        await CreateScheduleUseCase(
            schedules, AsyncMock(spec=DoseReminderRepository), InMemoryStore(), clock=clock
        ).execute(medicine_id=99, interval_hours=8, duration_days=1, start_time="08:00")


@pytest.mark.asyncio
async def test_mark_dose_as_taken(store, clock):
    reminder = await seed_reminder(store)
    clock.now = FIXED_NOW + timedelta(hours=2, minutes=5)

    taken = await MarkDoseAsTakenUseCase(store.dose_reminders, clock=clock).execute(reminder.id)

    assert taken.is_taken is True
    assert taken.taken_at == clock.now
    assert await store.dose_reminders.find_by_id(reminder.id) == taken


@pytest.mark.asyncio
async def test_mark_dose_as_taken_twice_conflicts_and_keeps_state(store, clock):
    reminder = await seed_reminder(store)
    use_case = MarkDoseAsTakenUseCase(store.dose_reminders, clock=clock)
    first = await use_case.execute(reminder.id)

    clock.now = FIXED_NOW + timedelta(days=1)
    with pytest.raises(ConflictError):
        await use_case.execute(reminder.id)

    assert await store.dose_reminders.find_by_id(reminder.id) == first


@pytest.mark.asyncio
async def test_mark_dose_as_taken_conflict_does_not_update(clock):
    reminders = AsyncMock(spec=DoseReminderRepository)
    reminders.find_by_id.return_value = DoseReminder.create(
        schedule_id=1, medicine_id=1, scheduled_time=FIXED_NOW
    ).with_id(5).mark_as_taken(FIXED_NOW)

    with pytest.raises(ConflictError):
        await MarkDoseAsTakenUseCase(reminders, clock=clock).execute(5)

    reminders.update.assert_not_awaited()


@pytest.mark.asyncio
async def test_mark_missing_dose_is_not_found(store, clock):
    with pytest.raises(NotFoundError) as exc_info:
        await MarkDoseAsTakenUseCase(store.dose_reminders, clock=clock).execute(404)

    assert exc_info.value.context == {"reminder_id": 404}


@pytest.mark.asyncio
async def test_skip_dose(store):
    reminder = await seed_reminder(store)
    use_case = SkipDoseUseCase(store.dose_reminders)

    skipped = await use_case.execute(reminder.id)
    assert skipped.is_skipped is True

    with pytest.raises(ConflictError, match="skipped"):
        await use_case.execute(reminder.id)


@pytest.mark.asyncio
async def test_skip_taken_dose_conflicts(store):
    reminder = await seed_reminder(store, is_taken=True, taken_at=FIXED_NOW)

    with pytest.raises(ConflictError, match="taken"):
        await SkipDoseUseCase(store.dose_reminders).execute(reminder.id)


@pytest.mark.asyncio
async def test_skipped_dose_can_still_be_taken(store, clock):
    reminder = await seed_reminder(store, is_skipped=True)

    taken = await MarkDoseAsTakenUseCase(store.dose_reminders, clock=clock).execute(reminder.id)

    assert taken.is_taken and not taken.is_skipped


@pytest.mark.asyncio
async def test_set_schedule_active(store):
    schedule = await store.schedules.create(
        Schedule.create(medicine_id=1, interval_hours=8, duration_days=3, start_time="08:00")
    )
    use_case = SetScheduleActiveUseCase(store.schedules)

    inactive = await use_case.execute(schedule.id, False)
    assert inactive.is_active is False
    assert await store.schedules.find_active() == []

    active = await use_case.execute(schedule.id, True)
    assert active.is_active is True

    with pytest.raises(NotFoundError):
        await use_case.execute(999, True)


@pytest.fixture
async def history_store(store, clock):
    """Two medicines with one schedule each; the first dose of each is taken."""
    paracetamol = await store.medicines.create(Medicine.create(name="Paracetamol", dosage="750mg"))
    omeprazole = await store.medicines.create(Medicine.create(name="Omeprazole", dosage="20mg"))

    create = create_use_case(store, clock)
    await create.execute(paracetamol.id, interval_hours=12, duration_days=1, start_time="08:00")
    await create.execute(omeprazole.id, interval_hours=24, duration_days=2, start_time="07:00")

    take = MarkDoseAsTakenUseCase(store.dose_reminders, clock=clock)
    for medicine in (paracetamol, omeprazole):
        first = (await store.dose_reminders.find_by_medicine_id(medicine.id))[-1]
        await take.execute(first.id)
    return store


@pytest.mark.asyncio
async def test_dose_history_joins_medicine_names_newest_first(history_store, clock):
    clock.now = datetime(2026, 3, 10, 12, 0)
    use_case = GetDoseRemindersUseCase(history_store.dose_reminders, history_store.medicines, clock=clock)

    views = await use_case.execute()

    assert [(v.medicine_name, v.reminder.scheduled_time) for v in views] == [
        ("Omeprazole", datetime(2026, 3, 11, 7, 0)),
        ("Paracetamol", datetime(2026, 3, 10, 20, 0)),
        ("Paracetamol", datetime(2026, 3, 10, 8, 0)),
        ("Omeprazole", datetime(2026, 3, 10, 7, 0)),
    ]
    assert [v.status for v in views] == [
        DoseStatus.PENDING, DoseStatus.PENDING, DoseStatus.TAKEN, DoseStatus.TAKEN
    ]


@pytest.mark.asyncio
async def test_dose_history_filters(history_store, clock):
    use_case = GetDoseRemindersUseCase(history_store.dose_reminders, history_store.medicines, clock=clock)

    taken = await use_case.get_taken()
    assert len(taken) == 2 and all(v.reminder.is_taken for v in taken)

    not_taken = await use_case.execute(taken=False)
    assert len(not_taken) == 2

    paracetamol = await use_case.execute(medicine_id=1)
    assert {v.dosage for v in paracetamol} == {"750mg"}
    assert len(paracetamol) == 2

    pending_paracetamol = await use_case.execute(medicine_id=1, taken=False)
    assert len(pending_paracetamol) == 1

    day_one = await use_case.get_by_date_range(datetime(2026, 3, 10), datetime(2026, 3, 10, 23, 59))
    assert len(day_one) == 3


@pytest.mark.asyncio
async def test_dose_history_unknown_medicine(store, clock):
    await seed_reminder(store, medicine_id=42)

    views = await GetDoseRemindersUseCase(store.dose_reminders, store.medicines, clock=clock).execute()

    assert views[0].medicine_name == "Unknown medicine"


@pytest.mark.asyncio
async def test_dose_history_rejects_half_open_window(store):
    use_case = GetDoseRemindersUseCase(store.dose_reminders, store.medicines)

    with pytest.raises(InvalidInputError):
        await use_case.execute(start=datetime(2026, 3, 10))
    with pytest.raises(InvalidInputError):
        await use_case.execute(start=datetime(2026, 3, 11), end=datetime(2026, 3, 10))
