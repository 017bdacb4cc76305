"""PostgreSQL implementations of the repository contracts."""

import logging
from datetime import datetime
from typing import Any, ClassVar, List, Optional, Sequence, Type

from core.errors import InvalidInputError, NotFoundError
from core.models import DoseReminder, Entity, Medicine, Schedule, User
from core.repositories import (
    DoseReminderRepository,
    MedicineRepository,
    Repositories,
    ScheduleRepository,
    UserRepository
)
from db.pool import DatabasePool

logger = logging.getLogger(__name__)


class PostgresRepository:
    """Shared insert/update/select plumbing for one table."""

    table: ClassVar[str]
    entity: ClassVar[Type[Entity]]
    columns: ClassVar[Sequence[str]]

    def __init__(self, db_pool: DatabasePool):
        self.db_pool = db_pool

    def _row_to_entity(self, row) -> Any:
        return self.entity.from_persistence(dict(row)) if row is not None else None

    async def _fetch(self, query: str, *args) -> List[Any]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
        return [self._row_to_entity(row) for row in rows]

    async def _fetch_one(self, query: str, *args) -> Optional[Any]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        return self._row_to_entity(row)

    async def _insert(self, entity: Entity):
        data = entity.to_persistence()
        placeholders = ", ".join(f"${i}" for i in range(1, len(self.columns) + 1))
        query = f"""
            INSERT INTO {self.table} ({", ".join(self.columns)})
            VALUES ({placeholders})
            RETURNING id
        """
        async with self.db_pool.acquire() as conn:
            entity_id = await conn.fetchval(query, *(data[column] for column in self.columns))

        logger.debug(f"Inserted {self.table} row {entity_id}")
        return entity.with_id(entity_id)

    async def _update(self, entity: Entity):
        if entity.id is None:
            raise InvalidInputError(f"{self.entity.__name__} id is required for update")

        data = entity.to_persistence()
        assignments = ", ".join(
            f"{column} = ${i}" for i, column in enumerate(self.columns, start=2)
        )
        query = f"UPDATE {self.table} SET {assignments} WHERE id = $1 RETURNING id"
        async with self.db_pool.acquire() as conn:
            updated_id = await conn.fetchval(
                query, entity.id, *(data[column] for column in self.columns)
            )

        if updated_id is None:
            raise NotFoundError(f"{self.entity.__name__} not found", id=entity.id)
        return entity

    async def find_by_id(self, entity_id: int):
        return await self._fetch_one(f"SELECT * FROM {self.table} WHERE id = $1", entity_id)

    async def delete(self, entity_id: int) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute(f"DELETE FROM {self.table} WHERE id = $1", entity_id)


class PostgresMedicineRepository(PostgresRepository, MedicineRepository):
    table = "medicines"
    entity = Medicine
    columns = (
        "name", "dosage", "description", "quantity", "unit", "form", "image_uri", "created_at"
    )

    async def create(self, medicine: Medicine) -> Medicine:
        return await self._insert(medicine)

    async def update(self, medicine: Medicine) -> Medicine:
        return await self._update(medicine)

    async def find_by_name(self, name: str) -> List[Medicine]:
        return await self._fetch(
            "SELECT * FROM medicines WHERE name ILIKE $1 ORDER BY name ASC",
            f"%{name}%"
        )

    async def find_all(self) -> List[Medicine]:
        return await self._fetch("SELECT * FROM medicines ORDER BY created_at DESC")

    async def find_active(self) -> List[Medicine]:
        return await self._fetch(
            """
            SELECT DISTINCT m.* FROM medicines m
            INNER JOIN schedules s ON m.id = s.medicine_id
            WHERE s.is_active
            ORDER BY m.name ASC
            """
        )


class PostgresScheduleRepository(PostgresRepository, ScheduleRepository):
    table = "schedules"
    entity = Schedule
    columns = (
        "medicine_id", "interval_hours", "duration_days", "start_time",
        "notes", "is_active", "created_at"
    )

    async def create(self, schedule: Schedule) -> Schedule:
        return await self._insert(schedule)

    async def update(self, schedule: Schedule) -> Schedule:
        return await self._update(schedule)

    async def find_by_medicine_id(self, medicine_id: int) -> List[Schedule]:
        return await self._fetch(
            "SELECT * FROM schedules WHERE medicine_id = $1 ORDER BY created_at DESC",
            medicine_id
        )

    async def find_all(self) -> List[Schedule]:
        return await self._fetch("SELECT * FROM schedules ORDER BY created_at DESC")

    async def find_active(self) -> List[Schedule]:
        return await self._fetch(
            "SELECT * FROM schedules WHERE is_active ORDER BY created_at DESC"
        )

    async def find_expired(self) -> List[Schedule]:
        return await self._fetch(
            """
            SELECT * FROM schedules
            WHERE created_at + make_interval(days => duration_days) < $1
            ORDER BY created_at DESC
            """,
            datetime.now()
        )


class PostgresDoseReminderRepository(PostgresRepository, DoseReminderRepository):
    table = "dose_reminders"
    entity = DoseReminder
    columns = (
        "schedule_id", "medicine_id", "scheduled_time", "taken_at",
        "is_taken", "is_skipped", "created_at"
    )

    async def create(self, reminder: DoseReminder) -> DoseReminder:
        return await self._insert(reminder)

    async def update(self, reminder: DoseReminder) -> DoseReminder:
        return await self._update(reminder)

    async def find_by_schedule_id(self, schedule_id: int) -> List[DoseReminder]:
        return await self._fetch(
            "SELECT * FROM dose_reminders WHERE schedule_id = $1 ORDER BY scheduled_time ASC",
            schedule_id
        )

    async def find_by_medicine_id(self, medicine_id: int) -> List[DoseReminder]:
        return await self._fetch(
            "SELECT * FROM dose_reminders WHERE medicine_id = $1 ORDER BY scheduled_time DESC",
            medicine_id
        )

    async def find_pending(self) -> List[DoseReminder]:
        return await self._fetch(
            """
            SELECT * FROM dose_reminders
            WHERE NOT is_taken AND NOT is_skipped
            ORDER BY scheduled_time ASC
            """
        )

    async def find_overdue(self) -> List[DoseReminder]:
        return await self._fetch(
            """
            SELECT * FROM dose_reminders
            WHERE NOT is_taken AND NOT is_skipped AND scheduled_time < $1
            ORDER BY scheduled_time ASC
            """,
            datetime.now()
        )

    async def find_taken(self) -> List[DoseReminder]:
        return await self._fetch(
            "SELECT * FROM dose_reminders WHERE is_taken ORDER BY taken_at DESC"
        )

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[DoseReminder]:
        return await self._fetch(
            """
            SELECT * FROM dose_reminders
            WHERE scheduled_time BETWEEN $1 AND $2
            ORDER BY scheduled_time ASC
            """,
            start,
            end
        )

    async def find_all(self) -> List[DoseReminder]:
        return await self._fetch("SELECT * FROM dose_reminders ORDER BY scheduled_time DESC")

    async def delete_by_schedule_id(self, schedule_id: int) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute("DELETE FROM dose_reminders WHERE schedule_id = $1", schedule_id)


class PostgresUserRepository(PostgresRepository, UserRepository):
    table = "users"
    entity = User
    columns = (
        "name", "email", "phone", "birth_date", "avatar_uri", "created_at", "updated_at"
    )

    async def create(self, user: User) -> User:
        return await self._insert(user)

    async def update(self, user: User) -> User:
        return await self._update(user)

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._fetch_one("SELECT * FROM users WHERE email = $1 LIMIT 1", email)

    async def find_all(self) -> List[User]:
        return await self._fetch("SELECT * FROM users ORDER BY id ASC")


def postgres_repositories(db_pool: DatabasePool) -> Repositories:
    """Repositories sharing one pool; the pool doubles as transaction manager."""
    return Repositories(
        medicines=PostgresMedicineRepository(db_pool),
        schedules=PostgresScheduleRepository(db_pool),
        dose_reminders=PostgresDoseReminderRepository(db_pool),
        users=PostgresUserRepository(db_pool),
        transaction_manager=db_pool
    )
