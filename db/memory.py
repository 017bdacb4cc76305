"""In-process storage backend for tests and local runs without PostgreSQL."""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import InvalidInputError, NotFoundError
from core.models import DoseReminder, Entity, Medicine, Schedule, User
from core.repositories import (
    DoseReminderRepository,
    MedicineRepository,
    Repositories,
    ScheduleRepository,
    TransactionManager,
    UserRepository
)

logger = logging.getLogger(__name__)

# (table, row id, row before the write or None if the row did not exist)
UndoEntry = Tuple["Table", int, Optional[Entity]]

# Undo journal of the transaction the current task is running in
_journal: ContextVar[Optional[List[UndoEntry]]] = ContextVar("in_memory_journal", default=None)


class Table:
    """Rows of one entity type keyed by id, with an auto-increment counter."""

    def __init__(self, name: str):
        self.name = name
        self.rows: Dict[int, Entity] = {}
        self.next_id = 1

    def _record(self, entity_id: int) -> None:
        journal = _journal.get()
        if journal is not None:
            journal.append((self, entity_id, self.rows.get(entity_id)))

    def insert(self, entity: Entity) -> Entity:
        stored = entity.with_id(self.next_id)
        self._record(stored.id)
        self.rows[stored.id] = stored
        self.next_id += 1
        return stored

    def replace(self, entity: Entity) -> Entity:
        if entity.id is None:
            raise InvalidInputError(f"{type(entity).__name__} id is required for update")
        if entity.id not in self.rows:
            raise NotFoundError(f"{type(entity).__name__} not found", id=entity.id)
        self._record(entity.id)
        self.rows[entity.id] = entity
        return entity

    def get(self, entity_id: int) -> Optional[Entity]:
        return self.rows.get(entity_id)

    def remove(self, entity_id: int) -> None:
        if entity_id in self.rows:
            self._record(entity_id)
            del self.rows[entity_id]

    def select(self, predicate: Callable[[Entity], bool] = lambda _: True) -> List[Entity]:
        return [row for row in self.rows.values() if predicate(row)]

    def undo(self, entity_id: int, previous: Optional[Entity]) -> None:
        """Put one row back as it was; ids handed out stay used."""
        if previous is None:
            self.rows.pop(entity_id, None)
        else:
            self.rows[entity_id] = previous

    def clear(self) -> None:
        self.rows.clear()
        self.next_id = 1


class InMemoryStore(TransactionManager):
    """
    Holds every table and hands out repositories bound to them.

    Transactions are serialised with a lock. Each one journals the rows it
    writes and, when the block raises, undoes only those writes, newest
    first. Writes made by other tasks outside the transaction are kept.
    """

    def __init__(self):
        self.tables = {
            name: Table(name)
            for name in ("medicines", "schedules", "dose_reminders", "users")
        }
        self._lock = asyncio.Lock()

        self.medicines = InMemoryMedicineRepository(self)
        self.schedules = InMemoryScheduleRepository(self)
        self.dose_reminders = InMemoryDoseReminderRepository(self)
        self.users = InMemoryUserRepository(self)

    @asynccontextmanager
    async def transaction(self):
        if _journal.get() is not None:
            yield
            return

        async with self._lock:
            journal: List[UndoEntry] = []
            token = _journal.set(journal)
            try:
                yield
            except BaseException:
                for table, entity_id, previous in reversed(journal):
                    table.undo(entity_id, previous)
                logger.debug(f"In-memory transaction rolled back {len(journal)} writes")
                raise
            finally:
                _journal.reset(token)

    def clear(self) -> None:
        """Drop every row and restart id numbering."""
        for table in self.tables.values():
            table.clear()

    def repositories(self) -> Repositories:
        return Repositories(
            medicines=self.medicines,
            schedules=self.schedules,
            dose_reminders=self.dose_reminders,
            users=self.users,
            transaction_manager=self
        )


class InMemoryRepository:

    table_name: str

    def __init__(self, store: InMemoryStore):
        self.store = store

    @property
    def table(self) -> Table:
        return self.store.tables[self.table_name]

    async def create(self, entity):
        return self.table.insert(entity)

    async def update(self, entity):
        return self.table.replace(entity)

    async def find_by_id(self, entity_id: int):
        return self.table.get(entity_id)

    async def delete(self, entity_id: int) -> None:
        self.table.remove(entity_id)


class InMemoryMedicineRepository(InMemoryRepository, MedicineRepository):
    table_name = "medicines"

    async def find_by_name(self, name: str) -> List[Medicine]:
        needle = name.lower()
        rows = self.table.select(lambda m: needle in m.name.lower())
        return sorted(rows, key=lambda m: m.name)

    async def find_all(self) -> List[Medicine]:
        return sorted(self.table.select(), key=lambda m: m.created_at, reverse=True)

    async def find_active(self) -> List[Medicine]:
        active_ids = {
            s.medicine_id for s in self.store.tables["schedules"].select(lambda s: s.is_active)
        }
        rows = self.table.select(lambda m: m.id in active_ids)
        return sorted(rows, key=lambda m: m.name)


class InMemoryScheduleRepository(InMemoryRepository, ScheduleRepository):
    table_name = "schedules"

    def _newest_first(self, rows: List[Schedule]) -> List[Schedule]:
        return sorted(rows, key=lambda s: s.created_at, reverse=True)

    async def find_by_medicine_id(self, medicine_id: int) -> List[Schedule]:
        return self._newest_first(self.table.select(lambda s: s.medicine_id == medicine_id))

    async def find_all(self) -> List[Schedule]:
        return self._newest_first(self.table.select())

    async def find_active(self) -> List[Schedule]:
        return self._newest_first(self.table.select(lambda s: s.is_active))

    async def find_expired(self) -> List[Schedule]:
        now = datetime.now()
        return self._newest_first(self.table.select(lambda s: s.is_expired(now)))


class InMemoryDoseReminderRepository(InMemoryRepository, DoseReminderRepository):
    table_name = "dose_reminders"

    def _by_time(self, rows: List[DoseReminder], newest_first: bool = False) -> List[DoseReminder]:
        return sorted(rows, key=lambda r: r.scheduled_time, reverse=newest_first)

    async def find_by_schedule_id(self, schedule_id: int) -> List[DoseReminder]:
        return self._by_time(self.table.select(lambda r: r.schedule_id == schedule_id))

    async def find_by_medicine_id(self, medicine_id: int) -> List[DoseReminder]:
        return self._by_time(
            self.table.select(lambda r: r.medicine_id == medicine_id),
            newest_first=True
        )

    async def find_pending(self) -> List[DoseReminder]:
        return self._by_time(self.table.select(lambda r: r.is_pending()))

    async def find_overdue(self) -> List[DoseReminder]:
        now = datetime.now()
        return self._by_time(self.table.select(lambda r: r.is_overdue(now)))

    async def find_taken(self) -> List[DoseReminder]:
        rows = self.table.select(lambda r: r.is_taken)
        return sorted(rows, key=lambda r: r.taken_at, reverse=True)

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[DoseReminder]:
        return self._by_time(self.table.select(lambda r: start <= r.scheduled_time <= end))

    async def find_all(self) -> List[DoseReminder]:
        return self._by_time(self.table.select(), newest_first=True)

    async def delete_by_schedule_id(self, schedule_id: int) -> None:
        for reminder in self.table.select(lambda r: r.schedule_id == schedule_id):
            self.table.remove(reminder.id)


class InMemoryUserRepository(InMemoryRepository, UserRepository):
    table_name = "users"

    async def find_by_email(self, email: str) -> Optional[User]:
        matches = self.table.select(lambda u: u.email == email)
        return matches[0] if matches else None

    async def find_all(self) -> List[User]:
        return sorted(self.table.select(), key=lambda u: u.id)
