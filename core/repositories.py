"""Storage-agnostic repository contracts consumed by the use cases."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, List, NamedTuple, Optional

from core.models import DoseReminder, Medicine, Schedule, User


class TransactionManager(ABC):
    """Groups repository calls made inside ``transaction()`` into one atomic unit."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Open an atomic scope.

        Every repository call awaited by the current task while the block is
        open commits together on normal exit and is rolled back if the block
        raises.
        """


class MedicineRepository(ABC):

    @abstractmethod
    async def create(self, medicine: Medicine) -> Medicine: ...

    @abstractmethod
    async def find_by_id(self, medicine_id: int) -> Optional[Medicine]: ...

    @abstractmethod
    async def find_by_name(self, name: str) -> List[Medicine]:
        """Case-insensitive substring match, ordered by name."""

    @abstractmethod
    async def update(self, medicine: Medicine) -> Medicine: ...

    @abstractmethod
    async def delete(self, medicine_id: int) -> None: ...

    @abstractmethod
    async def find_all(self) -> List[Medicine]: ...

    @abstractmethod
    async def find_active(self) -> List[Medicine]:
        """Medicines referenced by at least one active schedule."""


class ScheduleRepository(ABC):

    @abstractmethod
    async def create(self, schedule: Schedule) -> Schedule: ...

    @abstractmethod
    async def find_by_id(self, schedule_id: int) -> Optional[Schedule]: ...

    @abstractmethod
    async def find_by_medicine_id(self, medicine_id: int) -> List[Schedule]: ...

    @abstractmethod
    async def update(self, schedule: Schedule) -> Schedule: ...

    @abstractmethod
    async def delete(self, schedule_id: int) -> None: ...

    @abstractmethod
    async def find_all(self) -> List[Schedule]: ...

    @abstractmethod
    async def find_active(self) -> List[Schedule]: ...

    @abstractmethod
    async def find_expired(self) -> List[Schedule]: ...


class DoseReminderRepository(ABC):

    @abstractmethod
    async def create(self, reminder: DoseReminder) -> DoseReminder: ...

    @abstractmethod
    async def find_by_id(self, reminder_id: int) -> Optional[DoseReminder]: ...

    @abstractmethod
    async def find_by_schedule_id(self, schedule_id: int) -> List[DoseReminder]: ...

    @abstractmethod
    async def find_by_medicine_id(self, medicine_id: int) -> List[DoseReminder]: ...

    @abstractmethod
    async def find_pending(self) -> List[DoseReminder]: ...

    @abstractmethod
    async def find_overdue(self) -> List[DoseReminder]: ...

    @abstractmethod
    async def find_taken(self) -> List[DoseReminder]: ...

    @abstractmethod
    async def find_by_date_range(self, start: datetime, end: datetime) -> List[DoseReminder]:
        """Reminders with start <= scheduled_time <= end, oldest first."""

    @abstractmethod
    async def update(self, reminder: DoseReminder) -> DoseReminder: ...

    @abstractmethod
    async def delete(self, reminder_id: int) -> None: ...

    @abstractmethod
    async def find_all(self) -> List[DoseReminder]: ...

    @abstractmethod
    async def delete_by_schedule_id(self, schedule_id: int) -> None: ...


class UserRepository(ABC):

    @abstractmethod
    async def create(self, user: User) -> User: ...

    @abstractmethod
    async def find_by_id(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def update(self, user: User) -> User: ...

    @abstractmethod
    async def delete(self, user_id: int) -> None: ...

    @abstractmethod
    async def find_all(self) -> List[User]: ...


class Repositories(NamedTuple):
    """One storage backend: a repository per entity plus its transaction manager."""

    medicines: MedicineRepository
    schedules: ScheduleRepository
    dose_reminders: DoseReminderRepository
    users: UserRepository
    transaction_manager: TransactionManager
