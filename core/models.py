"""Pydantic domain models for MedTrack."""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ConfigDict

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


class DoseStatus(str, Enum):
    """Lifecycle state of a single dose occurrence."""

    PENDING = "pending"
    TAKEN = "taken"
    SKIPPED = "skipped"
    OVERDUE = "overdue"  # Pending and past its scheduled time


class Entity(BaseModel):
    """Immutable entity with a database-assigned integer id."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: Optional[int] = None

    def to_persistence(self) -> Dict[str, Any]:
        """Plain dict of every stored field."""
        return self.model_dump()

    @classmethod
    def from_persistence(cls, data: Dict[str, Any]):
        """Rebuild an entity from a stored row (ISO strings accepted for timestamps)."""
        return cls.model_validate(dict(data))

    def with_id(self, entity_id: int):
        return self.model_copy(update={"id": entity_id})


class Medicine(Entity):
    """A medicine the user keeps track of."""

    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    description: Optional[str] = None
    quantity: Optional[str] = None
    unit: Optional[str] = None
    form: Optional[str] = None
    image_uri: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        name: str,
        dosage: str,
        description: Optional[str] = None,
        quantity: Optional[str] = None,
        unit: Optional[str] = None,
        form: Optional[str] = None,
        image_uri: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "Medicine":
        return cls(
            name=name,
            dosage=dosage,
            description=description,
            quantity=quantity,
            unit=unit,
            form=form,
            image_uri=image_uri,
            created_at=_now(now)
        )

    def update(
        self,
        name: Optional[str] = None,
        dosage: Optional[str] = None,
        description: Optional[str] = None,
        quantity: Optional[str] = None,
        unit: Optional[str] = None,
        form: Optional[str] = None,
        image_uri: Optional[str] = None
    ) -> "Medicine":
        """
        Return a copy with the given fields replaced.

        None means "keep the current value"; id and created_at never change.
        """
        changes = {
            "name": name,
            "dosage": dosage,
            "description": description,
            "quantity": quantity,
            "unit": unit,
            "form": form,
            "image_uri": image_uri,
        }
        return self.model_copy(
            update={key: value for key, value in changes.items() if value is not None}
        )

    def has_image(self) -> bool:
        return bool(self.image_uri)


class Schedule(Entity):
    """Fixed-interval treatment plan for one medicine."""

    medicine_id: int
    interval_hours: int = Field(..., gt=0, description="Hours between doses")
    duration_days: int = Field(..., gt=0, description="Treatment length in days")
    start_time: str = Field(..., min_length=1, description="First dose of the day, HH:MM")
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        medicine_id: int,
        interval_hours: int,
        duration_days: int,
        start_time: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "Schedule":
        return cls(
            medicine_id=medicine_id,
            interval_hours=interval_hours,
            duration_days=duration_days,
            start_time=start_time,
            notes=notes,
            is_active=True,
            created_at=_now(now)
        )

    def activate(self) -> "Schedule":
        return self.model_copy(update={"is_active": True})

    def deactivate(self) -> "Schedule":
        return self.model_copy(update={"is_active": False})

    def daily_dose_count(self) -> int:
        return 24 // self.interval_hours

    def total_dose_count(self) -> int:
        return self.duration_days * self.daily_dose_count()

    @property
    def ends_at(self) -> datetime:
        return self.created_at + timedelta(days=self.duration_days)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the current time is strictly past created_at + duration_days."""
        return _now(now) > self.ends_at


class DoseReminder(Entity):
    """One concrete dose occurrence derived from a schedule."""

    schedule_id: int
    medicine_id: int
    scheduled_time: datetime
    taken_at: Optional[datetime] = None
    is_taken: bool = False
    is_skipped: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        schedule_id: int,
        medicine_id: int,
        scheduled_time: datetime,
        now: Optional[datetime] = None
    ) -> "DoseReminder":
        return cls(
            schedule_id=schedule_id,
            medicine_id=medicine_id,
            scheduled_time=scheduled_time,
            created_at=_now(now)
        )

    def mark_as_taken(self, now: Optional[datetime] = None) -> "DoseReminder":
        return self.model_copy(
            update={"is_taken": True, "is_skipped": False, "taken_at": _now(now)}
        )

    def mark_as_skipped(self) -> "DoseReminder":
        return self.model_copy(update={"is_taken": False, "is_skipped": True})

    def is_pending(self) -> bool:
        return not self.is_taken and not self.is_skipped

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return self.is_pending() and _now(now) > self.scheduled_time

    def status(self, now: Optional[datetime] = None) -> DoseStatus:
        if self.is_taken:
            return DoseStatus.TAKEN
        if self.is_skipped:
            return DoseStatus.SKIPPED
        if self.is_overdue(now):
            return DoseStatus.OVERDUE
        return DoseStatus.PENDING


class User(Entity):
    """Profile of the person taking the medicines."""

    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    avatar_uri: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[str] = None,
        avatar_uri: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "User":
        timestamp = _now(now)
        return cls(
            name=name,
            email=email,
            phone=phone,
            birth_date=birth_date,
            avatar_uri=avatar_uri,
            created_at=timestamp,
            updated_at=timestamp
        )

    def update_profile(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[str] = None,
        avatar_uri: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "User":
        changes = {
            "name": name,
            "email": email,
            "phone": phone,
            "birth_date": birth_date,
            "avatar_uri": avatar_uri,
        }
        update = {key: value for key, value in changes.items() if value is not None}
        update["updated_at"] = _now(now)
        return self.model_copy(update=update)

    def initials(self) -> str:
        return "".join(part[0] for part in self.name.split() if part).upper()[:2]

    def has_valid_email(self) -> bool:
        return bool(self.email) and EMAIL_PATTERN.match(self.email) is not None


class DatabaseStats(BaseModel):
    """Row counts per entity collection."""

    medicines: int
    schedules: int
    dose_reminders: int


class TodayStats(DatabaseStats):
    """Row counts plus reminders scheduled for the current local day."""

    today_reminders: int


class DoseReminderView(BaseModel):
    """Reminder joined with the medicine details needed for display."""

    reminder: DoseReminder
    medicine_name: str
    dosage: str
    status: DoseStatus
