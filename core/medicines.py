"""Medicine catalogue use cases."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from core.errors import InvalidInputError, NotFoundError, storage_guard
from core.models import Medicine
from core.repositories import MedicineRepository

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip optional text, turning blank strings into None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(value: Optional[str], message: str, field: str) -> str:
    if value is None or not value.strip():
        raise InvalidInputError(message, field=field)
    return value.strip()


class CreateMedicineUseCase:
    """Registers a new medicine."""

    def __init__(
        self,
        medicine_repository: MedicineRepository,
        clock: Callable[[], datetime] = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.medicine_repository = medicine_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(
        self,
        name: str,
        dosage: str,
        description: Optional[str] = None,
        image_uri: Optional[str] = None,
        quantity: Optional[str] = None,
        unit: Optional[str] = None,
        form: Optional[str] = None
    ) -> Medicine:
        """
        Create a medicine.

        Raises:
            InvalidInputError: If name or dosage is blank
        """
        medicine = Medicine.create(
            name=_require(name, "Medicine name is required", "name"),
            dosage=_require(dosage, "Medicine dosage is required", "dosage"),
            description=_clean(description),
            quantity=_clean(quantity),
            unit=_clean(unit),
            form=_clean(form),
            image_uri=image_uri or None,
            now=self.clock()
        )

        async with storage_guard("create medicine", self.logger):
            created = await self.medicine_repository.create(medicine)

        self.logger.info(
            f"Created medicine {created.id}",
            extra={"medicine_id": created.id}
        )
        return created


class UpdateMedicineUseCase:
    """Edits an existing medicine."""

    def __init__(
        self,
        medicine_repository: MedicineRepository,
        log: Optional[logging.Logger] = None
    ):
        self.medicine_repository = medicine_repository
        self.logger = log or logger

    async def execute(
        self,
        medicine_id: int,
        name: str,
        dosage: str,
        description: Optional[str] = None,
        image_uri: Optional[str] = None,
        quantity: Optional[str] = None,
        unit: Optional[str] = None,
        form: Optional[str] = None
    ) -> Medicine:
        name = _require(name, "Medicine name is required", "name")
        dosage = _require(dosage, "Medicine dosage is required", "dosage")

        async with storage_guard("update medicine", self.logger, medicine_id=medicine_id):
            existing = await self.medicine_repository.find_by_id(medicine_id)
            if existing is None:
                raise NotFoundError("Medicine not found", medicine_id=medicine_id)

            updated = existing.update(
                name=name,
                dosage=dosage,
                description=_clean(description),
                image_uri=image_uri or None,
                quantity=_clean(quantity),
                unit=_clean(unit),
                form=_clean(form)
            )
            return await self.medicine_repository.update(updated)


class GetMedicinesUseCase:
    """Read access to the medicine catalogue."""

    def __init__(
        self,
        medicine_repository: MedicineRepository,
        log: Optional[logging.Logger] = None
    ):
        self.medicine_repository = medicine_repository
        self.logger = log or logger

    async def execute(self) -> List[Medicine]:
        async with storage_guard("list medicines", self.logger):
            return await self.medicine_repository.find_all()

    async def get_active(self) -> List[Medicine]:
        async with storage_guard("list active medicines", self.logger):
            return await self.medicine_repository.find_active()

    async def search_by_name(self, name: str) -> List[Medicine]:
        if not name or not name.strip():
            return []
        async with storage_guard("search medicines", self.logger):
            return await self.medicine_repository.find_by_name(name.strip())
