"""FastAPI routes exposing the medication use cases."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.schemas import (
    CreateMedicineRequest,
    CreateScheduleRequest,
    CreateUserRequest,
    DoseHistoryResponse,
    ErrorResponse,
    UpdateMedicineRequest,
    UpdateUserRequest
)
from core.errors import DomainError, ErrorKind
from core.medicines import CreateMedicineUseCase, GetMedicinesUseCase, UpdateMedicineUseCase
from core.models import DatabaseStats, DoseReminder, Medicine, Schedule, TodayStats, User
from core.repositories import Repositories
from core.schedules import (
    CreateScheduleUseCase,
    GetDoseRemindersUseCase,
    MarkDoseAsTakenUseCase,
    SetScheduleActiveUseCase,
    SkipDoseUseCase
)
from core.stats import ClearDatabaseUseCase, GetDatabaseStatsUseCase
from core.users import CreateUserUseCase, GetUserUseCase, UpdateUserUseCase

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    tags=["medication"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORAGE: 503,
}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate a domain error into its HTTP status and a structured body."""
    status_code = ERROR_STATUS[exc.kind]
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_dict()))


# Dependency injection for the storage backend
def get_repositories(request: Request) -> Repositories:
    """Repositories built at startup for the configured backend."""
    return request.app.state.repositories


@router.post("/medicines", response_model=Medicine, status_code=201)
async def create_medicine(
    request: CreateMedicineRequest,
    repos: Repositories = Depends(get_repositories)
) -> Medicine:
    """
    Register a medicine.

    - **name**: Medicine name (required)
    - **dosage**: Dosage description, e.g. "500mg" (required)
    """
    return await CreateMedicineUseCase(repos.medicines).execute(**request.model_dump())


@router.get("/medicines", response_model=List[Medicine])
async def list_medicines(
    name: Optional[str] = None,
    active: bool = False,
    repos: Repositories = Depends(get_repositories)
) -> List[Medicine]:
    """
    List medicines.

    - **name**: Only medicines whose name contains this text
    - **active**: Only medicines with an active schedule
    """
    use_case = GetMedicinesUseCase(repos.medicines)
    if name is not None:
        return await use_case.search_by_name(name)
    if active:
        return await use_case.get_active()
    return await use_case.execute()


@router.put("/medicines/{medicine_id}", response_model=Medicine)
async def update_medicine(
    medicine_id: int,
    request: UpdateMedicineRequest,
    repos: Repositories = Depends(get_repositories)
) -> Medicine:
    return await UpdateMedicineUseCase(repos.medicines).execute(
        medicine_id, **request.model_dump()
    )


@router.post("/schedules", response_model=Schedule, status_code=201)
async def create_schedule(
    request: CreateScheduleRequest,
    repos: Repositories = Depends(get_repositories)
) -> Schedule:
    """
    Create a treatment plan.

    Stores the schedule and every dose reminder it implies in one transaction.

    - **interval_hours**: Hours between doses (> 0)
    - **duration_days**: Treatment length in days (> 0)
    - **start_time**: First dose of the day, HH:MM
    """
    use_case = CreateScheduleUseCase(
        repos.schedules,
        repos.dose_reminders,
        repos.transaction_manager
    )
    return await use_case.execute(**request.model_dump())


@router.post("/schedules/{schedule_id}/activate", response_model=Schedule)
async def activate_schedule(
    schedule_id: int,
    repos: Repositories = Depends(get_repositories)
) -> Schedule:
    return await SetScheduleActiveUseCase(repos.schedules).execute(schedule_id, True)


@router.post("/schedules/{schedule_id}/deactivate", response_model=Schedule)
async def deactivate_schedule(
    schedule_id: int,
    repos: Repositories = Depends(get_repositories)
) -> Schedule:
    return await SetScheduleActiveUseCase(repos.schedules).execute(schedule_id, False)


@router.get("/reminders", response_model=DoseHistoryResponse)
async def list_reminders(
    medicine_id: Optional[int] = None,
    taken: Optional[bool] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    repos: Repositories = Depends(get_repositories)
) -> DoseHistoryResponse:
    """
    Dose history, newest first.

    - **medicine_id**: Only doses of this medicine
    - **taken**: Only taken (true) or not taken (false) doses
    - **start**, **end**: Inclusive scheduled-time window (both or neither)
    """
    views = await GetDoseRemindersUseCase(repos.dose_reminders, repos.medicines).execute(
        medicine_id=medicine_id,
        taken=taken,
        start=start,
        end=end
    )
    return DoseHistoryResponse(results=views, total=len(views))


@router.post("/reminders/{reminder_id}/take", response_model=DoseReminder)
async def take_dose(
    reminder_id: int,
    repos: Repositories = Depends(get_repositories)
) -> DoseReminder:
    """Mark a dose as taken; 409 if it already was."""
    return await MarkDoseAsTakenUseCase(repos.dose_reminders).execute(reminder_id)


@router.post("/reminders/{reminder_id}/skip", response_model=DoseReminder)
async def skip_dose(
    reminder_id: int,
    repos: Repositories = Depends(get_repositories)
) -> DoseReminder:
    """Mark a pending dose as skipped; 409 if it is already taken or skipped."""
    return await SkipDoseUseCase(repos.dose_reminders).execute(reminder_id)


def _stats_use_case(repos: Repositories) -> GetDatabaseStatsUseCase:
    return GetDatabaseStatsUseCase(repos.medicines, repos.schedules, repos.dose_reminders)


@router.get("/stats", response_model=DatabaseStats)
async def get_stats(repos: Repositories = Depends(get_repositories)) -> DatabaseStats:
    return await _stats_use_case(repos).execute()


@router.get("/stats/today", response_model=TodayStats)
async def get_today_stats(repos: Repositories = Depends(get_repositories)) -> TodayStats:
    return await _stats_use_case(repos).get_today_stats()


@router.delete("/data", response_model=DatabaseStats)
async def clear_data(repos: Repositories = Depends(get_repositories)) -> DatabaseStats:
    """Delete every medicine, schedule and dose reminder; returns deleted counts."""
    use_case = ClearDatabaseUseCase(
        repos.medicines,
        repos.schedules,
        repos.dose_reminders,
        repos.transaction_manager
    )
    return await use_case.execute()


@router.post("/users", response_model=User, status_code=201)
async def create_user(
    request: CreateUserRequest,
    repos: Repositories = Depends(get_repositories)
) -> User:
    return await CreateUserUseCase(repos.users).execute(**request.model_dump())


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: int, repos: Repositories = Depends(get_repositories)) -> User:
    return await GetUserUseCase(repos.users).execute(user_id)


@router.patch("/users/{user_id}", response_model=User)
async def update_user(
    user_id: int,
    request: UpdateUserRequest,
    repos: Repositories = Depends(get_repositories)
) -> User:
    return await UpdateUserUseCase(repos.users).execute(user_id, **request.model_dump())


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "medtrack",
        "version": "1.0.0"
    }
