"""User profile use cases."""

import logging
from datetime import datetime
from typing import Callable, Optional

from core.errors import ConflictError, InvalidInputError, NotFoundError, storage_guard
from core.models import EMAIL_PATTERN, User
from core.repositories import UserRepository

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


def _validate_name(name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise InvalidInputError(
            f"Name must be at least {MIN_NAME_LENGTH} characters long",
            field="name"
        )
    return name


async def _validate_email(
    repository: UserRepository,
    email: Optional[str],
    user_id: Optional[int]
) -> Optional[str]:
    """Check format and uniqueness; blank means "not provided"."""
    if email is None or not email.strip():
        return None
    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise InvalidInputError("Invalid email format", field="email")

    owner = await repository.find_by_email(email)
    if owner is not None and owner.id != user_id:
        raise ConflictError("This email is already used by another user", field="email")
    return email


def _clean(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


class GetUserUseCase:

    def __init__(self, user_repository: UserRepository, log: Optional[logging.Logger] = None):
        self.user_repository = user_repository
        self.logger = log or logger

    async def execute(self, user_id: int) -> User:
        async with storage_guard("load user", self.logger, user_id=user_id):
            user = await self.user_repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        async with storage_guard("find user by email", self.logger):
            return await self.user_repository.find_by_email(email)

    async def get_current_user(self) -> Optional[User]:
        """The first stored profile; there is no authentication."""
        async with storage_guard("load current user", self.logger):
            users = await self.user_repository.find_all()
        return users[0] if users else None


class CreateUserUseCase:

    def __init__(
        self,
        user_repository: UserRepository,
        clock: Callable[[], datetime] = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.user_repository = user_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[str] = None,
        avatar_uri: Optional[str] = None
    ) -> User:
        name = _validate_name(name or "")

        async with storage_guard("create user", self.logger):
            email = await _validate_email(self.user_repository, email, None)
            user = User.create(
                name=name,
                email=email,
                phone=_clean(phone),
                birth_date=_clean(birth_date),
                avatar_uri=avatar_uri,
                now=self.clock()
            )
            created = await self.user_repository.create(user)

        self.logger.info(f"Created user {created.id}", extra={"user_id": created.id})
        return created


class UpdateUserUseCase:
    """Edits the profile; None leaves a field unchanged."""

    def __init__(
        self,
        user_repository: UserRepository,
        clock: Callable[[], datetime] = datetime.now,
        log: Optional[logging.Logger] = None
    ):
        self.user_repository = user_repository
        self.clock = clock
        self.logger = log or logger

    async def execute(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[str] = None,
        avatar_uri: Optional[str] = None
    ) -> User:
        """
        Update a user profile.

        Raises:
            NotFoundError: If the user does not exist
            InvalidInputError: On a malformed email or a too-short name
            ConflictError: If another user already owns the email
        """
        async with storage_guard("update user", self.logger, user_id=user_id):
            current = await self.user_repository.find_by_id(user_id)
            if current is None:
                raise NotFoundError("User not found", user_id=user_id)

            email = await _validate_email(self.user_repository, email, user_id)
            updated = current.update_profile(
                name=_validate_name(name),
                email=email,
                phone=_clean(phone),
                birth_date=_clean(birth_date),
                avatar_uri=avatar_uri,
                now=self.clock()
            )
            return await self.user_repository.update(updated)

    async def update_avatar(self, user_id: int, avatar_uri: str) -> User:
        return await self.execute(user_id, avatar_uri=avatar_uri)
