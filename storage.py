"""
Storage interface used by the API layer.

Callers only see the async `Storage` operations. `MemStorage` keeps every
record in an injected `RecordStore` for the life of the process;
`DatabaseStorage` backs the same operations with SQLAlchemy when
DATABASE_URL is configured.
"""

import abc
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

import crud
import query
from config import Settings
from database import get_db_connection, get_session_factory, init_db
from errors import ConflictError, RecordValidationError, StorageUnavailableError
from record_store import RecordStore, USERS, CHAT_MESSAGES, COLLEGE_CUTOFFS, SCHOLARSHIPS
from models import utcnow
from schemas import (
    User,
    UserCreate,
    ChatMessage,
    ChatMessageCreate,
    CollegeCutoff,
    CollegeCutoffCreate,
    Scholarship,
    ScholarshipCreate,
)

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

Criteria = Optional[Dict[str, Any]]


def coerce(schema: Type[S], data: Union[S, Mapping[str, Any]]) -> S:
    """Validate create input. Raises RecordValidationError, never stores anything."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise RecordValidationError(
            f"Invalid {schema.__name__}: {fields}",
            errors=e.errors(include_url=False),
        ) from e


def check_limit(limit: Optional[int]) -> None:
    if limit is None:
        return
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise RecordValidationError(f"limit must be a positive integer, got {limit!r}")


class Storage(abc.ABC):
    """Async operations over users, chat messages, cutoffs and scholarships."""

    kind = "abstract"

    # User operations
    @abc.abstractmethod
    async def create_user(self, data: Union[UserCreate, Mapping]) -> User: ...

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_external_id(self, external_id: str) -> Optional[User]: ...

    # Chat message operations
    @abc.abstractmethod
    async def create_chat_message(self, data: Union[ChatMessageCreate, Mapping]) -> ChatMessage: ...

    @abc.abstractmethod
    async def get_chat_messages(self, user_id: int, limit: Optional[int] = None) -> List[ChatMessage]: ...

    # College cutoff operations
    @abc.abstractmethod
    async def create_college_cutoff(self, data: Union[CollegeCutoffCreate, Mapping]) -> CollegeCutoff: ...

    @abc.abstractmethod
    async def get_college_cutoffs(self, criteria: Criteria = None) -> List[CollegeCutoff]: ...

    @abc.abstractmethod
    async def count_college_cutoffs(self) -> int: ...

    @abc.abstractmethod
    async def _distinct_cutoff_values(self, field: str) -> List[str]: ...

    async def get_distinct_programs(self) -> List[str]:
        return await self._distinct_cutoff_values("program")

    async def get_distinct_universities(self) -> List[str]:
        return await self._distinct_cutoff_values("university")

    async def get_distinct_countries(self) -> List[str]:
        return await self._distinct_cutoff_values("country")

    # Scholarship operations
    @abc.abstractmethod
    async def create_scholarship(self, data: Union[ScholarshipCreate, Mapping]) -> Scholarship: ...

    @abc.abstractmethod
    async def get_scholarships(self, criteria: Criteria = None) -> List[Scholarship]: ...

    @abc.abstractmethod
    async def get_distinct_fields_of_study(self) -> List[str]: ...


class MemStorage(Storage):
    """Volatile storage. Records disappear when the process exits."""

    kind = "memory"

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or RecordStore()

    # User operations
    async def create_user(self, data) -> User:
        user_data = coerce(UserCreate, data)
        users = self.store.all(USERS)
        for field in crud.USER_UNIQUE_FIELDS:
            value = getattr(user_data, field)
            if value is not None and query.find_one(users, User, field, value):
                raise ConflictError(field, value)

        user = self.store.insert(
            USERS,
            lambda user_id: User(id=user_id, created_at=utcnow(), **user_data.model_dump()),
        )
        logger.info(f"[STORAGE] Created user id={user.id} username={user.username}")
        return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return self.store.get(USERS, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return query.find_one(self.store.all(USERS), User, "email", email)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return query.find_one(self.store.all(USERS), User, "username", username)

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        if external_id is None:
            return None
        return query.find_one(self.store.all(USERS), User, "external_id", external_id)

    # Chat message operations
    async def create_chat_message(self, data) -> ChatMessage:
        message_data = coerce(ChatMessageCreate, data)
        return self.store.insert(
            CHAT_MESSAGES,
            lambda message_id: ChatMessage(id=message_id, timestamp=utcnow(), **message_data.model_dump()),
        )

    async def get_chat_messages(self, user_id: int, limit: Optional[int] = None) -> List[ChatMessage]:
        check_limit(limit)
        history = query.messages_for_user(self.store.all(CHAT_MESSAGES), user_id)
        if limit is not None:
            history = history[-limit:]
        return history

    # College cutoff operations
    async def create_college_cutoff(self, data) -> CollegeCutoff:
        cutoff_data = coerce(CollegeCutoffCreate, data)
        return self.store.insert(
            COLLEGE_CUTOFFS,
            lambda cutoff_id: CollegeCutoff(id=cutoff_id, **cutoff_data.model_dump()),
        )

    async def get_college_cutoffs(self, criteria: Criteria = None) -> List[CollegeCutoff]:
        return query.filter_records(self.store.all(COLLEGE_CUTOFFS), CollegeCutoff, criteria)

    async def count_college_cutoffs(self) -> int:
        return self.store.count(COLLEGE_CUTOFFS)

    async def _distinct_cutoff_values(self, field: str) -> List[str]:
        return query.distinct_values(self.store.all(COLLEGE_CUTOFFS), CollegeCutoff, field)

    # Scholarship operations
    async def create_scholarship(self, data) -> Scholarship:
        scholarship_data = coerce(ScholarshipCreate, data)
        return self.store.insert(
            SCHOLARSHIPS,
            lambda scholarship_id: Scholarship(id=scholarship_id, **scholarship_data.model_dump()),
        )

    async def get_scholarships(self, criteria: Criteria = None) -> List[Scholarship]:
        return query.filter_records(self.store.all(SCHOLARSHIPS), Scholarship, criteria)

    async def get_distinct_fields_of_study(self) -> List[str]:
        return query.distinct_values(self.store.all(SCHOLARSHIPS), Scholarship, "field_of_study")


class DatabaseStorage(Storage):
    """
    SQLAlchemy-backed storage.

    Each operation runs in its own short-lived session. The DB calls are
    synchronous; the methods stay async to match the Storage interface.
    """

    kind = "database"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except OperationalError as e:
            logger.error(f"[STORAGE] Database unreachable: {str(e)}")
            raise StorageUnavailableError("Database is temporarily unavailable") from e
        finally:
            db.close()

    # User operations
    async def create_user(self, data) -> User:
        user_data = coerce(UserCreate, data)
        with self._session() as db:
            user = crud.create_user(db, user_data.model_dump())
            logger.info(f"[STORAGE] Created user id={user.id} username={user.username}")
            return User.model_validate(user)

    async def _user_by(self, field: str, value) -> Optional[User]:
        with self._session() as db:
            user = crud.get_user_by_field(db, field, value)
            return User.model_validate(user) if user else None

    async def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as db:
            user = crud.get_user(db, user_id)
            return User.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._user_by("email", email)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._user_by("username", username)

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        if external_id is None:
            return None
        return await self._user_by("external_id", external_id)

    # Chat message operations
    async def create_chat_message(self, data) -> ChatMessage:
        message_data = coerce(ChatMessageCreate, data)
        with self._session() as db:
            return ChatMessage.model_validate(crud.create_chat_message(db, message_data.model_dump()))

    async def get_chat_messages(self, user_id: int, limit: Optional[int] = None) -> List[ChatMessage]:
        check_limit(limit)
        with self._session() as db:
            return [ChatMessage.model_validate(m) for m in crud.get_chat_messages(db, user_id, limit)]

    # College cutoff operations
    async def create_college_cutoff(self, data) -> CollegeCutoff:
        cutoff_data = coerce(CollegeCutoffCreate, data)
        with self._session() as db:
            return CollegeCutoff.model_validate(crud.create_college_cutoff(db, cutoff_data.model_dump()))

    async def get_college_cutoffs(self, criteria: Criteria = None) -> List[CollegeCutoff]:
        with self._session() as db:
            return [CollegeCutoff.model_validate(c) for c in crud.get_college_cutoffs(db, criteria)]

    async def count_college_cutoffs(self) -> int:
        with self._session() as db:
            return crud.count_college_cutoffs(db)

    async def _distinct_cutoff_values(self, field: str) -> List[str]:
        with self._session() as db:
            return crud.get_distinct_cutoff_values(db, field)

    # Scholarship operations
    async def create_scholarship(self, data) -> Scholarship:
        scholarship_data = coerce(ScholarshipCreate, data)
        with self._session() as db:
            return Scholarship.model_validate(crud.create_scholarship(db, scholarship_data.model_dump()))

    async def get_scholarships(self, criteria: Criteria = None) -> List[Scholarship]:
        with self._session() as db:
            return [Scholarship.model_validate(s) for s in crud.get_scholarships(db, criteria)]

    async def get_distinct_fields_of_study(self) -> List[str]:
        with self._session() as db:
            return crud.get_distinct_scholarship_values(db, "field_of_study")


def create_storage(config: Settings) -> Storage:
    """Build the storage backend selected by configuration."""
    if config.DATABASE_URL:
        engine = get_db_connection(config.DATABASE_URL)
        try:
            init_db(engine)
        except OperationalError as e:
            raise StorageUnavailableError("Database is unreachable at startup") from e
        logger.info("[STORAGE] Using database storage")
        return DatabaseStorage(get_session_factory(engine))

    logger.info("[STORAGE] Using in-memory storage")
    return MemStorage(RecordStore())
