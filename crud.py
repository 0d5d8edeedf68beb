"""
CRUD operations for database models.
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from models import User, ChatMessage, CollegeCutoff, Scholarship, utcnow
from errors import ConflictError, InvalidQueryError, RecordValidationError
from typing import List, Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

USER_UNIQUE_FIELDS = ("username", "email", "external_id")


def _column(model, field: str):
    if field not in model.__table__.columns:
        raise InvalidQueryError(f"{model.__name__} has no field '{field}'")
    return getattr(model, field)


def _filtered(db: Session, model, criteria: Optional[Dict[str, Any]] = None):
    query = db.query(model)
    for field, value in (criteria or {}).items():
        column = _column(model, field)
        if value is None:
            continue
        query = query.filter(column == value)
    return query.order_by(model.id)


def _distinct(db: Session, model, field: str) -> List[str]:
    column = _column(model, field)
    rows = (
        db.query(column)
        .filter(column.isnot(None), column != "")
        .distinct()
        .all()
    )
    # Codepoint order, independent of the database collation
    return sorted(row[0] for row in rows)


# User operations
def get_user(db: Session, user_id: int) -> Optional[User]:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_field(db: Session, field: str, value: Any) -> Optional[User]:
    """Get user by one of its unique fields."""
    return db.query(User).filter(_column(User, field) == value).first()


def find_user_conflict(db: Session, user_data: Dict) -> Optional[str]:
    """Return the first unique field already taken by another user, if any."""
    for field in USER_UNIQUE_FIELDS:
        value = user_data.get(field)
        if value is None:
            continue
        if get_user_by_field(db, field, value):
            return field
    return None


def create_user(db: Session, user_data: Dict) -> User:
    """Create a new user. Raises ConflictError on duplicate username/email/external_id."""
    conflict = find_user_conflict(db, user_data)
    if conflict:
        logger.warning(f"[CRUD] create_user rejected, {conflict} already taken")
        raise ConflictError(conflict, user_data[conflict])

    user = User(**user_data, created_at=utcnow())
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert
        db.rollback()
        conflict = find_user_conflict(db, user_data)
        if conflict:
            raise ConflictError(conflict, user_data[conflict])
        raise
    db.refresh(user)
    return user


# Chat message operations
def create_chat_message(db: Session, message_data: Dict) -> ChatMessage:
    """Store a chat message with a server-side timestamp."""
    message = ChatMessage(**message_data, timestamp=utcnow())
    db.add(message)
    try:
        db.commit()
    except IntegrityError as e:
        # Only the user_id foreign key can fail here
        db.rollback()
        logger.warning(f"[CRUD] create_chat_message rejected, unknown user_id={message_data.get('user_id')}")
        raise RecordValidationError(f"Unknown user_id: {message_data.get('user_id')}") from e
    db.refresh(message)
    return message


def get_chat_messages(db: Session, user_id: int, limit: Optional[int] = None) -> List[ChatMessage]:
    """
    Get a user's messages plus global (owner-less) ones, oldest first.
    With a limit, only the most recent `limit` messages are returned.
    """
    query = db.query(ChatMessage).filter(
        or_(
            ChatMessage.user_id == user_id,
            ChatMessage.user_id.is_(None)
        )
    )
    if limit is None:
        return query.order_by(ChatMessage.id).all()

    rows = query.order_by(ChatMessage.id.desc()).limit(limit).all()
    # Reverse so we go from oldest to newest
    rows.reverse()
    return rows


# College cutoff operations
def create_college_cutoff(db: Session, cutoff_data: Dict) -> CollegeCutoff:
    """Create a new college cutoff row."""
    cutoff = CollegeCutoff(**cutoff_data)
    db.add(cutoff)
    db.commit()
    db.refresh(cutoff)
    return cutoff


def get_college_cutoffs(db: Session, criteria: Optional[Dict[str, Any]] = None) -> List[CollegeCutoff]:
    """Get cutoffs matching every criterion exactly."""
    return _filtered(db, CollegeCutoff, criteria).all()


def count_college_cutoffs(db: Session) -> int:
    return db.query(CollegeCutoff).count()


def get_distinct_cutoff_values(db: Session, field: str) -> List[str]:
    """Sorted unique non-empty values of a cutoff column."""
    return _distinct(db, CollegeCutoff, field)


# Scholarship operations
def create_scholarship(db: Session, scholarship_data: Dict) -> Scholarship:
    """Create a new scholarship."""
    scholarship = Scholarship(**scholarship_data)
    db.add(scholarship)
    db.commit()
    db.refresh(scholarship)
    return scholarship


def get_scholarships(db: Session, criteria: Optional[Dict[str, Any]] = None) -> List[Scholarship]:
    """Get scholarships matching every criterion exactly."""
    return _filtered(db, Scholarship, criteria).all()


def get_distinct_scholarship_values(db: Session, field: str) -> List[str]:
    return _distinct(db, Scholarship, field)
