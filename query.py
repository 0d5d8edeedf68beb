"""
Read-query logic over in-memory record collections.

Every query is a linear scan. Filtering is exact-match and case-sensitive,
and multiple criteria are combined with AND.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from errors import InvalidQueryError

R = TypeVar("R", bound=BaseModel)

Predicate = Callable[[Any], bool]


def _check_field(record_type: Type[BaseModel], field: str) -> None:
    if field not in record_type.model_fields:
        raise InvalidQueryError(f"{record_type.__name__} has no field '{field}'")


def build_predicates(
    record_type: Type[BaseModel],
    criteria: Optional[Dict[str, Any]] = None
) -> List[Tuple[str, Predicate]]:
    """
    Turn filter criteria into (field, predicate) pairs.

    Criteria whose value is None are skipped, so callers can pass a fully
    populated filter object and only the supplied filters apply.
    """
    predicates = []
    for field, value in (criteria or {}).items():
        _check_field(record_type, field)
        if value is None:
            continue
        predicates.append((field, lambda actual, expected=value: actual == expected))
    return predicates


def filter_records(
    records: Iterable[R],
    record_type: Type[R],
    criteria: Optional[Dict[str, Any]] = None
) -> List[R]:
    """Return records matching every criterion, in insertion order."""
    predicates = build_predicates(record_type, criteria)
    return [
        record for record in records
        if all(predicate(getattr(record, field)) for field, predicate in predicates)
    ]


def find_one(records: Iterable[R], record_type: Type[R], field: str, value: Any) -> Optional[R]:
    """Return the first record whose field equals value, or None."""
    _check_field(record_type, field)
    for record in records:
        if getattr(record, field) == value:
            return record
    return None


def messages_for_user(messages: Iterable[R], user_id: int) -> List[R]:
    """
    Return a user's chat history.

    Messages without an owner are global (e.g. the welcome message) and are
    part of every user's history.
    """
    history = []
    for message in messages:
        if message.user_id is None:
            history.append(message)
        elif message.user_id == user_id:
            history.append(message)
    return history


def distinct_values(records: Iterable[R], record_type: Type[R], field: str) -> List[Any]:
    """Unique non-empty values of field, sorted ascending."""
    _check_field(record_type, field)
    values = {getattr(record, field) for record in records}
    return sorted(v for v in values if v not in (None, ""))
