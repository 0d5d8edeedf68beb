"""
In-memory holder of all entity collections.

Each collection keeps its records in insertion order and has its own
identifier sequence starting at 1. Identifiers are never reused.
State lives for the lifetime of the process only.
"""

from typing import Callable, Dict, List, TypeVar

from errors import InvalidQueryError

USERS = "users"
CHAT_MESSAGES = "chat_messages"
COLLEGE_CUTOFFS = "college_cutoffs"
SCHOLARSHIPS = "scholarships"

COLLECTIONS = (USERS, CHAT_MESSAGES, COLLEGE_CUTOFFS, SCHOLARSHIPS)

T = TypeVar("T")


class RecordStore:
    def __init__(self):
        self._records: Dict[str, Dict[int, object]] = {name: {} for name in COLLECTIONS}
        self._next_ids: Dict[str, int] = {name: 1 for name in COLLECTIONS}

    def _collection(self, collection: str) -> Dict[int, object]:
        try:
            return self._records[collection]
        except KeyError:
            raise InvalidQueryError(f"Unknown collection '{collection}'") from None

    def insert(self, collection: str, build: Callable[[int], T]) -> T:
        """
        Store a new record under the next identifier.

        `build` receives the identifier and returns the finished record. If it
        raises, nothing is stored and the identifier is not consumed.
        """
        records = self._collection(collection)
        record_id = self._next_ids[collection]
        record = build(record_id)
        records[record_id] = record
        self._next_ids[collection] = record_id + 1
        return record

    def get(self, collection: str, record_id: int):
        return self._collection(collection).get(record_id)

    def all(self, collection: str) -> List:
        return list(self._collection(collection).values())

    def count(self, collection: str) -> int:
        return len(self._collection(collection))
