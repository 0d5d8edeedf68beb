import types
from datetime import timezone

import pytest
from sqlalchemy import create_engine, event

from database import get_db_connection, get_session_factory, init_db
from errors import ConflictError, InvalidQueryError, RecordValidationError, StorageUnavailableError
from record_store import USERS
from schemas import CollegeCutoffCreate, UserCreate
from storage import DatabaseStorage, MemStorage, create_storage

pytestmark = pytest.mark.anyio

ACME = {
    "university": "Acme Tech",
    "program": "CS",
    "country": "Nowhere",
    "gpa": "3.5",
    "test_scores": "N/A",
    "acceptance_rate": "50%",
    "academic_year": "2024-2025",
}


def cutoff(**overrides):
    return {**ACME, **overrides}


def scholarship(**overrides):
    data = {
        "name": "Merit Award",
        "amount": "₹50,000",
        "field_of_study": "Engineering",
        "deadline": "2024-08-31",
        "eligibility": "GUJCET 100+",
        "description": "For top engineering entrants",
    }
    data.update(overrides)
    return data


# Users

async def test_user_ids_strictly_increase(storage):
    ids = []
    for name in ("ada", "grace", "linus"):
        user = await storage.create_user({"username": name, "email": f"{name}@example.com"})
        ids.append(user.id)
    assert ids == sorted(ids)
    assert len(set(ids)) == 3
    assert ids[0] == 1


async def test_create_user_assigns_created_at(storage):
    user = await storage.create_user(UserCreate(username="ada", email="ada@example.com", password="x"))
    assert user.created_at is not None
    assert user.password == "x"
    assert user.external_id is None


async def test_duplicate_email_is_a_conflict(storage):
    await storage.create_user({"username": "ada", "email": "ada@example.com"})
    with pytest.raises(ConflictError) as exc_info:
        await storage.create_user({"username": "lovelace", "email": "ada@example.com"})
    assert exc_info.value.field == "email"

    assert (await storage.get_user_by_username("ada")).email == "ada@example.com"
    assert await storage.get_user_by_username("lovelace") is None


async def test_duplicate_username_is_a_conflict(storage):
    await storage.create_user({"username": "ada", "email": "ada@example.com"})
    with pytest.raises(ConflictError) as exc_info:
        await storage.create_user({"username": "ada", "email": "other@example.com"})
    assert exc_info.value.field == "username"
    assert await storage.get_user_by_email("other@example.com") is None


async def test_duplicate_external_id_is_a_conflict(storage):
    await storage.create_user({"username": "ada", "email": "ada@example.com", "external_id": "uid-1"})
    with pytest.raises(ConflictError) as exc_info:
        await storage.create_user({"username": "bob", "email": "bob@example.com", "external_id": "uid-1"})
    assert exc_info.value.field == "external_id"


async def test_users_without_external_id_do_not_conflict(storage):
    await storage.create_user({"username": "ada", "email": "ada@example.com"})
    await storage.create_user({"username": "bob", "email": "bob@example.com"})
    assert await storage.get_user_by_external_id(None) is None


async def test_conflict_leaves_collection_unchanged(mem_storage):
    await mem_storage.create_user({"username": "ada", "email": "ada@example.com"})
    with pytest.raises(ConflictError):
        await mem_storage.create_user({"username": "ada2", "email": "ada@example.com"})
    assert mem_storage.store.count(USERS) == 1
    # The rejected create did not consume an identifier
    user = await mem_storage.create_user({"username": "bob", "email": "bob@example.com"})
    assert user.id == 2


async def test_user_lookups(storage):
    created = await storage.create_user({"username": "ada", "email": "ada@example.com", "external_id": "uid-1"})
    assert await storage.get_user(created.id) == created
    assert await storage.get_user_by_email("ada@example.com") == created
    assert await storage.get_user_by_username("ada") == created
    assert await storage.get_user_by_external_id("uid-1") == created
    assert await storage.get_user(999) is None
    assert await storage.get_user_by_email("nobody@example.com") is None
    assert await storage.get_user_by_external_id("uid-2") is None


async def test_invalid_user_is_rejected(storage):
    with pytest.raises(RecordValidationError):
        await storage.create_user({"username": "", "email": "ada@example.com"})
    with pytest.raises(RecordValidationError):
        await storage.create_user({"username": "ada", "email": "not-an-email"})
    assert await storage.get_user_by_username("ada") is None


async def test_email_is_stored_and_matched_as_given(storage):
    created = await storage.create_user({"username": "ada", "email": "Ada@Example.COM"})
    assert created.email == "Ada@Example.COM"
    assert await storage.get_user_by_email("Ada@Example.COM") == created
    assert await storage.get_user_by_email("ada@example.com") is None

    # Exact equality, so a differently cased address is a different user
    other = await storage.create_user({"username": "lovelace", "email": "Ada@example.com"})
    assert other.id != created.id


async def test_created_at_is_utc(storage):
    user = await storage.create_user({"username": "ada", "email": "ada@example.com"})
    assert user.created_at.tzinfo is not None
    assert user.created_at.utcoffset() == timezone.utc.utcoffset(None)


async def test_users_are_immutable(mem_storage):
    user = await mem_storage.create_user({"username": "ada", "email": "ada@example.com"})
    with pytest.raises(Exception):
        user.username = "eve"
    assert (await mem_storage.get_user(user.id)).username == "ada"


# Chat messages

async def test_chat_history_includes_global_and_own_messages(storage):
    welcome = await storage.create_chat_message({"content": "Welcome!", "is_user_message": False})
    mine = await storage.create_chat_message({"user_id": 1, "content": "Hi", "is_user_message": True})
    theirs = await storage.create_chat_message({"user_id": 2, "content": "Hello", "is_user_message": True})
    reply = await storage.create_chat_message({"user_id": 1, "content": "How can I help?", "is_user_message": False})

    history = await storage.get_chat_messages(1)
    assert [m.id for m in history] == [welcome.id, mine.id, reply.id]
    assert theirs.id not in [m.id for m in history]
    assert [m.id for m in await storage.get_chat_messages(2)] == [welcome.id, theirs.id]


async def test_chat_history_limit_keeps_most_recent(storage):
    for i in range(5):
        await storage.create_chat_message({"user_id": 1, "content": f"msg {i}", "is_user_message": True})
    history = await storage.get_chat_messages(1, limit=2)
    assert [m.content for m in history] == ["msg 3", "msg 4"]
    assert len(await storage.get_chat_messages(1, limit=50)) == 5


async def test_chat_history_rejects_bad_limit(storage):
    with pytest.raises(RecordValidationError):
        await storage.get_chat_messages(1, limit=0)


async def test_message_timestamps_are_non_decreasing(storage):
    first = await storage.create_chat_message({"user_id": 1, "content": "a", "is_user_message": True})
    second = await storage.create_chat_message({"user_id": 1, "content": "b", "is_user_message": False})
    assert first.timestamp <= second.timestamp
    assert second.id > first.id


async def test_message_timestamps_are_utc(storage):
    await storage.create_chat_message({"user_id": 1, "content": "a", "is_user_message": True})
    (message,) = await storage.get_chat_messages(1)
    assert message.timestamp.tzinfo is not None
    assert message.timestamp.utcoffset() == timezone.utc.utcoffset(None)


async def test_message_for_unknown_user_is_rejected_when_keys_are_enforced():
    engine = get_db_connection("sqlite://")

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    init_db(engine)
    storage = DatabaseStorage(get_session_factory(engine))

    with pytest.raises(RecordValidationError):
        await storage.create_chat_message({"user_id": 99, "content": "Hi", "is_user_message": True})
    assert await storage.get_chat_messages(99) == []

    user = await storage.create_user({"username": "ada", "email": "ada@example.com"})
    message = await storage.create_chat_message({"user_id": user.id, "content": "Hi", "is_user_message": True})
    assert message.user_id == user.id
    engine.dispose()


async def test_blank_message_is_rejected(storage):
    with pytest.raises(RecordValidationError):
        await storage.create_chat_message({"user_id": 1, "content": "   ", "is_user_message": True})
    assert await storage.get_chat_messages(1) == []


# College cutoffs

async def test_create_and_filter_cutoff_end_to_end(storage):
    await storage.create_college_cutoff(cutoff(university="Other U"))
    created = await storage.create_college_cutoff(CollegeCutoffCreate(**ACME))

    result = await storage.get_college_cutoffs({"university": "Acme Tech"})
    assert len(result) == 1
    assert result[0] == created
    assert result[0].model_dump(exclude={"id"}) == ACME


async def test_empty_criteria_equals_get_all(storage):
    for name in ("B", "A", "C"):
        await storage.create_college_cutoff(cutoff(university=name))
    everything = await storage.get_college_cutoffs()
    assert await storage.get_college_cutoffs({}) == everything
    assert [c.university for c in everything] == ["B", "A", "C"]


async def test_filter_by_multiple_fields(storage):
    await storage.create_college_cutoff(cutoff(program="CS", academic_year="2023-2024"))
    wanted = await storage.create_college_cutoff(cutoff(program="CS", academic_year="2024-2025"))
    await storage.create_college_cutoff(cutoff(program="EE", academic_year="2024-2025"))

    result = await storage.get_college_cutoffs({"program": "CS", "academic_year": "2024-2025"})
    assert [c.id for c in result] == [wanted.id]


async def test_duplicate_cutoffs_are_kept(storage):
    await storage.create_college_cutoff(cutoff())
    await storage.create_college_cutoff(cutoff())
    assert len(await storage.get_college_cutoffs({"university": "Acme Tech"})) == 2
    assert await storage.count_college_cutoffs() == 2


async def test_distinct_universities_sorted_and_updated(storage):
    for name in ("MIT", "Anand Agricultural University", "MIT"):
        await storage.create_college_cutoff(cutoff(university=name))
    assert await storage.get_distinct_universities() == ["Anand Agricultural University", "MIT"]

    await storage.create_college_cutoff(cutoff(university="Gujarat University"))
    assert await storage.get_distinct_universities() == [
        "Anand Agricultural University",
        "Gujarat University",
        "MIT",
    ]


async def test_distinct_values_use_codepoint_order(storage):
    for name in ("acme tech", "Zeta University", "Acme Tech"):
        await storage.create_college_cutoff(cutoff(university=name))
    assert await storage.get_distinct_universities() == ["Acme Tech", "Zeta University", "acme tech"]


async def test_distinct_programs_and_countries(storage):
    await storage.create_college_cutoff(cutoff(program="Medicine", country="India"))
    await storage.create_college_cutoff(cutoff(program="CS", country="USA"))
    await storage.create_college_cutoff(cutoff(program="CS", country="India"))
    assert await storage.get_distinct_programs() == ["CS", "Medicine"]
    assert await storage.get_distinct_countries() == ["India", "USA"]


async def test_queries_on_empty_collections(storage):
    assert await storage.get_college_cutoffs({"country": "India"}) == []
    assert await storage.get_distinct_programs() == []
    assert await storage.get_scholarships() == []


async def test_unknown_filter_field_fails_fast(storage):
    with pytest.raises(InvalidQueryError):
        await storage.get_college_cutoffs({"campus": "Main"})


async def test_incomplete_cutoff_is_rejected(storage):
    data = cutoff()
    del data["gpa"]
    with pytest.raises(RecordValidationError):
        await storage.create_college_cutoff(data)
    assert await storage.count_college_cutoffs() == 0


# Scholarships

async def test_scholarship_filtering(storage):
    engineering = await storage.create_scholarship(scholarship())
    await storage.create_scholarship(scholarship(name="MYSY", field_of_study="Medicine"))

    assert [s.id for s in await storage.get_scholarships({"field_of_study": "Engineering"})] == [engineering.id]
    assert len(await storage.get_scholarships()) == 2
    assert await storage.get_scholarships({"field_of_study": "engineering"}) == []
    assert await storage.get_distinct_fields_of_study() == ["Engineering", "Medicine"]


# Backend selection and failures

def test_create_storage_defaults_to_memory():
    storage = create_storage(types.SimpleNamespace(DATABASE_URL=""))
    assert isinstance(storage, MemStorage)
    assert storage.kind == "memory"


def test_create_storage_uses_database_when_configured():
    storage = create_storage(types.SimpleNamespace(DATABASE_URL="sqlite://"))
    assert isinstance(storage, DatabaseStorage)
    assert storage.kind == "database"


async def test_unreachable_database_is_reported(tmp_path):
    missing_dir = tmp_path / "does-not-exist" / "portal.db"
    engine = create_engine(f"sqlite:///{missing_dir}")
    storage = DatabaseStorage(get_session_factory(engine))
    with pytest.raises(StorageUnavailableError):
        await storage.get_scholarships()
