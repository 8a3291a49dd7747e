import asyncio

from database import DocumentStore, WriteResult
from schemas import User


def run(coro):
    return asyncio.run(coro)


def test_insert_generates_id_and_maps_it(store):
    user_id = run(store.users.insert({"id": "ignored", "email": "a@x.com"}))
    doc = run(store.users.get(user_id))
    assert doc == {"id": user_id, "email": "a@x.com"}
    assert "_id" not in doc


def test_insert_pydantic_model_keeps_extras(store):
    user = User(email="a@x.com", fname="A", lname="B", date_created="2024-01-01T00:00:00+00:00", team="blue")
    user_id = run(store.users.insert(user))
    assert run(store.users.get(user_id))["team"] == "blue"


def test_update_counts(store):
    user_id = run(store.users.insert({"fname": "A"}))
    assert run(store.users.update(user_id, {"fname": "B"})) == WriteResult(replaced=1, unchanged=0)
    assert run(store.users.update(user_id, {"id": "other"})) == WriteResult(replaced=0, unchanged=1)
    assert run(store.users.update("missing", {"fname": "B"})) == WriteResult(replaced=0, unchanged=0)
    assert run(store.users.get(user_id))["id"] == user_id


def test_delete_counts(store):
    a = run(store.messages.insert({"sender_id": "s", "receiver_id": "r"}))
    run(store.messages.insert({"sender_id": "s", "receiver_id": "r"}))
    run(store.messages.insert({"sender_id": "x", "receiver_id": "r"}))

    assert run(store.messages.delete(a)) == 1
    assert run(store.messages.delete(a)) == 0
    assert run(store.messages.delete_where({"sender_id": "s", "receiver_id": "r"})) == 1
    assert run(store.messages.count()) == 1


def test_filter_sorts_and_queries_by_id(store):
    run(store.messages.insert({"receiver_id": "r", "date_created": "2024-01-02"}))
    first = run(store.messages.insert({"receiver_id": "r", "date_created": "2024-01-01"}))

    docs = run(store.messages.filter({"receiver_id": "r"}, sort="date_created"))
    assert [d["date_created"] for d in docs] == ["2024-01-01", "2024-01-02"]
    assert run(store.messages.first({"id": first}))["id"] == first


def test_merge_attaches_related_documents(store):
    user_id = run(store.users.insert({"fname": "A"}))
    docs = [{"sender_id": user_id}, {"sender_id": "missing"}]
    merged = run(store.messages.merge(docs, "sender_id", store.users, "sender"))
    assert merged[0]["sender"] == {"id": user_id, "fname": "A"}
    assert merged[1]["sender"] is None


def test_replace_writes_full_document(store):
    ug_id = run(store.user_groups.insert({"group_id": "g", "member_ids": ["a", "b"]}))
    doc = run(store.user_groups.get(ug_id))
    run(store.user_groups.replace({**doc, "member_ids": ["a"]}))
    assert run(store.user_groups.get(ug_id)) == {"id": ug_id, "group_id": "g", "member_ids": ["a"]}


def test_connect_creates_receiver_index(store):
    run(store.connect())
    indexes = run(store.messages.collection.index_information())
    assert any(spec["key"] == [("receiver_id", 1)] for spec in indexes.values())


def test_table_names(store):
    assert isinstance(store, DocumentStore)
    assert store.users.name == "tbl_User"
    assert store.groups.name == "tbl_Group"
    assert store.user_groups.name == "tbl_UserGroup"
    assert store.messages.name == "tbl_Message"
