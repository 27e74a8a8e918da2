import copy
import pickle

import pytest
from bson import ObjectId

from mongodoc import Document, DocumentSnapshot
from mongodoc.exceptions import (
    DeleteFailed,
    DocumentNotInitialized,
    EmptyInsert,
    ImmutableIdentity,
    InsertFailed,
    MissingCriteria,
    MissingIdentity,
    UpdateFailed,
    UpsertFailed,
)
from mongodoc.operators import Inc, SetOnInsert
from tests.odm.models import Sample, Unacknowledged, User


@pytest.fixture
def record(samples):
    return samples.add(n="Mongo", tags=["db"], visits=1, a={"city": "Paris"})


@pytest.fixture
def loaded(record):
    doc = Sample(record["_id"]).load()
    assert doc.loaded
    return doc


class TestFields:
    def test_set_and_get(self):
        doc = Sample()
        doc.email = "colin@example.com"
        assert doc.email == "colin@example.com"
        assert doc.get_value("email") == "colin@example.com"
        assert doc.is_changed("email")
        assert doc.is_changed()

    def test_missing_field(self):
        doc = Sample()
        assert doc.email is None
        assert doc.get_value("email", "nobody") == "nobody"

    def test_alias(self):
        doc = Sample()
        doc.name = "Mongo"
        assert doc.name == "Mongo"
        assert doc.n == "Mongo"
        assert doc.as_dict(clean=True) == {"n": "Mongo"}
        assert doc.as_dict() == {"name": "Mongo"}
        assert doc.get_field_name("address.city") == "a.city"

    def test_set_value_chains(self):
        doc = Sample().set_value("name", "Mongo").set_value("visits", 2)
        assert doc.as_dict(clean=True) == {"n": "Mongo", "visits": 2}

    def test_load_values(self):
        doc = Sample().load_values({"name": "Mongo", "visits": 2})
        assert doc.as_dict(clean=True) == {"n": "Mongo", "visits": 2}
        assert doc.is_changed("name")

    def test_load_values_clean(self):
        doc = Sample().load_values({"n": "Mongo"}, clean=True)
        assert doc.name == "Mongo"
        assert not doc.is_changed()

    def test_contains(self):
        doc = Sample()
        doc.name = "Mongo"
        doc.email = None
        assert "name" in doc
        assert "n" in doc
        assert "email" not in doc
        assert "visits" not in doc

    def test_delattr_queues_unset(self):
        doc = Sample()
        del doc.name
        assert doc.get_operations() == {"$unset": {"n": 1}}

    def test_dunder_is_not_a_field(self):
        doc = Sample()
        assert not hasattr(doc, "__html__")
        with pytest.raises(AttributeError):
            doc.__deprecated_thing__

    def test_id(self):
        doc = Sample()
        assert doc.id is None
        doc.id = "colin"
        assert doc.id == "colin"
        assert doc.get_value("_id") == "colin"
        assert doc.as_dict(clean=True) == {"_id": "colin"}
        assert doc.is_changed("id")

    def test_identical_value_is_not_a_change(self, loaded):
        loaded.name = "Mongo"
        loaded.visits = 1
        loaded.tags = ["db"]
        assert not loaded.is_changed()

    def test_values_are_copies(self, loaded):
        address = {"city": "Lyon"}
        loaded.address = address
        address["city"] = "Nice"
        assert loaded.address == {"city": "Lyon"}
        loaded.address["city"] = "Nice"
        loaded.as_dict(clean=True)["a"]["city"] = "Nice"
        assert loaded.address == {"city": "Lyon"}

    def test_equal_value_of_other_type_is_a_change(self, loaded):
        loaded.visits = 1.0
        assert loaded.is_changed("visits")

    def test_immutable_identity(self, loaded):
        loaded.id = loaded.id
        with pytest.raises(ImmutableIdentity):
            loaded.id = ObjectId()

    def test_identity_of_unloaded_document_can_change(self):
        doc = Sample(ObjectId())
        doc.id = "colin"
        assert doc.id == "colin"

    def test_repr(self):
        assert repr(Sample("colin")) == "<Sample _id='colin' loaded=False>"

    def test_collection(self, samples):
        assert Sample().collection() is samples

    def test_not_initialized(self):
        class Lonely(Document):
            pass

        with pytest.raises(DocumentNotInitialized):
            Lonely("x").load()


class TestLazyLoad:
    def test_first_read_loads(self, samples, record):
        doc = Sample(record["_id"])
        assert not doc.loaded
        assert doc.name == "Mongo"
        assert doc.loaded
        assert doc.tags == ["db"]
        assert samples.calls == [("find_one", {"_id": record["_id"]}, None)]

    def test_string_identity_is_coerced(self, samples, record):
        doc = Sample(str(record["_id"]))
        assert doc.visits == 1
        assert samples.calls[0][1] == {"_id": record["_id"]}

    def test_reading_id_does_not_load(self, samples, record):
        doc = Sample(record["_id"])
        assert doc.id == record["_id"]
        assert samples.calls == []

    def test_assigned_id_does_not_load(self, samples, record):
        doc = Sample()
        doc.id = record["_id"]
        assert doc.name is None
        assert samples.calls == []

    def test_missing_document(self, samples):
        doc = Sample(ObjectId())
        assert doc.name is None
        assert not doc.loaded
        assert len(samples.calls) == 1


class TestLoad:
    def test_by_identity(self, samples, record):
        doc = Sample().load(record["_id"])
        assert doc.as_dict(clean=True) == record
        assert doc.loaded
        assert not doc.is_changed()

    def test_by_json(self, samples, record):
        doc = Sample().load('{"n": "Mongo"}')
        assert doc.id == record["_id"]
        assert samples.calls[0][1] == {"n": "Mongo"}

    def test_by_extended_json_identity(self, samples, record):
        doc = Sample().load('{"_id": {"$oid": "%s"}}' % record["_id"])
        assert doc.name == "Mongo"

    def test_by_mapping_with_aliases(self, samples, record):
        doc = Sample().load({"name": "Mongo"})
        assert doc.id == record["_id"]
        assert samples.calls[0][1] == {"n": "Mongo"}

    def test_by_current_fields(self, samples, record):
        doc = Sample()
        doc.name = "Mongo"
        doc.visits = 1
        doc.load()
        assert doc.id == record["_id"]
        assert samples.calls[0][1] == {"n": "Mongo", "visits": 1}

    def test_without_criteria(self, samples):
        doc = Sample()
        with pytest.raises(MissingCriteria):
            doc.load()
        assert samples.calls == []

    def test_fields(self, samples, record):
        doc = Sample().load(record["_id"], fields=["name"])
        assert samples.calls[0][2] == ["n"]
        assert doc.as_dict(clean=True) == {"_id": record["_id"], "n": "Mongo"}

    def test_discards_pending_changes(self, loaded):
        loaded.name = "Other"
        loaded.inc("visits")
        loaded.load()
        assert loaded.name == "Mongo"
        assert not loaded.is_changed()
        assert loaded.get_operations() == {}

    def test_not_found(self):
        doc = Sample()
        doc.name = "Nope"
        doc.load()
        assert not doc.loaded
        assert doc.as_dict(clean=True) == {}


class TestInsert:
    def test_insert(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.visits = 0
        assert doc.save() is doc
        assert samples.writes == [("insert", {"n": "Mongo", "visits": 0}, True)]
        assert isinstance(doc.id, ObjectId)
        assert doc.loaded
        assert not doc.is_changed()
        assert samples.records[doc.id] == {
            "_id": doc.id,
            "n": "Mongo",
            "visits": 0,
        }

    def test_assigned_identity(self, users):
        user = User()
        user.id = "colin"
        user.email = "colin@example.com"
        user.save()
        assert users.writes == [
            ("insert", {"_id": "colin", "email": "colin@example.com"}, True)
        ]
        assert user.id == "colin"

    def test_empty(self, samples):
        with pytest.raises(EmptyInsert):
            Sample().save()
        assert samples.writes == []

    def test_queued_operators_follow_the_insert(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.inc("visits").push("tags", "db")
        doc.save()
        assert samples.writes == [
            ("insert", {"n": "Mongo"}, True),
            (
                "update",
                {"_id": doc.id},
                {"$inc": {"visits": 1}, "$push": {"tags": "db"}},
                False,
                True,
            ),
        ]
        assert doc.get_operations() == {}

    def test_failed(self, samples):
        samples.fail_with = "E11000 duplicate key"
        doc = Sample()
        doc.name = "Mongo"
        with pytest.raises(InsertFailed, match="E11000"):
            doc.save()

    def test_failure_ignored_when_not_safe(self, samples):
        samples.fail_with = "E11000 duplicate key"
        doc = Sample()
        doc.name = "Mongo"
        doc.save(safe=False)
        assert samples.writes == [("insert", {"n": "Mongo"}, False)]

    def test_safe_from_settings(self, database):
        doc = Unacknowledged()
        doc.name = "Mongo"
        doc.save()
        collection = database["fire_and_forget"]
        assert collection.writes == [("insert", {"name": "Mongo"}, False)]


class TestUpdate:
    def test_changed_fields_and_operators(self, samples, loaded):
        samples.calls.clear()
        loaded.name = "MongoDB"
        loaded.inc("visits", 2).set("address.city", "Lyon")
        loaded.save()
        assert samples.writes == [
            (
                "update",
                {"_id": loaded.id},
                {"$set": {"n": "MongoDB", "a.city": "Lyon"}, "$inc": {"visits": 2}},
                False,
                True,
            )
        ]
        assert not loaded.is_changed()

    def test_nothing_to_send(self, samples, loaded):
        loaded.save()
        assert samples.writes == []

    def test_without_loading(self, samples, record):
        doc = Sample(record["_id"])
        doc.inc("visits").save()
        assert samples.calls == [
            ("update", {"_id": record["_id"]}, {"$inc": {"visits": 1}}, False, True)
        ]
        assert samples.records[record["_id"]]["visits"] == 2

    def test_merging_operators(self, samples, loaded):
        samples.calls.clear()
        loaded.inc("uses.boing").push("used", {"type": "sound", "desc": "boing"})
        loaded.inc("uses.bonk").push("used", {"type": "sound", "desc": "bonk"})
        loaded.save()
        assert samples.writes[0][2] == {
            "$inc": {"uses.boing": 1, "uses.bonk": 1},
            "$pushAll": {
                "used": [
                    {"type": "sound", "desc": "boing"},
                    {"type": "sound", "desc": "bonk"},
                ]
            },
        }

    def test_array_operators(self, samples, loaded):
        loaded.push_all("tags", ["nosql", "json"]).save()
        assert loaded.tags == ["db", "nosql", "json"]
        loaded.pull("tags", "db").save()
        assert loaded.tags == ["nosql", "json"]
        loaded.shift("tags").save()
        assert loaded.tags == ["json"]
        loaded.pull_all("tags", ["json"]).save()
        assert loaded.tags == []

    def test_pop_and_bit(self, samples, loaded):
        loaded.pop("tags").bit("flags", {"or": 5}).save()
        assert loaded.tags == []
        assert loaded.flags == 5

    def test_unset(self, samples, loaded):
        loaded.unset("address").save()
        assert loaded.address is None
        assert "a" not in samples.records[loaded.id]

    def test_edited_list_assigned_back(self, samples, loaded):
        tags = loaded.tags
        tags.append("json")
        assert loaded.tags == ["db"]
        loaded.tags = tags
        assert loaded.is_changed("tags")
        loaded.save()
        assert samples.writes[-1][2] == {"$set": {"tags": ["db", "json"]}}
        assert samples.records[loaded.id]["tags"] == ["db", "json"]

    def test_failed(self, samples, loaded):
        samples.fail_with = "not master"
        loaded.inc("visits")
        with pytest.raises(UpdateFailed, match="not master"):
            loaded.save()

    def test_failed_keeps_pending_changes(self, samples, loaded):
        samples.fail_with = "not master"
        loaded.name = "Other"
        loaded.inc("visits")
        with pytest.raises(UpdateFailed):
            loaded.save()
        assert loaded.get_operations() == {"$inc": {"visits": 1}}
        assert loaded.is_changed("name")

        samples.fail_with = None
        loaded.save()
        assert samples.writes[-1][2] == {
            "$set": {"n": "Other"},
            "$inc": {"visits": 1},
        }
        assert loaded.get_operations() == {}


class TestReload:
    def test_dirty_field_is_reloaded_after_save(self, samples, loaded):
        loaded.inc("visits").save()
        samples.calls.clear()
        assert loaded.visits == 2
        assert samples.calls == [("find_one", {"_id": loaded.id}, None)]
        assert loaded.visits == 2
        assert len(samples.calls) == 1

    def test_nested_path_reloads_top_level_field(self, samples, loaded):
        loaded.set("address.city", "Lyon").save()
        assert loaded.address == {"city": "Lyon"}

    def test_no_reload_while_operators_pending(self, samples, loaded):
        samples.calls.clear()
        loaded.inc("visits")
        assert loaded.visits == 1
        assert samples.calls == []

    def test_clean_field_is_not_reloaded(self, samples, loaded):
        loaded.inc("visits").save()
        samples.calls.clear()
        assert loaded.name == "Mongo"
        assert samples.calls == []

    def test_inserted_document(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.push("tags", "db").push("tags", "json").save()
        assert doc.tags == ["db", "json"]

    def test_pull_reads_memory_until_saved(self, samples):
        record = samples.add(roles=["admin", "editor"])
        doc = Sample(record["_id"]).load()
        doc.pull("roles", "admin")
        assert doc.roles == ["admin", "editor"]
        doc.save()
        assert doc.roles == ["editor"]


class TestUpsert:
    def test_creates(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.upsert({**Inc({"visits": 1}), **SetOnInsert({"tags": []})})
        assert samples.writes == [
            (
                "update",
                {"n": "Mongo"},
                {"$inc": {"visits": 1}, "$setOnInsert": {"tags": []}},
                True,
                True,
            )
        ]
        (created,) = samples.records.values()
        assert created["visits"] == 1
        assert created["tags"] == []
        assert doc.id is None
        assert not doc.is_changed()

    def test_updates(self, samples, record):
        doc = Sample()
        doc.name = "Mongo"
        doc.upsert({"$inc": {"visits": 1}})
        assert len(samples.records) == 1
        assert samples.records[record["_id"]]["visits"] == 2

    def test_queued_operators_are_merged(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.inc("visits").push("tags", "db")
        doc.upsert({"inc": {"visits": 5}})
        assert samples.writes[0][2] == {
            "$inc": {"visits": 5},
            "$push": {"tags": "db"},
        }
        assert doc.get_operations() == {}

    def test_operations_keyword(self, samples):
        doc = Sample()
        doc.name = "Mongo"
        doc.upsert(operations={"$inc": {"visits": 1}}, safe=False)
        assert samples.writes == [
            ("update", {"n": "Mongo"}, {"$inc": {"visits": 1}}, True, False)
        ]

    def test_without_criteria(self):
        with pytest.raises(MissingCriteria):
            Sample().upsert({"$inc": {"visits": 1}})

    def test_failed(self, samples):
        samples.fail_with = "timeout"
        doc = Sample()
        doc.name = "Mongo"
        with pytest.raises(UpsertFailed, match="timeout"):
            doc.upsert({"$inc": {"visits": 1}})


class TestDelete:
    def test_delete(self, samples, record):
        doc = Sample(record["_id"])
        assert doc.delete() is doc
        assert samples.calls == [("remove", {"_id": record["_id"]}, True, True)]
        assert samples.records == {}
        assert doc.id is None
        assert not doc.loaded

    def test_reuse_after_delete(self, samples, loaded):
        loaded.delete()
        loaded.name = "Again"
        loaded.save()
        assert samples.writes[-1] == ("insert", {"n": "Again"}, True)

    def test_without_identity(self):
        doc = Sample()
        doc.name = "Mongo"
        with pytest.raises(MissingIdentity):
            doc.delete()
        assert doc.name == "Mongo"
        assert doc.is_changed("name")

    def test_failed(self, samples, record):
        samples.fail_with = "not master"
        with pytest.raises(DeleteFailed, match="not master"):
            Sample(record["_id"]).delete()
        assert record["_id"] in samples.records


class TestClearAndCopy:
    def test_clear(self, loaded):
        loaded.name = "Other"
        loaded.inc("visits")
        assert loaded.clear() is loaded
        assert loaded.as_dict(clean=True) == {}
        assert not loaded.loaded
        assert not loaded.is_changed()

    @pytest.mark.parametrize("copier", [copy.copy, copy.deepcopy])
    def test_copy_is_empty(self, loaded, copier):
        loaded.inc("visits")
        other = copier(loaded)
        assert type(other) is Sample
        assert other is not loaded
        assert other.as_dict(clean=True) == {}
        assert not other.loaded
        assert other.get_operations() == {}
        assert loaded.visits == 1


class TestSnapshot:
    def test_snapshot(self, loaded):
        loaded.name = "Other"
        loaded.push("tags", "json")
        snapshot = loaded.snapshot()
        assert isinstance(snapshot, DocumentSnapshot)
        assert snapshot.aliases == {"n": "name", "a": "address"}
        assert snapshot.fields["n"] == "Other"
        assert snapshot.changed == ["n"]
        assert snapshot.operations == {"$push": {"tags": "json"}}
        assert snapshot.loaded
        assert snapshot.dirty == ["tags"]

    def test_pickle(self, samples, loaded):
        loaded.name = "Other"
        loaded.push("tags", "json")
        restored = pickle.loads(pickle.dumps(loaded))
        assert type(restored) is Sample
        assert restored.as_dict(clean=True) == loaded.as_dict(clean=True)
        assert restored.get_operations() == {"$push": {"tags": "json"}}
        assert restored.is_changed("name")
        assert restored.loaded

        samples.calls.clear()
        restored.save()
        assert samples.writes[0][2] == {
            "$set": {"n": "Other"},
            "$push": {"tags": "json"},
        }
        assert restored.tags == ["db", "json"]

    def test_from_snapshot_keeps_its_aliases(self):
        snapshot = DocumentSnapshot(
            aliases={"x": "name"},
            fields={"_id": "colin", "x": "Mongo"},
            changed=[],
            operations={},
            loaded=True,
            dirty=[],
        )
        doc = Sample.from_snapshot(snapshot)
        assert doc.name == "Mongo"
        assert doc.get_field_name("name") == "x"
        assert Sample().get_field_name("name") == "n"

    def test_restored_documents_share_nothing(self):
        snapshot = DocumentSnapshot(
            aliases={"n": "name", "a": "address"},
            fields={"_id": "colin", "tags": ["a", "b"]},
            changed=[],
            operations={"$pushAll": {"tags": ["a", "b"]}},
            loaded=True,
            dirty=["tags"],
        )
        first = Sample.from_snapshot(snapshot)
        second = Sample.from_snapshot(snapshot)
        first.push("tags", "c")
        assert first.get_operations() == {"$pushAll": {"tags": ["a", "b", "c"]}}
        assert second.get_operations() == {"$pushAll": {"tags": ["a", "b"]}}
        assert snapshot.operations == {"$pushAll": {"tags": ["a", "b"]}}

    def test_snapshot_is_detached(self, loaded):
        loaded.push("tags", "json")
        snapshot = loaded.snapshot()
        snapshot.fields["tags"].append("nosql")
        snapshot.operations["$push"]["tags"] = "nosql"
        assert loaded.tags == ["db"]
        assert loaded.get_operations() == {"$push": {"tags": "json"}}
