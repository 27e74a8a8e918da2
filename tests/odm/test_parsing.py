import pytest
from bson import ObjectId

from mongodoc.odm.fields import FieldResolver
from mongodoc.odm.utils.parsing import build_criteria, build_projection, parse_json

resolve = FieldResolver({"n": "name"}).resolve
OID = ObjectId("5eb7cf5a86d9755df3a6c593")


class TestBuildCriteria:
    def test_current_identity(self):
        current = {"_id": OID, "n": "Mongo"}
        assert build_criteria(None, current, resolve) == {"_id": OID}

    def test_current_fields(self):
        current = {"n": "Mongo", "visits": 1}
        assert build_criteria(None, current, resolve) == current

    def test_empty_values(self):
        current = {"_id": OID}
        for criteria in (None, "", {}):
            assert build_criteria(criteria, current, resolve) == {"_id": OID}

    def test_nothing_known(self):
        assert build_criteria(None, {}, resolve) == {}

    def test_json(self):
        assert build_criteria('{"name": "Mongo"}', {}, resolve) == {"n": "Mongo"}

    def test_extended_json(self):
        criteria = '{"_id": {"$oid": "5eb7cf5a86d9755df3a6c593"}}'
        assert build_criteria(criteria, {}, resolve) == {"_id": OID}

    def test_json_must_be_an_object(self):
        with pytest.raises(ValueError):
            build_criteria("{", {}, resolve)

    def test_mapping(self):
        assert build_criteria({"name": "Mongo", "x": 1}, {"_id": OID}, resolve) == {
            "n": "Mongo",
            "x": 1,
        }

    def test_mapping_with_identity_is_kept(self):
        criteria = {"_id": str(OID), "name": "Mongo"}
        assert build_criteria(criteria, {}, resolve) == {
            "_id": OID,
            "name": "Mongo",
        }

    @pytest.mark.parametrize(
        "criteria, expected",
        [
            (OID, OID),
            (str(OID), OID),
            ("colin", "colin"),
            (42, 42),
        ],
    )
    def test_identity(self, criteria, expected):
        assert build_criteria(criteria, {}, resolve) == {"_id": expected}


def test_parse_json_array():
    with pytest.raises(ValueError):
        parse_json("[1, 2]")


def test_build_projection():
    assert build_projection(["name", "tags"], resolve) == ["n", "tags"]
    assert build_projection([], resolve) is None
