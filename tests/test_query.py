"""
Tests for search/filter predicate construction.
"""
import datetime

import pytest
from bson import ObjectId

from backend.mongo_admin.services.query import (
    SEARCH_FIELDS,
    build_query,
    merge_predicates,
    parse_filter,
    search_predicate,
)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "   ",
        '{"status": "active"',
        "[1, 2, 3]",
        '"just a string"',
        '{"$where": "sleep(1000)"}',
        '{"$or": {"a": 1}}',
        '{"$and": []}',
        '{"_id": {"$oid": "nope"}}',
        "[" * 5000 + "]" * 5000,
        '{"a": ' * 3000 + "1" + "}" * 3000,
    ],
)
def test_parse_filter_drops_absent_or_malformed(raw):
    assert parse_filter(raw) is None


@pytest.mark.parametrize(
    "raw",
    [
        '{"name": {"$bogus": 1}}',
        '{"name": {"$regex": "("}}',
        '{"name": {"$regex": "(", "$options": "i"}}',
        '{"name": {"$not": {"$regex": "["}}}',
        '{"name": {"$not": {"plain": 1}}}',
        '{"name": {"$options": "i"}}',
        '{"name": {"$gt": 1, "plain": 2}}',
        '{"name": {"$in": "alice"}}',
        '{"tags": {"$size": -1}}',
        '{"level": {"$mod": [2]}}',
        '{"level": {"$mod": [0, 1]}}',
        '{"tags": {"$elemMatch": {"$wat": 1}}}',
        '{"$or": [{"name": "x"}, {"name": {"$bogus": 1}}]}',
    ],
)
def test_parse_filter_drops_unknown_or_broken_operators(raw):
    assert parse_filter(raw) is None


@pytest.mark.parametrize(
    "raw",
    [
        '{"age": {"$gte": 18, "$lt": 65}}',
        '{"name": {"$regex": "^al", "$options": "i"}}',
        '{"name": {"$not": {"$regex": "^x"}}}',
        '{"status": {"$in": ["a", "b"]}, "deleted": {"$exists": false}}',
        '{"tags": {"$all": ["a", "b"]}, "level": {"$mod": [2, 0]}, "items": {"$size": 3}}',
        '{"tags": {"$elemMatch": {"kind": "a", "score": {"$gt": 1}}}}',
        '{"scores": {"$elemMatch": {"$gte": 80, "$lt": 90}}}',
        '{"profile": {"city": "Oslo"}}',
    ],
)
def test_parse_filter_keeps_supported_operators(raw):
    assert parse_filter(raw) is not None


def test_unusable_filter_with_search_equals_search_alone(db):
    col = db["users"]
    col.insert_many([{"name": "alpha"}, {"name": "beta"}])
    search_only = build_query(col, "alpha", None)
    for raw in ("[" * 3000 + "]" * 3000, '{"name": {"$bogus": 1}}', '{"name": {"$regex": "("}}'):
        assert build_query(col, "alpha", raw) == search_only


def test_parse_filter_accepts_extended_json():
    parsed = parse_filter(
        '{"owner": {"$oid": "64b7f0c2a1e4c3d2b1a09f8e"}, "lastActive": {"$gte": {"$date": "2024-01-01T00:00:00Z"}}}'
    )
    assert parsed["owner"] == ObjectId("64b7f0c2a1e4c3d2b1a09f8e")
    assert isinstance(parsed["lastActive"]["$gte"], datetime.datetime)


def test_parse_filter_accepts_logical_operators():
    parsed = parse_filter('{"$or": [{"status": "a"}, {"status": "b"}], "age": {"$gt": 3}}')
    assert parsed == {"$or": [{"status": "a"}, {"status": "b"}], "age": {"$gt": 3}}


def test_search_predicate_escapes_regex(db):
    col = db["users"]
    col.insert_one({"name": "a.b (c)"})
    pred = search_predicate(col, "a.b (", "fixed")
    name_branch = next(b for b in pred["$or"] if "name" in b)
    assert name_branch["name"] == {"$regex": r"a\.b\ \(", "$options": "i"}
    assert col.count_documents(pred) == 1


def test_empty_search_is_unrestricted(db):
    assert search_predicate(db["users"], "", "auto") == {}
    assert build_query(db["users"], "", None) == {}


def test_fixed_search_is_case_insensitive(db):
    col = db["users"]
    col.insert_many([{"email": "Alice@Example.com"}, {"email": "bob@example.com"}, {"note": "alice"}])
    pred = search_predicate(col, "alice", "fixed")
    assert [list(b)[0] for b in pred["$or"]] == list(SEARCH_FIELDS)
    assert col.count_documents(pred) == 1


def test_auto_search_falls_back_to_sampled_fields(db):
    col = db["widgets"]
    col.insert_many([
        {"sku": "W-100", "colour": "red", "weight": 12},
        {"sku": "W-200", "colour": "blue", "weight": 7},
    ])

    pred = search_predicate(col, "blue", "auto")

    assert {"colour": {"$regex": "blue", "$options": "i"}} in pred["$or"]
    assert col.count_documents(pred) == 1


def test_sampled_search_matches_numbers_by_equality(db):
    col = db["widgets"]
    col.insert_many([{"sku": "W-100", "weight": 12}, {"sku": "W-200", "weight": 7}])

    pred = search_predicate(col, "12", "sample")

    assert {"weight": 12} in pred["$or"]
    assert [d["sku"] for d in col.find(pred)] == ["W-100"]


def test_auto_search_keeps_fixed_fields_when_they_hit(db):
    col = db["users"]
    col.insert_many([{"name": "Grace", "bio": "grace notes"}, {"name": "Ada", "bio": "grace period"}])
    pred = search_predicate(col, "grace", "auto")
    assert col.count_documents(pred) == 1


def test_search_with_object_id_term_matches_primary_key(db):
    col = db["users"]
    oid = col.insert_one({"name": "x"}).inserted_id
    pred = search_predicate(col, str(oid), "fixed")
    assert pred["$or"][0] == {"_id": oid}
    assert col.count_documents(pred) == 1


def test_search_on_empty_collection_matches_nothing(db):
    pred = search_predicate(db["empty"], "anything", "sample")
    assert db["empty"].count_documents(pred) == 0
    assert pred != {}


def test_merge_disjoint_keys_keeps_both():
    merged = merge_predicates({"$or": [{"name": "x"}]}, {"status": "active"})
    assert merged == {"$or": [{"name": "x"}], "status": "active"}


def test_merge_colliding_keys_uses_and():
    search = {"$or": [{"name": "x"}]}
    custom = {"$or": [{"status": "a"}, {"status": "b"}]}
    assert merge_predicates(search, custom) == {"$and": [search, custom]}


def test_malformed_filter_with_search_equals_search_alone(db):
    col = db["users"]
    col.insert_many([{"name": "alpha"}, {"name": "beta"}, {"name": "alphabet"}])
    with_bad_filter = build_query(col, "alpha", "{status: 'broken'")
    search_only = build_query(col, "alpha", None)
    assert with_bad_filter == search_only
    assert col.count_documents(with_bad_filter) == 2


def test_search_and_filter_both_apply(db):
    col = db["users"]
    col.insert_many([
        {"name": "alpha", "status": "active"},
        {"name": "alphabet", "status": "banned"},
        {"name": "beta", "status": "active"},
    ])
    query = build_query(col, "alpha", '{"status": "active"}')
    assert [d["name"] for d in col.find(query)] == ["alpha"]
