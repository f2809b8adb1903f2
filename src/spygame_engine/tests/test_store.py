"""
Tests for the in-memory key-value store.
"""

import pytest

from spygame_engine.store import MemoryStore


def test_scalars(store):
    assert store.get("k") is None
    store.set("k", "v1")
    assert store.get("k") == "v1"
    assert not store.set_if_absent("k", "v2")
    assert store.get("k") == "v1"
    assert store.set_if_absent("other", "v")
    assert store.delete("k", "other", "missing") == 2
    assert store.get("k") is None


def test_sets(store):
    assert store.sadd("s", "a", "b") == 2
    assert store.sadd("s", "b", "c") == 1
    assert store.smembers("s") == {"a", "b", "c"}
    assert store.srem("s", "a", "zzz") == 1
    assert store.smembers("s") == {"b", "c"}
    assert store.smembers("missing") == set()


def test_lists(store):
    store.rpush("l", "a", "b", "c")
    store.lpush("l", "z")
    assert store.lrange("l", 0, -1) == ["z", "a", "b", "c"]
    assert store.lrange("l", 1, 2) == ["a", "b"]
    assert store.lrange("l", -2, -1) == ["b", "c"]
    assert store.lpop("l") == "z"
    assert store.lrange("l", 0, -1) == ["a", "b", "c"]
    assert store.lpop("missing") is None
    assert store.lrange("missing", 0, -1) == []


def test_hashes(store):
    assert store.hset("h", "f", "1") == 1
    assert store.hset("h", "f", "2") == 0
    assert store.hget("h", "f") == "2"
    assert not store.hset_if_absent("h", "f", "3")
    assert store.hset_if_absent("h", "g", "4")
    assert store.hgetall("h") == {"f": "2", "g": "4"}
    assert store.hgetall("missing") == {}


def test_wrong_type_raises(store):
    store.set("k", "v")
    with pytest.raises(TypeError):
        store.sadd("k", "member")
    with pytest.raises(TypeError):
        store.lrange("k", 0, -1)


def test_pipeline_applies_all_commands(store):
    with store.pipeline() as pipe:
        pipe.set("a", "1")
        pipe.sadd("b", "x")
        pipe.rpush("c", "y")
    assert store.get("a") == "1"
    assert store.smembers("b") == {"x"}
    assert store.lrange("c", 0, -1) == ["y"]


def test_pipeline_failure_leaves_store_untouched(store):
    store.set("scalar", "v")
    pipe = store.pipeline()
    pipe.set("a", "1")
    pipe.rpush("c", "y")
    pipe.sadd("scalar", "boom")
    with pytest.raises(TypeError):
        pipe.execute()
    assert store.get("a") is None
    assert store.lrange("c", 0, -1) == []
    assert store.get("scalar") == "v"


def test_pipeline_discarded_when_block_raises(store):
    with pytest.raises(RuntimeError):
        with store.pipeline() as pipe:
            pipe.set("a", "1")
            raise RuntimeError("abort")
    assert store.get("a") is None


def test_pipeline_rejects_read_commands():
    pipe = MemoryStore().pipeline()
    with pytest.raises(AttributeError):
        pipe.smembers("s")


def test_lrange_stop_before_start_of_list(store):
    store.rpush("l", "a", "b", "c")
    assert store.lrange("l", 0, -5) == []
    assert store.lrange("l", 0, -3) == ["a"]
    assert store.lrange("l", -10, 10) == ["a", "b", "c"]


def test_pipeline_leaves_untouched_keys_alone(store):
    store.sadd("untouched", "x")
    store.set("scalar", "v")
    untouched = store._data["untouched"]

    with store.pipeline() as pipe:
        pipe.sadd("other", "y")
    pipe = store.pipeline()
    pipe.rpush("fresh", "z")
    pipe.sadd("scalar", "boom")
    with pytest.raises(TypeError):
        pipe.execute()

    assert store._data["untouched"] is untouched
    assert store.smembers("untouched") == {"x"}
    assert store.lrange("fresh", 0, -1) == []
    assert store.smembers("other") == {"y"}


def test_pipeline_rollback_restores_touched_containers(store):
    store.rpush("l", "a")
    store.set("scalar", "v")
    pipe = store.pipeline()
    pipe.rpush("l", "b")
    pipe.delete("l")
    pipe.hset("l", "f", "1")
    pipe.sadd("scalar", "boom")
    with pytest.raises(TypeError):
        pipe.execute()
    assert store.lrange("l", 0, -1) == ["a"]
    assert store.get("scalar") == "v"
