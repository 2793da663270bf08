import random

import pytest

from sharex_cache.cache.bounded import BoundedCategoryCache
from sharex_cache.cache.frames import DerivedFrameCache
from sharex_cache.models import ExtractedFrameSet, MediaKind

from conftest import make_record


def test_upsert_evicts_oldest_by_mtime_not_access():
    cache = BoundedCategoryCache("images", capacity=2)
    cache.upsert(make_record("old.png", 10))
    cache.upsert(make_record("mid.png", 20))

    # Reading the oldest entry does not protect it
    assert cache.get("old.png") is not None
    evicted = cache.upsert(make_record("new.png", 30))

    assert evicted == ["old.png"]
    assert sorted(cache.names()) == ["mid.png", "new.png"]


def test_capacity_invariant_keeps_newest_seen():
    rng = random.Random(7)
    cache = BoundedCategoryCache("images", capacity=4)
    seen = []

    for i in range(60):
        record = make_record(f"shot_{i}.png", rng.randint(0, 1000) + i / 1000)
        seen.append(record)
        cache.upsert(record)

        assert len(cache) == min(len(seen), 4)
        expected = sorted(seen, key=lambda r: r.modified_at, reverse=True)[:4]
        assert cache.values_newest_first() == expected


def test_upsert_replaces_in_place():
    cache = BoundedCategoryCache("images", capacity=3)
    cache.upsert(make_record("a.png", 10, size=1))
    cache.upsert(make_record("a.png", 50, size=2))

    assert len(cache) == 1
    assert cache.get("a.png").size == 2


def test_new_record_older_than_everything_is_evicted_itself():
    cache = BoundedCategoryCache("images", capacity=2)
    cache.upsert(make_record("b.png", 20))
    cache.upsert(make_record("c.png", 30))

    assert cache.upsert(make_record("a.png", 10)) == ["a.png"]
    assert "a.png" not in cache


def test_ties_evict_earliest_inserted():
    cache = BoundedCategoryCache("images", capacity=2)
    cache.upsert(make_record("first.png", 10))
    cache.upsert(make_record("second.png", 10))
    cache.upsert(make_record("third.png", 10))

    assert sorted(cache.names()) == ["second.png", "third.png"]
    assert [r.name for r in cache.values_newest_first()] == ["third.png", "second.png"]


def test_values_newest_first_limit():
    cache = BoundedCategoryCache("images", capacity=5)
    for i, name in enumerate(["a", "b", "c", "d"]):
        cache.upsert(make_record(f"{name}.png", i))

    assert [r.name for r in cache.values_newest_first(2)] == ["d.png", "c.png"]
    assert len(cache.values_newest_first()) == 4
    assert cache.values_newest_first(0) == []


def test_remove_and_discard_hook():
    discarded = []
    cache = BoundedCategoryCache("gifs", capacity=1, on_discard=discarded.append)
    cache.upsert(make_record("a.gif", 10, MediaKind.ANIMATION))

    assert cache.remove("missing.gif") is False
    assert discarded == []

    cache.upsert(make_record("b.gif", 20, MediaKind.ANIMATION))
    assert discarded == ["a.gif"]

    assert cache.remove("b.gif") is True
    assert discarded == ["a.gif", "b.gif"]
    assert len(cache) == 0


def test_clear_without_notify():
    discarded = []
    cache = BoundedCategoryCache("gifs", capacity=3, on_discard=discarded.append)
    cache.upsert(make_record("a.gif", 10, MediaKind.ANIMATION))
    cache.clear(notify=False)

    assert len(cache) == 0
    assert discarded == []


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BoundedCategoryCache("images", capacity=0)


def test_derived_frame_cache():
    frames = DerivedFrameCache()
    record = make_record("a.gif", 10, MediaKind.ANIMATION)
    frame_set = ExtractedFrameSet(source_name="a.gif", frames=[], total_frame_count=3,
                                  stride=1, source=record, max_frames=10)

    frames.put("a.gif", frame_set)
    assert frames.get("a.gif") is frame_set
    assert "a.gif" in frames and len(frames) == 1

    assert frames.invalidate("a.gif") is True
    assert frames.invalidate("a.gif") is False
    assert frames.get("a.gif") is None
