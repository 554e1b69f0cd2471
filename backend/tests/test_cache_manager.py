import pytest

from timetracker.constants.tables import CacheSlot
from timetracker.services.cache_manager import CacheManager, MISS


class TestCacheManager:
    @pytest.fixture
    def cache(self, clock):
        return CacheManager(clock=clock)

    def test_empty_slot_is_miss(self, cache):
        assert cache.read(CacheSlot.ALL_USERS_DATA) is MISS
        assert cache.peek_age(CacheSlot.ALL_USERS_DATA) is None

    def test_read_within_ttl_returns_same_object(self, cache, clock):
        value = {"a": 1}
        cache.write(CacheSlot.CSI_TASKS, value)
        clock.advance(299)
        assert cache.read(CacheSlot.CSI_TASKS) is value

    def test_read_at_ttl_is_miss(self, cache, clock):
        cache.write(CacheSlot.CSI_TASKS, [1, 2])
        clock.advance(300)
        assert cache.read(CacheSlot.CSI_TASKS) is MISS
        # Expired values remain available as a fallback
        assert cache.read_stale(CacheSlot.CSI_TASKS) == [1, 2]
        assert cache.peek_age(CacheSlot.CSI_TASKS) == 300

    def test_falsy_values_are_hits(self, cache):
        cache.write(CacheSlot.ALL_JOB_ADDRESSES, [])
        assert cache.read(CacheSlot.ALL_JOB_ADDRESSES) == []

    def test_invalidate_all_clears_every_slot(self, cache):
        for slot in CacheSlot:
            cache.write(slot, slot.value)
        cache.invalidate_all()
        for slot in CacheSlot:
            assert cache.read(slot) is MISS
            assert cache.read_stale(slot) is MISS

    def test_slots_are_independently_timestamped(self, cache, clock):
        cache.write(CacheSlot.ALL_USERS_DATA, "users")
        clock.advance(200)
        cache.write(CacheSlot.CSI_TASKS, "tasks")
        clock.advance(150)
        assert cache.read(CacheSlot.ALL_USERS_DATA) is MISS
        assert cache.read(CacheSlot.CSI_TASKS) == "tasks"

    def test_string_slot_names_are_accepted(self, cache):
        cache.write("allUsersData", {"x": 1})
        assert cache.read(CacheSlot.ALL_USERS_DATA) == {"x": 1}

    def test_custom_ttl(self, clock):
        cache = CacheManager(ttl=10, clock=clock)
        cache.write(CacheSlot.CSI_TASKS, "v")
        clock.advance(10)
        assert cache.read(CacheSlot.CSI_TASKS) is MISS

    def test_unknown_slot_raises(self, cache):
        with pytest.raises(ValueError):
            cache.read("nope")

    def test_generation_changes_on_invalidate(self, cache):
        before = cache.generation
        cache.write(CacheSlot.CSI_TASKS, "v")
        assert cache.generation == before
        cache.invalidate_all()
        cache.invalidate_all()
        assert cache.generation == before + 2
