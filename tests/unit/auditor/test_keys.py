"""Unit tests for the credential pool."""

import threading

import pytest

from auditor.errors import AllKeysExhausted, ConfigurationError, UpstreamApiError
from auditor.keys import KeyPool, mask_key


class TestKeyPoolConstruction:

    def test_empty_pool_fails_fast(self):
        with pytest.raises(ConfigurationError):
            KeyPool([])

    def test_blank_keys_ignored(self):
        with pytest.raises(ConfigurationError):
            KeyPool(["", "   "])

    def test_duplicates_collapsed(self):
        pool = KeyPool(["a-key", "b-key", "a-key"])
        assert pool.key_count == 2

    def test_from_string(self):
        pool = KeyPool.from_string(" one-key , two-key,,three-key ")
        assert pool.key_count == 3
        assert pool.available_count == 3

    def test_from_empty_string_fails(self):
        with pytest.raises(ConfigurationError):
            KeyPool.from_string("")


class TestRotation:

    def test_round_robin(self, pool, keys):
        assert [pool.get_next_key() for _ in range(4)] == [keys[0], keys[1], keys[2], keys[0]]

    def test_usage_counted(self, pool, keys):
        for _ in range(4):
            pool.get_next_key()
        assert pool.usage(keys[0]) == 2
        assert pool.usage(keys[1]) == 1

    def test_skips_exhausted(self, pool, keys):
        pool.mark_exhausted(keys[1])
        assert [pool.get_next_key() for _ in range(3)] == [keys[0], keys[2], keys[0]]

    def test_cursor_advances_past_exhausted(self, pool, keys):
        assert pool.get_next_key() == keys[0]
        pool.mark_exhausted(keys[0])
        assert pool.get_next_key() == keys[1]
        assert pool.get_next_key() == keys[2]
        assert pool.get_next_key() == keys[1]

    def test_all_exhausted_raises(self, pool, keys):
        for key in keys:
            pool.mark_exhausted(key)
        assert pool.available_count == 0
        with pytest.raises(AllKeysExhausted):
            pool.get_next_key()

    def test_mark_exhausted_idempotent(self, pool, keys):
        pool.mark_exhausted(keys[0])
        pool.mark_exhausted(keys[0])
        assert pool.available_count == 2
        assert pool.is_exhausted(keys[0])

    def test_unknown_key_not_marked(self, pool):
        pool.mark_exhausted("not-in-pool")
        assert pool.available_count == 3

    def test_concurrent_draws_count_every_use(self, pool, keys):
        def draw():
            for _ in range(100):
                pool.get_next_key()

        threads = [threading.Thread(target=draw) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(pool.usage(k) for k in keys) == 400


class TestHandleUpstreamError:

    def test_quota_marks_exhausted_and_recommends_retry(self, pool, keys):
        error = UpstreamApiError("You exceeded your current quota", status=429, code="insufficient_quota")
        assert pool.handle_upstream_error(keys[0], error) is True
        assert pool.is_exhausted(keys[0])

    def test_rate_limit_recommends_retry_without_exhaustion(self, pool, keys):
        error = UpstreamApiError("Too many requests", status=429)
        assert pool.handle_upstream_error(keys[0], error) is True
        assert not pool.is_exhausted(keys[0])

    def test_other_error_no_retry(self, pool, keys):
        error = UpstreamApiError("Internal server error", status=500)
        assert pool.handle_upstream_error(keys[0], error) is False
        assert not pool.is_exhausted(keys[0])

    def test_plain_exception_classified_by_text(self, pool, keys):
        assert pool.handle_upstream_error(keys[0], RuntimeError("Resource has been exhausted")) is True
        assert not pool.is_exhausted(keys[0])


class TestMasking:

    def test_mask_key_keeps_prefix_only(self):
        assert mask_key("sk-1234567890abcdef") == "sk-1234567..."

    def test_snapshot_never_shows_full_key(self, pool, keys):
        pool.mark_exhausted(keys[2])
        snapshot = pool.snapshot()
        assert [s["exhausted"] for s in snapshot] == [False, False, True]
        for entry, key in zip(snapshot, keys):
            assert key not in entry["key"]
