"""
Unit tests for WatchCache.

Test Coverage
-------------
- Raw value parsing into TriState
- Lazy install: one data watch per path, later lookups served from memory
- Push updates, including deletion and unparseable values clearing to unset
- Concurrent first lookups sharing a single install
- Install failures and prime timeouts
- Callback failures keeping the last known value
- Close releasing every watch

Testing Strategy
----------------
- Unit tests against FakeZooKeeperClient (see conftest)
- `flush()` before asserting on pushed values
"""

import threading
import time

import pytest

from zkfss.core.cache.watch_cache import TriState, WatchCache, parse_tri_state
from zkfss.core.exceptions import ServiceStateError, WatchInstallError

PATH = "/zkfss/blah"


# ============================================================================
# PARSING
# ============================================================================


class TestParseTriState:
    """Test raw node data interpretation."""

    @pytest.mark.parametrize("raw", [b"true", b"TRUE", b"True", b"1", "tRuE"])
    def test_true_encodings(self, raw):
        assert parse_tri_state(raw) is TriState.TRUE

    @pytest.mark.parametrize("raw", [b"false", b"FALSE", b"0", "False"])
    def test_false_encodings(self, raw):
        assert parse_tri_state(raw) is TriState.FALSE

    @pytest.mark.parametrize(
        "raw", [None, b"", b"maybe", b"yes", b"2", b" true", b"\xff\xfe", b"01"]
    )
    def test_everything_else_is_unset(self, raw):
        assert parse_tri_state(raw) is TriState.UNSET

    def test_as_bool(self):
        assert TriState.TRUE.as_bool() is True
        assert TriState.FALSE.as_bool() is False
        assert TriState.UNSET.as_bool() is None
        assert not TriState.UNSET.is_set


# ============================================================================
# LAZY INSTALL
# ============================================================================


class TestLazyInstall:
    """Test that watches are installed once, on first lookup."""

    def test_missing_node_resolves_unset(self, watch_cache, fake_zk):
        assert watch_cache.resolve(PATH) is TriState.UNSET
        assert fake_zk.data_watch_calls[PATH] == 1

    def test_initial_snapshot_is_returned(self, watch_cache, fake_zk):
        fake_zk.nodes[PATH] = b"true"

        assert watch_cache.resolve(PATH) is TriState.TRUE

    def test_second_lookup_does_not_touch_zookeeper(self, watch_cache, fake_zk):
        watch_cache.resolve(PATH)
        watch_cache.resolve(PATH)
        watch_cache.resolve(PATH)

        assert fake_zk.data_watch_calls[PATH] == 1
        assert fake_zk.active_watches(PATH) == 1

        metrics = watch_cache.metrics.get_metrics()
        assert metrics["watch_installs"] == 1
        assert metrics["hits"] == 2

    def test_entry_exists_only_after_lookup(self, watch_cache):
        assert PATH not in watch_cache

        watch_cache.resolve(PATH)

        assert PATH in watch_cache
        assert watch_cache.watched_paths() == [PATH]

    def test_resolve_before_open_raises(self, fake_zk):
        cache = WatchCache(fake_zk, prime_timeout=1.0)

        with pytest.raises(ServiceStateError):
            cache.resolve(PATH)

        assert fake_zk.data_watch_calls[PATH] == 0


# ============================================================================
# PUSH UPDATES
# ============================================================================


class TestPushUpdates:
    """Test that ZooKeeper pushes keep cached values current."""

    def test_create_after_watch(self, watch_cache, fake_zk):
        assert watch_cache.resolve(PATH) is TriState.UNSET

        fake_zk.set(PATH, "true")
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.TRUE
        assert fake_zk.data_watch_calls[PATH] == 1

    def test_last_update_wins(self, watch_cache, fake_zk):
        watch_cache.resolve(PATH)

        for value in ("true", "false", "1", "0", "TRUE"):
            fake_zk.set(PATH, value)
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.TRUE
        assert watch_cache.metrics.get_metrics()["updates"] == 5

    def test_delete_clears_to_unset(self, watch_cache, fake_zk):
        fake_zk.nodes[PATH] = b"true"
        assert watch_cache.resolve(PATH) is TriState.TRUE

        fake_zk.delete(PATH)
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.UNSET

    def test_unparseable_update_clears_to_unset(self, watch_cache, fake_zk):
        fake_zk.nodes[PATH] = b"false"
        assert watch_cache.resolve(PATH) is TriState.FALSE

        fake_zk.set(PATH, "maybe")
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.UNSET
        assert watch_cache.metrics.get_metrics()["parse_anomalies"] == 1

    def test_snapshot_reports_current_values(self, watch_cache, fake_zk):
        fake_zk.nodes["/a"] = b"1"
        watch_cache.resolve("/a")
        watch_cache.resolve("/b")

        assert watch_cache.snapshot() == {"/a": True, "/b": None}


# ============================================================================
# CONCURRENCY
# ============================================================================


class TestConcurrentInstall:
    """Test that racing first lookups share one install."""

    def test_single_watch_for_concurrent_first_lookups(self, watch_cache, fake_zk):
        fake_zk.nodes[PATH] = b"true"
        fake_zk.watch_delay = 0.2

        results = []
        errors = []
        start = threading.Barrier(8)

        def lookup():
            start.wait()
            try:
                results.append(watch_cache.resolve(PATH))
            except Exception as exc:  # pragma: no cover - surfaced by assert below
                errors.append(exc)

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert errors == []
        assert results == [TriState.TRUE] * 8
        assert fake_zk.data_watch_calls[PATH] == 1
        assert fake_zk.active_watches(PATH) == 1


# ============================================================================
# FAILURES
# ============================================================================


class TestInstallFailures:
    """Test failed installs leave no entry behind and can be retried."""

    def test_datawatch_error_raises_and_leaves_no_entry(self, watch_cache, fake_zk):
        fake_zk.fail_paths[PATH] = RuntimeError("connection loss")

        with pytest.raises(WatchInstallError) as exc_info:
            watch_cache.resolve(PATH)

        assert exc_info.value.path == PATH
        assert PATH not in watch_cache
        assert watch_cache.metrics.get_metrics()["install_failures"] == 1

    def test_failed_install_can_be_retried(self, watch_cache, fake_zk):
        fake_zk.fail_paths[PATH] = RuntimeError("connection loss")
        with pytest.raises(WatchInstallError):
            watch_cache.resolve(PATH)

        del fake_zk.fail_paths[PATH]
        fake_zk.nodes[PATH] = b"false"

        assert watch_cache.resolve(PATH) is TriState.FALSE
        assert fake_zk.data_watch_calls[PATH] == 2

    def test_missing_snapshot_times_out(self, fake_zk):
        fake_zk.silent_paths.add(PATH)
        cache = WatchCache(fake_zk, prime_timeout=0.05)
        cache.open()
        try:
            with pytest.raises(WatchInstallError) as exc_info:
                cache.resolve(PATH)
        finally:
            cache.close()

        assert isinstance(exc_info.value.original_error, TimeoutError)
        assert PATH not in cache

    def test_timed_out_watch_detaches_on_next_event(self, fake_zk):
        fake_zk.silent_paths.add(PATH)
        cache = WatchCache(fake_zk, prime_timeout=0.05)
        cache.open()
        try:
            with pytest.raises(WatchInstallError):
                cache.resolve(PATH)

            fake_zk.handler.join_all()
            fake_zk.set(PATH, "true")

            assert fake_zk.active_watches(PATH) == 0
        finally:
            cache.close()

    def test_stuck_registration_is_bounded_by_prime_timeout(self, fake_zk):
        fake_zk.nodes[PATH] = b"true"
        fake_zk.watch_delay = 0.5
        cache = WatchCache(fake_zk, prime_timeout=0.05)
        cache.open()
        try:
            started = time.monotonic()
            with pytest.raises(WatchInstallError) as exc_info:
                cache.resolve(PATH)
            elapsed = time.monotonic() - started

            assert elapsed < 0.4
            assert isinstance(exc_info.value.original_error, TimeoutError)
            assert PATH not in cache

            # The late registration finds its entry released and detaches
            fake_zk.handler.join_all()
            assert fake_zk.active_watches(PATH) == 0

            fake_zk.watch_delay = 0.0
            assert cache.resolve(PATH) is TriState.TRUE
        finally:
            cache.close()


class TestCallbackFailures:
    """Test that a failing callback keeps the last known value."""

    def test_callback_error_retains_last_value(self, mocker, watch_cache, fake_zk):
        fake_zk.nodes[PATH] = b"true"
        assert watch_cache.resolve(PATH) is TriState.TRUE

        mocker.patch(
            "zkfss.core.cache.watch_cache.parse_tri_state",
            side_effect=RuntimeError("decoder blew up"),
        )
        fake_zk.set(PATH, "false")
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.TRUE
        assert watch_cache.metrics.get_metrics()["update_errors"] == 1
        assert fake_zk.active_watches(PATH) == 1

    def test_watch_survives_callback_error(self, mocker, watch_cache, fake_zk):
        watch_cache.resolve(PATH)

        mocker.patch(
            "zkfss.core.cache.watch_cache.parse_tri_state",
            side_effect=RuntimeError("decoder blew up"),
        )
        fake_zk.set(PATH, "true")
        watch_cache.flush()
        mocker.stopall()

        fake_zk.set(PATH, "true")
        assert watch_cache.flush()

        assert watch_cache.resolve(PATH) is TriState.TRUE


# ============================================================================
# CLOSE
# ============================================================================


class TestClose:
    """Test teardown."""

    def test_close_clears_mapping_and_releases_watches(self, fake_zk):
        cache = WatchCache(fake_zk, prime_timeout=1.0)
        cache.open()
        cache.resolve("/a")
        cache.resolve("/b")

        cache.close()

        assert len(cache) == 0
        assert cache.metrics.get_metrics()["releases"] == 2

        # Released watches detach on their next event
        fake_zk.set("/a", "true")
        fake_zk.delete("/b")
        assert fake_zk.active_watches("/a") == 0
        assert fake_zk.active_watches("/b") == 0

    def test_resolve_after_close_raises(self, fake_zk):
        cache = WatchCache(fake_zk, prime_timeout=1.0)
        cache.open()
        cache.close()

        with pytest.raises(ServiceStateError):
            cache.resolve(PATH)

    def test_closed_cache_cannot_reopen(self, fake_zk):
        cache = WatchCache(fake_zk, prime_timeout=1.0)
        cache.open()
        cache.close()

        with pytest.raises(ServiceStateError):
            cache.open()

    def test_close_is_idempotent(self, fake_zk):
        cache = WatchCache(fake_zk, prime_timeout=1.0)
        cache.open()
        cache.close()
        cache.close()

        assert not cache.is_open
