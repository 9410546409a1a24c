"""
Property-based tests for the status cache.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from mcsrv_status.config import CacheConfig
from mcsrv_status.enums import Edition
from mcsrv_status.models import ServerStatus
from mcsrv_status.status_cache import StatusCache, make_key
from mcsrv_status.store import MemoryStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_status(hostname: str = "mc.hypixel.net", port: int = 25565) -> ServerStatus:
    return ServerStatus(online=True, hostname=hostname, port=port, cache_time=0.0)


@st.composite
def hostname_strategy(draw) -> str:
    label = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
        min_size=1,
        max_size=15,
    ))
    return f"{label}.example.com"


class TestCacheExpiryProperty:
    """
    Property-based tests for cache expiry.
    """

    @given(
        hostname=hostname_strategy(),
        duration=st.integers(min_value=1, max_value=600),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_entry_served_until_duration_passes(
        self, hostname: str, duration: int, data
    ) -> None:
        """
        *For any* entry, reads within the cache duration SHALL return the
        stored status and reads after it SHALL miss and evict the entry.
        """
        clock = FakeClock()
        store = MemoryStore()
        cache = StatusCache(CacheConfig(enabled=True, duration_seconds=duration), store=store, clock=clock)
        status = make_status(hostname)
        cache.put(hostname, None, Edition.JAVA, status)

        within = data.draw(st.floats(min_value=0, max_value=duration))
        clock.advance(within)
        assert cache.get(hostname) == status

        clock.advance(duration - within + 0.5)
        assert cache.get(hostname) is None
        assert len(store) == 0

    @given(hostname=hostname_strategy())
    @settings(max_examples=50)
    def test_disabled_cache_never_stores(self, hostname: str) -> None:
        """
        *For any* hostname, a disabled cache SHALL miss on every read.
        """
        store = MemoryStore()
        cache = StatusCache(CacheConfig(enabled=False), store=store, clock=FakeClock())

        cache.put(hostname, None, Edition.JAVA, make_status(hostname))

        assert cache.get(hostname) is None
        assert len(store) == 0
        assert not cache.enabled


class TestCacheKeys:
    """Tests for cache key derivation."""

    def test_default_port_is_filled_in(self) -> None:
        assert make_key("mc.hypixel.net", None, Edition.JAVA) == "java:mc.hypixel.net:25565"
        assert make_key("play.example.com", None, "bedrock") == "bedrock:play.example.com:19132"

    def test_explicit_default_port_shares_entry(self) -> None:
        cache = StatusCache(CacheConfig(enabled=True), clock=FakeClock())
        status = make_status()
        cache.put("mc.hypixel.net", 25565, Edition.JAVA, status)

        assert cache.get("mc.hypixel.net") == status
        assert cache.get("mc.hypixel.net", 25566) is None
        assert cache.get("mc.hypixel.net", edition=Edition.BEDROCK) is None


class TestCacheMaintenance:
    """Tests for sweeping, stats and clearing."""

    def test_put_sweeps_expired_entries(self) -> None:
        clock = FakeClock()
        cache = StatusCache(CacheConfig(enabled=True, duration_seconds=60), clock=clock)
        cache.put("old.example.com", None, Edition.JAVA, make_status("old.example.com"))

        clock.advance(61)
        cache.put("new.example.com", None, Edition.JAVA, make_status("new.example.com"))

        assert cache.get_stats()["keys"] == ["java:new.example.com:25565"]

    def test_cleanup_counts_removed_entries(self) -> None:
        clock = FakeClock()
        cache = StatusCache(CacheConfig(enabled=True, duration_seconds=60), clock=clock)
        cache.put("a.example.com", None, Edition.JAVA, make_status("a.example.com"))
        cache.put("b.example.com", None, Edition.JAVA, make_status("b.example.com"))

        assert cache.cleanup() == 0
        clock.advance(61)
        assert cache.cleanup() == 2

    def test_stats_and_clear(self) -> None:
        cache = StatusCache(CacheConfig(enabled=True, duration_seconds=30), clock=FakeClock())
        cache.put("a.example.com", None, Edition.JAVA, make_status("a.example.com"))

        stats = cache.get_stats()
        assert stats["enabled"] is True
        assert stats["size"] == 1
        assert stats["duration_seconds"] == 30

        cache.clear()
        assert cache.get_stats()["size"] == 0
