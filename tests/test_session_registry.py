from configurator.services.configuration_session import ConfigurationSession, SessionState
from configurator.services.event_bus import GROUP_HYDRATED
from configurator.services.session_registry import InMemorySessionRegistry
from tests.fixtures_data import HAMBURGUER, preloaded_cache


def test_registry_add_get_and_discard():
    registry = InMemorySessionRegistry()
    session = registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=preloaded_cache(), session_id="abc"))

    assert registry.get("abc") is session
    assert len(registry) == 1

    registry.discard("abc")
    registry.discard("abc")

    assert registry.get("abc") is None
    assert len(registry) == 0


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_registry_evicts_idle_sessions_and_releases_handlers():
    clock = _FakeClock()
    cache = preloaded_cache()
    registry = InMemorySessionRegistry(ttl_seconds=60, clock=clock)

    idle = registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=cache, session_id="idle"))
    active = registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=cache, session_id="active"))
    assert cache.events.handler_count(GROUP_HYDRATED) == 2

    clock.now = 45
    assert registry.get("active") is active
    clock.now = 90
    registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=cache, session_id="fresh"))

    assert registry.get("idle") is None
    assert registry.get("active") is active
    assert len(registry) == 2
    assert idle.state is SessionState.CANCELLED
    assert cache.events.handler_count(GROUP_HYDRATED) == 2


def test_registry_drops_closed_sessions_on_next_add():
    cache = preloaded_cache()
    registry = InMemorySessionRegistry()
    done = registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=cache, session_id="done"))
    done.cancel()

    registry.add(ConfigurationSession.begin(HAMBURGUER, 1, cache=cache, session_id="next"))

    assert registry.get("done") is None
    assert len(registry) == 1
    assert cache.events.handler_count(GROUP_HYDRATED) == 1
