from configurator.services.event_bus import GROUP_HYDRATED, EventBus


def test_failing_handler_does_not_stop_delivery():
    bus = EventBus()
    received = []

    def broken(_payload):
        raise RuntimeError("boom")

    bus.subscribe(GROUP_HYDRATED, broken)
    bus.subscribe(GROUP_HYDRATED, received.append)

    bus.emit(GROUP_HYDRATED, {"kind": "group", "id": 10})

    assert received == [{"kind": "group", "id": 10}]


def test_unsubscribe_removes_only_that_handler():
    bus = EventBus()
    first, second = [], []
    bus.subscribe(GROUP_HYDRATED, first.append)
    bus.subscribe(GROUP_HYDRATED, second.append)

    bus.unsubscribe(GROUP_HYDRATED, first.append)
    bus.emit(GROUP_HYDRATED, {"id": 1})
    bus.emit("unknown.event", {"id": 2})

    assert first == []
    assert second == [{"id": 1}]
    assert bus.handler_count(GROUP_HYDRATED) == 1
