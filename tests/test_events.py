from core.events import ChangeEvent, EventBus, EventRecorder


def test_event_bus_fire_builds_typed_events():
    events = []
    bus = EventBus("index").subscribe(lambda e: events.append(e))

    bus.fire("axis", 0, 3)
    bus.fire("axis", 3, 1, detail="moved")

    assert len(events) == 2
    assert isinstance(events[0], ChangeEvent)
    assert events[0].kind == "index"
    assert (events[0].old, events[0].new) == (0, 3)
    assert events[1].detail == "moved"


def test_observer_objects_and_unsubscribe():
    bus = EventBus("scale")
    recorder = EventRecorder()
    bus.subscribe(recorder)
    bus.fire("axis", (0, 1), (0, 2))
    bus.unsubscribe(recorder)
    bus.unsubscribe(recorder)
    bus.fire("axis", (0, 2), (0, 3))

    assert recorder.kinds() == ["scale"]
    assert bus.observer_count == 0


def test_observer_may_unsubscribe_while_notified():
    bus = EventBus("name")
    seen = []

    def once(event):
        seen.append(event.new)
        bus.unsubscribe(once)

    bus.subscribe(once)
    bus.fire(None, "a", "b")
    bus.fire(None, "b", "c")

    assert seen == ["b"]


def test_observer_exception_propagates():
    bus = EventBus("unit")

    def failing(_event):
        raise RuntimeError("observer failed")

    bus.subscribe(failing)

    raised = False
    try:
        bus.fire(None, "", "mm")
    except RuntimeError:
        raised = True

    assert raised
