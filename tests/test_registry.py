from alarms.models import TriggerHandle, TriggerKind
from alarms.registry import TriggerRegistry


def test_set_get_remove():
    registry = TriggerRegistry()
    handle = TriggerHandle(TriggerKind.NOTIFICATION, "n1")
    registry.set("al_1", handle)
    assert registry.get("al_1") == handle
    assert "al_1" in registry
    assert registry.remove("al_1") == handle
    assert registry.get("al_1") is None
    assert registry.remove("al_1") is None
    assert len(registry) == 0


def test_set_replaces_previous_handle():
    registry = TriggerRegistry()
    registry.set("al_1", TriggerHandle(TriggerKind.NOTIFICATION, "n1"))
    registry.set("al_1", TriggerHandle(TriggerKind.NOTIFICATION, "n2"))
    assert registry.items() == {"al_1": TriggerHandle(TriggerKind.NOTIFICATION, "n2")}


def test_remove_kind_keeps_native_handles():
    registry = TriggerRegistry()
    registry.set("al_1", TriggerHandle(TriggerKind.NOTIFICATION, "n1"))
    registry.set("al_2", TriggerHandle(TriggerKind.NATIVE, "al_2"))
    assert registry.remove_kind(TriggerKind.NOTIFICATION) == ["al_1"]
    assert list(registry.items()) == ["al_2"]


def test_subscribers_see_changes_and_failures_are_contained():
    registry = TriggerRegistry()
    seen = []

    def broken(alarm_id, handle):
        raise RuntimeError("listener bug")

    registry.subscribe(broken)
    unsubscribe = registry.subscribe(lambda alarm_id, handle: seen.append((alarm_id, handle)))
    handle = TriggerHandle(TriggerKind.NOTIFICATION, "n1")
    registry.set("al_1", handle)
    registry.remove("al_1")
    unsubscribe()
    registry.set("al_2", handle)
    assert seen == [("al_1", handle), ("al_1", None)]
