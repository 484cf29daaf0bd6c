"""Unit tests for the presence registry."""
from datetime import datetime, timedelta, timezone

from app.chat.registry import PresenceRegistry


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestIdentify:
    def test_identify_inserts_entry(self):
        registry = PresenceRegistry()
        user = registry.identify("c1", "Ann", "data:image/png;base64,xx", now=T0)

        assert user.connectionId == "c1"
        assert user.nickname == "Ann"
        assert user.avatarRef == "data:image/png;base64,xx"
        assert user.lastActiveAt == T0
        assert "c1" in registry
        assert len(registry) == 1

    def test_identify_replaces_existing_entry(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann")
        registry.identify("c1", "Annie")

        assert len(registry) == 1
        assert registry.get("c1").nickname == "Annie"

    def test_duplicate_nicknames_are_allowed(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann")
        registry.identify("c2", "Ann")

        assert [u.connectionId for u in registry.snapshot_all()] == ["c1", "c2"]

    def test_no_server_side_validation(self):
        """Profile policy lives in the relay, not the registry."""
        registry = PresenceRegistry()
        user = registry.identify("c1", "")
        assert user.nickname == ""


class TestTouch:
    def test_touch_updates_last_active(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann", now=T0)

        later = T0 + timedelta(seconds=30)
        user = registry.touch("c1", now=later)

        assert user.lastActiveAt == later
        assert registry.get("c1").lastActiveAt == later

    def test_touch_unknown_connection_is_noop(self):
        registry = PresenceRegistry()
        assert registry.touch("ghost") is None
        assert len(registry) == 0


class TestRemove:
    def test_remove_reports_existing_entry(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann")

        removed = registry.remove("c1")

        assert removed is not None
        assert removed.nickname == "Ann"
        assert "c1" not in registry

    def test_remove_unknown_connection(self):
        registry = PresenceRegistry()
        assert registry.remove("ghost") is None

    def test_remove_twice(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann")
        assert registry.remove("c1") is not None
        assert registry.remove("c1") is None


class TestSnapshots:
    def test_snapshot_is_immune_to_later_mutation(self):
        registry = PresenceRegistry()
        registry.identify("c1", "Ann", now=T0)

        snapshot = registry.snapshot_all()
        registry.identify("c1", "Annie")
        registry.touch("c1", now=T0 + timedelta(hours=1))

        assert snapshot[0].nickname == "Ann"
        assert snapshot[0].lastActiveAt == T0

    def test_mutating_snapshot_does_not_alter_registry(self):
        registry = PresenceRegistry()
        user = registry.identify("c1", "Ann")
        user.nickname = "Mallory"

        assert registry.get("c1").nickname == "Ann"

    def test_snapshot_order_is_insertion_order(self):
        registry = PresenceRegistry()
        for cid in ("c3", "c1", "c2"):
            registry.identify(cid, cid.upper())

        assert [u.connectionId for u in registry.snapshot_all()] == ["c3", "c1", "c2"]
