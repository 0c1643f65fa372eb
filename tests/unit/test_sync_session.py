"""
Tests for syncscope.sync.session module.
"""

from pathlib import Path

import pytest

from syncscope.core.config import SyncConfig
from syncscope.core.errors import ClassNotFoundError, SyncRejectionError, SyncTimeoutError
from syncscope.core.models import Subscription
from syncscope.sync.session import MATCH_ALL, LocalSyncSession, open_session


class TestLocalQuery:
    """Tests for query cursors."""

    def test_unknown_class(self, sync_session: LocalSyncSession) -> None:
        with pytest.raises(ClassNotFoundError) as exc_info:
            sync_session.objects("Missing")
        assert exc_info.value.class_name == "Missing"
        assert str(exc_info.value) == "Class Missing doesn't exist!"

    def test_open_schema_accepts_any_class(self) -> None:
        session = LocalSyncSession()
        assert session.objects("Anything").object_type == "Anything"

    def test_filtered(self, sync_session: LocalSyncSession) -> None:
        cursor = sync_session.objects("Task").filtered("done == false")
        assert cursor.object_type == "Task"
        assert cursor.query_string == "done == false"


class TestLocalSubscriptionSet:
    """Tests for the live subscription set."""

    def test_starts_empty(self, sync_session: LocalSyncSession) -> None:
        assert sync_session.subscriptions.is_empty
        assert list(sync_session.subscriptions) == []

    def test_add_overwrites_by_name(self, sync_session: LocalSyncSession) -> None:
        tasks = sync_session.objects("Task")
        subs = sync_session.subscriptions

        subs.update(lambda m: m.add(tasks.filtered("done == false"), name="open"))
        subs.update(lambda m: m.add(tasks.filtered("done == true"), name="open"))

        assert len(subs) == 1
        assert subs.find_by_name("open").query_string == "done == true"

    def test_unfiltered_cursor_matches_all(self, sync_session: LocalSyncSession) -> None:
        sync_session.subscriptions.update(lambda m: m.add(sync_session.objects("Item"), name="items"))
        assert sync_session.subscriptions.find_by_name("items").query_string == MATCH_ALL

    def test_failed_mutator_changes_nothing(self, sync_session: LocalSyncSession) -> None:
        tasks = sync_session.objects("Task")

        def mutator(mutable) -> None:
            mutable.add(tasks.filtered("done == false"), name="one")
            mutable.add(tasks.filtered("done == true"), name="two")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            sync_session.subscriptions.update(mutator)

        assert sync_session.subscriptions.is_empty
        assert sync_session.subscriptions.update_count == 1

    def test_remove_by_name_and_all(self) -> None:
        session = LocalSyncSession(
            initial=[
                Subscription("a", "Task", "done == false"),
                Subscription("b", "Task", "done == true"),
                Subscription("c", "Item", MATCH_ALL),
            ]
        )
        results: list[object] = []

        session.subscriptions.update(lambda m: results.append(m.remove_by_name("a")))
        session.subscriptions.update(lambda m: results.append(m.remove_by_name("a")))
        session.subscriptions.update(lambda m: results.append(m.remove_all()))

        assert results == [True, False, 2]
        assert session.subscriptions.is_empty

    def test_pending_until_synchronized(self, sync_session: LocalSyncSession) -> None:
        subs = sync_session.subscriptions
        subs.update(lambda m: m.add(sync_session.objects("Task"), name="all"))
        assert subs.is_pending

        subs.wait_for_synchronization()

        assert not subs.is_pending

    def test_rejected_set_rolls_back(self) -> None:
        session = LocalSyncSession(
            initial=[Subscription("keep", "Task", "done == false")],
            rejected_filters=["bad =="],
        )
        subs = session.subscriptions
        subs.update(lambda m: m.add(session.objects("Task").filtered("bad =="), name="broken"))

        with pytest.raises(SyncRejectionError, match="broken"):
            subs.wait_for_synchronization()

        assert [sub.name for sub in subs] == ["keep"]
        assert not subs.is_pending

    def test_wait_times_out(self) -> None:
        session = LocalSyncSession(latency_seconds=0.05)
        subs = session.subscriptions
        subs.update(lambda m: m.add(session.objects("Task"), name="all"))

        with pytest.raises(SyncTimeoutError):
            subs.wait_for_synchronization(timeout=0.01)

        assert subs.is_empty
        assert not subs.is_pending

    def test_wait_within_timeout(self) -> None:
        session = LocalSyncSession(latency_seconds=0.01)
        session.subscriptions.wait_for_synchronization(timeout=1)


class TestStateFile:
    """Tests for persisting the acknowledged live set."""

    def test_acknowledged_set_survives_reopen(self, temp_dir: Path) -> None:
        state_file = temp_dir / "live.json"
        session = LocalSyncSession(state_file=state_file)
        session.subscriptions.update(
            lambda m: m.add(session.objects("Task").filtered("done == false"), name="open")
        )

        # Not acknowledged yet
        assert not state_file.exists()

        session.subscriptions.wait_for_synchronization()
        reopened = LocalSyncSession(state_file=state_file)

        assert list(reopened.subscriptions) == [Subscription("open", "Task", "done == false")]


def test_open_session_uses_config(temp_dir: Path) -> None:
    session = open_session(
        SyncConfig(schema_classes=["Task"], state_file=temp_dir / "live.json", rejected_filters=["x"])
    )
    assert session.schema_classes == {"Task"}
    assert session.subscriptions.rejected_filters == {"x"}
    with pytest.raises(ClassNotFoundError):
        session.objects("Item")
