"""Tests for the background activity log writer."""

import asyncio

from vidsocial.domain.models import ActivityLogEntry
from vidsocial.services.activity_log import ActivityLogWriter


def make_entry(index: int) -> ActivityLogEntry:
    return ActivityLogEntry(admin_id=1, action="status_change", resource_type="user", resource_id=str(index))


def test_stop_flushes_queued_entries(persistence):
    async def scenario() -> None:
        writer = ActivityLogWriter(persistence, max_workers=2)
        await writer.start()
        for index in range(5):
            writer.enqueue(make_entry(index))
        await writer.stop()
        assert not writer.running

    asyncio.run(scenario())

    entries, total = persistence.list_activity()
    assert total == 5
    assert sorted(entry.resource_id for entry in entries) == ["0", "1", "2", "3", "4"]


def test_entries_after_stop_are_dropped(persistence):
    async def scenario() -> None:
        writer = ActivityLogWriter(persistence)
        await writer.start()
        await writer.stop()
        writer.enqueue(make_entry(1))

    asyncio.run(scenario())

    _, total = persistence.list_activity()
    assert total == 0


def test_failed_write_does_not_stop_the_worker(persistence):
    class FlakyRepository:
        def __init__(self) -> None:
            self.calls = 0

        def append_activity(self, entry: ActivityLogEntry) -> None:
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("disk full")
            persistence.append_activity(entry)

    async def scenario() -> None:
        writer = ActivityLogWriter(FlakyRepository())
        await writer.start()
        writer.enqueue(make_entry(1))
        writer.enqueue(make_entry(2))
        await writer.stop()

    asyncio.run(scenario())

    entries, total = persistence.list_activity()
    assert total == 1
    assert entries[0].resource_id == "2"
