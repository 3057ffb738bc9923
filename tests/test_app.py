"""Tests for the port-kill Textual application."""

import pytest
from textual.widgets import DataTable

from portkill.app import PortKillApp, PortTable, StatusHeader
from portkill.models import ContainerRef, ProcessDescriptor, ProcessUpdate, Snapshot


def update_of(*entries: tuple[int, int, str]) -> ProcessUpdate:
    snapshot = Snapshot({
        port: ProcessDescriptor.create(pid=pid, port=port, command=command)
        for port, pid, command in entries
    })
    return ProcessUpdate.from_snapshot(snapshot)


@pytest.mark.asyncio
async def test_app_creation(fake_engine):
    """Test PortKillApp can be instantiated."""
    app = PortKillApp(fake_engine)
    assert app.title == "port-kill"
    assert app.sub_title == "Development Port Monitor"


@pytest.mark.asyncio
async def test_app_compose(fake_engine):
    """Test PortKillApp composes correctly and starts the monitor."""
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#status-header") is not None
        assert pilot.app.query_one("#port-table") is not None
        assert fake_engine.monitor.is_running


@pytest.mark.asyncio
async def test_app_quit_binding(fake_engine):
    """Test that 'q' quits and stops the monitor."""
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit
        assert not fake_engine.monitor.is_running


@pytest.mark.asyncio
async def test_update_fills_table(fake_engine):
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((8080, 2, "python"), (3000, 1, "/usr/bin/node")))
        pilot.app._check_for_updates()
        await pilot.pause()

        table = pilot.app.query_one("#port-table", DataTable)
        header = pilot.app.query_one("#status-header", StatusHeader)
        assert table.row_count == 2
        assert table.get_row_at(0)[0] == "3000"
        assert table.get_row_at(1)[0] == "8080"
        assert header.status.text == "2"


@pytest.mark.asyncio
async def test_latest_update_wins(fake_engine):
    """Only the newest queued event is rendered."""
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node")))
        fake_engine.updates.put(update_of((4000, 2, "python")))
        pilot.app._check_for_updates()
        await pilot.pause()

        snapshot = pilot.app.query_one(PortTable).snapshot
        assert snapshot.ports() == [4000]
        assert fake_engine.updates.empty()


@pytest.mark.asyncio
async def test_empty_update_clears_table(fake_engine):
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node")))
        pilot.app._check_for_updates()
        fake_engine.updates.put(ProcessUpdate.from_snapshot(Snapshot.empty()))
        pilot.app._check_for_updates()
        await pilot.pause()

        assert pilot.app.query_one("#port-table", DataTable).row_count == 0
        assert pilot.app.query_one("#status-header", StatusHeader).status.text == "0"


@pytest.mark.asyncio
async def test_container_column(fake_engine):
    app = PortKillApp(fake_engine)
    desc = ProcessDescriptor.create(
        pid=1, port=3000, command="nginx", container=ContainerRef("abc123", "web")
    )
    async with app.run_test() as pilot:
        fake_engine.updates.put(ProcessUpdate.from_snapshot(Snapshot({3000: desc})))
        pilot.app._check_for_updates()
        await pilot.pause()

        row = pilot.app.query_one("#port-table", DataTable).get_row_at(0)
        assert "web" in row


@pytest.mark.asyncio
async def test_pid_column_optional(fake_engine):
    app = PortKillApp(fake_engine, show_pid=False)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 12345, "node")))
        pilot.app._check_for_updates()
        await pilot.pause()

        row = pilot.app.query_one("#port-table", DataTable).get_row_at(0)
        assert "12345" not in row


@pytest.mark.asyncio
async def test_kill_selected_binding(fake_engine):
    """Test that 'k' terminates the process under the cursor."""
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node"), (8080, 2, "python")))
        pilot.app._check_for_updates()
        await pilot.pause()

        await pilot.press("down")
        await pilot.press("k")
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert fake_engine.terminator.terminated == [2]


@pytest.mark.asyncio
async def test_kill_selected_without_rows(fake_engine):
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        await pilot.press("k")
        await pilot.app.workers.wait_for_complete()

        assert fake_engine.terminator.terminated == []


@pytest.mark.asyncio
async def test_kill_failure_does_not_crash(fake_engine):
    fake_engine.terminator.fail = True
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node")))
        pilot.app._check_for_updates()
        await pilot.pause()

        await pilot.press("k")
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert fake_engine.terminator.terminated == [1]
        assert pilot.app.is_running


@pytest.mark.asyncio
async def test_kill_all_binding(fake_engine):
    """Test that 'a' asks the terminator to kill everything."""
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        await pilot.press("a")
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert fake_engine.terminator.all_calls == 1


@pytest.mark.asyncio
async def test_cursor_follows_port_across_updates(fake_engine):
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node"), (8080, 2, "python")))
        pilot.app._check_for_updates()
        await pilot.pause()
        await pilot.press("down")

        fake_engine.updates.put(update_of((2000, 3, "ruby"), (3000, 1, "node"), (8080, 2, "python")))
        pilot.app._check_for_updates()
        await pilot.pause()

        assert pilot.app.query_one(PortTable).selected_port() == 8080


@pytest.mark.asyncio
async def test_unexpected_kill_error_does_not_crash(fake_engine):
    """Errors outside the termination hierarchy are reported, not fatal."""
    fake_engine.terminator.error = RuntimeError("psutil exploded")
    app = PortKillApp(fake_engine)
    async with app.run_test() as pilot:
        fake_engine.updates.put(update_of((3000, 1, "node")))
        pilot.app._check_for_updates()
        await pilot.pause()

        await pilot.press("k")
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert fake_engine.terminator.terminated == [1]
        assert pilot.app.is_running
