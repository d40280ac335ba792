"""Tests for SheetMonitor."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest
from loguru import logger

from sheetwatch.credentials import AuthorizedClient
from sheetwatch.exceptions import NotFoundError, TransportError
from sheetwatch.models import dump_snapshot
from sheetwatch.monitor import SheetMonitor
from sheetwatch.transport import GoogleSheetsTransport, LocalFileTransport, Transport
from tests.fakes import FakeCredentials, FakeTransport, RecordingHandler

BEFORE = {"Sheet1": [["Name", "Age"], ["alice", "30"]]}
AFTER = {"Sheet1": [["Name", "Age"], ["alice", "31"]]}


def make_monitor(transport: Transport, handler: RecordingHandler) -> SheetMonitor:
    return SheetMonitor(transport, "sheet-id", on_changes=handler)


class TestInitialize:
    @pytest.mark.asyncio
    async def test_captures_initial_state(self) -> None:
        monitor = make_monitor(FakeTransport(BEFORE), RecordingHandler())

        assert not monitor.initialized
        await monitor.initialize()

        assert monitor.initialized
        assert monitor.previous == BEFORE

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self) -> None:
        monitor = make_monitor(FakeTransport(NotFoundError("gone")), RecordingHandler())

        with pytest.raises(NotFoundError):
            await monitor.initialize()
        assert not monitor.initialized


class TestProcessChange:
    @pytest.mark.asyncio
    async def test_reports_changes_and_updates_state(self) -> None:
        handler = RecordingHandler()
        monitor = make_monitor(FakeTransport(BEFORE, AFTER), handler)
        await monitor.initialize()

        changes = await monitor.process_change()

        assert changes is not None
        assert [c.cell_address for c in changes] == ["B2"]
        assert handler.batches == [changes]
        assert monitor.previous == AFTER

    @pytest.mark.asyncio
    async def test_no_changes_skips_handler(self) -> None:
        handler = RecordingHandler()
        monitor = make_monitor(FakeTransport(BEFORE), handler)
        await monitor.initialize()

        assert await monitor.process_change() == []
        assert handler.batches == []

    @pytest.mark.asyncio
    async def test_first_fetch_without_initialize_only_stores_state(self) -> None:
        handler = RecordingHandler()
        monitor = make_monitor(FakeTransport(AFTER), handler)

        assert await monitor.process_change() == []
        assert monitor.initialized
        assert monitor.previous == AFTER
        assert handler.batches == []

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_previous_state(self) -> None:
        handler = RecordingHandler()
        transport = FakeTransport(BEFORE, TransportError("network down"), AFTER)
        monitor = make_monitor(transport, handler)
        await monitor.initialize()

        assert await monitor.process_change() is None
        assert monitor.previous == BEFORE

        # The next successful cycle diffs against the retained state
        changes = await monitor.process_change()
        assert changes is not None
        assert [c.change_type for c in changes] == ["EDIT"]

    @pytest.mark.asyncio
    async def test_successive_cycles_diff_against_latest(self) -> None:
        handler = RecordingHandler()
        monitor = make_monitor(FakeTransport(BEFORE, AFTER, AFTER), handler)
        await monitor.initialize()

        await monitor.process_change()
        assert await monitor.process_change() == []
        assert len(handler.batches) == 1

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self) -> None:
        transport = FakeTransport(BEFORE, AFTER, BEFORE, delay=0.01)
        handler = RecordingHandler()
        monitor = make_monitor(transport, handler)
        await monitor.initialize()

        results = await asyncio.gather(monitor.process_change(), monitor.process_change())

        assert transport.max_in_flight == 1
        # First cycle sees BEFORE -> AFTER, second AFTER -> BEFORE
        assert [[c.new_value for c in r] for r in results] == [["31"], ["30"]]

    @pytest.mark.asyncio
    async def test_custom_detector(self) -> None:
        calls: list[tuple] = []

        def detector(previous, current):
            calls.append((previous, current))
            return []

        monitor = SheetMonitor(
            FakeTransport(BEFORE, AFTER), "sheet-id", detector=detector
        )
        await monitor.initialize()
        await monitor.process_change()

        assert calls == [(BEFORE, AFTER)]


@pytest.fixture
def log_extras() -> Iterator[list[dict]]:
    """Collect the extra fields of loguru records emitted during a test."""
    extras: list[dict] = []
    handler_id = logger.add(lambda m: extras.append(dict(m.record["extra"])), level="DEBUG")
    yield extras
    logger.remove(handler_id)


class TestCycleLogging:
    @pytest.mark.asyncio
    async def test_records_carry_cycle_and_channel(self, log_extras: list[dict]) -> None:
        monitor = make_monitor(FakeTransport(BEFORE, AFTER), RecordingHandler())
        await monitor.initialize()
        log_extras.clear()

        await monitor.process_change("chan-1")

        assert monitor.cycles == 1
        assert log_extras
        assert all(e.get("cycle") == 1 for e in log_extras)
        assert all(e.get("channel_id") == "chan-1" for e in log_extras)

    @pytest.mark.asyncio
    async def test_cycle_numbers_increase(self, log_extras: list[dict]) -> None:
        monitor = make_monitor(FakeTransport(BEFORE), RecordingHandler())
        await monitor.initialize()
        log_extras.clear()

        await monitor.process_change()
        await monitor.process_change()

        assert {e["cycle"] for e in log_extras} == {1, 2}
        assert not any("channel_id" in e for e in log_extras)


class TestFetchFailuresFromTransports:
    """Every way a real transport can fail leaves the previous state in place."""

    @pytest.mark.asyncio
    async def test_non_json_api_response(self) -> None:
        responses = [
            httpx.Response(200, json={"sheets": [{"properties": {"title": "Sheet1"}}]}),
            httpx.Response(200, json={"valueRanges": [{"values": BEFORE["Sheet1"]}]}),
            httpx.Response(200, text="<html>proxy</html>"),
        ]
        client = AuthorizedClient(
            FakeCredentials(),  # type: ignore[arg-type]
            transport=httpx.MockTransport(lambda request: responses.pop(0)),
        )
        monitor = make_monitor(GoogleSheetsTransport(client), RecordingHandler())
        await monitor.initialize()

        assert await monitor.process_change() is None
        assert monitor.previous == BEFORE
        await client.close()

    @pytest.mark.asyncio
    async def test_snapshot_file_not_utf8(self, tmp_path: Path) -> None:
        path = dump_snapshot(BEFORE, tmp_path / "sheet-id" / "snapshot.json")
        monitor = make_monitor(LocalFileTransport(tmp_path), RecordingHandler())
        await monitor.initialize()

        path.write_bytes(b'{"S": [["\xff"]]}')

        assert await monitor.process_change() is None
        assert monitor.previous == BEFORE

    @pytest.mark.asyncio
    async def test_snapshot_file_unreadable(self, tmp_path: Path) -> None:
        path = dump_snapshot(BEFORE, tmp_path / "sheet-id" / "snapshot.json")
        monitor = make_monitor(LocalFileTransport(tmp_path), RecordingHandler())
        await monitor.initialize()

        path.unlink()
        path.mkdir()

        assert await monitor.process_change() is None
        assert monitor.previous == BEFORE
