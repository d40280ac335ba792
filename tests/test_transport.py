"""Tests for snapshot transports.

GoogleSheetsTransport runs against httpx.MockTransport; LocalFileTransport
reads the golden files.
"""

from __future__ import annotations

import shutil
from pathlib import Path  # noqa: TC003 - used at runtime

import httpx
import pytest

from sheetwatch.credentials import AuthorizedClient
from sheetwatch.exceptions import NotFoundError, SnapshotFormatError, TransportError
from sheetwatch.transport import API_BASE, GoogleSheetsTransport, LocalFileTransport
from tests.fakes import FakeCredentials

SPREADSHEET_ID = "abc123"


def sheets_api(titles: list[str], value_ranges: list[dict]):
    """Build a MockTransport handler that mimics the Sheets API."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path.endswith("/values:batchGet"):
            return httpx.Response(200, json={"valueRanges": value_ranges})
        if path.endswith(f"/{SPREADSHEET_ID}"):
            return httpx.Response(
                200,
                json={"sheets": [{"properties": {"title": t}} for t in titles]},
            )
        return httpx.Response(404)

    return handler, requests


def make_transport(handler) -> GoogleSheetsTransport:
    client = AuthorizedClient(
        FakeCredentials(),  # type: ignore[arg-type]
        transport=httpx.MockTransport(handler),
    )
    return GoogleSheetsTransport(client)


class TestGoogleSheetsTransport:
    @pytest.mark.asyncio
    async def test_fetches_all_sheets(self) -> None:
        handler, requests = sheets_api(
            ["People", "My Notes", "Blank"],
            [
                {"range": "People!A1:B2", "values": [["Name", "Age"], ["alice", "30"]]},
                {"range": "'My Notes'!A1:A1", "values": [["Note"]]},
                {"range": "Blank!A1:ZZZ1000"},
            ],
        )
        transport = make_transport(handler)

        snapshot = await transport.get_snapshot(SPREADSHEET_ID)
        await transport.close()

        assert snapshot == {
            "People": [["Name", "Age"], ["alice", "30"]],
            "My Notes": [["Note"]],
            "Blank": [],
        }
        assert list(snapshot) == ["People", "My Notes", "Blank"]

        metadata_request, values_request = requests
        assert str(metadata_request.url).startswith(f"{API_BASE}/{SPREADSHEET_ID}")
        assert metadata_request.url.params["fields"] == "sheets.properties.title"
        assert values_request.url.params.get_list("ranges") == [
            "People!A:ZZZ",
            "'My Notes'!A:ZZZ",
            "Blank!A:ZZZ",
        ]

    @pytest.mark.asyncio
    async def test_spreadsheet_without_sheets(self) -> None:
        handler, requests = sheets_api([], [])
        transport = make_transport(handler)

        assert await transport.get_snapshot(SPREADSHEET_ID) == {}
        await transport.close()

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        transport = make_transport(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await transport.get_snapshot(SPREADSHEET_ID)
        await transport.close()


class TestLocalFileTransport:
    @pytest.mark.asyncio
    async def test_reads_golden_snapshot(self, golden_dir: Path) -> None:
        transport = LocalFileTransport(golden_dir)

        snapshot = await transport.get_snapshot("basic_spreadsheet")
        await transport.close()

        assert snapshot["People"][1] == ["alice", "30", "Paris"]
        assert snapshot["Empty"] == []

    @pytest.mark.asyncio
    async def test_rereads_file_on_every_call(
        self, golden_dir: Path, tmp_path: Path
    ) -> None:
        shutil.copytree(golden_dir / "basic_spreadsheet", tmp_path / "sheet")
        transport = LocalFileTransport(tmp_path)

        first = await transport.get_snapshot("sheet")
        transport.snapshot_path("sheet").write_text('{"People": [["Name"]]}')
        second = await transport.get_snapshot("sheet")

        assert first != second
        assert second == {"People": [["Name"]]}

    @pytest.mark.asyncio
    async def test_missing_snapshot(self, tmp_path: Path) -> None:
        transport = LocalFileTransport(tmp_path)

        with pytest.raises(NotFoundError):
            await transport.get_snapshot("nope")

    @pytest.mark.asyncio
    async def test_malformed_snapshot(self, tmp_path: Path) -> None:
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "snapshot.json").write_text('{"S": "x"}')
        transport = LocalFileTransport(tmp_path)

        with pytest.raises(SnapshotFormatError):
            await transport.get_snapshot("bad")

    @pytest.mark.asyncio
    async def test_snapshot_not_utf8(self, tmp_path: Path) -> None:
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "snapshot.json").write_bytes(b'{"S": [["\xff"]]}')
        transport = LocalFileTransport(tmp_path)

        with pytest.raises(SnapshotFormatError, match="not UTF-8"):
            await transport.get_snapshot("bad")

    @pytest.mark.asyncio
    async def test_unreadable_snapshot(self, tmp_path: Path) -> None:
        (tmp_path / "dir" / "snapshot.json").mkdir(parents=True)
        transport = LocalFileTransport(tmp_path)

        with pytest.raises(TransportError, match="Could not read snapshot file"):
            await transport.get_snapshot("dir")
