"""Holds the previous snapshot and runs fetch, diff, update cycles.

The change detector itself is stateless; this class owns the one piece of
state the system has (the last snapshot seen) and makes sure only one
cycle runs at a time, so a diff never reads a half-replaced snapshot.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from loguru import logger

from sheetwatch.diff import detect_changes
from sheetwatch.display import SEPARATOR, display_changes
from sheetwatch.exceptions import SheetWatchError
from sheetwatch.models import ChangeEvent, Snapshot, count_rows
from sheetwatch.transport import Transport

Detector = Callable[[Snapshot, Snapshot], list[ChangeEvent]]
ChangeHandler = Callable[[list[ChangeEvent]], None]


class SheetMonitor:
    """Tracks one spreadsheet and reports changes between fetches.

    Example:
        >>> monitor = SheetMonitor(transport, "1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms")
        >>> await monitor.initialize()
        >>> changes = await monitor.process_change()
    """

    def __init__(
        self,
        transport: Transport,
        spreadsheet_id: str,
        *,
        detector: Detector = detect_changes,
        on_changes: ChangeHandler = display_changes,
    ) -> None:
        self._transport = transport
        self._spreadsheet_id = spreadsheet_id
        self._detector = detector
        self._on_changes = on_changes
        self._previous: Snapshot = {}
        self._initialized = False
        self._cycles = 0
        self._lock = asyncio.Lock()

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def cycles(self) -> int:
        """Number of change cycles started so far."""
        return self._cycles

    @property
    def previous(self) -> Snapshot:
        """The last successfully fetched snapshot."""
        return self._previous

    async def initialize(self) -> Snapshot:
        """Capture the initial state.

        Raises:
            SheetWatchError: If the initial fetch fails
        """
        async with self._lock:
            logger.info("Starting initial sheet state fetch...")
            start = time.perf_counter()
            snapshot = await self._transport.get_snapshot(self._spreadsheet_id)
            duration_ms = (time.perf_counter() - start) * 1000

            self._previous = snapshot
            self._initialized = True

            logger.info(f"Initial state captured successfully ({duration_ms:.0f}ms)")
            logger.info(f"  Sheets found: {len(snapshot)}")
            logger.info(f"  Total rows: {count_rows(snapshot)}")
            logger.info("Ready to monitor changes!")
            return snapshot

    async def process_change(self, channel_id: str | None = None) -> list[ChangeEvent] | None:
        """Fetch the current state, report changes and make it the new previous.

        Log records emitted during the cycle carry its number and, when
        given, the channel whose notification triggered it.

        Returns:
            The detected changes, an empty list when nothing changed or no
            previous state existed yet, or None when the fetch failed (the
            previous state is then left untouched).
        """
        async with self._lock:
            self._cycles += 1
            context: dict[str, int | str] = {"cycle": self._cycles}
            if channel_id:
                context["channel_id"] = channel_id
            with logger.contextualize(**context):
                return await self._run_cycle()

    async def _run_cycle(self) -> list[ChangeEvent] | None:
        logger.info("Fetching current sheet data...")
        start = time.perf_counter()
        try:
            current = await self._transport.get_snapshot(self._spreadsheet_id)
        except SheetWatchError as e:
            logger.error(f"Error fetching sheet data, keeping previous state: {e}")
            return None
        logger.info(
            f"Sheet data fetched successfully "
            f"({(time.perf_counter() - start) * 1000:.0f}ms)"
        )

        changes: list[ChangeEvent] = []
        if self._initialized:
            start = time.perf_counter()
            changes = self._detector(self._previous, current)
            logger.info(
                f"Change detection completed "
                f"({(time.perf_counter() - start) * 1000:.0f}ms)"
            )
            if changes:
                logger.info(f"Found {len(changes)} change(s)")
                self._on_changes(changes)
            else:
                logger.info("No changes detected")
                logger.info(SEPARATOR)
        else:
            logger.warning("Skipping change detection - not yet initialized")

        self._previous = current
        self._initialized = True
        logger.info("Change processing completed")
        return changes
