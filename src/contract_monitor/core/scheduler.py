"""
ScanScheduler - owns the periodic compliance scan.

One background task wakes once per period (by default daily at a fixed
wall-clock time) and runs a scan pass. State machine:

    IDLE --tick/run_now--> SCANNING --pass finished--> IDLE

A tick or manual run_now() that arrives while SCANNING is dropped, never
queued, so a slow scan cannot build up a backlog. Shutdown lets the
in-flight pass finish its current contract and waits for it instead of
cancelling mid-write.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Callable, List, Optional

from contract_monitor.core.scanner import ComplianceScanner, ScanSummary

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class SchedulerConfig:
    """Configuration for the scan schedule."""

    # Daily wall-clock time; None switches to a fixed interval
    run_at: Optional[time] = time(8, 0)
    interval_seconds: float = 86400  # only used when run_at is None
    enabled: bool = True
    run_on_startup: bool = False
    error_backoff_seconds: float = 5

    @property
    def period_seconds(self) -> float:
        return 86400 if self.run_at is not None else self.interval_seconds


class ScanScheduler:
    """
    Drives ComplianceScanner on a schedule.

    Usage:
        scheduler = ScanScheduler(scanner, SchedulerConfig(run_at=time(8, 0)))
        await scheduler.start()
        ...
        summary = await scheduler.run_now()   # None if a scan is already running
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        scanner: ComplianceScanner,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._scanner = scanner
        self._config = config or SchedulerConfig()
        self._clock = clock

        self._running = False
        self._state = SchedulerState.IDLE
        self._tasks: List[asyncio.Task] = []
        self._current_scan: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        self.last_summary: Optional[ScanSummary] = None
        self.last_scan_finished_at: Optional[datetime] = None
        self.scans_completed = 0
        self.scans_coalesced = 0

    @property
    def is_running(self) -> bool:
        """Whether the periodic loop is running."""
        return self._running

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        """Delay until the next scheduled tick."""
        if self._config.run_at is None:
            return self._config.interval_seconds

        now = now or self._clock()
        next_run = datetime.combine(now.date(), self._config.run_at, tzinfo=now.tzinfo)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    async def start(self) -> None:
        """Start the periodic scan loop."""
        if self._running:
            logger.warning("ScanScheduler already running")
            return

        if not self._config.enabled:
            logger.info("Scan scheduler disabled via config")
            return

        self._running = True
        self._stop_event.clear()
        task = asyncio.create_task(self._scan_loop(), name="compliance_scan")
        self._tasks.append(task)

        if self._config.run_at is not None:
            logger.info(f"Started compliance scan task (daily at {self._config.run_at.strftime('%H:%M')})")
        else:
            logger.info(f"Started compliance scan task (interval={self._config.interval_seconds}s)")

    async def stop(self) -> None:
        """
        Stop the loop, letting any in-flight scan wind down cleanly.

        Manual scans started with run_now() are stopped too, even when the
        periodic loop was never started.
        """
        scan_in_flight = self._current_scan is not None and not self._current_scan.done()
        if not self._running and not scan_in_flight:
            return

        logger.info("Stopping scan scheduler...")
        self._running = False
        self._stop_event.set()

        if self._current_scan is not None and not self._current_scan.done():
            logger.info("Waiting for in-flight scan to reach a contract boundary...")
            await asyncio.gather(self._current_scan, return_exceptions=True)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        logger.info("Scan scheduler stopped")

    async def run_now(self) -> Optional[ScanSummary]:
        """
        Run one scan pass immediately.

        Used both by the periodic loop and for on-demand scans.

        Returns:
            The ScanSummary, or None if a pass was already in progress
        """
        if self._state is SchedulerState.SCANNING:
            self.scans_coalesced += 1
            logger.info("Scan already in progress, dropping this request")
            return None

        self._state = SchedulerState.SCANNING
        scan = asyncio.ensure_future(self._scanner.run_scan(stop_event=self._stop_event))
        self._current_scan = scan
        # If our caller is cancelled the scan keeps going; flip back to IDLE
        # only once it really ends.
        scan.add_done_callback(self._mark_idle)
        try:
            summary = await asyncio.shield(scan)
        finally:
            if scan.done():
                self._mark_idle(scan)

        self.last_summary = summary
        self.last_scan_finished_at = summary.finished_at or self._clock()
        self.scans_completed += 1
        return summary

    def _mark_idle(self, scan: asyncio.Future) -> None:
        if self._current_scan is scan:
            self._current_scan = None
            self._state = SchedulerState.IDLE

    async def _scan_loop(self) -> None:
        """Sleep until the next tick, scan, repeat."""
        if self._config.run_on_startup:
            await self._run_scheduled()

        while self._running:
            try:
                delay = self.seconds_until_next_run()
                logger.debug(f"Next compliance scan in {delay:.0f}s")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass

                if not self._running:
                    break

                await self._run_scheduled()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in compliance scan loop: {e}")
                await asyncio.sleep(self._config.error_backoff_seconds)

    async def _run_scheduled(self) -> None:
        try:
            await self.run_now()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled compliance scan failed: {e}")
