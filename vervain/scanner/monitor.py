"""Trigger sources that drive the scan orchestrator.

``ScanMonitor`` funnels the three triggers (a delayed initial scan,
content-changed notifications and visibility changes) into
``ScanOrchestrator.scan``. ``MailboxWatcher`` turns changes in a mailbox
directory into content-changed notifications.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..constants import DEFAULT_INITIAL_SCAN_DELAY, DEFAULT_SCAN_DEBOUNCE
from .orchestrator import ScanOrchestrator, ScanResult
from .presenter import HostStatus

logger = logging.getLogger(__name__)


class ScanMonitor:
    """Schedules scans for one orchestrator until stopped or torn down."""

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        initial_delay: float = DEFAULT_INITIAL_SCAN_DELAY,
        debounce: float = DEFAULT_SCAN_DEBOUNCE,
    ):
        self.orchestrator = orchestrator
        self.initial_delay = max(0.0, float(initial_delay))
        self.debounce = max(0.0, float(debounce))
        self.torn_down = False
        self.started = False
        self.last_result: Optional[ScanResult] = None
        self._initial: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self.started and not self.torn_down

    def start(self) -> None:
        """Register with the running loop and schedule the initial scan."""
        if self.started:
            return
        self.started = True
        loop = asyncio.get_running_loop()
        self._initial = loop.call_later(self.initial_delay, self._launch)
        logger.info("Scan monitor started (initial scan in %.2fs)", self.initial_delay)

    def notify_content_changed(self) -> None:
        """Content changed; coalesce bursts into one scan after the debounce window."""
        if not self.active:
            return
        if self.orchestrator.session.busy:
            self.orchestrator.stats["suppressed_notifications"] += 1
            return

        if not self._host_available():
            return

        if self._pending is not None:
            self._pending.cancel()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.debounce, self._launch)

    def notify_visibility_changed(self, visible: bool) -> None:
        """Hosting view became visible again; rescan right away."""
        if visible and self.active:
            self._launch()

    def teardown(self, reason: str = "") -> None:
        """Cancel pending triggers and stop accepting new ones."""
        if self.torn_down:
            return
        self.torn_down = True
        for handle in (self._initial, self._pending):
            if handle is not None:
                handle.cancel()
        self._initial = None
        self._pending = None
        logger.warning("Scan monitor torn down%s", f": {reason}" if reason else "")

    async def wait_idle(self) -> None:
        """Wait for scans that have already been launched."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Tear down, then let any running scan finish."""
        self.teardown("stopped")
        await self.wait_idle()

    def _host_status(self) -> HostStatus:
        try:
            return self.orchestrator.host.check()
        except Exception as exc:
            logger.warning("Host check failed: %s", exc)
            return HostStatus.ERROR

    def _host_available(self) -> bool:
        """Tear down unless the host is still available."""
        status = self._host_status()
        if status != HostStatus.AVAILABLE:
            self.teardown(f"host {status.value}")
            return False
        return True

    def _launch(self) -> None:
        self._pending = None
        if self.torn_down or not self._host_available():
            return
        task = asyncio.ensure_future(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            self.last_result = await self.orchestrator.scan()
        except Exception as exc:
            logger.exception("Scan trigger failed: %s", exc)
            self.teardown("trigger handler raised")


class MailboxWatcher:
    """Polls a mailbox directory and reports listing changes to a monitor."""

    def __init__(self, directory: Path, monitor: ScanMonitor, interval: float = 2.0, pattern: str = "*.eml"):
        self.directory = Path(directory)
        self.monitor = monitor
        self.interval = max(0.05, float(interval))
        self.pattern = pattern
        self._fingerprint: Optional[frozenset] = None
        self._stop = asyncio.Event()

    def _listing(self) -> frozenset:
        entries = set()
        for path in self.directory.glob(self.pattern):
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.add((path.name, stat.st_mtime_ns, stat.st_size))
        return frozenset(entries)

    def poll_once(self) -> bool:
        """Compare the listing with the previous poll; returns True when it changed."""
        try:
            listing = self._listing()
        except OSError as exc:
            logger.warning("Cannot list mailbox %s: %s", self.directory, exc)
            return False
        if self._fingerprint is None:
            self._fingerprint = listing
            return False
        if listing == self._fingerprint:
            return False
        self._fingerprint = listing
        logger.debug("Mailbox %s changed", self.directory)
        self.monitor.notify_content_changed()
        return True

    async def run(self) -> None:
        """Poll until stop() is called or the monitor is torn down."""
        self.poll_once()
        while not self._stop.is_set() and not self.monitor.torn_down:
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                self.poll_once()

    def stop(self) -> None:
        self._stop.set()
