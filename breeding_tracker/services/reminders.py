"""Reminder scheduler: keeps the set of unresolved records and resurfaces it.

Two periodic loops run on one event loop: a short refresh cycle that replaces
the alert set from the gateway, and a long re-open check that surfaces the
reminders again once ``reopen_after_seconds`` have passed since the last time.
A refresh that finds reminders while none were pending surfaces them after a
short delay instead.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import date
from typing import Awaitable, Callable, Protocol

from breeding_tracker.config.runtime import ReminderSettings
from breeding_tracker.entities.record import Record, RecordStatus
from breeding_tracker.entities.reminder import Reminder
from breeding_tracker.errors import MissingOutcomeDateError, TransportError
from breeding_tracker.interfaces.record_gateway import RecordGateway
from breeding_tracker.interfaces.surface import NotificationSurface, OutcomeDatePrompt
from breeding_tracker.services.acknowledgments import AcknowledgmentTracker
from breeding_tracker.services.lifecycle import transition


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimers:
    """Delayed calls on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class ReminderScheduler:
    def __init__(
        self,
        gateway: RecordGateway,
        surface: NotificationSurface,
        tracker: AcknowledgmentTracker | None = None,
        settings: ReminderSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        timers: Timers | None = None,
        date_prompt: OutcomeDatePrompt | None = None,
    ):
        self.gateway = gateway
        self.surface_sink = surface
        self.tracker = tracker or AcknowledgmentTracker()
        self.settings = settings or ReminderSettings()
        self.clock = clock
        self.timers = timers or AsyncioTimers()
        self.date_prompt = date_prompt

        self._alerts: dict[int, Record] = {}
        self.last_auto_open_at: float | None = None
        self.is_surfaced = False
        self._pending_surface: TimerHandle | None = None

        self._refresh_in_flight = False
        self._refresh_requested = False

        self._tasks: list[asyncio.Task] = []
        self.logger = logging.getLogger(__name__)
        self.stop_event = asyncio.Event()

    # ── state ──

    @property
    def alerts(self) -> list[Record]:
        return list(self._alerts.values())

    @property
    def reminders(self) -> list[Reminder]:
        now = self.clock()
        return [Reminder.from_record(r, now) for r in self._alerts.values()]

    @property
    def has_pending_surface(self) -> bool:
        return self._pending_surface is not None

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    # ── lifecycle ──

    def start(self) -> None:
        """Start both periodic loops on the running event loop."""
        if self.running:
            return
        self.stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(
                self._run_every(self.settings.refresh_interval_seconds, self.refresh, "refresh"),
            ),
            asyncio.create_task(
                self._run_every(self.settings.reopen_check_interval_seconds, self._reopen_tick, "re-open check"),
            ),
        ]
        self.logger.info(
            "reminder scheduler started (refresh=%.1fs, reopen_check=%.1fs, reopen_after=%.0fs)",
            self.settings.refresh_interval_seconds,
            self.settings.reopen_check_interval_seconds,
            self.settings.reopen_after_seconds,
        )

    async def run(self) -> None:
        self.start()
        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Cancel both loops and any pending delayed surface; the session's state is dropped."""
        self.stop_event.set()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._cancel_pending_surface()
        self._alerts = {}
        self.last_auto_open_at = None
        self.is_surfaced = False
        self._refresh_requested = False
        self.tracker.reset()
        self.logger.info("reminder scheduler stopped")

    async def _run_every(self, interval: float, tick: Callable[[], Awaitable[object]], name: str) -> None:
        while not self.stop_event.is_set():
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.logger.exception("%s error: %s", name, exc)
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # ── refresh cycle ──

    async def refresh(self, force: bool = False) -> bool:
        """Run one refresh cycle. Returns False when skipped or failed.

        Never overlaps another refresh: a regular tick arriving while one is
        in flight is dropped, a forced one is run right after it.
        """
        if self._refresh_in_flight:
            if force:
                self._refresh_requested = True
            return False

        self._refresh_in_flight = True
        try:
            refreshed = await self._refresh_once()
            while self._refresh_requested:
                self._refresh_requested = False
                refreshed = await self._refresh_once()
            return refreshed
        finally:
            self._refresh_in_flight = False

    async def _refresh_once(self) -> bool:
        as_of = self.clock()
        try:
            records = await self.gateway.list_unresolved()
        except TransportError as exc:
            self.logger.warning("reminder refresh failed, retrying next cycle: %s", exc)
            return False

        unresolved = [r for r in records if r.status != RecordStatus.FINALIZED]
        self.tracker.reconcile((r.id for r in unresolved), as_of)
        self._alerts = {r.id: r for r in self.tracker.filter(unresolved, as_of)}
        self.logger.debug("refresh: %d unresolved, %d shown", len(unresolved), len(self._alerts))

        if not self._alerts:
            self._rearm_first_surface()
        elif self.last_auto_open_at is None and self._pending_surface is None:
            self._pending_surface = self.timers.call_later(
                self.settings.first_surface_delay_seconds, self._fire_pending_surface,
            )
            self.last_auto_open_at = self.clock()
        return True

    # ── surfacing ──

    def surface(self) -> bool:
        """Show the current reminders unless they are already shown."""
        if self.is_surfaced:
            self.logger.debug("reminders already surfaced")
            return False
        reminders = self.reminders
        try:
            self.surface_sink.show(reminders)
        except Exception as exc:
            self.logger.exception("could not surface reminders: %s", exc)
            return False
        self.is_surfaced = True
        self.logger.info("surfaced %d reminder(s)", len(reminders))
        return True

    def close_surface(self) -> None:
        """The user closed the surface."""
        if not self.is_surfaced:
            return
        self.surface_sink.hide()
        self.is_surfaced = False

    def check_reopen(self) -> bool:
        """Surface again once ``reopen_after_seconds`` passed since the last time."""
        if not self._alerts or self.last_auto_open_at is None or self._pending_surface is not None:
            return False
        now = self.clock()
        if now - self.last_auto_open_at < self.settings.reopen_after_seconds:
            return False
        self.surface()
        self.last_auto_open_at = now
        return True

    async def _reopen_tick(self) -> None:
        self.check_reopen()

    def _fire_pending_surface(self) -> None:
        self._pending_surface = None
        if self._alerts:
            self.surface()
        else:
            self.last_auto_open_at = None

    def _cancel_pending_surface(self) -> None:
        if self._pending_surface is not None:
            self._pending_surface.cancel()
            self._pending_surface = None

    def _rearm_first_surface(self) -> None:
        # an emptied set makes the next reminder a first alert again
        self._cancel_pending_surface()
        self.last_auto_open_at = None

    # ── acknowledgment ──

    async def dismiss(self, record_id: int) -> bool:
        """Drop one reminder now and mark it read remotely. Returns the remote outcome."""
        self._alerts.pop(record_id, None)
        if not self._alerts:
            self._rearm_first_surface()
        self.tracker.acknowledge(record_id, self.clock())
        return await self._mark_acknowledged(record_id)

    async def dismiss_all(self) -> int:
        """Drop every reminder and mark each read, one after the other.

        Returns how many were confirmed remotely; failures are left to the
        next refresh.
        """
        record_ids = list(self._alerts)
        self._alerts = {}
        self._rearm_first_surface()

        now = self.clock()
        for record_id in record_ids:
            self.tracker.acknowledge(record_id, now)

        confirmed = 0
        for record_id in record_ids:
            if await self._mark_acknowledged(record_id):
                confirmed += 1
        if confirmed < len(record_ids):
            self.logger.warning(
                "dismissed %d reminder(s), %d not confirmed remotely",
                len(record_ids), len(record_ids) - confirmed,
            )
        return confirmed

    async def reopen(self, record_id: int) -> None:
        """Mark a dismissed record unread again."""
        self.tracker.clear(record_id)
        self.tracker.unarchive(record_id)
        try:
            await self.gateway.mark_unacknowledged(record_id)
        except TransportError as exc:
            self.logger.warning("could not mark record %s as unread: %s", record_id, exc)
        await self.refresh(force=True)

    async def _mark_acknowledged(self, record_id: int) -> bool:
        ok = False
        try:
            await self.gateway.mark_acknowledged(record_id)
            ok = True
        except TransportError as exc:
            self.logger.warning("could not mark record %s as read: %s", record_id, exc)
        except Exception as exc:
            self.logger.exception("unexpected error marking record %s as read: %s", record_id, exc)
        finally:
            self.tracker.settle(record_id, ok, self.clock())
        return ok

    # ── status change from a reminder ──

    async def change_status(
        self,
        record_id: int,
        target: RecordStatus | str,
        outcome_date: date | None = None,
    ) -> Record | None:
        """Advance a record from its reminder.

        Finalizing without a date first asks ``date_prompt``; if the user
        cancels, nothing happens and None is returned. Otherwise the reminder
        is dismissed and a refresh forced whether or not the transition
        succeeded. Failures are logged and re-raised.
        """
        attempted = True
        finalized = False
        try:
            target_status = RecordStatus.parse(target)
            record = await self.gateway.get_record(record_id)

            if target_status == RecordStatus.FINALIZED and outcome_date is None:
                if self.date_prompt is None:
                    raise MissingOutcomeDateError(f"record {record_id} needs a real outcome date to be finalized")
                outcome_date = await self.date_prompt.request_outcome_date(record)
                if outcome_date is None:
                    attempted = False
                    self.logger.info("finalization of record %s cancelled at date entry", record_id)
                    return None

            previous = record.status
            transition(record, target_status, outcome_date)
            if record.status != previous:
                record = await self.gateway.apply_transition(record.id, record.status, record.outcome_date)
            finalized = record.status == RecordStatus.FINALIZED
            return record
        except Exception as exc:
            self.logger.error("status change of record %s to %s failed: %s", record_id, target, exc)
            raise
        finally:
            if attempted:
                await self.dismiss(record_id)
                if finalized:
                    self.tracker.finalize(record_id)
                await self.refresh(force=True)
