from __future__ import annotations

import asyncio
import unittest
from dataclasses import replace
from datetime import date

from breeding_tracker.config.runtime import ReminderSettings
from breeding_tracker.entities.record import Record, RecordKind, RecordStatus
from breeding_tracker.errors import InvalidTransitionError, MissingOutcomeDateError, TransportError
from breeding_tracker.interfaces.record_gateway import RecordGateway
from breeding_tracker.interfaces.surface import NotificationSurface
from breeding_tracker.services.reminders import ReminderScheduler


def _record(record_id, status=RecordStatus.INITIAL, **overrides):
    values = dict(
        id=record_id,
        kind=RecordKind.POLLINATION,
        code=f"P-{record_id:03d}",
        start_date=date(2024, 1, 1),
        status=status,
    )
    values.update(overrides)
    return Record(**values)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    def __init__(self, clock):
        self.clock = clock
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.clock() + delay, callback)
        self.handles.append(handle)
        return handle

    def run_due(self):
        for handle in list(self.handles):
            if not handle.cancelled and not handle.fired and handle.when <= self.clock():
                handle.fired = True
                handle.callback()


class RecordingSurface(NotificationSurface):
    def __init__(self):
        self.shown = []
        self.hidden = 0

    def show(self, reminders):
        self.shown.append([r.record_id for r in reminders])

    def hide(self):
        self.hidden += 1


class InMemoryRecordGateway(RecordGateway):
    def __init__(self, records=()):
        self.records = {r.id: r for r in records}
        self.acknowledged = set()
        self.fail_list = False
        self.fail_ack = set()
        self.fail_transition = False
        self.gate = None
        self.list_calls = 0
        self.ack_attempts = []
        self.transitions = []

    def add(self, record):
        self.records[record.id] = record

    def remove(self, record_id):
        self.records.pop(record_id, None)

    async def list_unresolved(self):
        self.list_calls += 1
        if self.fail_list:
            raise TransportError("records API unavailable")
        snapshot = [
            replace(r) for r in self.records.values()
            if r.status != RecordStatus.FINALIZED and r.id not in self.acknowledged
        ]
        if self.gate is not None:
            await self.gate.wait()
        return snapshot

    async def get_record(self, record_id):
        return replace(self.records[record_id])

    async def apply_transition(self, record_id, status, outcome_date=None):
        if self.fail_transition:
            raise TransportError("transition endpoint failed")
        self.transitions.append((record_id, status, outcome_date))
        stored = self.records[record_id]
        stored.status = status
        if outcome_date is not None:
            stored.outcome_date = outcome_date
        return replace(stored)

    async def mark_acknowledged(self, record_id):
        self.ack_attempts.append(record_id)
        if record_id in self.fail_ack:
            raise TransportError(f"could not acknowledge {record_id}")
        self.acknowledged.add(record_id)

    async def mark_unacknowledged(self, record_id):
        self.acknowledged.discard(record_id)

    async def record_validation(self, record_id, result):
        raise NotImplementedError


class FixedDatePrompt:
    def __init__(self, answer):
        self.answer = answer
        self.asked = []

    async def request_outcome_date(self, record):
        self.asked.append(record.id)
        return self.answer


class SchedulerTestCase(unittest.TestCase):
    def make_scheduler(self, records=(), **kwargs):
        self.gateway = InMemoryRecordGateway(records)
        self.clock = FakeClock()
        self.timers = FakeTimers(self.clock)
        self.surface = RecordingSurface()
        self.scheduler = ReminderScheduler(
            self.gateway, self.surface, clock=self.clock, timers=self.timers, **kwargs,
        )
        return self.scheduler

    def refresh(self):
        return asyncio.run(self.scheduler.refresh())

    def alert_ids(self):
        return [r.id for r in self.scheduler.alerts]


class TestRefreshCycle(SchedulerTestCase):
    def test_refresh_replaces_alert_set(self):
        self.make_scheduler([_record(1), _record(2, RecordStatus.IN_PROGRESS)])
        self.assertTrue(self.refresh())
        self.assertEqual(self.alert_ids(), [1, 2])

        self.gateway.remove(1)
        self.refresh()
        self.assertEqual(self.alert_ids(), [2])

    def test_finalized_records_are_never_alerts(self):
        self.make_scheduler([_record(1, RecordStatus.FINALIZED, outcome_date=date(2024, 2, 1)), _record(2)])
        self.refresh()
        self.assertEqual(self.alert_ids(), [2])

    def test_transport_failure_keeps_previous_set(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.gateway.fail_list = True

        with self.assertLogs("breeding_tracker.services.reminders", level="WARNING"):
            self.assertFalse(self.refresh())
        self.assertEqual(self.alert_ids(), [1])

    def test_refresh_does_not_overlap(self):
        self.make_scheduler([_record(1)])

        async def scenario():
            self.gateway.gate = asyncio.Event()
            first = asyncio.create_task(self.scheduler.refresh())
            await asyncio.sleep(0)
            skipped = await self.scheduler.refresh()
            self.gateway.gate.set()
            return skipped, await first

        skipped, first = asyncio.run(scenario())
        self.assertFalse(skipped)
        self.assertTrue(first)
        self.assertEqual(self.gateway.list_calls, 1)

    def test_forced_refresh_during_flight_runs_afterwards(self):
        self.make_scheduler([_record(1)])

        async def scenario():
            self.gateway.gate = asyncio.Event()
            first = asyncio.create_task(self.scheduler.refresh())
            await asyncio.sleep(0)
            forced = await self.scheduler.refresh(force=True)
            self.gateway.add(_record(2))
            self.gateway.gate.set()
            return forced, await first

        forced, first = asyncio.run(scenario())
        self.assertFalse(forced)
        self.assertTrue(first)
        self.assertEqual(self.gateway.list_calls, 2)
        self.assertEqual(self.alert_ids(), [1, 2])


class TestSurfacing(SchedulerTestCase):
    def test_empty_set_never_surfaces(self):
        self.make_scheduler()
        for _ in range(3):
            self.refresh()
            self.clock.advance(15)
            self.timers.run_due()
            self.scheduler.check_reopen()
        self.assertEqual(self.surface.shown, [])
        self.assertIsNone(self.scheduler.last_auto_open_at)

    def test_first_alert_surfaces_once_after_delay(self):
        self.make_scheduler()
        self.refresh()

        self.gateway.add(_record(1))
        self.refresh()
        self.assertTrue(self.scheduler.has_pending_surface)
        self.assertEqual(self.scheduler.last_auto_open_at, 0.0)

        self.clock.advance(1.0)
        self.timers.run_due()
        self.assertEqual(self.surface.shown, [])

        self.clock.advance(0.5)
        self.timers.run_due()
        self.assertEqual(self.surface.shown, [[1]])

        for _ in range(10):
            self.clock.advance(15)
            self.refresh()
            self.timers.run_due()
            self.scheduler.check_reopen()
        self.assertEqual(len(self.surface.shown), 1)

    def test_surface_is_idempotent(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.assertTrue(self.scheduler.surface())
        self.assertFalse(self.scheduler.surface())
        self.assertEqual(len(self.surface.shown), 1)

    def test_close_surface_hides_once(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.scheduler.surface()
        self.scheduler.close_surface()
        self.scheduler.close_surface()
        self.assertEqual(self.surface.hidden, 1)
        self.assertFalse(self.scheduler.is_surfaced)

    def test_reopens_after_an_hour(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.clock.advance(1.2)
        self.timers.run_due()
        self.scheduler.close_surface()

        self.clock.now = 3599.0
        self.assertFalse(self.scheduler.check_reopen())
        self.assertEqual(len(self.surface.shown), 1)

        self.clock.now = 3600.0
        self.assertTrue(self.scheduler.check_reopen())
        self.assertEqual(len(self.surface.shown), 2)
        self.assertEqual(self.scheduler.last_auto_open_at, 3600.0)

        self.clock.now = 3660.0
        self.assertFalse(self.scheduler.check_reopen())

    def test_reopen_check_does_not_stack_an_open_surface(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.clock.advance(1.2)
        self.timers.run_due()

        self.clock.now = 4000.0
        self.assertTrue(self.scheduler.check_reopen())
        self.assertEqual(len(self.surface.shown), 1)

    def test_pending_surface_is_cancelled_when_set_empties(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        handle = self.timers.handles[0]

        self.gateway.remove(1)
        self.refresh()
        self.assertTrue(handle.cancelled)
        self.assertFalse(self.scheduler.has_pending_surface)
        self.assertIsNone(self.scheduler.last_auto_open_at)

        self.clock.advance(5)
        self.timers.run_due()
        self.assertEqual(self.surface.shown, [])

    def test_set_emptied_and_refilled_surfaces_again(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.clock.advance(1.2)
        self.timers.run_due()
        self.scheduler.close_surface()

        self.gateway.remove(1)
        self.clock.advance(60)
        self.refresh()

        self.gateway.add(_record(2))
        self.clock.advance(60)
        self.refresh()
        self.clock.advance(1.2)
        self.timers.run_due()
        self.assertEqual(self.surface.shown, [[1], [2]])


class TestAcknowledgment(SchedulerTestCase):
    def test_dismiss_removes_and_marks_read(self):
        self.make_scheduler([_record(1), _record(2)])
        self.refresh()

        self.assertTrue(asyncio.run(self.scheduler.dismiss(1)))
        self.assertEqual(self.alert_ids(), [2])
        self.assertEqual(self.gateway.acknowledged, {1})

        self.clock.advance(15)
        self.refresh()
        self.assertEqual(self.alert_ids(), [2])

    def test_failed_dismiss_comes_back_on_next_refresh(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.gateway.fail_ack = {1}

        self.assertFalse(asyncio.run(self.scheduler.dismiss(1)))
        self.assertEqual(self.alert_ids(), [])

        self.clock.advance(15)
        self.refresh()
        self.assertEqual(self.alert_ids(), [1])

    def test_dismiss_all_tolerates_individual_failures(self):
        self.make_scheduler([_record(1), _record(2), _record(3)])
        self.refresh()
        self.gateway.fail_ack = {2}

        confirmed = asyncio.run(self.scheduler.dismiss_all())

        self.assertEqual(confirmed, 2)
        self.assertEqual(self.gateway.ack_attempts, [1, 2, 3])
        self.assertEqual(self.gateway.acknowledged, {1, 3})
        self.assertEqual(self.alert_ids(), [])

        self.clock.advance(15)
        self.refresh()
        self.assertEqual(self.alert_ids(), [2])

    def test_dismiss_during_refresh_is_not_undone_by_stale_listing(self):
        self.make_scheduler([_record(1), _record(2)])
        self.refresh()

        async def scenario():
            self.gateway.gate = asyncio.Event()
            in_flight = asyncio.create_task(self.scheduler.refresh())
            await asyncio.sleep(0)
            self.clock.advance(1)
            await self.scheduler.dismiss(1)
            self.gateway.gate.set()
            await in_flight

        asyncio.run(scenario())
        self.assertEqual(self.alert_ids(), [2])

    def test_reopen_marks_unread_and_refreshes(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        asyncio.run(self.scheduler.dismiss(1))
        self.clock.advance(15)
        self.refresh()
        self.assertEqual(self.alert_ids(), [])

        asyncio.run(self.scheduler.reopen(1))

        self.assertNotIn(1, self.gateway.acknowledged)
        self.assertEqual(self.alert_ids(), [1])


class TestStatusChange(SchedulerTestCase):
    def test_advance_to_in_progress(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        calls = self.gateway.list_calls

        record = asyncio.run(self.scheduler.change_status(1, "IN_PROGRESS"))

        self.assertEqual(record.status, RecordStatus.IN_PROGRESS)
        self.assertEqual(self.gateway.transitions, [(1, RecordStatus.IN_PROGRESS, None)])
        self.assertEqual(self.gateway.ack_attempts, [1])
        self.assertEqual(self.gateway.list_calls, calls + 1)
        self.assertEqual(self.alert_ids(), [])

    def test_finalize_asks_for_the_outcome_date(self):
        prompt = FixedDatePrompt(date(2024, 1, 20))
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS)], date_prompt=prompt)
        self.refresh()

        record = asyncio.run(self.scheduler.change_status(1, RecordStatus.FINALIZED))

        self.assertEqual(prompt.asked, [1])
        self.assertEqual(record.status, RecordStatus.FINALIZED)
        self.assertEqual(record.outcome_date, date(2024, 1, 20))
        self.assertEqual(self.alert_ids(), [])

    def test_cancelled_date_entry_keeps_the_reminder(self):
        prompt = FixedDatePrompt(None)
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS)], date_prompt=prompt)
        self.refresh()

        result = asyncio.run(self.scheduler.change_status(1, RecordStatus.FINALIZED))

        self.assertIsNone(result)
        self.assertEqual(self.gateway.transitions, [])
        self.assertEqual(self.gateway.ack_attempts, [])
        self.assertEqual(self.alert_ids(), [1])

    def test_given_outcome_date_skips_the_prompt(self):
        prompt = FixedDatePrompt(date(2024, 5, 1))
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS)], date_prompt=prompt)
        self.refresh()

        record = asyncio.run(self.scheduler.change_status(1, "FINALIZED", date(2024, 1, 30)))

        self.assertEqual(prompt.asked, [])
        self.assertEqual(record.outcome_date, date(2024, 1, 30))

    def test_finalize_clears_tracking_even_if_refresh_fails(self):
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS)])
        self.refresh()
        self.scheduler.tracker.archive(1)
        self.gateway.fail_list = True

        with self.assertLogs("breeding_tracker.services.reminders", level="WARNING"):
            record = asyncio.run(self.scheduler.change_status(1, RecordStatus.FINALIZED, date(2024, 1, 20)))

        self.assertEqual(record.status, RecordStatus.FINALIZED)
        self.assertEqual(self.gateway.ack_attempts, [1])
        self.assertIsNone(self.scheduler.tracker.get(1))
        self.assertFalse(self.scheduler.tracker.is_archived(1))

    def test_finalize_without_prompt_fails_but_still_acknowledges(self):
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS)])
        self.refresh()

        with self.assertRaises(MissingOutcomeDateError):
            asyncio.run(self.scheduler.change_status(1, RecordStatus.FINALIZED))

        self.assertEqual(self.gateway.ack_attempts, [1])
        self.assertEqual(self.alert_ids(), [])

    def test_illegal_transition_still_acknowledges_and_refreshes(self):
        self.make_scheduler([_record(1, RecordStatus.IN_PROGRESS), _record(2)])
        self.refresh()
        calls = self.gateway.list_calls

        with self.assertLogs("breeding_tracker.services.reminders", level="ERROR"):
            with self.assertRaises(InvalidTransitionError):
                asyncio.run(self.scheduler.change_status(1, RecordStatus.INITIAL))

        self.assertEqual(self.gateway.records[1].status, RecordStatus.IN_PROGRESS)
        self.assertEqual(self.gateway.ack_attempts, [1])
        self.assertEqual(self.gateway.list_calls, calls + 1)
        self.assertEqual(self.alert_ids(), [2])

    def test_failed_transition_call_still_acknowledges(self):
        self.make_scheduler([_record(1)])
        self.refresh()
        self.gateway.fail_transition = True

        with self.assertRaises(TransportError):
            asyncio.run(self.scheduler.change_status(1, RecordStatus.IN_PROGRESS))

        self.assertEqual(self.gateway.ack_attempts, [1])
        self.assertEqual(self.alert_ids(), [])


class TestSchedulerLoops(unittest.TestCase):
    def test_start_and_stop(self):
        gateway = InMemoryRecordGateway([_record(1)])
        surface = RecordingSurface()
        scheduler = ReminderScheduler(
            gateway,
            surface,
            settings=ReminderSettings(
                refresh_interval_seconds=0.01,
                reopen_check_interval_seconds=0.01,
                reopen_after_seconds=3600,
                first_surface_delay_seconds=0.01,
            ),
        )

        async def scenario():
            scheduler.start()
            self.assertTrue(scheduler.running)
            await asyncio.sleep(0.1)
            await scheduler.stop()
            calls = gateway.list_calls
            await asyncio.sleep(0.05)
            return calls

        calls = asyncio.run(scenario())

        self.assertGreaterEqual(calls, 2)
        self.assertEqual(gateway.list_calls, calls)
        self.assertFalse(scheduler.running)
        self.assertEqual(surface.shown, [[1]])
        self.assertEqual(scheduler.alerts, [])
        self.assertIsNone(scheduler.last_auto_open_at)

    def test_stop_cancels_pending_surface(self):
        gateway = InMemoryRecordGateway([_record(1)])
        clock = FakeClock()
        timers = FakeTimers(clock)
        surface = RecordingSurface()
        scheduler = ReminderScheduler(gateway, surface, clock=clock, timers=timers)

        async def scenario():
            await scheduler.refresh()
            await scheduler.stop()

        asyncio.run(scenario())
        clock.advance(5)
        timers.run_due()

        self.assertTrue(timers.handles[0].cancelled)
        self.assertEqual(surface.shown, [])

    def test_loop_survives_unexpected_errors(self):
        class BrokenGateway(InMemoryRecordGateway):
            async def list_unresolved(self):
                self.list_calls += 1
                raise RuntimeError("boom")

        gateway = BrokenGateway()
        scheduler = ReminderScheduler(
            gateway,
            RecordingSurface(),
            settings=ReminderSettings(refresh_interval_seconds=0.01, reopen_check_interval_seconds=1),
        )

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.05)
            await scheduler.stop()

        with self.assertLogs("breeding_tracker.services.reminders", level="ERROR"):
            asyncio.run(scenario())
        self.assertGreaterEqual(gateway.list_calls, 2)


if __name__ == "__main__":
    unittest.main()
