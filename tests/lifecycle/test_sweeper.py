"""Tests for the reservation expiry sweeper."""

import sqlite3
import time
from contextlib import contextmanager
from datetime import date, timedelta

from book_instance_mcp.database.session import StorageError
from book_instance_mcp.lifecycle import InstanceLifecycleEngine, ReservationSweeper

TODAY = date(2024, 1, 1)


class TestReservationSweeper:
    def test_reverts_lapsed_reservations(self, session_factory, make_instance, fetch, fixed_clock):
        lapsed = make_instance("R", available_by=TODAY - timedelta(days=1))
        long_lapsed = make_instance("R", available_by=TODAY - timedelta(days=30))

        reverted = ReservationSweeper(session_factory, clock=fixed_clock).sweep()

        assert reverted == 2
        for instance_id in (lapsed, long_lapsed):
            row = fetch(instance_id)
            assert (row.status.value, row.user_id, row.available_by) == ("A", None, None)

    def test_leaves_current_reservations(self, session_factory, make_instance, fetch, fixed_clock):
        due_today = make_instance("R", available_by=TODAY)
        future = make_instance("R", available_by=TODAY + timedelta(days=3))

        assert ReservationSweeper(session_factory, clock=fixed_clock).sweep() == 0

        assert fetch(due_today).status.value == "R"
        assert fetch(future).available_by == TODAY + timedelta(days=3)

    def test_overdue_loans_untouched(self, session_factory, make_instance, fetch, fixed_clock):
        overdue = make_instance("L", available_by=TODAY - timedelta(days=10))

        assert ReservationSweeper(session_factory, clock=fixed_clock).sweep() == 0
        assert fetch(overdue).status.value == "L"

    def test_idempotent(self, session_factory, make_instance, fixed_clock):
        make_instance("R", available_by=TODAY - timedelta(days=1))
        sweeper = ReservationSweeper(session_factory, clock=fixed_clock)

        assert sweeper.sweep() == 1
        assert sweeper.sweep() == 0

    def test_callable(self, session_factory, make_instance, fixed_clock):
        make_instance("R", available_by=TODAY - timedelta(days=1))
        assert ReservationSweeper(session_factory, clock=fixed_clock)() == 1

    def test_storage_failure_swallowed(self, fixed_clock):
        @contextmanager
        def broken_sessions():
            raise StorageError("database is locked")
            yield  # pragma: no cover

        assert ReservationSweeper(broken_sessions, clock=fixed_clock).sweep() == 0

    def test_unexpected_failure_swallowed(self, fixed_clock):
        @contextmanager
        def broken_sessions():
            raise RuntimeError("disk on fire")
            yield  # pragma: no cover

        assert ReservationSweeper(broken_sessions, clock=fixed_clock).sweep() == 0

    def test_time_budget_stops_early(self, session_factory, make_instance, fetch, fixed_clock):
        first = make_instance("R", available_by=TODAY - timedelta(days=1))

        sweeper = ReservationSweeper(session_factory, clock=fixed_clock, timeout_seconds=1e-9)
        assert sweeper.sweep() == 0
        assert fetch(first).status.value == "R"

    def test_locked_database_waits_only_for_the_budget(
        self, session_factory, make_instance, fetch, fixed_clock, test_db_path
    ):
        lapsed = make_instance("R", available_by=TODAY - timedelta(days=1))
        sweeper = ReservationSweeper(session_factory, clock=fixed_clock, timeout_seconds=0.2)

        writer = sqlite3.connect(test_db_path, isolation_level=None)
        writer.execute("BEGIN EXCLUSIVE")
        try:
            started = time.monotonic()
            reverted = sweeper.sweep()
            elapsed = time.monotonic() - started
        finally:
            writer.execute("ROLLBACK")
            writer.close()

        # The manager would wait 5s for the lock; the sweep gives up with its budget
        assert reverted == 0
        assert elapsed < 2.0
        assert fetch(lapsed).status.value == "R"

    def test_sweep_runs_before_transition(self, session_factory, make_instance, fetch, fixed_clock):
        """A lapsed reservation can be loaned to anyone once swept."""
        lapsed = make_instance("R", user_id="user_alice", available_by=TODAY - timedelta(days=1))
        sweeper = ReservationSweeper(session_factory, clock=fixed_clock)
        engine = InstanceLifecycleEngine(
            session_factory, pre_operation_hook=sweeper.sweep, clock=fixed_clock
        )

        outcome = engine.request_transition(lapsed, "L", "user_bob")

        assert outcome.previous_status.value == "A"
        assert fetch(lapsed).user_id == "user_bob"

    def test_sweep_does_not_notify(self, session_factory, make_instance, fixed_clock, dispatcher, recording_listener):
        make_instance("R", available_by=TODAY - timedelta(days=1))
        ReservationSweeper(session_factory, clock=fixed_clock).sweep()
        assert recording_listener.events == []
