import logging
import threading
from contextlib import nullcontext

import click
from flask import current_app, has_app_context

from rankvote.extensions import db
from rankvote.models import Contest
from rankvote.services import contests, lifecycle
from rankvote.services.lifecycle import TieRunoffRejected
from rankvote.timeutils import isoformat, utcnow

logger = logging.getLogger(__name__)

EXTENSION_KEY = "rankvote.scheduler"

# Expected steady states: the contest is marked checked and never retried.
SETTLED_RUNOFF_CODES = ("no_ballots", "not_a_tie")


class IntervalTimer:
    """Call ``callback`` now and then every ``interval`` seconds on a daemon thread."""

    def __init__(self, interval, callback, name="rankvote-scheduler"):
        self.interval = interval
        self._callback = callback
        self._name = name
        self._stop_event = threading.Event()
        self._thread = None

    def start(self):
        if self.is_alive():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name=self._name, daemon=True
        )
        self._thread.start()

    def _run(self, stop_event):
        while not stop_event.is_set():
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduler tick raised")
            if stop_event.wait(self.interval):
                break

    def cancel(self, timeout=5):
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def is_alive(self):
        return self._thread is not None and self._thread.is_alive()


class ContestScheduler:
    """Periodic driver for auto-close, notifications, runoffs and recurrence.

    ``timer`` is a factory called as ``timer(interval, callback)`` returning an
    object with ``start``, ``cancel`` and ``is_alive``; ``clock`` returns the
    current naive UTC datetime. Nothing is persisted on the scheduler itself,
    so any number of instances can be built and restarted freely.
    """

    def __init__(self, app, timer=None, clock=None):
        self.app = app
        self._timer_factory = timer or IntervalTimer
        self._clock = clock or utcnow
        self._timer = None
        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self.last_tick_at = None
        self.last_summary = None
        self.tick_count = 0

    @property
    def interval(self):
        return self.app.config["SCHEDULER_INTERVAL_SECONDS"]

    def start(self):
        with self._state_lock:
            if self._timer is not None and self._timer.is_alive():
                return False
            self._timer = self._timer_factory(self.interval, self.tick)
            self._timer.start()
        logger.info("Contest scheduler started (interval %ss)", self.interval)
        return True

    def stop(self):
        with self._state_lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
        logger.info("Contest scheduler stopped")
        return True

    def is_running(self):
        return self._timer is not None and self._timer.is_alive()

    def status(self):
        return {
            "running": self.is_running(),
            "interval_seconds": self.interval,
            "last_tick_at": isoformat(self.last_tick_at),
            "tick_count": self.tick_count,
            "last_summary": self.last_summary,
        }

    def _app_context(self):
        # Reuse the caller's context (and session) when it belongs to this app.
        if has_app_context() and current_app._get_current_object() is self.app:
            return nullcontext()
        return self.app.app_context()

    def limits(self):
        with self._app_context():
            active_groups = contests.count_active_recurring_groups()
        max_groups = self.app.config["MAX_ACTIVE_RECURRING_GROUPS"]
        return {
            "active_groups": active_groups,
            "max_active_groups": max_groups,
            "max_per_tick": self.app.config["MAX_RECURRING_VOTES_PER_TICK"],
            "can_create_new": active_groups < max_groups,
        }

    def tick(self, now=None):
        """Run every pass once. Returns a per-pass summary, or None if skipped."""
        if not self._tick_lock.acquire(blocking=False):
            logger.info("Previous scheduler tick still running; skipping")
            return None
        try:
            with self._app_context():
                now = now or self._clock()
                summary = {}
                for name, run_pass in self._passes():
                    try:
                        summary[name] = run_pass(now)
                    except Exception:
                        logger.exception("Scheduler pass %s failed", name)
                        db.session.rollback()
                        summary[name] = 0
            self.last_tick_at = now
            self.last_summary = summary
            self.tick_count += 1
            return summary
        finally:
            self._tick_lock.release()

    def _passes(self):
        return (
            ("auto_closed", self._auto_close_pass),
            ("close_notified", self._close_notification_pass),
            ("open_notified", self._open_notification_pass),
            ("runoffs_created", self._tie_runoff_pass),
            ("recurrences_spawned", self._recurrence_pass),
        )

    def _each(self, label, contest_ids, handle):
        handled = 0
        for contest_id in contest_ids:
            try:
                contest = db.session.get(Contest, contest_id)
                if contest is not None and handle(contest):
                    handled += 1
            except Exception:
                logger.exception("%s failed for contest %s", label, contest_id)
                db.session.rollback()
        return handled

    def _auto_close_pass(self, now):
        ids = [contest.id for contest in contests.due_auto_close(now)]
        return self._each(
            "Auto-close", ids, lambda contest: contests.close_contest(contest.id, now)
        )

    def _close_notification_pass(self, now):
        ids = [contest.id for contest in contests.due_close_notification()]
        return self._each(
            "Close notification", ids, lambda contest: lifecycle.notify_closed(contest, now)
        )

    def _open_notification_pass(self, now):
        ids = [contest.id for contest in contests.due_open_notification(now)]
        return self._each(
            "Open notification", ids, lambda contest: lifecycle.notify_opened(contest, now)
        )

    def _tie_runoff_pass(self, now):
        ids = [contest.id for contest in contests.due_tie_runoff()]

        def handle(contest):
            try:
                lifecycle.trigger_tie_runoff(contest.id, now=now, require_channel=True)
            except TieRunoffRejected as exc:
                if exc.code in SETTLED_RUNOFF_CODES:
                    lifecycle.mark_tie_checked(contest.id, now)
                else:
                    logger.info("Runoff skipped for contest %s: %s", contest.id, exc.reason)
                return False
            return True

        return self._each("Tie runoff", ids, handle)

    def _recurrence_pass(self, now):
        limit = self.app.config["MAX_RECURRING_VOTES_PER_TICK"]
        due = contests.due_recurrence_spawn(now)
        if len(due) > limit:
            logger.info(
                "%s recurring votes due; deferring %s to the next tick",
                len(due),
                len(due) - limit,
            )
        ids = [contest.id for contest in due[:limit]]
        return self._each(
            "Recurrence spawn",
            ids,
            lambda contest: lifecycle.create_successor(contest, now) is not None,
        )


def _inside_cli_command():
    # Apps built for `flask db upgrade`, `flask shell` and the like must not
    # tick; only `flask run` serves requests.
    ctx = click.get_current_context(silent=True)
    return ctx is not None and ctx.info_name != "run"


def init_scheduler(app, timer=None, clock=None):
    """Attach a scheduler to ``app`` and start it when enabled.

    Run one scheduling process per database: set ``SCHEDULER_ENABLED`` on a
    single worker and disable it on the others.
    """
    scheduler = ContestScheduler(app, timer=timer, clock=clock)
    app.extensions[EXTENSION_KEY] = scheduler
    if not app.config.get("SCHEDULER_ENABLED"):
        return scheduler
    if _inside_cli_command():
        logger.info("Scheduler not started for CLI command")
        return scheduler
    scheduler.start()
    return scheduler


def get_scheduler(app):
    return app.extensions[EXTENSION_KEY]
