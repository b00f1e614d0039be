# src/taskflow/tasks/time_account.py

"""
Per-task time accounting.

All functions are pure: they take a TimeTracking snapshot and return a new one.
Times and durations are integer milliseconds.

State rules:
- at most one open entry (end_time is None), always the last one
- an open entry exists iff is_active
- total_time_spent counts closed entries only
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from ..errors import TaskValidationError
from .task_models import TimeEntry, TimeTracking

logger = logging.getLogger(__name__)


def closed_total(entries: Iterable[TimeEntry]) -> int:
    return sum(e.closed_duration() for e in entries if not e.is_open)


def _close_stray(entry: TimeEntry) -> TimeEntry:
    # No trustworthy end: use whatever duration was stored (or nothing).
    dur = max(0, int(entry.duration or 0))
    return TimeEntry(start_time=entry.start_time, end_time=entry.start_time + dur, duration=dur)


def start(account: TimeTracking, now: int) -> TimeTracking:
    """Open a session. No-op while a session is already running."""
    if account.is_active:
        return account

    entries = list(account.time_entries)
    total = account.total_time_spent
    if entries and entries[-1].is_open:
        closed = _close_stray(entries[-1])
        logger.warning(
            "Closing stray open time entry start=%s before starting a new session",
            closed.start_time,
        )
        entries[-1] = closed
        total += closed.closed_duration()

    entries.append(TimeEntry(start_time=int(now)))
    return TimeTracking(
        total_time_spent=total,
        is_active=True,
        last_started=int(now),
        time_entries=tuple(entries),
    )


def pause(account: TimeTracking, now: int) -> TimeTracking:
    """Close the running session. No-op when nothing is running."""
    if not account.is_active:
        return account

    entries = list(account.time_entries)
    if entries and entries[-1].is_open:
        begin = entries[-1].start_time
    else:
        # Active without an open entry: materialize one from last_started.
        begin = account.last_started if account.last_started is not None else int(now)
        entries.append(TimeEntry(start_time=begin))

    duration = max(0, int(now) - int(begin))
    entries[-1] = TimeEntry(start_time=begin, end_time=int(now), duration=duration)
    return TimeTracking(
        total_time_spent=account.total_time_spent + duration,
        is_active=False,
        last_started=None,
        time_entries=tuple(entries),
    )


def live_duration(account: TimeTracking, now: int) -> int:
    if not account.is_active or account.last_started is None:
        return 0
    return max(0, int(now) - int(account.last_started))


def elapsed(account: TimeTracking, now: int) -> int:
    """Closed total plus the running session (clamped at 0 on clock skew)."""
    return account.total_time_spent + live_duration(account, now)


def record_completion(account: TimeTracking, duration_ms: int, now: int) -> TimeTracking:
    """
    Record a finished stretch of work as one closed entry ending at `now`.

    Used when a task is completed with a known duration instead of a running timer.
    """
    if account.is_active:
        raise TaskValidationError("Stop the running timer before recording completed time")
    dur = max(0, int(duration_ms))
    entry = TimeEntry(start_time=int(now) - dur, end_time=int(now), duration=dur)
    return replace(
        account,
        total_time_spent=account.total_time_spent + dur,
        time_entries=(*account.time_entries, entry),
    )


def repair(account: TimeTracking) -> TimeTracking:
    """
    Bring hydrated time state back in line with the state rules.

    - open entries that are not last are closed with their stored duration
    - an active account takes last_started from its open entry
    - an inactive account with an open last entry gets that entry closed
    - an active account with no open entry and no last_started is deactivated
    """
    entries = list(account.time_entries)
    changed = False
    added = 0

    for i, e in enumerate(entries[:-1]):
        if e.is_open:
            entries[i] = _close_stray(e)
            added += entries[i].closed_duration()
            changed = True

    is_active = account.is_active
    last_started = account.last_started
    open_last = entries[-1] if entries and entries[-1].is_open else None

    if is_active:
        if open_last is not None and last_started != open_last.start_time:
            last_started = open_last.start_time
            changed = True
        elif open_last is None and last_started is None:
            is_active = False
            changed = True
        elif open_last is None:
            entries.append(TimeEntry(start_time=last_started))
            changed = True
    else:
        if open_last is not None:
            entries[-1] = _close_stray(open_last)
            added += entries[-1].closed_duration()
            changed = True
        if last_started is not None:
            last_started = None
            changed = True

    if not changed:
        return account

    fixed = TimeTracking(
        total_time_spent=max(account.total_time_spent, 0) + added,
        is_active=is_active,
        last_started=last_started if is_active else None,
        time_entries=tuple(entries),
    )
    logger.warning("Repaired inconsistent time tracking state: %s -> %s", account, fixed)
    return fixed
