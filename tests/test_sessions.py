import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import suppress
from datetime import datetime, timedelta, timezone

import pytest

from scoresheet.errors import PersistenceError
from scoresheet.services.sessions import SessionStore, run_sweeper


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 9, 2, 8, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock()


@pytest.fixture(name="writes")
def writes_fixture():
    return []


@pytest.fixture(name="store")
def store_fixture(clock, writes):
    return SessionStore(pointer_writer=lambda user_id, fields: writes.append((user_id, fields)), clock=clock)


def test_create_and_lookup(store, clock):
    session = store.create(1)
    assert len(session.session_id) == 64
    assert session.expires_at == clock.now + timedelta(hours=1)
    assert store.lookup(session.session_id) == session
    assert store.lookup_by_user(1) == session


def test_remember_me_gets_seven_days(store, clock):
    session = store.create(1, remember_me=True)
    assert session.expires_at == clock.now + timedelta(days=7)


def test_one_session_per_user(store):
    first = store.create(1)
    second = store.create(1)
    other = store.create(2)
    assert first.session_id != second.session_id
    assert store.lookup(first.session_id) is None
    assert store.lookup(second.session_id) == second
    assert store.lookup(other.session_id) == other
    assert len(store) == 2


def test_create_writes_pointer(store, writes, clock):
    session = store.create(7)
    assert writes == [
        (
            7,
            {
                "current_session_id": session.session_id,
                "session_expires_at": session.expires_at,
                "last_login_at": clock.now,
            },
        )
    ]


def test_session_expires_after_window(store, clock):
    session = store.create(1)
    clock.advance(hours=1)
    assert store.lookup(session.session_id) == session
    clock.advance(seconds=1)
    assert store.lookup(session.session_id) is None
    assert len(store) == 0


def test_refresh_extends_by_own_window(store, clock, writes):
    session = store.create(1)
    clock.advance(minutes=45)
    refreshed = store.refresh(session.session_id)
    assert refreshed.expires_at == clock.now + timedelta(hours=1)
    assert writes[-1] == (1, {"session_expires_at": refreshed.expires_at})

    clock.advance(minutes=30)
    assert store.lookup(session.session_id) == refreshed


def test_refresh_unknown_or_expired(store, clock):
    assert store.refresh("nope") is None
    session = store.create(1)
    clock.advance(hours=2)
    assert store.refresh(session.session_id) is None


def test_revoke_by_session_id(store, writes):
    session = store.create(1)
    store.revoke(session_id=session.session_id)
    assert store.lookup(session.session_id) is None
    assert writes[-1] == (1, {"current_session_id": None, "session_expires_at": None})


def test_revoke_by_user(store):
    session = store.create(1)
    store.revoke(user_id=1)
    assert store.lookup(session.session_id) is None
    assert store.lookup_by_user(1) is None


def test_revoke_unknown_session_is_a_no_op(store, writes):
    store.revoke(session_id="nope")
    assert writes == []


def test_revoke_needs_a_key(store):
    with pytest.raises(ValueError):
        store.revoke()


def test_sweep_drops_only_expired(store, clock):
    short = store.create(1)
    long = store.create(2, remember_me=True)
    clock.advance(hours=2)
    assert store.sweep() == 1
    assert len(store) == 1
    assert store.lookup(long.session_id) == long
    assert store.lookup(short.session_id) is None
    assert store.sweep() == 0


def test_parallel_sign_ins_leave_one_session(store, writes):
    with ThreadPoolExecutor(max_workers=8) as pool:
        sessions = list(pool.map(lambda _: store.create(1), range(50)))

    assert len(store) == 1
    live = [s for s in sessions if store.lookup(s.session_id) is not None]
    assert len(live) == 1
    assert writes[-1][1]["current_session_id"] == live[0].session_id


def test_pointer_write_does_not_block_lookups_or_sweeps(clock):
    entered, release = threading.Event(), threading.Event()

    def slow_writer(user_id, fields):
        if user_id == 1:
            entered.set()
            release.wait(5)

    store = SessionStore(pointer_writer=slow_writer, clock=clock)
    other = store.create(2)
    with ThreadPoolExecutor(max_workers=2) as pool:
        pending = pool.submit(store.create, 1)
        assert entered.wait(5)
        try:
            assert pool.submit(store.lookup, other.session_id).result(timeout=1) == other
            assert pool.submit(store.sweep).result(timeout=1) == 0
        finally:
            release.set()
        created = pending.result(timeout=5)
    assert store.lookup(created.session_id) == created


def test_failed_pointer_write_keeps_previous_session(clock):
    failing = []

    def writer(user_id, fields):
        if failing:
            raise PersistenceError("Could not update User")

    store = SessionStore(pointer_writer=writer, clock=clock)
    first = store.create(1)
    failing.append(True)
    with pytest.raises(PersistenceError):
        store.create(1)
    assert store.lookup(first.session_id) == first
    assert len(store) == 1


@pytest.mark.asyncio
async def test_run_sweeper_drops_expired_sessions(store, clock):
    store.create(1)
    kept = store.create(2, remember_me=True)
    clock.advance(hours=2)

    sweeper = asyncio.create_task(run_sweeper(store, 0.01))
    try:
        for _ in range(200):
            if len(store) == 1:
                break
            await asyncio.sleep(0.01)
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    assert len(store) == 1
    assert store.lookup(kept.session_id) == kept


class SlowSweepStore(SessionStore):
    def sweep(self) -> int:
        time.sleep(0.3)
        return super().sweep()


@pytest.mark.asyncio
async def test_run_sweeper_keeps_event_loop_responsive(clock):
    store = SlowSweepStore(clock=clock)
    gaps = []

    async def ticker():
        last = time.monotonic()
        for _ in range(30):
            await asyncio.sleep(0.01)
            now = time.monotonic()
            gaps.append(now - last)
            last = now

    sweeper = asyncio.create_task(run_sweeper(store, 0))
    try:
        await ticker()
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    assert max(gaps) < 0.2
