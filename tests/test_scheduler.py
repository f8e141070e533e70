import asyncio
import os

import pytest

from windmill_ci.pipeline import ProcessManager, RepeatUntil

# Counts its runs in a file; exits 0 from the fifth run on. Fails loudly on overlap.
COUNTER = """
import os, sys, time
path, lock = sys.argv[1], sys.argv[2]
fd = os.open(lock, os.O_CREAT | os.O_EXCL)
try:
    n = int(open(path).read()) + 1 if os.path.exists(path) else 1
    open(path, "w").write(str(n))
    time.sleep(0.02)
finally:
    os.close(fd)
    os.remove(lock)
raise SystemExit(0 if n >= 5 else 1)
"""


def test_fires_once_after_first_success_and_stops(monitor, py, tmp_path):
    counter = tmp_path / "count"
    lock = tmp_path / "lock"
    fired = []

    async def scenario():
        manager = ProcessManager(monitor=monitor)
        done = asyncio.Event()

        def then():
            fired.append(manager.active)
            done.set()

        scheduler = manager.repeat(
            lambda: manager.chain(py(COUNTER, str(counter), str(lock))),
            every=0.01,
            until=1,
            then=then,
        )
        await asyncio.wait_for(done.wait(), 20)
        await asyncio.sleep(0.2)
        return scheduler

    scheduler = asyncio.run(scenario())
    assert fired == [None]
    assert scheduler.fired
    assert not scheduler.running
    assert scheduler.ticks == 5
    assert scheduler.successes == 1
    assert counter.read_text() == "5"
    assert not lock.exists()
    statuses = [o.status.value for _, o in monitor.outcomes]
    assert statuses == ["failed"] * 4 + ["success"]


def test_requires_several_successes(py):
    async def scenario():
        manager = ProcessManager()
        done = asyncio.Event()
        scheduler = manager.repeat(lambda: manager.chain(py("")), every=0, until=3, then=done.set)
        await asyncio.wait_for(done.wait(), 20)
        return scheduler

    scheduler = asyncio.run(scenario())
    assert scheduler.ticks == 3
    assert scheduler.successes == 3


def test_revoking_lease_cancels_pending_tick(py):
    fired = []

    async def scenario():
        manager = ProcessManager()
        scheduler = manager.repeat(
            lambda: manager.chain(py("raise SystemExit(1)")),
            every=0.05,
            until=1,
            then=lambda: fired.append(1),
        )
        while scheduler.ticks < 1:
            await asyncio.sleep(0.01)
        manager.lease.revoke()
        await scheduler.wait()
        ticks = scheduler.ticks
        await asyncio.sleep(0.2)
        return scheduler, ticks

    scheduler, ticks = asyncio.run(scenario())
    assert not scheduler.running
    assert scheduler.ticks == ticks
    assert fired == []
    assert not scheduler.fired


def test_does_not_start_under_revoked_lease(py):
    async def scenario():
        manager = ProcessManager()
        manager.lease.revoke()
        return manager.repeat(lambda: manager.chain(py("")), every=0, until=1, then=lambda: None)

    scheduler = asyncio.run(scenario())
    assert not scheduler.running
    assert scheduler.ticks == 0


def test_rejects_bad_arguments():
    manager = ProcessManager()
    with pytest.raises(ValueError):
        RepeatUntil(manager, lambda: None, every=-1, until=1, then=lambda: None)
    with pytest.raises(ValueError):
        RepeatUntil(manager, lambda: None, every=1, until=0, then=lambda: None)


def test_cannot_start_twice(py):
    async def scenario():
        manager = ProcessManager()
        scheduler = manager.repeat(lambda: manager.chain(py("")), every=10, until=1, then=lambda: None)
        with pytest.raises(RuntimeError):
            scheduler.start()
        manager.lease.revoke()
        await scheduler.wait()

    asyncio.run(scenario())


def test_revoking_lease_terminates_running_tick(py, tmp_path):
    pid_file = tmp_path / "pid"
    code = "import os, sys, time; open(sys.argv[1], 'w').write(str(os.getpid())); time.sleep(30)"

    async def scenario():
        manager = ProcessManager()
        scheduler = manager.repeat(
            lambda: manager.chain(py(code, str(pid_file))),
            every=0,
            until=1,
            then=lambda: None,
        )
        while not (pid_file.exists() and pid_file.read_text()):
            await asyncio.sleep(0.01)
        manager.lease.revoke()
        await asyncio.wait_for(scheduler.wait(), 10)
        return scheduler, int(pid_file.read_text())

    scheduler, pid = asyncio.run(scenario())
    assert not scheduler.running
    assert scheduler.ticks == 0
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
