from fakes import FakeClock
from scheduler import TaskScheduler


def test_never_run_task_is_due(db):
    scheduler = TaskScheduler(db, clock=FakeClock())

    assert scheduler.should_run("fetch", 30)


def test_due_after_interval_elapses(db):
    clock = FakeClock()
    scheduler = TaskScheduler(db, clock=clock)
    scheduler.record_run("fetch")

    assert not scheduler.should_run("fetch", 30)
    clock.advance(29)
    assert not scheduler.should_run("fetch", 30)
    clock.advance(1)
    assert scheduler.should_run("fetch", 30)


def test_tasks_are_tracked_independently(db):
    clock = FakeClock()
    scheduler = TaskScheduler(db, clock=clock)
    scheduler.record_run("fetch")

    assert not scheduler.should_run("fetch", 30)
    assert scheduler.should_run("extract", 15)


def test_record_run_overwrites_previous_time(db):
    clock = FakeClock()
    scheduler = TaskScheduler(db, clock=clock)
    scheduler.record_run("notify", timestamp=clock.now - 3600)
    assert scheduler.should_run("notify", 30)

    scheduler.record_run("notify")

    assert not scheduler.should_run("notify", 30)
    assert len(db.list_run_records()) == 1


def test_storage_error_fails_open(config):
    from database import Database

    broken = Database(config.db_path)
    broken.close()
    scheduler = TaskScheduler(broken, clock=FakeClock())

    assert scheduler.should_run("fetch", 30)


def test_reset_run_makes_task_due(db):
    clock = FakeClock()
    scheduler = TaskScheduler(db, clock=clock)
    scheduler.record_run("digest")
    assert not scheduler.should_run("digest", 1440)

    db.reset_run("digest")

    assert scheduler.should_run("digest", 1440)
