import asyncio

from executor import BatchCounts, Outcome, run_batch


def test_windows_bound_concurrency_and_settle_in_order():
    in_flight = 0
    peak = 0
    events = []

    async def work(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        events.append(("start", item))
        await asyncio.sleep(0.01 * (3 - item % 3))
        events.append(("end", item))
        in_flight -= 1
        return Outcome.SUCCEEDED

    counts = asyncio.run(run_batch(list(range(7)), 3, work))

    assert counts.succeeded == 7
    assert peak == 3
    # The second window starts only after every item of the first has ended
    first_window_ends = [events.index(("end", i)) for i in range(3)]
    assert events.index(("start", 3)) > max(first_window_ends)


def test_exception_counts_as_failed_without_affecting_siblings():
    async def work(item):
        if item == 2:
            raise RuntimeError("boom")
        return Outcome.SUCCEEDED

    counts = asyncio.run(run_batch([1, 2, 3], 3, work))

    assert counts == BatchCounts(succeeded=2, failed=1, retried=0, skipped=0)


def test_outcomes_are_aggregated():
    outcomes = {
        1: Outcome.SUCCEEDED,
        2: Outcome.RETRIED,
        3: Outcome.SKIPPED,
        4: Outcome.FAILED,
        5: Outcome.RETRIED,
    }

    async def work(item):
        return outcomes[item]

    counts = asyncio.run(run_batch(list(outcomes), 2, work))

    assert (counts.succeeded, counts.failed, counts.retried, counts.skipped) == (1, 1, 2, 1)
    assert counts.total == 5


def test_non_positive_concurrency_runs_one_at_a_time():
    in_flight = 0
    peak = 0

    async def work(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return Outcome.SUCCEEDED

    counts = asyncio.run(run_batch([1, 2, 3], 0, work))

    assert counts.succeeded == 3
    assert peak == 1


def test_empty_batch():
    async def work(item):
        raise AssertionError("not called")

    assert asyncio.run(run_batch([], 4, work)).total == 0


def test_failing_item_in_middle_window():
    async def work(item):
        if item == 3:
            raise ValueError("bad item")
        return Outcome.SUCCEEDED

    counts = asyncio.run(run_batch([1, 2, 3, 4, 5], 2, work))

    assert (counts.succeeded, counts.failed) == (4, 1)
