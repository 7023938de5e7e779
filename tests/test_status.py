"""Tests for the accepted-submission counter."""

from concurrent.futures import ThreadPoolExecutor

from core.status import StatusCounter


def test_starts_at_zero():
    assert StatusCounter().current_count() == 0


def test_increment_returns_new_total():
    counter = StatusCounter()

    assert counter.increment() == 1
    assert counter.increment() == 2
    assert counter.current_count() == 2


def test_concurrent_increments_are_not_lost():
    counter = StatusCounter()

    with ThreadPoolExecutor(max_workers=8) as pool:
        totals = list(pool.map(lambda _: counter.increment(), range(1000)))

    assert counter.current_count() == 1000
    assert sorted(totals) == list(range(1, 1001))


def test_counters_are_independent():
    first, second = StatusCounter(), StatusCounter()
    first.increment()

    assert second.current_count() == 0
