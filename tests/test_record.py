"""Record state machine, counters and expiration."""

from datetime import timedelta

import pytest

from core.errors import RecordCounterExhaustedError, RecordExpiredError
from models.record import ClicksCounter, DisposableCounter, ExpirationDate, Record, utcnow


def test_disposable_counter_bounds():
    with pytest.raises(ValueError):
        DisposableCounter(-1)
    with pytest.raises(ValueError):
        DisposableCounter(256)
    assert DisposableCounter(255).value == 255


def test_disposable_counter_floors_at_zero():
    counter = DisposableCounter(1)
    counter.sub()
    counter.sub()
    assert counter.value == 0
    assert counter.exhausted()


def test_eternal_counter_never_exhausts():
    counter = DisposableCounter(0, eternal=True)
    counter.sub()
    assert counter.value == 0
    assert not counter.exhausted()


def test_clicks_counter_increase():
    clicks = ClicksCounter()
    clicks.increase()
    clicks.increase()
    assert clicks.value == 2


def test_expiration_from_zero_ttl_is_eternal():
    expiration = ExpirationDate.from_ttl(timedelta(0))
    assert expiration.eternal
    assert not expiration.expired()
    assert expiration.until() == timedelta(0)


def test_expiration_in_past_is_expired():
    expiration = ExpirationDate(at=utcnow() - timedelta(seconds=1))
    assert expiration.expired()
    assert expiration.until() < timedelta(0)


def test_get_body_updates_counters():
    record = Record.create("key", b"hello", timedelta(hours=1), disposable=2)

    assert record.get_body() == b"hello"
    assert record.countdown == 1
    assert record.click_count == 1

    assert record.get_body() == b"hello"
    assert record.countdown == 0
    assert record.click_count == 2

    with pytest.raises(RecordCounterExhaustedError):
        record.get_body()
    assert record.click_count == 2


def test_zero_disposable_reads_forever():
    record = Record.create("key", b"hello", timedelta(hours=1), disposable=0)
    for _ in range(300):
        record.get_body()
    assert record.eternal
    assert record.click_count == 300


def test_expired_record_rejects_read_without_mutation():
    record = Record.create("key", b"hello", timedelta(hours=1), disposable=3)
    record.expiration_date = ExpirationDate(at=utcnow() - timedelta(seconds=1))

    with pytest.raises(RecordExpiredError):
        record.get_body()
    assert record.countdown == 3
    assert record.click_count == 0


def test_exhausted_takes_precedence_over_expired():
    record = Record.create("key", b"hello", timedelta(hours=1), disposable=1)
    record.get_body()
    record.expiration_date = ExpirationDate(at=utcnow() - timedelta(seconds=1))

    with pytest.raises(RecordCounterExhaustedError):
        record.get_body()

