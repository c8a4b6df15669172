import pytest

from stock_news.ratelimit import TokenBucket


class FakeClock:
    """Manual clock; sleep() advances time instead of blocking."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_bucket(clock, **kwargs) -> TokenBucket:
    return TokenBucket(clock=clock, sleep=clock.sleep, **kwargs)


class TestTokenBucket:
    def test_first_call_does_not_wait_with_full_bucket(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=1.0)
        assert bucket.acquire() == 0.0
        assert clock.sleeps == []

    def test_second_immediate_call_waits_one_interval(self):
        clock = FakeClock()
        bucket = TokenBucket.per_interval(1.5, clock=clock, sleep=clock.sleep)
        bucket.acquire()
        waited = bucket.acquire()
        assert waited == pytest.approx(1.5)

    def test_no_wait_after_interval_has_elapsed(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=2.0)
        bucket.acquire()
        clock.now += 0.5
        assert bucket.acquire() == 0.0

    def test_burst_up_to_capacity(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=1.0, capacity=3)
        waits = [bucket.acquire() for _ in range(4)]
        assert waits[:3] == [0.0, 0.0, 0.0]
        assert waits[3] == pytest.approx(1.0)

    def test_back_to_back_callers_are_spaced_one_interval_apart(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=1.0)
        for _ in range(4):
            bucket.acquire()
        # 1 free call, then three waits of one second each
        assert clock.now == pytest.approx(3.0)

    def test_empty_initial_bucket_waits_before_first_call(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=1 / 1.5, initial=0)
        assert bucket.acquire() == pytest.approx(1.5)

    def test_idle_time_does_not_exceed_capacity(self):
        clock = FakeClock()
        bucket = make_bucket(clock, rate=1.0, capacity=2)
        clock.now += 100
        waits = [bucket.acquire() for _ in range(3)]
        assert waits[:2] == [0.0, 0.0]
        assert waits[2] > 0

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            TokenBucket.per_interval(0)

    def test_rejects_capacity_below_one(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=1.0, capacity=0.5)
