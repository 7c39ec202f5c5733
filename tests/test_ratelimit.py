"""
Tests for the fixed-window rate limiter
"""

from librosphere.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Test RateLimiter"""

    def setup_method(self):
        # Start a few seconds into a bucket
        self.clock = FakeClock(600.0 + 5)
        self.limiter = RateLimiter(max_requests=60, clock=self.clock)

    def test_sixty_requests_then_reject(self):
        for _ in range(60):
            assert self.limiter.check_and_consume("10.0.0.1")

        assert not self.limiter.check_and_consume("10.0.0.1")

    def test_rejected_requests_are_not_counted(self):
        for _ in range(60):
            self.limiter.check_and_consume("10.0.0.1")
        for _ in range(5):
            assert not self.limiter.check_and_consume("10.0.0.1")

        assert self.limiter._counts[("10.0.0.1", self.limiter.current_bucket())] == 60

    def test_next_bucket_allows_again(self):
        for _ in range(61):
            self.limiter.check_and_consume("10.0.0.1")

        self.clock.now += 60
        assert self.limiter.check_and_consume("10.0.0.1")

    def test_clients_are_independent(self):
        for _ in range(60):
            self.limiter.check_and_consume("10.0.0.1")

        assert not self.limiter.check_and_consume("10.0.0.1")
        assert self.limiter.check_and_consume("10.0.0.2")
        assert self.limiter.check_and_consume("unknown")

    def test_bucket_is_wall_clock_minute(self):
        clock = FakeClock(119.9)
        limiter = RateLimiter(max_requests=1, clock=clock)

        assert limiter.check_and_consume("a")
        assert not limiter.check_and_consume("a")

        clock.now = 120.0
        assert limiter.check_and_consume("a")

    def test_sweep_removes_previous_bucket_when_over_threshold(self):
        clock = FakeClock(60.0)
        limiter = RateLimiter(max_requests=5, cleanup_threshold=11, clock=clock)

        # Bucket 0 is older than the previous bucket and survives sweeps
        clock.now = 0.0
        limiter.check_and_consume("ancient")

        clock.now = 60.0
        for i in range(10):
            limiter.check_and_consume(f"old-{i}")
        assert len(limiter) == 11

        clock.now = 120.0
        limiter.check_and_consume("new")

        assert len(limiter) == 2
        assert ("new", 2) in limiter._counts
        assert ("ancient", 0) in limiter._counts

    def test_no_sweep_below_threshold(self):
        clock = FakeClock(60.0)
        limiter = RateLimiter(cleanup_threshold=1000, clock=clock)
        limiter.check_and_consume("a")

        clock.now = 120.0
        limiter.check_and_consume("b")
        assert len(limiter) == 2

    def test_reset(self):
        self.limiter.check_and_consume("a")
        self.limiter.reset()
        assert len(self.limiter) == 0
