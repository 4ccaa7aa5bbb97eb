import math
import pathlib
import sys
import threading
import time
import unittest

CURRENT_DIR = pathlib.Path(__file__).resolve()
SRC_DIR = CURRENT_DIR.parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from chat_service.rate_limit import BucketRegistry, RateLimiter, TokenBucket  # noqa: E402
from tests.fakes import FakeClock  # noqa: E402


class TokenBucketTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_allows_exactly_capacity_without_elapsed_time(self):
        for strategy in ("interval", "greedy"):
            bucket = TokenBucket(5, 5, 60.0, strategy=strategy, clock=self.clock)
            results = [bucket.try_consume(1) for _ in range(8)]
            self.assertEqual(results, [True] * 5 + [False] * 3, strategy)

    def test_drained_bucket_refills_after_full_interval(self):
        for strategy in ("interval", "greedy"):
            bucket = TokenBucket(2, 2, 60.0, strategy=strategy, clock=self.clock)
            self.assertTrue(bucket.try_consume(1))
            self.assertTrue(bucket.try_consume(1))
            self.assertFalse(bucket.try_consume(1))

            self.clock.advance(60.0)
            self.assertTrue(bucket.try_consume(1), strategy)

    def test_tokens_never_exceed_capacity_after_long_idle(self):
        for strategy in ("interval", "greedy"):
            bucket = TokenBucket(3, 3, 60.0, strategy=strategy, clock=self.clock)
            bucket.try_consume(1)
            self.clock.advance(10_000.0)
            self.assertEqual(bucket.available_tokens, 3.0)

            results = [bucket.try_consume(1) for _ in range(4)]
            self.assertEqual(results, [True, True, True, False])

    def test_interval_strategy_keeps_partial_progress(self):
        bucket = TokenBucket(1, 1, 60.0, clock=self.clock)
        self.assertTrue(bucket.try_consume(1))

        # Two half intervals add up to one refill even though each check lands mid-interval.
        self.clock.advance(30.0)
        self.assertFalse(bucket.try_consume(1))
        self.clock.advance(30.0)
        self.assertTrue(bucket.try_consume(1))

    def test_greedy_strategy_accumulates_fractions(self):
        bucket = TokenBucket(10, 10, 60.0, strategy="greedy", clock=self.clock)
        for _ in range(10):
            self.assertTrue(bucket.try_consume(1))

        for _ in range(10):
            self.clock.advance(6.0)
        self.assertAlmostEqual(bucket.available_tokens, 10.0)

    def test_clock_going_backwards_adds_nothing(self):
        bucket = TokenBucket(2, 2, 60.0, strategy="greedy", clock=self.clock)
        bucket.try_consume(2)

        self.clock.advance(-500.0)
        self.assertFalse(bucket.try_consume(1))
        self.assertEqual(bucket.available_tokens, 0.0)

    def test_consume_more_than_one(self):
        bucket = TokenBucket(5, 5, 60.0, clock=self.clock)
        self.assertTrue(bucket.try_consume(3))
        self.assertFalse(bucket.try_consume(3))
        self.assertEqual(bucket.available_tokens, 2.0)

    def test_non_positive_amounts_are_rejected(self):
        bucket = TokenBucket(5, clock=self.clock)
        with self.assertRaises(ValueError):
            bucket.try_consume(0)
        with self.assertRaises(ValueError):
            TokenBucket(0)

    def test_seconds_until_available(self):
        bucket = TokenBucket(2, 2, 60.0, clock=self.clock)
        self.assertEqual(bucket.seconds_until_available(), 0.0)

        bucket.try_consume(2)
        self.clock.advance(15.0)
        self.assertAlmostEqual(bucket.seconds_until_available(), 45.0)
        self.assertTrue(math.isinf(bucket.seconds_until_available(3)))

        greedy = TokenBucket(2, 2, 60.0, strategy="greedy", clock=self.clock)
        greedy.try_consume(2)
        self.assertAlmostEqual(greedy.seconds_until_available(), 30.0)

    def test_concurrent_consumers_never_exceed_capacity(self):
        bucket = TokenBucket(50, 50, 60.0, clock=self.clock)
        successes = []
        lock = threading.Lock()
        start = threading.Barrier(16)

        def worker():
            start.wait()
            allowed = sum(1 for _ in range(20) if bucket.try_consume(1))
            with lock:
                successes.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sum(successes), 50)


class BucketRegistryTests(unittest.TestCase):
    def test_same_key_returns_same_bucket(self):
        registry = BucketRegistry(lambda: TokenBucket(1))
        self.assertIs(registry.get_or_create("k"), registry.get_or_create("k"))
        self.assertIsNot(registry.get_or_create("k"), registry.get_or_create("other"))
        self.assertEqual(len(registry), 2)

    def test_racing_callers_create_one_bucket(self):
        created = []

        def factory():
            # Widen the window in which a second caller could slip in.
            time.sleep(0.01)
            bucket = TokenBucket(1)
            created.append(bucket)
            return bucket

        registry = BucketRegistry(factory)
        start = threading.Barrier(12)
        seen = []
        seen_lock = threading.Lock()

        def worker():
            start.wait()
            bucket = registry.get_or_create("shared")
            with seen_lock:
                seen.append(bucket)

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(created), 1)
        self.assertEqual(len(seen), 12)
        self.assertTrue(all(b is created[0] for b in seen))

    def test_max_keys_evicts_least_recently_used(self):
        registry = BucketRegistry(lambda: TokenBucket(1), max_keys=2)
        a = registry.get_or_create("a")
        registry.get_or_create("b")
        self.assertIs(registry.get_or_create("a"), a)

        registry.get_or_create("c")
        self.assertEqual(len(registry), 2)
        self.assertIn("a", registry)
        self.assertNotIn("b", registry)
        self.assertIn("c", registry)

    def test_unbounded_by_default(self):
        registry = BucketRegistry(lambda: TokenBucket(1))
        for i in range(500):
            registry.get_or_create(f"key-{i}")
        self.assertEqual(len(registry), 500)


class RateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_three_per_minute_scenario(self):
        limiter = RateLimiter.per_window(3, 60.0, clock=self.clock)
        self.assertEqual([limiter.allow("k") for _ in range(4)], [True, True, True, False])

        self.clock.advance(60.0)
        self.assertTrue(limiter.allow("k"))

    def test_keys_are_isolated(self):
        limiter = RateLimiter.per_window(1, 60.0, clock=self.clock)
        self.assertTrue(limiter.allow("a"))
        self.assertFalse(limiter.allow("a"))
        self.assertTrue(limiter.allow("b"))

    def test_retry_after_reports_time_to_next_window(self):
        limiter = RateLimiter.per_window(1, 60.0, clock=self.clock)
        limiter.allow("k")
        self.clock.advance(20.0)
        self.assertAlmostEqual(limiter.retry_after("k"), 40.0)


if __name__ == "__main__":
    unittest.main()
