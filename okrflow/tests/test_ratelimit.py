import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from okrflow.ratelimit import InMemoryRateLimiter, RedisRateLimiter


class InMemoryRateLimiterTests(unittest.TestCase):
    @patch("okrflow.ratelimit.time")
    def test_fixed_window(self, mock_time):
        mock_time.time.return_value = 1000.0
        limiter = InMemoryRateLimiter()
        self.assertEqual(limiter.check("login:1.2.3.4", 2, 60), (True, 1))
        self.assertEqual(limiter.check("login:1.2.3.4", 2, 60), (True, 0))
        self.assertEqual(limiter.check("login:1.2.3.4", 2, 60), (False, 0))
        self.assertEqual(limiter.check("login:5.6.7.8", 2, 60), (True, 1))

        mock_time.time.return_value = 1061.0
        self.assertEqual(limiter.check("login:1.2.3.4", 2, 60), (True, 1))

    @patch("okrflow.ratelimit.time")
    def test_expired_buckets_are_dropped(self, mock_time):
        mock_time.time.return_value = 1000.0
        limiter = InMemoryRateLimiter()
        for ip in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
            limiter.check(f"register:{ip}", 5, 60)
        self.assertEqual(len(limiter.buckets), 3)

        mock_time.time.return_value = 1030.0
        limiter.check("register:4.4.4.4", 5, 60)
        self.assertEqual(len(limiter.buckets), 4)

        mock_time.time.return_value = 1100.0
        self.assertEqual(limiter.check("register:5.5.5.5", 5, 60), (True, 4))
        self.assertEqual(set(limiter.buckets), {"register:5.5.5.5"})

    def test_reset(self):
        limiter = InMemoryRateLimiter()
        limiter.check("k", 1, 60)
        self.assertFalse(limiter.check("k", 1, 60)[0])
        limiter.reset()
        self.assertTrue(limiter.check("k", 1, 60)[0])


class RedisRateLimiterTests(unittest.TestCase):
    @patch("okrflow.ratelimit.redis.Redis.from_url")
    def test_counts_from_pipeline(self, mock_from_url):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = [[1, True], [3, False]]
        mock_from_url.return_value = client

        limiter = RedisRateLimiter(url="redis://localhost:6379/0")
        self.assertEqual(limiter.check("register:1.2.3.4", 2, 60), (True, 1))
        self.assertEqual(limiter.check("register:1.2.3.4", 2, 60), (False, 0))
        client.pipeline.return_value.incr.assert_called_with("okrflow:ratelimit:register:1.2.3.4")

    @patch("okrflow.ratelimit.redis.Redis.from_url")
    def test_connection_error_allows_and_reconnects(self, mock_from_url):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = redis_exceptions.ConnectionError()
        mock_from_url.return_value = client

        limiter = RedisRateLimiter(url="redis://localhost:6379/0")
        self.assertEqual(limiter.check("k", 5, 60), (True, 5))
        self.assertEqual(mock_from_url.call_count, 2)


if __name__ == "__main__":
    unittest.main()
