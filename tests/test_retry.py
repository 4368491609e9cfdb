import unittest

from breserve.retry import retry_with_backoff


class TestRetryWithBackoff(unittest.TestCase):
    def setUp(self):
        self.sleeps = []

    def test_returns_first_success(self):
        self.assertEqual(retry_with_backoff(lambda: 42, sleep=self.sleeps.append), 42)
        self.assertEqual(self.sleeps, [])

    def test_exponential_delays_then_success(self):
        attempts = {"n": 0}

        def flaky():
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise ConnectionError("flaky")
            return "ok"

        self.assertEqual(retry_with_backoff(flaky, 3, 1.0, sleep=self.sleeps.append), "ok")
        self.assertEqual(self.sleeps, [1.0, 2.0])

    def test_reraises_last_error(self):
        def always_fails():
            raise ConnectionError("down")

        with self.assertRaises(ConnectionError):
            retry_with_backoff(always_fails, 3, 0.5, sleep=self.sleeps.append)
        self.assertEqual(self.sleeps, [0.5, 1.0])

    def test_non_retryable_errors_propagate_immediately(self):
        def bad_input():
            raise KeyError("id")

        with self.assertRaises(KeyError):
            retry_with_backoff(bad_input, retry_on=(ConnectionError,), sleep=self.sleeps.append)
        self.assertEqual(self.sleeps, [])

    def test_rejects_zero_retries(self):
        with self.assertRaises(ValueError):
            retry_with_backoff(lambda: None, max_retries=0)


if __name__ == "__main__":
    unittest.main()
