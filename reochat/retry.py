import asyncio
import logging as log

from reochat import RetriesExhausted


class RetryPolicy(object):
    """Bounded exponential backoff.

    Args:
        max_attempts(int): Total attempts before giving up.
        base_delay(float): Seconds to wait after the first failure.
        max_delay(float): Ceiling for any single wait.
    """

    def __init__(self, max_attempts=8, base_delay=1.0, max_delay=30.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay(self, attempt):
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def __repr__(self):
        return "RetryPolicy(max_attempts=%s, base_delay=%s, max_delay=%s)" % (
            self.max_attempts, self.base_delay, self.max_delay
        )


class Backoff(object):
    """Tracks consecutive failures of one retried operation."""

    def __init__(self, policy, what):
        self.policy = policy
        self.what = what
        self.failures = 0

    def reset(self):
        self.failures = 0

    async def failed(self, error):
        """Record a failure and sleep, or raise once the policy is spent."""
        self.failures += 1
        if self.failures >= self.policy.max_attempts:
            # error may be an nio error response rather than an exception
            cause = error if isinstance(error, BaseException) else None
            raise RetriesExhausted(
                "%s failed %s times, giving up: %s" % (
                    self.what, self.failures, error
                )
            ) from cause
        wait = self.policy.delay(self.failures)
        log.warning(
            "%s failed (attempt %s/%s): %s. Retrying in %.1fs",
            self.what, self.failures, self.policy.max_attempts, error, wait
        )
        await asyncio.sleep(wait)
