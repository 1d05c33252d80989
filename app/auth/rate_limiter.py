from app.config import settings
from app.redis_client import get_redis_client


class RateLimiter:
    """Fixed-window failure counter in Redis, keyed by scope and identifier"""

    def __init__(self, scope: str, max_attempts: int, window_minutes: int):
        self.scope = scope
        self.max_attempts = max_attempts
        self.window_minutes = window_minutes

    @property
    def redis(self):
        return get_redis_client()

    def _get_key(self, identifier: str) -> str:
        return f"rate_limit:{self.scope}:{identifier.lower()}"

    def is_blocked(self, identifier: str) -> bool:
        attempts = self.redis.get(self._get_key(identifier))
        return attempts is not None and int(attempts) >= self.max_attempts

    def record_failed_attempt(self, identifier: str) -> int:
        """Count a failure and return the number of failures in the current window"""
        key = self._get_key(identifier)
        pipe = self.redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_minutes * 60)
        return pipe.execute()[0]

    def remaining(self, identifier: str) -> int:
        attempts = self.redis.get(self._get_key(identifier))
        return max(0, self.max_attempts - (int(attempts) if attempts else 0))

    def reset(self, identifier: str):
        self.redis.delete(self._get_key(identifier))


login_rate_limiter = RateLimiter(
    "login",
    max_attempts=settings.rate_limit_failed_logins,
    window_minutes=settings.rate_limit_window_minutes,
)
