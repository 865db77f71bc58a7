"""RateLimiterPort — abstract interface for throttling calls to remote platforms."""

from abc import ABC, abstractmethod


class RateLimiterPort(ABC):
    @abstractmethod
    def check(self, key: str) -> bool:
        """Consume one call for key. Return True if allowed, False if rate-limited."""
