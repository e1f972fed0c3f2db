"""
Abstract base class for all signal collectors.

Adding a new signal = new file implementing collect(). The engine runs the
collectors without knowing their internals.

Contract:
  - collect() returns a SignalResult and never raises for expected failures
    (network error, timeout, missing credential, unknown address). Those
    produce a not-performed, zero-point result.
  - Anything else propagates, and the engine fails the whole analysis closed.
"""

from abc import ABC, abstractmethod

from models import SignalName, SignalResult


class SignalCollector(ABC):
    name: SignalName

    @abstractmethod
    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        """Evaluate one signal for the client and report its risk points."""

    def skipped(self, **details) -> SignalResult:
        return SignalResult(name=self.name, performed=False, points=0, details=details)
