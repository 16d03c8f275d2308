"""
Fullscreen enforcement for timed tests.

The browser reports each exit from fullscreen; the count lives on the
server so a reload cannot reset it. Reaching the limit locks the session.
"""
from dataclasses import dataclass

MAX_FULLSCREEN_ATTEMPTS = 3
FULLSCREEN_VIOLATION = "fullscreen_violation"


@dataclass
class FullscreenState:
    violations: int
    terminated: bool

    @property
    def remaining_attempts(self) -> int:
        return max(0, MAX_FULLSCREEN_ATTEMPTS - self.violations)

    def to_dict(self):
        return {
            "violations": self.violations,
            "remainingAttempts": self.remaining_attempts,
            "maxAttempts": MAX_FULLSCREEN_ATTEMPTS,
            "terminated": self.terminated,
        }


class FullscreenMonitor:
    """
    Violation counter with lockout.

    Usage:
        monitor = FullscreenMonitor(session.fullscreen_violations)
        state = monitor.record_violation()
        if state.terminated:
            ...
    """

    def __init__(self, violations: int = 0, max_attempts: int = MAX_FULLSCREEN_ATTEMPTS):
        self.max_attempts = max_attempts
        self.violations = min(violations or 0, max_attempts)

    @property
    def locked(self) -> bool:
        return self.violations >= self.max_attempts

    def state(self) -> FullscreenState:
        return FullscreenState(self.violations, self.locked)

    def record_violation(self) -> FullscreenState:
        # No further counting once locked
        if not self.locked:
            self.violations += 1
        return self.state()

    def merge_client_count(self, attempts) -> FullscreenState:
        """Take the higher of the server count and a client-reported count"""
        try:
            attempts = int(attempts)
        except (TypeError, ValueError):
            return self.state()
        self.violations = min(max(self.violations, attempts), self.max_attempts)
        return self.state()
