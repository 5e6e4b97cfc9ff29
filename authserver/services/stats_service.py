"""In-process counters for the stats page"""

from datetime import datetime, timezone

COUNTERS = (
    "userLogin",
    "failedLogin",
    "clientToken",
    "userToken",
    "refreshToken",
    "introspect",
    "httpRequest",
)


class StatsService:
    """Monotonic event counters since process start"""

    def __init__(self):
        self.start_time = datetime.now(timezone.utc)
        self._counters = dict.fromkeys(COUNTERS, 0)

    def increment(self, key: str) -> None:
        """Increment a counter; unknown keys are ignored"""
        if key in self._counters:
            self._counters[key] += 1

    def get(self, key: str) -> int:
        return self._counters.get(key, 0)

    def snapshot(self) -> dict:
        """Copy of the counters with the server start time"""
        return {
            "start_time": self.start_time.isoformat(),
            "counters": dict(self._counters),
        }

    def reset(self) -> None:
        self._counters = dict.fromkeys(COUNTERS, 0)


# Global instance
stats_service = StatsService()
