from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class TimeInterval:
    """Half-open ``[start, end)`` range of instants.

    Back-to-back intervals (one ends exactly when the next starts) do not
    overlap.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(
                f"Interval end {self.end.isoformat()} must be after start "
                f"{self.start.isoformat()}"
            )

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> "TimeInterval":
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Return True if the half-open intervals share at least one instant."""
    return a.start < b.end and b.start < a.end
