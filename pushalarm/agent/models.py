"""Alarm model kept on the device."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, FrozenSet, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

# Lead-time tags the form offers, in display order
WARNING_CHOICES = (
    "5m", "10m", "15m", "30m", "45m",
    "1h", "2h", "3h", "4h", "5h", "6h", "7h", "8h", "9h", "10h", "11h", "12h",
    "24h", "48h", "72h",
)
DEFAULT_WARNINGS: FrozenSet[str] = frozenset({"5m"})
DEFAULT_NAME = "Alarm"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Alarm:
    """
    A named alarm at a civil date and time (no timezone).

    `warnings` are stored lead times; they are carried along but not evaluated.
    """

    name: str
    date: date
    time: time
    warnings: FrozenSet[str] = DEFAULT_WARNINGS
    id: str = field(default_factory=_new_id)

    @property
    def scheduled_at(self) -> datetime:
        return datetime(
            self.date.year, self.date.month, self.date.day,
            self.time.hour, self.time.minute,
        )

    @classmethod
    def create(
        cls,
        name: Optional[str],
        date: Optional[date],
        time: Optional[time],
        warnings: Optional[Iterable[str]] = None,
    ) -> "Alarm":
        """Build an alarm from form fields; date and time are both required."""
        if date is None or time is None:
            raise ValueError("Both date and time are required to create an alarm")
        tags = DEFAULT_WARNINGS if warnings is None else frozenset(warnings)
        unknown = tags.difference(WARNING_CHOICES)
        if unknown:
            raise ValueError(f"Unknown warning(s): {', '.join(sorted(unknown))}")
        return cls(
            name=(name or "").strip() or DEFAULT_NAME,
            date=date,
            time=time.replace(second=0, microsecond=0, tzinfo=None),
            warnings=tags,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date.isoformat(),
            "time": self.time.isoformat(),
            "warnings": [w for w in WARNING_CHOICES if w in self.warnings],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Alarm":
        """Parse a persisted record. Raises KeyError/ValueError/TypeError if unusable."""
        raw_date, raw_time = data["date"], data["time"]
        if not isinstance(raw_date, str) or not isinstance(raw_time, str):
            raise TypeError("date and time must be strings")
        parsed_time = time.fromisoformat(raw_time)

        warnings = set()
        for tag in data.get("warnings") or ():
            if tag in WARNING_CHOICES:
                warnings.add(tag)
            else:
                logger.warning("Dropping unknown warning %r", tag)

        return cls(
            name=str(data.get("name") or "").strip() or DEFAULT_NAME,
            date=date.fromisoformat(raw_date),
            time=parsed_time.replace(second=0, microsecond=0, tzinfo=None),
            warnings=frozenset(warnings),
            id=str(data.get("id") or _new_id()),
        )

    def __str__(self) -> str:
        return f"[{self.id[:8]}] {self.name} @ {self.scheduled_at:%Y-%m-%d %H:%M}"
