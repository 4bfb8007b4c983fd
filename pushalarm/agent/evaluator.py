"""Decides which alarms have gone off.

Evaluation is stateless: every heartbeat re-checks the whole list, so an alarm
in the past fires again on each call until it is deleted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Union

from pushalarm.agent.models import Alarm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FiredAlarm:
    alarm: Alarm
    message: str


def render_message(alarm: Alarm) -> str:
    return f'"{alarm.name}" at {alarm.scheduled_at:%H:%M:%S}'


def local_civil_time(now: datetime) -> datetime:
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def has_fired(alarm: Alarm, now: datetime) -> bool:
    # strictly after: at the scheduled minute itself it has not fired yet
    return local_civil_time(now) > alarm.scheduled_at


def _as_alarm(item: Union[Alarm, Mapping[str, Any], Any]) -> Alarm:
    if isinstance(item, Alarm):
        return item
    if isinstance(item, Mapping):
        return Alarm.from_dict(item)
    raise TypeError(f"not an alarm: {type(item).__name__}")


def evaluate(now: datetime, alarms: Iterable[Union[Alarm, Mapping[str, Any]]]) -> List[FiredAlarm]:
    """Return every alarm whose scheduled time is before `now`, with its message."""
    now = local_civil_time(now)
    fired = []
    for item in alarms:
        try:
            alarm = _as_alarm(item)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Skipping invalid alarm entry: %r", e)
            continue

        logger.debug("Checking alarm now:%s, alarm:%s", now.isoformat(), alarm.scheduled_at.isoformat())
        if has_fired(alarm, now):
            logger.info("Alarm %s was supposed to go off", alarm)
            fired.append(FiredAlarm(alarm=alarm, message=render_message(alarm)))
    return fired
