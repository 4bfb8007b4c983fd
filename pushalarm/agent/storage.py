"""Device-local persistence of the alarm list."""

import json
import logging
import os
import tempfile
from datetime import date, time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pushalarm.agent.models import Alarm

logger = logging.getLogger(__name__)

ALARMS_KEY = "alarms"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class JsonFileKeyValueStore:
    """Key-value store kept as one JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Any:
        try:
            return self._read().get(key)
        except ValueError as e:
            # uszkodzony plik zostawiamy na dysku do wglądu
            logger.error("Failed to read %s: %s", self.path, e)
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read()
        except ValueError:
            logger.warning("Replacing unreadable store %s", self.path)
            data = {}
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except Exception:
            os.unlink(tmp)
            raise


def sort_alarms(alarms: Iterable[Alarm]) -> List[Alarm]:
    """Most future first."""
    return sorted(alarms, key=lambda a: a.scheduled_at, reverse=True)


class AlarmStore:
    """Loads and saves the whole alarm list under one key."""

    def __init__(self, kv: KeyValueStore, key: str = ALARMS_KEY):
        self.kv = kv
        self.key = key

    def load(self) -> List[Alarm]:
        records = self.kv.get(self.key)
        if records is None:
            return []
        if not isinstance(records, list):
            logger.warning("Ignoring stored %r: expected a list, got %s", self.key, type(records).__name__)
            return []

        alarms = []
        for record in records:
            try:
                alarms.append(Alarm.from_dict(record))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping invalid alarm entry: %r", e)
        return sort_alarms(alarms)

    def save(self, alarms: Iterable[Alarm]) -> None:
        self.kv.set(self.key, [a.to_dict() for a in sort_alarms(alarms)])


class AlarmBook:
    """
    The alarm list as the form edits it. Every change replaces the whole
    list, re-sorts it and persists it.
    """

    def __init__(self, store: AlarmStore):
        self.store = store
        self._alarms = store.load()

    @property
    def alarms(self) -> List[Alarm]:
        return list(self._alarms)

    def _replace(self, alarms: Iterable[Alarm]) -> None:
        self._alarms = sort_alarms(alarms)
        self.store.save(self._alarms)

    def create(
        self,
        name: Optional[str],
        date: Optional[date],
        time: Optional[time],
        warnings: Optional[Iterable[str]] = None,
    ) -> Alarm:
        alarm = Alarm.create(name, date, time, warnings)
        self._replace([alarm, *self._alarms])
        logger.info("Created alarm %s", alarm)
        return alarm

    def delete(self, alarm_id: str) -> bool:
        remaining = [a for a in self._alarms if a.id != alarm_id]
        if len(remaining) == len(self._alarms):
            return False
        self._replace(remaining)
        logger.info("Deleted alarm %s", alarm_id)
        return True

    def clear(self) -> None:
        self._replace([])
        logger.info("Deleted all alarms")
