from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Sequence

from .errors import StorageError
from .models import AlarmDefinition

logger = logging.getLogger(__name__)


class JsonAlarmStorage:
    """Persists alarm definitions as a JSON array in a single file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load_alarms(self) -> List[AlarmDefinition]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to load alarms from {self.path}: {exc}") from exc
        if not isinstance(payload, list):
            raise StorageError(f"Unexpected alarms payload in {self.path}")
        alarms: List[AlarmDefinition] = []
        for item in payload:
            try:
                alarms.append(AlarmDefinition.from_dict(item))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping alarm item due to parse error: %s", exc)
        return alarms

    async def save_alarms(self, alarms: Sequence[AlarmDefinition]) -> None:
        serializable = [a.to_dict() for a in alarms]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(serializable, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageError(f"Failed to save alarms to {self.path}: {exc}") from exc
        logger.debug("Saved %s alarms to %s", len(serializable), self.path)
