from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from .models import TriggerHandle, TriggerKind

logger = logging.getLogger(__name__)

RegistryListener = Callable[[str, Optional[TriggerHandle]], None]


class TriggerRegistry:
    """Process-lifetime map of alarm id to its active trigger handle.

    Starts empty on every launch; triggers left behind by a previous process
    are not rediscovered.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, TriggerHandle] = {}
        self._listeners: List[RegistryListener] = []

    def set(self, alarm_id: str, handle: TriggerHandle) -> None:
        self._handles[alarm_id] = handle
        self._notify(alarm_id, handle)

    def get(self, alarm_id: str) -> Optional[TriggerHandle]:
        return self._handles.get(alarm_id)

    def remove(self, alarm_id: str) -> Optional[TriggerHandle]:
        handle = self._handles.pop(alarm_id, None)
        if handle is not None:
            self._notify(alarm_id, None)
        return handle

    def remove_kind(self, kind: TriggerKind) -> List[str]:
        removed = [alarm_id for alarm_id, handle in self._handles.items() if handle.kind is kind]
        for alarm_id in removed:
            self.remove(alarm_id)
        return removed

    def items(self) -> Dict[str, TriggerHandle]:
        return dict(self._handles)

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __contains__(self, alarm_id: object) -> bool:
        return alarm_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def _notify(self, alarm_id: str, handle: Optional[TriggerHandle]) -> None:
        for listener in list(self._listeners):
            try:
                listener(alarm_id, handle)
            except Exception:
                logger.error("Registry listener failed for %s", alarm_id, exc_info=True)
