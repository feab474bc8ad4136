"""Alarm scheduling and ringing engine."""

from .errors import CancellationUnsupportedError, NotFoundError, SchedulingError, StorageError
from .manager import AlarmManager
from .models import AlarmDefinition, CreateAlarmParams, TriggerHandle, TriggerKind
from .resolver import next_fire_time
