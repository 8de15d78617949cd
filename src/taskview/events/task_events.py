from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .bus import Event


@dataclass(kw_only=True)
class TaskQueuedEvent(Event):
    task_id: str = ""
    task_name: str = ""
    priority: str = ""
    queue_time: Optional[datetime] = None


@dataclass(kw_only=True)
class TaskStartedEvent(Event):
    task_id: str = ""
    task_name: str = ""


@dataclass(kw_only=True)
class TaskCompletedEvent(Event):
    task_id: str = ""
    task_name: str = ""
    result: Any = None
    duration: float = 0.0


@dataclass(kw_only=True)
class TaskFailedEvent(Event):
    task_id: str = ""
    task_name: str = ""
    error: Optional[BaseException] = None
    duration: float = 0.0


@dataclass(kw_only=True)
class TaskCancelledEvent(Event):
    task_id: str = ""
    task_name: str = ""
    was_running: bool = False
