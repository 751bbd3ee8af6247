"""Derived task status shown alongside stored task fields."""

from datetime import datetime
from typing import Optional

from .records import TaskRecord


COMPLETED = "completed"
IN_PROGRESS = "in_progress"  # reserved: task start times are not tracked
NOT_STARTED = "not_started"
OVERDUE = "overdue"


def task_status(task: TaskRecord, now: Optional[datetime] = None) -> str:
    """A task is overdue once its deadline has passed on an earlier day."""
    if now is None:
        now = datetime.now()

    if task.completed:
        return COMPLETED
    if task.deadline < now and task.deadline.date() != now.date():
        return OVERDUE
    return NOT_STARTED
