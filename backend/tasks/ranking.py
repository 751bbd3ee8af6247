"""
Next-task ranking for the Study Tracker.

Picks the one incomplete task a student should work on next and explains
the choice in a short sentence.

Ranking Key:
-----------
1. Priority weight, descending (high=3, medium=2, low=1). Priority always
   dominates deadline proximity.
2. Whole days left until the deadline, ascending:

       days_left = max(0, floor((deadline - now) / 1 day))

   Overdue tasks clamp to 0 and tie with tasks due within the next 24
   hours; the sort is stable, so the first one encountered wins.

The reason string is computed independently of the clamped figure:
"Due today", "Overdue" or "Due in N day(s)", with
" and marked as high priority" appended for high-priority tasks.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .records import (
    SubjectRecord,
    TaskRecord,
    TaskSuggestion,
    priority_weight,
    subject_index,
    subject_name_for,
)


ONE_DAY = timedelta(days=1)
HIGH_PRIORITY_SUFFIX = " and marked as high priority"


def whole_days_until(deadline: datetime, now: datetime) -> int:
    """Floor of the number of days between now and the deadline (may be negative)."""
    return math.floor((deadline - now) / ONE_DAY)


def days_left(deadline: datetime, now: datetime) -> int:
    """Whole days left, with overdue tasks clamped to 0."""
    return max(0, whole_days_until(deadline, now))


def rank_tasks(tasks: Iterable[TaskRecord], now: Optional[datetime] = None) -> List[TaskRecord]:
    """
    Return the incomplete tasks ordered best-first.

    Completed tasks are dropped. The input order breaks remaining ties.
    """
    if now is None:
        now = datetime.now()

    incomplete = [task for task in tasks if not task.completed]
    incomplete.sort(key=lambda task: (
        -priority_weight(task.priority),
        days_left(task.deadline, now),
    ))
    return incomplete


def build_reason(task: TaskRecord, now: datetime) -> str:
    if task.deadline.date() == now.date():
        reason = "Due today"
    elif task.deadline < now:
        reason = "Overdue"
    else:
        days = whole_days_until(task.deadline, now)
        reason = f"Due in {days} day{'' if days == 1 else 's'}"

    if task.priority == 'high':
        reason += HIGH_PRIORITY_SUFFIX
    return reason


def suggest_next_task(
    tasks: Iterable[TaskRecord],
    subjects: Iterable[SubjectRecord],
    now: Optional[datetime] = None
) -> Optional[TaskSuggestion]:
    """
    Suggest the task to work on next.

    Args:
        tasks: One student's tasks (the caller scopes them)
        subjects: Subjects used to resolve the suggestion's subject name
        now: Reference time (defaults to the current local time)

    Returns:
        A TaskSuggestion, or None when there is no incomplete task.
    """
    if now is None:
        now = datetime.now()

    ranked = rank_tasks(tasks, now)
    if not ranked:
        return None

    top = ranked[0]
    return TaskSuggestion(
        task_id=top.id,
        title=top.title,
        reason=build_reason(top, now),
        subject_name=subject_name_for(top, subject_index(subjects)),
        time_estimate=top.time_estimate,
        deadline=top.deadline,
    )
