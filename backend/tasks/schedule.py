"""
Daily schedule builder for the Study Tracker.

Lays a day's tasks out as consecutive time blocks starting at 10:00 with a
30 minute break after each block. Times are tracked as fractional hours
(10.5 == 10:30) and rendered as "H:MM AM/PM" labels.

Ordering:
--------
Tasks due on the target date are ordered high priority first; tasks of
equal priority are ordered by deadline DESCENDING, so the one due later in
the day is scheduled first.

Completed tasks keep their place in the ordering but get no block and do
not move the cursor.
"""

import math
from datetime import date, datetime
from typing import Iterable, List, Optional

from .records import (
    DailySchedule,
    SubjectRecord,
    TaskRecord,
    TimeBlock,
    priority_weight,
    subject_index,
    subject_name_for,
)


DAY_START_HOUR = 10.0
BREAK_HOURS = 0.5


def _format_number(value: float) -> str:
    """Render a number the way a JavaScript template literal would."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value)).replace('e-0', 'e-')


def format_clock(hour: float) -> str:
    """
    Format a fractional hour as "H:MM AM/PM".

    The hour is not wrapped to a 12 hour dial (13.0 -> "13:00 PM") and
    non-zero minutes are not zero padded (10 + 5/60 -> "10:5 AM").
    """
    minutes = (hour % 1) * 60
    minutes_label = '00' if minutes == 0 else _format_number(minutes)
    meridiem = 'PM' if hour >= 12 else 'AM'
    return f"{math.floor(hour)}:{minutes_label} {meridiem}"


def tasks_due_on(tasks: Iterable[TaskRecord], target_date: date) -> List[TaskRecord]:
    """Select the tasks due on target_date, in schedule order."""
    selected = [task for task in tasks if task.deadline.date() == target_date]
    # Two stable passes: deadline descending, then priority high first.
    selected.sort(key=lambda task: task.deadline, reverse=True)
    selected.sort(key=lambda task: priority_weight(task.priority), reverse=True)
    return selected


def build_daily_schedule(
    tasks: Iterable[TaskRecord],
    subjects: Iterable[SubjectRecord],
    target_date: date,
    now: Optional[datetime] = None
) -> DailySchedule:
    """
    Build the time-block schedule for one day.

    Args:
        tasks: The student's tasks; only those due on target_date are used
        subjects: Subjects used to label each block
        target_date: Day to schedule (a datetime is truncated to its date)
        now: Reference time for the "current block" flag

    Returns:
        DailySchedule with blocks in build order.
    """
    if now is None:
        now = datetime.now()
    if isinstance(target_date, datetime):
        target_date = target_date.date()

    subjects_by_id = subject_index(subjects)
    is_today = target_date == now.date()
    current_hour = now.hour

    cursor = DAY_START_HOUR
    total_allocated = 0
    blocks: List[TimeBlock] = []

    for task in tasks_due_on(tasks, target_date):
        if task.completed:
            continue

        end = cursor + task.time_estimate / 60
        is_current = (
            is_today
            and math.floor(cursor) <= current_hour < math.floor(end)
        )

        blocks.append(TimeBlock(
            task_id=task.id,
            title=task.title,
            subject_name=subject_name_for(task, subjects_by_id),
            start_time=format_clock(cursor),
            end_time=format_clock(end),
            is_current=is_current,
        ))

        total_allocated += task.time_estimate
        cursor = end + BREAK_HOURS

    return DailySchedule(
        date=target_date.isoformat(),
        total_allocated=total_allocated,
        time_blocks=blocks,
    )
