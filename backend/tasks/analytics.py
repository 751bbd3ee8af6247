"""
Analytics rollups: how tasks spread over subjects, and the last week's progress.
"""

import math
from collections import Counter
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .records import SubjectDistribution, SubjectRecord, TaskRecord, WeeklyProgress


DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WINDOW_DAYS = 7


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def subject_distribution(
    tasks: Iterable[TaskRecord],
    subjects: Iterable[SubjectRecord]
) -> List[SubjectDistribution]:
    """
    Share of tasks per subject, as whole percentages.

    The denominator is every task, completed or not, including tasks with
    no subject. Each percentage is rounded on its own, so the total may
    drift a point or two away from 100.
    """
    tasks = list(tasks)
    total = len(tasks)
    counts = Counter(task.subject_id for task in tasks if task.subject_id is not None)

    distribution = [
        SubjectDistribution(
            subject_id=subject.id,
            name=subject.name,
            color=subject.color,
            percentage=round_half_up(counts[subject.id] / total * 100) if total else 0,
        )
        for subject in subjects
    ]
    distribution.sort(key=lambda entry: entry.percentage, reverse=True)
    return distribution


def weekly_progress(
    tasks: Iterable[TaskRecord],
    today: Optional[date] = None
) -> List[WeeklyProgress]:
    """
    One entry per day for the 7 days ending today, oldest first.

    A task lands on the day of its deadline. Every task counts toward
    tasks_total; only completed tasks count toward tasks_completed and
    study_time. Deadlines outside the window are ignored.
    """
    if today is None:
        today = date.today()

    days = []
    for offset in range(WINDOW_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        days.append(WeeklyProgress(day=DAY_LABELS[day.weekday()], date=day))
    by_date = {entry.date: entry for entry in days}

    for task in tasks:
        entry = by_date.get(task.deadline.date())
        if entry is None:
            continue
        entry.tasks_total += 1
        if task.completed:
            entry.tasks_completed += 1
            entry.study_time += task.time_estimate

    return days
