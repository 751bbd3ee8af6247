"""
Per-student entry points that feed repository snapshots to the planning engine.
"""

from datetime import date, datetime
from typing import List, Optional, Tuple

from .analytics import subject_distribution, weekly_progress
from .ranking import suggest_next_task
from .records import DailySchedule, SubjectDistribution, TaskSuggestion, WeeklyProgress
from .repository import TaskRepository
from .schedule import build_daily_schedule
from .suggestions import SuggestionService, build_enricher


def generate_daily_schedule(
    repository: TaskRepository,
    student_id: int,
    target_date: date,
    now: Optional[datetime] = None
) -> DailySchedule:
    tasks = repository.get_tasks_by_date(student_id, target_date)
    subjects = repository.get_subjects(student_id)
    return build_daily_schedule(tasks, subjects, target_date, now)


def suggested_next_task(
    repository: TaskRepository,
    student_id: int,
    now: Optional[datetime] = None
) -> Optional[TaskSuggestion]:
    return suggest_next_task(
        repository.get_tasks(student_id),
        repository.get_subjects(student_id),
        now
    )


def enriched_next_task(
    repository: TaskRepository,
    student_id: int,
    service: Optional[SuggestionService] = None,
    now: Optional[datetime] = None
) -> Tuple[Optional[TaskSuggestion], str]:
    """Suggestion from the configured provider, falling back to ranking."""
    if service is None:
        service = SuggestionService(build_enricher())
    return service.suggest(
        repository.get_tasks(student_id),
        repository.get_subjects(student_id),
        now
    )


def student_subject_distribution(
    repository: TaskRepository,
    student_id: int
) -> List[SubjectDistribution]:
    return subject_distribution(
        repository.get_tasks(student_id),
        repository.get_subjects(student_id)
    )


def student_weekly_progress(
    repository: TaskRepository,
    student_id: int,
    today: Optional[date] = None
) -> List[WeeklyProgress]:
    return weekly_progress(repository.get_tasks(student_id), today)
