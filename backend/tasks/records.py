"""
In-memory records shared by the planning engine and the repositories.

The ranking, scheduling and analytics functions work on plain dataclass
snapshots rather than ORM instances, so they can be exercised without a
database and stay free of side effects.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional


# ==================== Error Codes ====================

class ErrorCode(Enum):
    """Codes carried in every API envelope."""
    SUCCESS = "SUCCESS"
    NO_ELIGIBLE_TASKS = "NO_ELIGIBLE_TASKS"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_ID = "ERR_INVALID_ID"
    ERR_INVALID_DATE = "ERR_INVALID_DATE"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"


# ==================== Task Vocabulary ====================

TASK_TYPES = ('assignment', 'project', 'exam', 'study')
PRIORITIES = ('low', 'medium', 'high')

PRIORITY_WEIGHTS = {
    'high': 3,
    'medium': 2,
    'low': 1,
}

NO_SUBJECT = "No Subject"

# Largest value a BigAutoField id (and a query limit) may take.
MAX_ID = 2 ** 63 - 1
DEFAULT_SUBJECT_COLOR = "#4338ca"


def priority_weight(priority: str) -> int:
    """Numeric weight of a priority label (unknown labels weigh 0)."""
    return PRIORITY_WEIGHTS.get(priority, 0)


# ==================== Stored Entities ====================

@dataclass
class StudentRecord:
    id: int
    username: str
    full_name: str
    field_of_study: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'field_of_study': self.field_of_study,
        }


@dataclass
class SubjectRecord:
    id: int
    name: str
    student_id: int
    color: str = DEFAULT_SUBJECT_COLOR

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'student_id': self.student_id,
            'color': self.color,
        }


@dataclass
class TaskRecord:
    """
    A student's task as seen by the planning engine.

    Attributes:
        deadline: naive datetime; time of day matters for ranking and
            for the schedule tie-break
        time_estimate: minutes, always positive
    """
    id: int
    title: str
    student_id: int
    type: str
    deadline: datetime
    time_estimate: int
    priority: str
    description: Optional[str] = None
    subject_id: Optional[int] = None
    completed: bool = False
    created_at: Optional[datetime] = None


def subject_index(subjects) -> Dict[int, SubjectRecord]:
    """Map subject id -> subject for quick name lookups."""
    return {subject.id: subject for subject in subjects}


def subject_name_for(task: TaskRecord, subjects_by_id: Dict[int, SubjectRecord]) -> str:
    if task.subject_id is None:
        return NO_SUBJECT
    subject = subjects_by_id.get(task.subject_id)
    return subject.name if subject else NO_SUBJECT


# ==================== Derived Views ====================

@dataclass
class TaskSuggestion:
    """The single task recommended to work on next."""
    task_id: int
    title: str
    reason: str
    subject_name: str
    time_estimate: int
    deadline: datetime

    def to_dict(self) -> Dict:
        return {
            'task_id': self.task_id,
            'title': self.title,
            'reason': self.reason,
            'subject_name': self.subject_name,
            'time_estimate': self.time_estimate,
            'deadline': self.deadline.isoformat(),
        }


@dataclass
class TimeBlock:
    task_id: int
    title: str
    subject_name: str
    start_time: str
    end_time: str
    is_current: bool = False

    def to_dict(self) -> Dict:
        return {
            'task_id': self.task_id,
            'title': self.title,
            'subject_name': self.subject_name,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'is_current': self.is_current,
        }


@dataclass
class DailySchedule:
    date: str
    total_allocated: int = 0
    time_blocks: List[TimeBlock] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'date': self.date,
            'total_allocated': self.total_allocated,
            'time_blocks': [block.to_dict() for block in self.time_blocks],
        }


@dataclass
class SubjectDistribution:
    subject_id: int
    name: str
    color: str
    percentage: int

    def to_dict(self) -> Dict:
        return {
            'subject_id': self.subject_id,
            'name': self.name,
            'color': self.color,
            'percentage': self.percentage,
        }


@dataclass
class WeeklyProgress:
    day: str
    date: date
    tasks_completed: int = 0
    tasks_total: int = 0
    study_time: int = 0

    def to_dict(self) -> Dict:
        return {
            'day': self.day,
            'date': self.date.isoformat(),
            'tasks_completed': self.tasks_completed,
            'tasks_total': self.tasks_total,
            'study_time': self.study_time,
        }
