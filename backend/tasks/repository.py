"""
Task repository for the Study Tracker.

The planning engine only reads snapshots; everything that stores or changes
students, subjects and tasks goes through a TaskRepository. Two backings
are provided:

- InMemoryTaskRepository: dictionaries guarded by a lock, with a monotonic
  id counter per entity. Used by tests and the demo.
- DjangoTaskRepository: the ORM models, ids from the database.

The backing used by the API is chosen by STUDY_TRACKER['REPOSITORY'].
"""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime
from functools import lru_cache
from typing import Dict, List, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from .models import Student, Subject, Task
from .records import (
    DEFAULT_SUBJECT_COLOR,
    StudentRecord,
    SubjectRecord,
    TaskRecord,
)
from .schedule import tasks_due_on


logger = logging.getLogger(__name__)

UPDATABLE_TASK_FIELDS = (
    'title',
    'description',
    'subject_id',
    'type',
    'deadline',
    'time_estimate',
    'priority',
    'completed',
)

DEFAULT_UPCOMING_LIMIT = 10


class TaskRepository(ABC):
    """
    Storage contract used by the API and the planning services.

    Single lookups return None when the entity does not exist; collection
    queries return an empty list.
    """

    # Students

    @abstractmethod
    def get_student(self, student_id: int) -> Optional[StudentRecord]:
        ...

    @abstractmethod
    def get_student_by_username(self, username: str) -> Optional[StudentRecord]:
        ...

    @abstractmethod
    def create_student(
        self,
        username: str,
        full_name: str,
        field_of_study: Optional[str] = None
    ) -> StudentRecord:
        ...

    # Subjects

    @abstractmethod
    def get_subjects(self, student_id: int) -> List[SubjectRecord]:
        ...

    @abstractmethod
    def get_subject(self, subject_id: int) -> Optional[SubjectRecord]:
        ...

    @abstractmethod
    def create_subject(
        self,
        name: str,
        student_id: int,
        color: str = DEFAULT_SUBJECT_COLOR
    ) -> SubjectRecord:
        ...

    # Tasks

    @abstractmethod
    def get_tasks(self, student_id: int) -> List[TaskRecord]:
        """All tasks of a student, deadline ascending."""

    @abstractmethod
    def get_task(self, task_id: int) -> Optional[TaskRecord]:
        ...

    @abstractmethod
    def create_task(
        self,
        student_id: int,
        title: str,
        type: str,
        deadline: datetime,
        time_estimate: int,
        priority: str,
        description: Optional[str] = None,
        subject_id: Optional[int] = None
    ) -> TaskRecord:
        """Insert a task; it always starts incomplete and stamped with the current time."""

    @abstractmethod
    def update_task(self, task_id: int, changes: Dict) -> Optional[TaskRecord]:
        """Apply only the supplied fields; None when the task does not exist."""

    @abstractmethod
    def delete_task(self, task_id: int) -> bool:
        ...

    # Derived queries

    def get_tasks_by_date(self, student_id: int, target_date: date) -> List[TaskRecord]:
        """Tasks due on target_date, in schedule order."""
        return tasks_due_on(self.get_tasks(student_id), target_date)

    def get_upcoming_tasks(
        self,
        student_id: int,
        limit: int = DEFAULT_UPCOMING_LIMIT,
        now: Optional[datetime] = None
    ) -> List[TaskRecord]:
        """Incomplete tasks due after now, soonest first."""
        if now is None:
            now = datetime.now()
        upcoming = [
            task for task in self.get_tasks(student_id)
            if not task.completed and task.deadline > now
        ]
        return upcoming[:limit]

    def get_tasks_by_subject(self, student_id: int, subject_id: int) -> List[TaskRecord]:
        return [
            task for task in self.get_tasks(student_id)
            if task.subject_id == subject_id
        ]


def _changes_for_update(changes: Dict) -> Dict:
    return {key: value for key, value in changes.items() if key in UPDATABLE_TASK_FIELDS}


class InMemoryTaskRepository(TaskRepository):
    """Dictionary-backed repository; safe to share between threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._students: Dict[int, StudentRecord] = {}
        self._subjects: Dict[int, SubjectRecord] = {}
        self._tasks: Dict[int, TaskRecord] = {}
        self._student_ids = itertools.count(1)
        self._subject_ids = itertools.count(1)
        self._task_ids = itertools.count(1)

    def get_student(self, student_id):
        with self._lock:
            student = self._students.get(student_id)
            return replace(student) if student else None

    def get_student_by_username(self, username):
        with self._lock:
            for student in self._students.values():
                if student.username == username:
                    return replace(student)
        return None

    def create_student(self, username, full_name, field_of_study=None):
        with self._lock:
            student = StudentRecord(
                id=next(self._student_ids),
                username=username,
                full_name=full_name,
                field_of_study=field_of_study,
            )
            self._students[student.id] = student
        logger.debug("Created student %s (%s)", student.id, username)
        return replace(student)

    def get_subjects(self, student_id):
        with self._lock:
            return [
                replace(subject) for subject in self._subjects.values()
                if subject.student_id == student_id
            ]

    def get_subject(self, subject_id):
        with self._lock:
            subject = self._subjects.get(subject_id)
            return replace(subject) if subject else None

    def create_subject(self, name, student_id, color=DEFAULT_SUBJECT_COLOR):
        with self._lock:
            subject = SubjectRecord(
                id=next(self._subject_ids),
                name=name,
                student_id=student_id,
                color=color,
            )
            self._subjects[subject.id] = subject
        logger.debug("Created subject %s for student %s", subject.id, student_id)
        return replace(subject)

    def get_tasks(self, student_id):
        with self._lock:
            tasks = [
                replace(task) for task in self._tasks.values()
                if task.student_id == student_id
            ]
        tasks.sort(key=lambda task: task.deadline)
        return tasks

    def get_task(self, task_id):
        with self._lock:
            task = self._tasks.get(task_id)
            return replace(task) if task else None

    def create_task(self, student_id, title, type, deadline, time_estimate, priority,
                    description=None, subject_id=None):
        with self._lock:
            task = TaskRecord(
                id=next(self._task_ids),
                title=title,
                student_id=student_id,
                type=type,
                deadline=deadline,
                time_estimate=time_estimate,
                priority=priority,
                description=description,
                subject_id=subject_id,
                completed=False,
                created_at=datetime.now(),
            )
            self._tasks[task.id] = task
        logger.debug("Created task %s for student %s", task.id, student_id)
        return replace(task)

    def update_task(self, task_id, changes):
        with self._lock:
            existing = self._tasks.get(task_id)
            if existing is None:
                return None
            updated = replace(existing, **_changes_for_update(changes))
            self._tasks[task_id] = updated
        logger.debug("Updated task %s: %s", task_id, sorted(changes))
        return replace(updated)

    def delete_task(self, task_id):
        with self._lock:
            deleted = self._tasks.pop(task_id, None) is not None
        if deleted:
            logger.debug("Deleted task %s", task_id)
        return deleted


class DjangoTaskRepository(TaskRepository):
    """Repository backed by the Student, Subject and Task models."""

    @staticmethod
    def _student_record(student) -> StudentRecord:
        return StudentRecord(
            id=student.id,
            username=student.username,
            full_name=student.full_name,
            field_of_study=student.field_of_study,
        )

    @staticmethod
    def _subject_record(subject) -> SubjectRecord:
        return SubjectRecord(
            id=subject.id,
            name=subject.name,
            student_id=subject.student_id,
            color=subject.color,
        )

    @staticmethod
    def _task_record(task) -> TaskRecord:
        return TaskRecord(
            id=task.id,
            title=task.title,
            student_id=task.student_id,
            type=task.type,
            deadline=task.deadline,
            time_estimate=task.time_estimate,
            priority=task.priority,
            description=task.description,
            subject_id=task.subject_id,
            completed=task.completed,
            created_at=task.created_at,
        )

    def get_student(self, student_id):
        student = Student.objects.filter(pk=student_id).first()
        return self._student_record(student) if student else None

    def get_student_by_username(self, username):
        student = Student.objects.filter(username=username).first()
        return self._student_record(student) if student else None

    def create_student(self, username, full_name, field_of_study=None):
        student = Student.objects.create(
            username=username,
            full_name=full_name,
            field_of_study=field_of_study,
        )
        logger.debug("Created student %s (%s)", student.id, username)
        return self._student_record(student)

    def get_subjects(self, student_id):
        return [
            self._subject_record(subject)
            for subject in Subject.objects.filter(student_id=student_id).order_by('id')
        ]

    def get_subject(self, subject_id):
        subject = Subject.objects.filter(pk=subject_id).first()
        return self._subject_record(subject) if subject else None

    def create_subject(self, name, student_id, color=DEFAULT_SUBJECT_COLOR):
        subject = Subject.objects.create(name=name, student_id=student_id, color=color)
        logger.debug("Created subject %s for student %s", subject.id, student_id)
        return self._subject_record(subject)

    def get_tasks(self, student_id):
        return [
            self._task_record(task)
            for task in Task.objects.filter(student_id=student_id).order_by('deadline', 'id')
        ]

    def get_task(self, task_id):
        task = Task.objects.filter(pk=task_id).first()
        return self._task_record(task) if task else None

    def create_task(self, student_id, title, type, deadline, time_estimate, priority,
                    description=None, subject_id=None):
        task = Task.objects.create(
            student_id=student_id,
            title=title,
            type=type,
            deadline=deadline,
            time_estimate=time_estimate,
            priority=priority,
            description=description,
            subject_id=subject_id,
            completed=False,
        )
        logger.debug("Created task %s for student %s", task.id, student_id)
        return self._task_record(task)

    def update_task(self, task_id, changes):
        task = Task.objects.filter(pk=task_id).first()
        if task is None:
            return None

        fields = _changes_for_update(changes)
        for key, value in fields.items():
            setattr(task, key, value)
        if fields:
            task.save(update_fields=[
                'subject' if key == 'subject_id' else key for key in fields
            ])
        logger.debug("Updated task %s: %s", task_id, sorted(fields))
        return self._task_record(task)

    def delete_task(self, task_id):
        deleted, _ = Task.objects.filter(pk=task_id).delete()
        if deleted:
            logger.debug("Deleted task %s", task_id)
        return bool(deleted)

    def get_upcoming_tasks(self, student_id, limit=DEFAULT_UPCOMING_LIMIT, now=None):
        if now is None:
            now = datetime.now()
        queryset = Task.objects.filter(
            student_id=student_id,
            completed=False,
            deadline__gt=now,
        ).order_by('deadline', 'id')[:limit]
        return [self._task_record(task) for task in queryset]

    def get_tasks_by_subject(self, student_id, subject_id):
        queryset = Task.objects.filter(
            student_id=student_id,
            subject_id=subject_id,
        ).order_by('deadline', 'id')
        return [self._task_record(task) for task in queryset]


@lru_cache(maxsize=None)
def _load_repository(path: str) -> TaskRepository:
    return import_string(path)()


def get_repository() -> TaskRepository:
    """Return the configured repository (one instance per backing)."""
    return _load_repository(settings.STUDY_TRACKER['REPOSITORY'])
