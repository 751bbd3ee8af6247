"""
Create a demo student with a few subjects and tasks.

    python manage.py seed_demo
"""

from datetime import datetime, timedelta

from django.core.management.base import BaseCommand

from tasks.repository import get_repository


DEMO_USERNAME = "demo_user"

DEMO_SUBJECTS = [
    ("Computer Science", "#4338ca"),
    ("Physics", "#a855f7"),
    ("English Literature", "#ec4899"),
    ("Mathematics", "#22c55e"),
]

# (subject index, title, description, type, days from now, minutes, priority)
DEMO_TASKS = [
    (0, "Complete Algorithm Assignment",
     "Implement quicksort algorithm and analyze its complexity.",
     "assignment", 0, 120, "high"),
    (1, "Study for Physics Exam",
     "Review chapters 5-7 on thermodynamics.",
     "exam", 3, 90, "medium"),
    (2, "Literature Review Notes",
     "Organize notes on Victorian-era literature.",
     "study", 5, 30, "low"),
    (3, "Calculus Problem Set",
     "Complete problems 1-15 from Chapter 4.",
     "assignment", 7, 90, "medium"),
]


class Command(BaseCommand):
    help = "Seed the configured repository with a demo student, subjects and tasks."

    def handle(self, *args, **options):
        repository = get_repository()

        existing = repository.get_student_by_username(DEMO_USERNAME)
        if existing is not None:
            self.stdout.write(f"Demo student already exists (id={existing.id})")
            return

        student = repository.create_student(
            username=DEMO_USERNAME,
            full_name="Alex Johnson",
            field_of_study="Computer Science",
        )
        subjects = [
            repository.create_subject(name=name, student_id=student.id, color=color)
            for name, color in DEMO_SUBJECTS
        ]

        now = datetime.now().replace(microsecond=0)
        for index, title, description, task_type, days, minutes, priority in DEMO_TASKS:
            repository.create_task(
                student_id=student.id,
                title=title,
                description=description,
                subject_id=subjects[index].id,
                type=task_type,
                deadline=now + timedelta(days=days),
                time_estimate=minutes,
                priority=priority,
            )

        self.stdout.write(self.style.SUCCESS(
            f"Created demo student {student.id} with {len(subjects)} subjects "
            f"and {len(DEMO_TASKS)} tasks"
        ))
