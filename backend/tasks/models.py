"""
Models for the Study Tracker.

Students own subjects and tasks. Deadlines are stored as naive datetimes
(the project runs with USE_TZ = False).
"""

from django.db import models
from django.core.validators import MinValueValidator

from .records import DEFAULT_SUBJECT_COLOR


class Student(models.Model):
    """
    A student using the tracker.

    Attributes:
        username: Unique handle
        full_name: Display name
        field_of_study: Optional major or programme
    """

    username = models.CharField(max_length=150, unique=True)
    full_name = models.CharField(max_length=255)
    field_of_study = models.CharField(max_length=255, null=True, blank=True)

    def __str__(self):
        return self.username


class Subject(models.Model):
    """A course or subject the student groups tasks under."""

    name = models.CharField(max_length=255)
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='subjects'
    )
    color = models.CharField(
        max_length=32,
        default=DEFAULT_SUBJECT_COLOR,
        help_text="Display color token, e.g. #4338ca"
    )

    def __str__(self):
        return self.name


class Task(models.Model):
    """
    An academic task with a deadline, priority and time estimate.

    Attributes:
        type: assignment, project, exam or study
        deadline: When the task is due (naive datetime)
        time_estimate: Expected minutes to complete (at least 1)
        priority: low, medium or high
        completed: Whether the task is done
        created_at: Set once at creation
    """

    TYPE_CHOICES = [
        ('assignment', 'Assignment'),
        ('project', 'Project'),
        ('exam', 'Exam'),
        ('study', 'Study'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]

    title = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    deadline = models.DateTimeField()
    time_estimate = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Estimated minutes to complete"
    )
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES)
    completed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['deadline', 'id']

    def __str__(self):
        return f"{self.title} ({self.priority})"
