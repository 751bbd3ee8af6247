"""
Serializers for the Study Tracker API.

Input serializers validate request bodies before anything reaches the
repository or the planning engine. Tasks are rendered with task_to_dict;
the other records carry their own to_dict().
"""

from datetime import datetime
from typing import Dict, Optional

from rest_framework import serializers

from .records import DEFAULT_SUBJECT_COLOR, MAX_ID, PRIORITIES, TASK_TYPES, TaskRecord
from .status import task_status


class StudentInputSerializer(serializers.Serializer):
    """Validates a new student."""

    username = serializers.CharField(max_length=150)
    full_name = serializers.CharField(max_length=255)
    field_of_study = serializers.CharField(
        max_length=255,
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None
    )

    def validate_username(self, value):
        """Ensure username is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Username cannot be empty")
        return value.strip()


class SubjectInputSerializer(serializers.Serializer):
    """Validates a new subject; the owner comes from the URL."""

    name = serializers.CharField(max_length=255)
    color = serializers.CharField(max_length=32, required=False, default=DEFAULT_SUBJECT_COLOR)

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Subject name cannot be empty")
        return value.strip()


class TaskInputSerializer(serializers.Serializer):
    """
    Validates a new task.

    completed and created_at are not accepted: new tasks always start
    incomplete and are stamped by the repository.
    """

    title = serializers.CharField(max_length=255)
    description = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True
    )
    subject_id = serializers.IntegerField(
        min_value=1,
        max_value=MAX_ID,
        required=False,
        allow_null=True
    )
    type = serializers.ChoiceField(choices=TASK_TYPES)
    deadline = serializers.DateTimeField()
    # PositiveIntegerField range
    time_estimate = serializers.IntegerField(min_value=1, max_value=2 ** 31 - 1)
    priority = serializers.ChoiceField(choices=PRIORITIES)

    def validate_title(self, value):
        """Ensure title is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty")
        return value.strip()


class TaskUpdateSerializer(TaskInputSerializer):
    """
    Validates a partial task update.

    Use with partial=True so validated_data holds only the supplied fields.
    """

    completed = serializers.BooleanField()


def task_to_dict(task: TaskRecord, now: Optional[datetime] = None) -> Dict:
    """Convert a TaskRecord to a dictionary for JSON responses."""
    return {
        'id': task.id,
        'title': task.title,
        'description': task.description,
        'student_id': task.student_id,
        'subject_id': task.subject_id,
        'type': task.type,
        'deadline': task.deadline.isoformat(),
        'time_estimate': task.time_estimate,
        'priority': task.priority,
        'completed': task.completed,
        'created_at': task.created_at.isoformat() if task.created_at else None,
        'status': task_status(task, now),
    }
