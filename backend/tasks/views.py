"""
API Views for the Study Tracker.

This module provides the REST API endpoints for students, subjects and
tasks, plus the planning endpoints: next-task suggestion, daily schedule
and analytics. Ids and dates are validated here, before anything reaches
the repository or the planning engine.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.response import Response
from rest_framework.request import Request
from rest_framework.throttling import AnonRateThrottle
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from .records import MAX_ID, ErrorCode
from .repository import DEFAULT_UPCOMING_LIMIT, get_repository
from .serializers import (
    StudentInputSerializer,
    SubjectInputSerializer,
    TaskInputSerializer,
    TaskUpdateSerializer,
    task_to_dict,
)
from .services import (
    enriched_next_task,
    generate_daily_schedule,
    student_subject_distribution,
    student_weekly_progress,
    suggested_next_task,
)
from .suggestions import SOURCE_RANKING


logger = logging.getLogger(__name__)

ID_PATTERN = re.compile(r'[0-9]+')


# ============================================
# RATE LIMITING CLASSES
# ============================================

class EnrichedSuggestionThrottle(AnonRateThrottle):
    """Rate limit for the provider-backed suggestion - 30 requests per minute."""
    rate = '30/min'

    def allow_request(self, request, view):
        if request.method != 'POST':
            return True
        return super().allow_request(request, view)


# ============================================
# REQUEST HELPERS
# ============================================

def error_response(code: ErrorCode, message: str, http_status: int, **extra) -> Response:
    body = {
        'success': False,
        'error_code': code.value,
        'message': message,
    }
    body.update(extra)
    return Response(body, status=http_status)


def invalid_id(label: str) -> Response:
    return error_response(
        ErrorCode.ERR_INVALID_ID,
        f"Invalid {label} ID",
        status.HTTP_400_BAD_REQUEST
    )


def not_found(label: str) -> Response:
    return error_response(
        ErrorCode.ERR_NOT_FOUND,
        f"{label} not found",
        status.HTTP_404_NOT_FOUND
    )


def parse_id(raw: str) -> Optional[int]:
    """
    Positive integer id from a URL segment, or None when malformed.

    Only ASCII digits are accepted and the value must fit the id column.
    """
    raw = str(raw).strip()
    if not ID_PATTERN.fullmatch(raw):
        return None
    value = int(raw)
    return value if 0 < value <= MAX_ID else None


def parse_target_date(raw: str) -> Optional[date]:
    """
    Calendar date from a URL segment.

    Accepts YYYY-MM-DD or a full ISO datetime (the time is ignored).
    """
    try:
        parsed = parse_date(raw)
        if parsed is not None:
            return parsed
        parsed_datetime = parse_datetime(raw)
    except ValueError:
        return None
    return parsed_datetime.date() if parsed_datetime else None


def subject_error(repository, student_id: int, subject_id: Optional[int]) -> Optional[Response]:
    """400 response when subject_id does not name one of the student's subjects."""
    if subject_id is None:
        return None
    subject = repository.get_subject(subject_id)
    if subject is None or subject.student_id != student_id:
        return error_response(
            ErrorCode.ERR_INVALID_INPUT,
            f"Subject {subject_id} does not belong to this student",
            status.HTTP_400_BAD_REQUEST,
            errors={'subject_id': ['Unknown subject']}
        )
    return None


def task_list_response(tasks) -> Response:
    now = datetime.now()
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'count': len(tasks),
        'tasks': [task_to_dict(task, now) for task in tasks],
    })


# ============================================
# STUDENTS & SUBJECTS
# ============================================

@extend_schema(
    summary="Create a student",
    request=StudentInputSerializer,
    responses={201: OpenApiTypes.OBJECT},
    tags=['Students']
)
@api_view(['POST'])
def create_student(request: Request) -> Response:
    """
    Create a student.

    POST /api/students/
    """
    serializer = StudentInputSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(
            ErrorCode.ERR_INVALID_INPUT,
            'Invalid student data',
            status.HTTP_400_BAD_REQUEST,
            errors=serializer.errors
        )

    repository = get_repository()
    data = serializer.validated_data
    if repository.get_student_by_username(data['username']):
        return error_response(
            ErrorCode.ERR_INVALID_INPUT,
            'Username already taken',
            status.HTTP_400_BAD_REQUEST,
            errors={'username': ['Username already taken']}
        )

    student = repository.create_student(
        username=data['username'],
        full_name=data['full_name'],
        field_of_study=data.get('field_of_study') or None,
    )
    logger.info("Student %s created", student.id)
    return Response(
        {
            'success': True,
            'error_code': ErrorCode.SUCCESS.value,
            'student': student.to_dict(),
        },
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    summary="Get a student",
    responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    tags=['Students']
)
@api_view(['GET'])
def student_detail(request: Request, student_id: str) -> Response:
    """
    GET /api/students/<id>/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    student = get_repository().get_student(sid)
    if student is None:
        return not_found('Student')

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'student': student.to_dict(),
    })


@extend_schema(
    summary="List or create a student's subjects",
    request=SubjectInputSerializer,
    responses={200: OpenApiTypes.OBJECT, 201: OpenApiTypes.OBJECT},
    tags=['Subjects']
)
@api_view(['GET', 'POST'])
def student_subjects(request: Request, student_id: str) -> Response:
    """
    GET  /api/students/<id>/subjects/
    POST /api/students/<id>/subjects/   {"name": "Physics", "color": "#a855f7"}
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    repository = get_repository()

    if request.method == 'GET':
        subjects = repository.get_subjects(sid)
        return Response({
            'success': True,
            'error_code': ErrorCode.SUCCESS.value,
            'count': len(subjects),
            'subjects': [subject.to_dict() for subject in subjects],
        })

    serializer = SubjectInputSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(
            ErrorCode.ERR_INVALID_INPUT,
            'Invalid subject data',
            status.HTTP_400_BAD_REQUEST,
            errors=serializer.errors
        )
    if repository.get_student(sid) is None:
        return not_found('Student')

    subject = repository.create_subject(
        name=serializer.validated_data['name'],
        student_id=sid,
        color=serializer.validated_data['color'],
    )
    return Response(
        {
            'success': True,
            'error_code': ErrorCode.SUCCESS.value,
            'subject': subject.to_dict(),
        },
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    summary="Get a subject",
    responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    tags=['Subjects']
)
@api_view(['GET'])
def subject_detail(request: Request, subject_id: str) -> Response:
    """
    GET /api/subjects/<id>/
    """
    sid = parse_id(subject_id)
    if sid is None:
        return invalid_id('subject')

    subject = get_repository().get_subject(sid)
    if subject is None:
        return not_found('Subject')

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'subject': subject.to_dict(),
    })


# ============================================
# TASKS
# ============================================

@extend_schema(
    summary="List or create a student's tasks",
    description="""
    GET lists every task of the student, earliest deadline first.
    POST creates a task; it always starts incomplete.
    """,
    request=TaskInputSerializer,
    responses={200: OpenApiTypes.OBJECT, 201: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET', 'POST'])
def student_tasks(request: Request, student_id: str) -> Response:
    """
    GET  /api/students/<id>/tasks/
    POST /api/students/<id>/tasks/

    Request Body:
    {
        "title": "Calculus Problem Set",
        "description": "Problems 1-15",      // Optional
        "subject_id": 4,                     // Optional
        "type": "assignment",
        "deadline": "2026-10-21T17:00:00",
        "time_estimate": 90,                 // minutes
        "priority": "medium"
    }
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    repository = get_repository()

    if request.method == 'GET':
        return task_list_response(repository.get_tasks(sid))

    serializer = TaskInputSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(
            ErrorCode.ERR_INVALID_INPUT,
            'Invalid task data',
            status.HTTP_400_BAD_REQUEST,
            errors=serializer.errors
        )
    if repository.get_student(sid) is None:
        return not_found('Student')

    data = serializer.validated_data
    problem = subject_error(repository, sid, data.get('subject_id'))
    if problem is not None:
        return problem

    task = repository.create_task(
        student_id=sid,
        title=data['title'],
        type=data['type'],
        deadline=data['deadline'],
        time_estimate=data['time_estimate'],
        priority=data['priority'],
        description=data.get('description'),
        subject_id=data.get('subject_id'),
    )
    logger.info("Task %s created for student %s", task.id, sid)
    return Response(
        {
            'success': True,
            'error_code': ErrorCode.SUCCESS.value,
            'task': task_to_dict(task),
        },
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    summary="Read, update or delete a task",
    description="PATCH changes only the supplied fields.",
    request=TaskUpdateSerializer,
    responses={200: OpenApiTypes.OBJECT, 204: None, 404: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET', 'PATCH', 'DELETE'])
def task_detail(request: Request, task_id: str) -> Response:
    """
    GET    /api/tasks/<id>/
    PATCH  /api/tasks/<id>/   {"completed": true}
    DELETE /api/tasks/<id>/
    """
    tid = parse_id(task_id)
    if tid is None:
        return invalid_id('task')

    repository = get_repository()

    if request.method == 'DELETE':
        if not repository.delete_task(tid):
            return not_found('Task')
        logger.info("Task %s deleted", tid)
        return Response(status=status.HTTP_204_NO_CONTENT)

    task = repository.get_task(tid)
    if task is None:
        return not_found('Task')

    if request.method == 'PATCH':
        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return error_response(
                ErrorCode.ERR_INVALID_INPUT,
                'Invalid task data',
                status.HTTP_400_BAD_REQUEST,
                errors=serializer.errors
            )
        changes = dict(serializer.validated_data)
        problem = subject_error(repository, task.student_id, changes.get('subject_id'))
        if problem is not None:
            return problem

        task = repository.update_task(tid, changes)
        if task is None:
            return not_found('Task')

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'task': task_to_dict(task),
    })


@extend_schema(
    summary="Tasks due on a date",
    description="Tasks due on the date, high priority first, later deadlines first within a priority.",
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def tasks_by_date(request: Request, student_id: str, date_str: str) -> Response:
    """
    GET /api/students/<id>/tasks/date/<YYYY-MM-DD>/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    target_date = parse_target_date(date_str)
    if target_date is None:
        return error_response(
            ErrorCode.ERR_INVALID_DATE,
            'Invalid date format',
            status.HTTP_400_BAD_REQUEST
        )

    return task_list_response(get_repository().get_tasks_by_date(sid, target_date))


@extend_schema(
    summary="Upcoming tasks",
    parameters=[
        OpenApiParameter('limit', OpenApiTypes.INT, description='Maximum tasks (default 10)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def upcoming_tasks(request: Request, student_id: str) -> Response:
    """
    Incomplete tasks due in the future, soonest first.

    GET /api/students/<id>/tasks/upcoming/?limit=5
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    limit = DEFAULT_UPCOMING_LIMIT
    raw_limit = request.query_params.get('limit')
    if raw_limit is not None:
        limit = parse_id(raw_limit)
        if limit is None:
            return error_response(
                ErrorCode.ERR_INVALID_INPUT,
                'limit must be a positive integer',
                status.HTTP_400_BAD_REQUEST
            )

    return task_list_response(get_repository().get_upcoming_tasks(sid, limit))


@extend_schema(
    summary="Tasks of one subject",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def tasks_by_subject(request: Request, student_id: str, subject_id: str) -> Response:
    """
    GET /api/students/<id>/tasks/subject/<subject_id>/
    """
    sid = parse_id(student_id)
    subject_pk = parse_id(subject_id)
    if sid is None or subject_pk is None:
        return invalid_id('student or subject')

    return task_list_response(get_repository().get_tasks_by_subject(sid, subject_pk))


# ============================================
# ANALYTICS
# ============================================

@extend_schema(
    summary="Subject distribution",
    description="Share of all tasks per subject, as rounded percentages.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Analytics']
)
@api_view(['GET'])
def subject_distribution_view(request: Request, student_id: str) -> Response:
    """
    GET /api/students/<id>/analytics/subject-distribution/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    distribution = student_subject_distribution(get_repository(), sid)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'distribution': [entry.to_dict() for entry in distribution],
    })


@extend_schema(
    summary="Weekly progress",
    description="Completed and total tasks per day for the last 7 days.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Analytics']
)
@api_view(['GET'])
def weekly_progress_view(request: Request, student_id: str) -> Response:
    """
    GET /api/students/<id>/analytics/weekly-progress/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    progress = student_weekly_progress(get_repository(), sid)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'days': [entry.to_dict() for entry in progress],
    })


# ============================================
# PLANNING
# ============================================

@extend_schema(
    summary="Suggest the next task",
    description="""
    GET ranks the student's incomplete tasks (priority, then days left).
    POST asks the configured language model first and falls back to the
    same ranking on any provider failure.
    """,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Planning']
)
@api_view(['GET', 'POST'])
@throttle_classes([EnrichedSuggestionThrottle])
def suggested_task(request: Request, student_id: str) -> Response:
    """
    GET  /api/students/<id>/suggestion/
    POST /api/students/<id>/suggestion/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    repository = get_repository()
    if request.method == 'POST':
        suggestion, source = enriched_next_task(repository, sid)
    else:
        suggestion, source = suggested_next_task(repository, sid), SOURCE_RANKING

    if suggestion is None:
        return Response({
            'success': True,
            'error_code': ErrorCode.NO_ELIGIBLE_TASKS.value,
            'message': 'No tasks available for suggestion',
            'suggestion': None,
        })

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'source': source,
        'suggestion': suggestion.to_dict(),
    })


@extend_schema(
    summary="Daily schedule",
    description="""
    Time blocks for the tasks due on the date, from 10:00 AM with a
    30 minute break between blocks. Completed tasks get no block.
    """,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    tags=['Planning']
)
@api_view(['GET'])
def daily_schedule(request: Request, student_id: str, date_str: str) -> Response:
    """
    GET /api/students/<id>/schedule/<YYYY-MM-DD>/
    """
    sid = parse_id(student_id)
    if sid is None:
        return invalid_id('student')

    target_date = parse_target_date(date_str)
    if target_date is None:
        return error_response(
            ErrorCode.ERR_INVALID_DATE,
            'Invalid date format',
            status.HTTP_400_BAD_REQUEST
        )

    schedule = generate_daily_schedule(get_repository(), sid, target_date)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'schedule': schedule.to_dict(),
    })


# ============================================
# INFO
# ============================================

@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Study Tracker API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'endpoints': {
            'POST /api/students/': 'Create a student',
            'GET /api/students/<id>/': 'Get a student',
            'GET|POST /api/students/<id>/subjects/': 'List or create subjects',
            'GET /api/subjects/<id>/': 'Get a subject',
            'GET|POST /api/students/<id>/tasks/': 'List or create tasks',
            'GET|PATCH|DELETE /api/tasks/<id>/': 'Read, update or delete a task',
            'GET /api/students/<id>/tasks/date/<date>/': 'Tasks due on a date',
            'GET /api/students/<id>/tasks/upcoming/': 'Upcoming incomplete tasks',
            'GET /api/students/<id>/tasks/subject/<subject_id>/': 'Tasks of one subject',
            'GET /api/students/<id>/analytics/subject-distribution/': 'Task share per subject',
            'GET /api/students/<id>/analytics/weekly-progress/': 'Last 7 days of progress',
            'GET /api/students/<id>/suggestion/': 'Next task by ranking',
            'POST /api/students/<id>/suggestion/': 'Next task by language model, ranking fallback',
            'GET /api/students/<id>/schedule/<date>/': 'Daily time-block schedule',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })
