"""
URL configuration for the tasks app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    # Students & subjects
    path('students/', views.create_student, name='create-student'),
    path('students/<str:student_id>/', views.student_detail, name='student-detail'),
    path('students/<str:student_id>/subjects/', views.student_subjects, name='student-subjects'),
    path('subjects/<str:subject_id>/', views.subject_detail, name='subject-detail'),
    # Tasks
    path('students/<str:student_id>/tasks/', views.student_tasks, name='student-tasks'),
    path('students/<str:student_id>/tasks/upcoming/', views.upcoming_tasks, name='upcoming-tasks'),
    path('students/<str:student_id>/tasks/date/<str:date_str>/', views.tasks_by_date, name='tasks-by-date'),
    path('students/<str:student_id>/tasks/subject/<str:subject_id>/', views.tasks_by_subject, name='tasks-by-subject'),
    path('tasks/<str:task_id>/', views.task_detail, name='task-detail'),
    # Analytics
    path('students/<str:student_id>/analytics/subject-distribution/', views.subject_distribution_view, name='subject-distribution'),
    path('students/<str:student_id>/analytics/weekly-progress/', views.weekly_progress_view, name='weekly-progress'),
    # Planning
    path('students/<str:student_id>/suggestion/', views.suggested_task, name='suggested-task'),
    path('students/<str:student_id>/schedule/<str:date_str>/', views.daily_schedule, name='daily-schedule'),
]
