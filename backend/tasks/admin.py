from django.contrib import admin

from .models import Student, Subject, Task


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('username', 'full_name', 'field_of_study')
    search_fields = ('username', 'full_name')


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'student', 'color')
    list_filter = ('student',)


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('title', 'student', 'subject', 'type', 'priority', 'deadline', 'completed')
    list_filter = ('type', 'priority', 'completed')
    search_fields = ('title',)
