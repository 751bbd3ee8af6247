"""
Unit Tests for the Study Tracker.

Covers the planning engine (ranking, daily schedule, analytics, status),
both repository backings, the enriched suggestion fallback, and the API.
"""

from datetime import date, datetime, timedelta
from io import StringIO
from types import SimpleNamespace
from unittest import mock
import json
import threading

import anthropic
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase
from rest_framework import status

from .analytics import round_half_up, subject_distribution, weekly_progress
from .models import Student, Task
from .ranking import build_reason, days_left, rank_tasks, suggest_next_task
from .records import NO_SUBJECT, SubjectRecord, TaskRecord
from .repository import DjangoTaskRepository, InMemoryTaskRepository
from .schedule import build_daily_schedule, format_clock, tasks_due_on
from .services import enriched_next_task, generate_daily_schedule
from .status import COMPLETED, NOT_STARTED, OVERDUE, task_status
from .suggestions import (
    REASON_MAX_LENGTH,
    SOURCE_ENRICHED,
    SOURCE_RANKING,
    AnthropicEnricher,
    EnhancementUnavailable,
    SuggestionEnricher,
    SuggestionService,
    build_enricher,
    parse_enriched_suggestion,
)


NOW = datetime(2026, 10, 19, 9, 0)

TEST_SETTINGS = {
    'REPOSITORY': 'tasks.repository.DjangoTaskRepository',
    'ANTHROPIC_API_KEY': None,
    'SUGGESTION_MODEL': 'claude-3-haiku-20240307',
    'SUGGESTION_TIMEOUT': 1.0,
    'SUGGESTION_MAX_TOKENS': 128,
}


def make_task(task_id, **overrides):
    fields = {
        'id': task_id,
        'title': f'Task {task_id}',
        'student_id': 1,
        'type': 'assignment',
        'deadline': NOW + timedelta(days=3),
        'time_estimate': 60,
        'priority': 'medium',
    }
    fields.update(overrides)
    return TaskRecord(**fields)


SUBJECTS = [
    SubjectRecord(id=1, name='Physics', student_id=1, color='#a855f7'),
    SubjectRecord(id=2, name='Mathematics', student_id=1, color='#22c55e'),
]


class RankingTests(TestCase):
    """Tests for the next-task ranker."""

    def test_high_priority_due_in_three_days(self):
        """A lone high priority task names its days left and its priority."""
        task = make_task(1, priority='high', deadline=NOW + timedelta(days=3), subject_id=1)
        suggestion = suggest_next_task([task], SUBJECTS, NOW)

        self.assertEqual(suggestion.task_id, 1)
        self.assertEqual(suggestion.subject_name, 'Physics')
        self.assertIn('Due in 3 day', suggestion.reason)
        self.assertIn('marked as high priority', suggestion.reason)

    def test_priority_beats_deadline(self):
        """A high priority task due later outranks a low priority task due sooner."""
        urgent_low = make_task(1, priority='low', deadline=NOW + timedelta(hours=2))
        later_high = make_task(2, priority='high', deadline=NOW + timedelta(days=10))

        ranked = rank_tasks([urgent_low, later_high], NOW)
        self.assertEqual([task.id for task in ranked], [2, 1])

    def test_sooner_deadline_wins_within_priority(self):
        later = make_task(1, deadline=NOW + timedelta(days=6))
        sooner = make_task(2, deadline=NOW + timedelta(days=2))

        ranked = rank_tasks([later, sooner], NOW)
        self.assertEqual(ranked[0].id, 2)

    def test_completed_tasks_never_suggested(self):
        done = make_task(1, priority='high', completed=True)
        open_task = make_task(2, priority='low')

        suggestion = suggest_next_task([done, open_task], SUBJECTS, NOW)
        self.assertEqual(suggestion.task_id, 2)

    def test_no_incomplete_tasks_returns_none(self):
        self.assertIsNone(suggest_next_task([], SUBJECTS, NOW))
        self.assertIsNone(suggest_next_task([make_task(1, completed=True)], SUBJECTS, NOW))

    def test_overdue_ties_with_due_within_a_day(self):
        """Overdue clamps to zero days left, so input order breaks the tie."""
        overdue = make_task(1, deadline=NOW - timedelta(days=4))
        soon = make_task(2, deadline=NOW + timedelta(hours=20))

        self.assertEqual(days_left(overdue.deadline, NOW), 0)
        self.assertEqual(rank_tasks([overdue, soon], NOW)[0].id, 1)
        self.assertEqual(rank_tasks([soon, overdue], NOW)[0].id, 2)

    def test_reason_variants(self):
        self.assertEqual(
            build_reason(make_task(1, deadline=NOW - timedelta(hours=1)), NOW),
            'Due today'
        )
        self.assertEqual(
            build_reason(make_task(1, deadline=NOW - timedelta(days=2)), NOW),
            'Overdue'
        )
        self.assertEqual(
            build_reason(make_task(1, deadline=NOW + timedelta(days=1, hours=2)), NOW),
            'Due in 1 day'
        )
        self.assertEqual(
            build_reason(make_task(1, priority='high', deadline=NOW - timedelta(days=2)), NOW),
            'Overdue and marked as high priority'
        )

    def test_missing_subject_named_no_subject(self):
        suggestion = suggest_next_task([make_task(1, subject_id=99)], SUBJECTS, NOW)
        self.assertEqual(suggestion.subject_name, NO_SUBJECT)

    def test_due_tomorrow_within_a_day(self):
        """Due on the next calendar day but under 24 hours away: zero whole days."""
        task = make_task(1, deadline=NOW + timedelta(hours=20))

        self.assertNotEqual(task.deadline.date(), NOW.date())
        self.assertEqual(build_reason(task, NOW), 'Due in 0 days')


class ScheduleTests(TestCase):
    """Tests for the daily time-block schedule."""

    def setUp(self):
        self.day = date(2026, 10, 20)
        self.yesterday_now = datetime(2026, 10, 19, 15, 0)

    def at(self, hour, minute=0):
        return datetime(self.day.year, self.day.month, self.day.day, hour, minute)

    def test_single_two_hour_task(self):
        task = make_task(1, time_estimate=120, priority='high', deadline=self.at(17))
        schedule = build_daily_schedule([task], SUBJECTS, self.day, self.yesterday_now)

        self.assertEqual(schedule.date, '2026-10-20')
        self.assertEqual(schedule.total_allocated, 120)
        self.assertEqual(len(schedule.time_blocks), 1)
        self.assertEqual(schedule.time_blocks[0].start_time, '10:00 AM')
        self.assertEqual(schedule.time_blocks[0].end_time, '12:00 PM')

    def test_break_between_blocks(self):
        """60 then 30 minutes: a 30 minute gap separates the blocks."""
        first = make_task(1, time_estimate=60, deadline=self.at(18))
        second = make_task(2, time_estimate=30, deadline=self.at(9))
        schedule = build_daily_schedule([second, first], SUBJECTS, self.day, self.yesterday_now)

        blocks = schedule.time_blocks
        self.assertEqual([block.task_id for block in blocks], [1, 2])
        self.assertEqual((blocks[0].start_time, blocks[0].end_time), ('10:00 AM', '11:00 AM'))
        self.assertEqual((blocks[1].start_time, blocks[1].end_time), ('11:30 AM', '12:00 PM'))
        self.assertEqual(schedule.total_allocated, 90)

    def test_high_priority_scheduled_first(self):
        low = make_task(1, priority='low', deadline=self.at(23))
        high = make_task(2, priority='high', deadline=self.at(8))

        ordered = tasks_due_on([low, high], self.day)
        self.assertEqual([task.id for task in ordered], [2, 1])

    def test_later_deadline_first_within_priority(self):
        """Equal priority: the task due later in the day is scheduled first."""
        morning = make_task(1, deadline=self.at(9))
        evening = make_task(2, deadline=self.at(20))
        noon = make_task(3, deadline=self.at(12))

        ordered = tasks_due_on([morning, evening, noon], self.day)
        self.assertEqual([task.id for task in ordered], [2, 3, 1])

    def test_other_days_and_completed_tasks_excluded(self):
        other_day = make_task(1, deadline=self.at(12) + timedelta(days=1))
        done = make_task(2, deadline=self.at(12), completed=True, time_estimate=45)
        open_task = make_task(3, deadline=self.at(11), time_estimate=45)

        schedule = build_daily_schedule(
            [other_day, done, open_task], SUBJECTS, self.day, self.yesterday_now
        )
        self.assertEqual([block.task_id for block in schedule.time_blocks], [3])
        self.assertEqual(schedule.time_blocks[0].start_time, '10:00 AM')
        self.assertEqual(schedule.total_allocated, 45)

    def test_blocks_never_overlap(self):
        tasks = [
            make_task(i, time_estimate=estimate, deadline=self.at(8 + i))
            for i, estimate in enumerate([15, 45, 90, 120], start=1)
        ]
        schedule = build_daily_schedule(tasks, SUBJECTS, self.day, self.yesterday_now)

        self.assertEqual(len(schedule.time_blocks), 4)
        self.assertEqual(schedule.total_allocated, 270)
        # Latest deadline first: 120, 90, 45, 15 minutes
        self.assertEqual(
            [(b.start_time, b.end_time) for b in schedule.time_blocks],
            [
                ('10:00 AM', '12:00 PM'),
                ('12:30 PM', '14:00 PM'),
                ('14:30 PM', '15:15 PM'),
                ('15:45 PM', '16:00 PM'),
            ]
        )

    def test_empty_day(self):
        schedule = build_daily_schedule([], SUBJECTS, self.day, self.yesterday_now)
        self.assertEqual(schedule.total_allocated, 0)
        self.assertEqual(schedule.time_blocks, [])

    def test_current_block_flag(self):
        now = self.at(10, 30)
        first = make_task(1, time_estimate=120, deadline=self.at(18))
        second = make_task(2, time_estimate=60, deadline=self.at(9))

        blocks = build_daily_schedule([first, second], SUBJECTS, self.day, now).time_blocks
        self.assertTrue(blocks[0].is_current)
        self.assertFalse(blocks[1].is_current)

    def test_no_current_block_on_other_days(self):
        task = make_task(1, time_estimate=120, deadline=self.at(18))
        now = datetime(2026, 10, 19, 10, 30)

        blocks = build_daily_schedule([task], SUBJECTS, self.day, now).time_blocks
        self.assertFalse(blocks[0].is_current)

    def test_datetime_target_truncated_to_date(self):
        task = make_task(1, deadline=self.at(18))
        schedule = build_daily_schedule([task], SUBJECTS, self.at(23, 59), self.yesterday_now)
        self.assertEqual(schedule.date, '2026-10-20')
        self.assertEqual(len(schedule.time_blocks), 1)

    def test_format_clock(self):
        self.assertEqual(format_clock(10.0), '10:00 AM')
        self.assertEqual(format_clock(10.5), '10:30 AM')
        self.assertEqual(format_clock(11.75), '11:45 AM')
        self.assertEqual(format_clock(12.0), '12:00 PM')
        self.assertEqual(format_clock(13.0), '13:00 PM')
        self.assertEqual(format_clock(10.125), '10:7.5 AM')

    def test_minutes_rendered_raw(self):
        """Non-zero minutes keep their raw float value: no padding, no rounding."""
        five = make_task(1, time_estimate=5, deadline=self.at(18))
        twenty = make_task(2, time_estimate=20, deadline=self.at(18))

        block = build_daily_schedule([five], SUBJECTS, self.day, self.yesterday_now).time_blocks[0]
        self.assertEqual((block.start_time, block.end_time), ('10:00 AM', '10:5.0000000000000355 AM'))

        block = build_daily_schedule([twenty], SUBJECTS, self.day, self.yesterday_now).time_blocks[0]
        self.assertEqual((block.start_time, block.end_time), ('10:00 AM', '10:20.000000000000036 AM'))


class AnalyticsTests(TestCase):
    """Tests for subject distribution and weekly progress."""

    def test_single_subject_is_one_hundred_percent(self):
        tasks = [make_task(1, subject_id=1), make_task(2, subject_id=1)]
        distribution = subject_distribution(tasks, SUBJECTS[:1])

        self.assertEqual(len(distribution), 1)
        self.assertEqual(distribution[0].percentage, 100)

    def test_zero_tasks_gives_zero_percentages(self):
        distribution = subject_distribution([], SUBJECTS)
        self.assertEqual([entry.percentage for entry in distribution], [0, 0])

    def test_sorted_by_share_descending(self):
        tasks = [
            make_task(1, subject_id=1),
            make_task(2, subject_id=2),
            make_task(3, subject_id=2),
        ]
        distribution = subject_distribution(tasks, SUBJECTS)

        self.assertEqual([entry.name for entry in distribution], ['Mathematics', 'Physics'])
        self.assertEqual([entry.percentage for entry in distribution], [67, 33])

    def test_tasks_without_subject_count_in_total(self):
        tasks = [make_task(1, subject_id=1), make_task(2)]
        distribution = subject_distribution(tasks, SUBJECTS[:1])
        self.assertEqual(distribution[0].percentage, 50)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(33.3), 33)

    def test_weekly_progress_window(self):
        today = date(2026, 10, 19)  # a Monday
        tasks = [
            make_task(1, deadline=datetime(2026, 10, 19, 14), completed=True, time_estimate=60),
            make_task(2, deadline=datetime(2026, 10, 19, 18)),
            make_task(3, deadline=datetime(2026, 10, 17, 12), completed=True, time_estimate=45),
            make_task(4, deadline=datetime(2026, 10, 1, 12), completed=True),
            make_task(5, deadline=datetime(2026, 10, 25, 12)),
        ]
        progress = weekly_progress(tasks, today)

        self.assertEqual(len(progress), 7)
        self.assertEqual(progress[0].date, date(2026, 10, 13))
        self.assertEqual(progress[0].day, 'Tue')
        self.assertEqual(progress[-1].day, 'Mon')

        self.assertEqual(progress[-1].tasks_total, 2)
        self.assertEqual(progress[-1].tasks_completed, 1)
        self.assertEqual(progress[-1].study_time, 60)

        saturday = progress[4]
        self.assertEqual(saturday.day, 'Sat')
        self.assertEqual((saturday.tasks_total, saturday.study_time), (1, 45))

        self.assertEqual(sum(entry.tasks_total for entry in progress), 3)

    def test_weekly_progress_empty(self):
        progress = weekly_progress([], date(2026, 10, 19))
        self.assertEqual(len(progress), 7)
        self.assertTrue(all(entry.tasks_total == 0 for entry in progress))


class StatusTests(TestCase):
    """Tests for the derived task status."""

    def test_completed(self):
        task = make_task(1, completed=True, deadline=NOW - timedelta(days=3))
        self.assertEqual(task_status(task, NOW), COMPLETED)

    def test_overdue_from_an_earlier_day(self):
        task = make_task(1, deadline=NOW - timedelta(days=1))
        self.assertEqual(task_status(task, NOW), OVERDUE)

    def test_earlier_today_is_not_overdue(self):
        task = make_task(1, deadline=NOW - timedelta(hours=2))
        self.assertEqual(task_status(task, NOW), NOT_STARTED)

    def test_future(self):
        self.assertEqual(task_status(make_task(1), NOW), NOT_STARTED)


class InMemoryRepositoryTests(TestCase):
    """Tests for the dictionary-backed repository."""

    def setUp(self):
        self.repository = InMemoryTaskRepository()
        self.student = self.repository.create_student('sam', 'Sam Lee')
        self.subject = self.repository.create_subject('Physics', self.student.id, '#a855f7')

    def create(self, **overrides):
        fields = {
            'student_id': self.student.id,
            'title': 'Lab report',
            'type': 'assignment',
            'deadline': NOW + timedelta(days=2),
            'time_estimate': 60,
            'priority': 'medium',
        }
        fields.update(overrides)
        return self.repository.create_task(**fields)

    def test_ids_are_assigned_in_order(self):
        first = self.create()
        second = self.create()
        self.assertEqual(second.id, first.id + 1)

    def test_new_tasks_start_incomplete(self):
        task = self.create()
        self.assertFalse(task.completed)
        self.assertIsNotNone(task.created_at)

    def test_partial_update_changes_only_given_fields(self):
        task = self.create(subject_id=self.subject.id)
        updated = self.repository.update_task(task.id, {'completed': True})

        self.assertTrue(updated.completed)
        self.assertEqual(updated.title, task.title)
        self.assertEqual(updated.deadline, task.deadline)
        self.assertEqual(updated.subject_id, self.subject.id)

    def test_update_ignores_unknown_fields(self):
        task = self.create()
        updated = self.repository.update_task(task.id, {'student_id': 42, 'title': 'Renamed'})
        self.assertEqual(updated.student_id, self.student.id)
        self.assertEqual(updated.title, 'Renamed')

    def test_missing_entities(self):
        self.assertIsNone(self.repository.get_student(999))
        self.assertIsNone(self.repository.get_subject(999))
        self.assertIsNone(self.repository.get_task(999))
        self.assertIsNone(self.repository.update_task(999, {'title': 'x'}))
        self.assertFalse(self.repository.delete_task(999))
        self.assertEqual(self.repository.get_tasks(999), [])

    def test_delete(self):
        task = self.create()
        self.assertTrue(self.repository.delete_task(task.id))
        self.assertIsNone(self.repository.get_task(task.id))
        self.assertFalse(self.repository.delete_task(task.id))

    def test_concurrent_reads_during_writes(self):
        """Readers never see a dictionary mid-resize while a writer inserts."""
        errors = []

        def writer():
            for _ in range(2000):
                self.create()

        def reader():
            while thread.is_alive():
                try:
                    self.repository.get_tasks(self.student.id)
                    self.repository.get_subjects(self.student.id)
                    self.repository.get_student_by_username('sam')
                except RuntimeError as exc:
                    errors.append(exc)
                    return

        thread = threading.Thread(target=writer)
        readers = [threading.Thread(target=reader) for _ in range(2)]
        thread.start()
        for r in readers:
            r.start()
        thread.join()
        for r in readers:
            r.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.repository.get_tasks(self.student.id)), 2000)

    def test_returned_records_are_copies(self):
        task = self.create()
        task.title = 'Changed locally'
        self.assertEqual(self.repository.get_task(task.id).title, 'Lab report')

    def test_tasks_ordered_by_deadline(self):
        late = self.create(deadline=NOW + timedelta(days=5))
        early = self.create(deadline=NOW + timedelta(days=1))
        self.assertEqual([t.id for t in self.repository.get_tasks(self.student.id)], [early.id, late.id])

    def test_upcoming_tasks(self):
        self.create(deadline=NOW - timedelta(days=1))
        done = self.create(deadline=NOW + timedelta(days=1))
        self.repository.update_task(done.id, {'completed': True})
        soon = self.create(deadline=NOW + timedelta(days=2))
        later = self.create(deadline=NOW + timedelta(days=4))

        upcoming = self.repository.get_upcoming_tasks(self.student.id, limit=10, now=NOW)
        self.assertEqual([t.id for t in upcoming], [soon.id, later.id])
        self.assertEqual(len(self.repository.get_upcoming_tasks(self.student.id, limit=1, now=NOW)), 1)

    def test_tasks_by_date_and_subject(self):
        day = date(2026, 10, 22)
        morning = self.create(deadline=datetime(2026, 10, 22, 9), subject_id=self.subject.id)
        evening = self.create(deadline=datetime(2026, 10, 22, 20))
        self.create(deadline=datetime(2026, 10, 23, 9))

        by_date = self.repository.get_tasks_by_date(self.student.id, day)
        self.assertEqual([t.id for t in by_date], [evening.id, morning.id])

        by_subject = self.repository.get_tasks_by_subject(self.student.id, self.subject.id)
        self.assertEqual([t.id for t in by_subject], [morning.id])

    def test_generate_daily_schedule_service(self):
        self.create(deadline=datetime(2026, 10, 22, 9), time_estimate=120, subject_id=self.subject.id)
        schedule = generate_daily_schedule(
            self.repository, self.student.id, date(2026, 10, 22), now=NOW
        )
        self.assertEqual(schedule.total_allocated, 120)
        self.assertEqual(schedule.time_blocks[0].subject_name, 'Physics')


class DjangoRepositoryTests(TestCase):
    """Tests for the ORM-backed repository."""

    def setUp(self):
        self.repository = DjangoTaskRepository()
        self.student = self.repository.create_student('ana', 'Ana Ruiz', 'Biology')
        self.subject = self.repository.create_subject('Chemistry', self.student.id)

    def test_create_and_fetch(self):
        task = self.repository.create_task(
            student_id=self.student.id,
            title='Titration lab',
            type='project',
            deadline=NOW + timedelta(days=1),
            time_estimate=90,
            priority='high',
            subject_id=self.subject.id,
        )
        fetched = self.repository.get_task(task.id)

        self.assertEqual(fetched.title, 'Titration lab')
        self.assertEqual(fetched.subject_id, self.subject.id)
        self.assertFalse(fetched.completed)
        self.assertEqual(Task.objects.count(), 1)

    def test_update_subject_and_completion(self):
        other = self.repository.create_subject('Biology', self.student.id)
        task = self.repository.create_task(
            student_id=self.student.id,
            title='Reading',
            type='study',
            deadline=NOW + timedelta(days=1),
            time_estimate=30,
            priority='low',
            subject_id=self.subject.id,
        )
        updated = self.repository.update_task(task.id, {'subject_id': other.id, 'completed': True})

        self.assertEqual(updated.subject_id, other.id)
        self.assertTrue(updated.completed)
        self.assertEqual(self.repository.get_task(task.id).subject_id, other.id)

    def test_upcoming_excludes_past_and_completed(self):
        for days in (-1, 1, 2):
            self.repository.create_task(
                student_id=self.student.id,
                title=f'Due {days}',
                type='study',
                deadline=NOW + timedelta(days=days),
                time_estimate=30,
                priority='low',
            )
        upcoming = self.repository.get_upcoming_tasks(self.student.id, now=NOW)
        self.assertEqual([t.title for t in upcoming], ['Due 1', 'Due 2'])

    def test_lookup_by_username(self):
        self.assertEqual(self.repository.get_student_by_username('ana').id, self.student.id)
        self.assertIsNone(self.repository.get_student_by_username('nobody'))


class FakeEnricher(SuggestionEnricher):
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = 0

    def complete(self, system, prompt):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.answer


class SuggestionServiceTests(TestCase):
    """Tests for the enriched suggestion and its ranking fallback."""

    def setUp(self):
        self.tasks = [
            make_task(1, priority='high', subject_id=1, title='Physics lab'),
            make_task(2, priority='low', subject_id=2, title='Calculus set'),
            make_task(3, priority='medium', completed=True),
        ]

    def test_enriched_answer_used(self):
        answer = (
            '```json\n'
            '{"taskId": 2, "title": "Something else", "reason": "Keep maths moving",'
            ' "subjectName": "Art", "timeEstimate": 999}\n'
            '```'
        )
        suggestion, source = SuggestionService(FakeEnricher(answer)).suggest(self.tasks, SUBJECTS, NOW)

        self.assertEqual(source, SOURCE_ENRICHED)
        self.assertEqual(suggestion.task_id, 2)
        self.assertEqual(suggestion.reason, 'Keep maths moving')
        self.assertEqual(suggestion.title, 'Calculus set')
        self.assertEqual(suggestion.subject_name, 'Mathematics')
        self.assertEqual(suggestion.time_estimate, 60)

    def test_invalid_json_falls_back_to_ranking(self):
        service = SuggestionService(FakeEnricher('I think you should do the lab.'))
        suggestion, source = service.suggest(self.tasks, SUBJECTS, NOW)

        self.assertEqual(source, SOURCE_RANKING)
        self.assertEqual(suggestion.task_id, 1)

    def test_unknown_or_completed_task_falls_back(self):
        for task_id in (42, 3):
            answer = json.dumps({'taskId': task_id, 'reason': 'Because'})
            suggestion, source = SuggestionService(FakeEnricher(answer)).suggest(self.tasks, SUBJECTS, NOW)
            self.assertEqual(source, SOURCE_RANKING)
            self.assertEqual(suggestion.task_id, 1)

    def test_missing_reason_falls_back(self):
        answer = json.dumps({'taskId': 2, 'reason': '   '})
        _, source = SuggestionService(FakeEnricher(answer)).suggest(self.tasks, SUBJECTS, NOW)
        self.assertEqual(source, SOURCE_RANKING)

    def test_provider_failure_falls_back(self):
        enricher = FakeEnricher(error=EnhancementUnavailable('timeout'))
        suggestion, source = SuggestionService(enricher).suggest(self.tasks, SUBJECTS, NOW)

        self.assertEqual(enricher.calls, 1)
        self.assertEqual(source, SOURCE_RANKING)
        self.assertEqual(suggestion.reason, 'Due in 3 days and marked as high priority')

    def test_unexpected_enricher_error_falls_back(self):
        """An enricher raising outside its contract still yields the ranked pick."""
        enricher = FakeEnricher(error=ValueError('broken client'))

        with self.assertLogs('tasks.suggestions', level='ERROR'):
            suggestion, source = SuggestionService(enricher).suggest(self.tasks, SUBJECTS, NOW)

        self.assertEqual(source, SOURCE_RANKING)
        self.assertEqual(suggestion.task_id, 1)

    def test_no_incomplete_tasks_skips_provider(self):
        enricher = FakeEnricher('{"taskId": 3, "reason": "x"}')
        suggestion, source = SuggestionService(enricher).suggest([self.tasks[2]], SUBJECTS, NOW)

        self.assertIsNone(suggestion)
        self.assertEqual(source, SOURCE_RANKING)
        self.assertEqual(enricher.calls, 0)

    def test_without_enricher_uses_ranking(self):
        suggestion, source = SuggestionService().suggest(self.tasks, SUBJECTS, NOW)
        self.assertEqual((suggestion.task_id, source), (1, SOURCE_RANKING))

    def test_reason_is_truncated(self):
        answer = json.dumps({'taskId': '2', 'reason': 'x' * 300})
        suggestion = parse_enriched_suggestion(
            answer, {task.id: task for task in self.tasks[:2]}, {s.id: s for s in SUBJECTS}
        )
        self.assertEqual(len(suggestion.reason), REASON_MAX_LENGTH)

    def test_non_object_answer_rejected(self):
        with self.assertRaises(EnhancementUnavailable):
            parse_enriched_suggestion('[1, 2]', {1: self.tasks[0]}, {})

    def test_anthropic_errors_become_unavailable(self):
        enricher = AnthropicEnricher(api_key='test-key', model='test-model')
        with mock.patch.object(
            enricher.client.messages, 'create', side_effect=anthropic.AnthropicError('boom')
        ):
            with self.assertRaises(EnhancementUnavailable):
                enricher.complete('system', 'prompt')

    def test_anthropic_text_blocks_joined(self):
        enricher = AnthropicEnricher(api_key='test-key', model='test-model')
        message = SimpleNamespace(content=[
            SimpleNamespace(type='text', text='{"taskId": 1,'),
            SimpleNamespace(type='text', text=' "reason": "Lab first"}'),
        ])
        with mock.patch.object(enricher.client.messages, 'create', return_value=message):
            self.assertEqual(enricher.complete('system', 'prompt'), '{"taskId": 1, "reason": "Lab first"}')

    @override_settings(STUDY_TRACKER=TEST_SETTINGS)
    def test_no_api_key_means_no_enricher(self):
        self.assertIsNone(build_enricher())

    def test_enriched_next_task_service(self):
        repository = InMemoryTaskRepository()
        student = repository.create_student('kim', 'Kim Park')
        task = repository.create_task(
            student_id=student.id,
            title='Essay draft',
            type='assignment',
            deadline=NOW + timedelta(days=1),
            time_estimate=45,
            priority='medium',
        )
        answer = json.dumps({'taskId': task.id, 'reason': 'Due tomorrow'})
        service = SuggestionService(FakeEnricher(answer))

        suggestion, source = enriched_next_task(repository, student.id, service=service, now=NOW)
        self.assertEqual((suggestion.task_id, source), (task.id, SOURCE_ENRICHED))
        self.assertEqual(suggestion.subject_name, NO_SUBJECT)


@override_settings(STUDY_TRACKER=TEST_SETTINGS)
class APIEndpointTests(APITestCase):
    """Tests for the API endpoints."""

    def setUp(self):
        response = self.post('/api/students/', {
            'username': 'alex',
            'full_name': 'Alex Johnson',
            'field_of_study': 'Computer Science',
        })
        self.student_id = response.data['student']['id']
        response = self.post(f'/api/students/{self.student_id}/subjects/', {
            'name': 'Physics',
            'color': '#a855f7',
        })
        self.subject_id = response.data['subject']['id']

    def post(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def patch(self, url, data):
        return self.client.patch(url, data=json.dumps(data), content_type='application/json')

    def create_task(self, **overrides):
        data = {
            'title': 'Physics problem set',
            'type': 'assignment',
            'deadline': (datetime.now() + timedelta(days=3)).replace(microsecond=0).isoformat(),
            'time_estimate': 60,
            'priority': 'medium',
        }
        data.update(overrides)
        return self.post(f'/api/students/{self.student_id}/tasks/', data)

    def test_create_student_rejects_duplicate_username(self):
        response = self.post('/api/students/', {'username': 'alex', 'full_name': 'Someone Else'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_INPUT')

    def test_student_detail(self):
        response = self.client.get(f'/api/students/{self.student_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['student']['username'], 'alex')

    def test_malformed_ids_rejected(self):
        for url in ('/api/students/abc/', '/api/students/0/', '/api/tasks/-4/', '/api/subjects/1.5/'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, url)
            self.assertEqual(response.data['error_code'], 'ERR_INVALID_ID')

    def test_non_ascii_and_oversized_ids_rejected(self):
        """Unicode digits and ids beyond the id column range are malformed."""
        huge = '9' * 30
        for url in ('/api/students/%C2%B2/', f'/api/students/{huge}/', f'/api/tasks/{huge}/'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, url)
            self.assertEqual(response.data['error_code'], 'ERR_INVALID_ID')

    def test_oversized_subject_id_in_body_rejected(self):
        response = self.create_task(subject_id=int('9' * 30))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('subject_id', response.data['errors'])

    def test_unknown_entities_not_found(self):
        for url in ('/api/students/999/', '/api/subjects/999/', '/api/tasks/999/'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, url)
            self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')

    def test_create_task(self):
        response = self.create_task(subject_id=self.subject_id)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        task = response.data['task']
        self.assertFalse(task['completed'])
        self.assertEqual(task['subject_id'], self.subject_id)
        self.assertEqual(task['status'], 'not_started')

    def test_create_task_ignores_completed_flag(self):
        response = self.create_task(completed=True)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['task']['completed'])

    def test_create_task_invalid_input(self):
        response = self.create_task(title='   ', time_estimate=0, priority='urgent')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('time_estimate', response.data['errors'])
        self.assertIn('priority', response.data['errors'])

    def test_create_task_for_unknown_student(self):
        response = self.post('/api/students/999/tasks/', {
            'title': 'Orphan',
            'type': 'study',
            'deadline': '2030-01-15T12:00:00',
            'time_estimate': 30,
            'priority': 'low',
        })
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_task_with_foreign_subject(self):
        other = Student.objects.create(username='other', full_name='Other Student')
        response = self.post(f'/api/students/{other.id}/subjects/', {'name': 'History'})
        foreign_subject = response.data['subject']['id']

        response = self.create_task(subject_id=foreign_subject)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_updates_only_given_fields(self):
        task = self.create_task(title='Read chapter 4').data['task']

        response = self.patch(f"/api/tasks/{task['id']}/", {'completed': True})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['task']['completed'])
        self.assertEqual(response.data['task']['title'], 'Read chapter 4')
        self.assertEqual(response.data['task']['priority'], 'medium')
        self.assertEqual(response.data['task']['status'], 'completed')

    def test_patch_rejects_invalid_value(self):
        task = self.create_task().data['task']
        response = self.patch(f"/api/tasks/{task['id']}/", {'priority': 'urgent'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_task(self):
        task = self.create_task().data['task']

        response = self.client.delete(f"/api/tasks/{task['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.delete(f"/api/tasks/{task['id']}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_tasks(self):
        self.create_task(title='Second', deadline='2030-01-16T12:00:00')
        self.create_task(title='First', deadline='2030-01-15T12:00:00')

        response = self.client.get(f'/api/students/{self.student_id}/tasks/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual([t['title'] for t in response.data['tasks']], ['First', 'Second'])

    def test_tasks_by_date(self):
        self.create_task(title='Morning', deadline='2030-01-15T09:00:00')
        self.create_task(title='Evening', deadline='2030-01-15T20:00:00')
        self.create_task(title='Next day', deadline='2030-01-16T09:00:00')

        response = self.client.get(f'/api/students/{self.student_id}/tasks/date/2030-01-15/')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['Evening', 'Morning'])

    def test_invalid_date_rejected(self):
        for date_str in ('not-a-date', '2030-13-45'):
            response = self.client.get(f'/api/students/{self.student_id}/schedule/{date_str}/')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error_code'], 'ERR_INVALID_DATE')

    def test_upcoming_tasks_limit(self):
        self.create_task(title='A')
        self.create_task(title='B')

        response = self.client.get(f'/api/students/{self.student_id}/tasks/upcoming/?limit=1')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/students/{self.student_id}/tasks/upcoming/?limit=zero')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upcoming_tasks_oversized_limit(self):
        self.create_task(title='A')

        response = self.client.get(
            f'/api/students/{self.student_id}/tasks/upcoming/?limit={"9" * 30}'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_INPUT')

        response = self.client.get(f'/api/students/{self.student_id}/tasks/upcoming/?limit=%C2%B2')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tasks_by_subject(self):
        self.create_task(title='Tagged', subject_id=self.subject_id)
        self.create_task(title='Untagged')

        response = self.client.get(
            f'/api/students/{self.student_id}/tasks/subject/{self.subject_id}/'
        )
        self.assertEqual([t['title'] for t in response.data['tasks']], ['Tagged'])

    def test_daily_schedule(self):
        self.create_task(title='Long', deadline='2030-01-15T18:00:00', time_estimate=60)
        self.create_task(title='Short', deadline='2030-01-15T09:00:00', time_estimate=30)

        response = self.client.get(f'/api/students/{self.student_id}/schedule/2030-01-15/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        schedule = response.data['schedule']
        self.assertEqual(schedule['date'], '2030-01-15')
        self.assertEqual(schedule['total_allocated'], 90)
        self.assertEqual(
            [(b['title'], b['start_time'], b['end_time']) for b in schedule['time_blocks']],
            [('Long', '10:00 AM', '11:00 AM'), ('Short', '11:30 AM', '12:00 PM')]
        )

    def test_suggestion_with_no_tasks(self):
        response = self.client.get(f'/api/students/{self.student_id}/suggestion/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['error_code'], 'NO_ELIGIBLE_TASKS')
        self.assertIsNone(response.data['suggestion'])

    def test_suggestion_by_ranking(self):
        self.create_task(title='Low', priority='low')
        self.create_task(title='High', priority='high', subject_id=self.subject_id)

        response = self.client.get(f'/api/students/{self.student_id}/suggestion/')
        self.assertEqual(response.data['source'], 'ranking')
        self.assertEqual(response.data['suggestion']['title'], 'High')
        self.assertEqual(response.data['suggestion']['subject_name'], 'Physics')
        self.assertIn('marked as high priority', response.data['suggestion']['reason'])

    def test_enriched_suggestion_without_key_falls_back(self):
        self.create_task(title='Only task')

        response = self.client.post(f'/api/students/{self.student_id}/suggestion/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['source'], 'ranking')
        self.assertEqual(response.data['suggestion']['title'], 'Only task')

    def test_analytics(self):
        self.create_task(subject_id=self.subject_id)

        response = self.client.get(
            f'/api/students/{self.student_id}/analytics/subject-distribution/'
        )
        self.assertEqual(response.data['distribution'][0]['percentage'], 100)

        response = self.client.get(f'/api/students/{self.student_id}/analytics/weekly-progress/')
        self.assertEqual(len(response.data['days']), 7)

    def test_api_info_endpoint(self):
        response = self.client.get('/api/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('endpoints', response.data)
        self.assertIn('NO_ELIGIBLE_TASKS', response.data['error_codes'])


@override_settings(STUDY_TRACKER=TEST_SETTINGS)
class SeedDemoCommandTests(TestCase):
    """Tests for the seed_demo management command."""

    def test_seed_is_idempotent(self):
        call_command('seed_demo', stdout=StringIO())
        call_command('seed_demo', stdout=StringIO())

        student = Student.objects.get(username='demo_user')
        self.assertEqual(student.subjects.count(), 4)
        self.assertEqual(Task.objects.filter(student=student).count(), 4)
