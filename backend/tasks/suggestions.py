"""
Language-model enriched task suggestions.

The enriched path asks a text-generation provider to pick the next task
and explain why. It gets exactly one attempt, bounded by a timeout. If the
provider is not configured, fails, or answers with anything other than a
well-formed recommendation for one of the student's incomplete tasks, the
deterministic ranker answers instead. Callers never see the failure.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import anthropic
from django.conf import settings

from .ranking import suggest_next_task
from .records import (
    SubjectRecord,
    TaskRecord,
    TaskSuggestion,
    subject_index,
    subject_name_for,
)


logger = logging.getLogger(__name__)

SOURCE_ENRICHED = "enriched"
SOURCE_RANKING = "ranking"

REASON_MAX_LENGTH = 100

SYSTEM_PROMPT = (
    "You are a smart academic assistant that helps students "
    "prioritize their tasks. Reply with JSON only."
)


class EnhancementUnavailable(Exception):
    """The provider could not produce a usable suggestion."""


class SuggestionEnricher(ABC):
    """Port to an external text generator."""

    @abstractmethod
    def complete(self, system: str, prompt: str) -> str:
        """
        Return the provider's raw text answer.

        Raises:
            EnhancementUnavailable: on timeout, network, credential or
                provider errors
        """


class AnthropicEnricher(SuggestionEnricher):
    """Enricher backed by the Anthropic Messages API (no retries)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 10.0,
        max_tokens: int = 512
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.Anthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    def complete(self, system: str, prompt: str) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AnthropicError as exc:
            raise EnhancementUnavailable(f"provider call failed: {exc}") from exc

        text = "".join(
            block.text for block in message.content
            if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise EnhancementUnavailable("provider returned no text")
        return text


def build_prompt(
    tasks: List[TaskRecord],
    subjects_by_id: Dict[int, SubjectRecord],
    now: datetime
) -> str:
    """Describe the incomplete tasks and what a good pick looks like."""
    tasks_data = [
        {
            'id': task.id,
            'title': task.title,
            'subject': subject_name_for(task, subjects_by_id),
            'type': task.type,
            'deadline': task.deadline.date().isoformat(),
            'timeEstimate': task.time_estimate,
            'priority': task.priority,
        }
        for task in tasks
    ]

    return f"""Current date: {now.date().isoformat()}

Here are the student's incomplete tasks:
{json.dumps(tasks_data, indent=2)}

Based on deadline proximity, task priority, estimated time, and task type,
recommend ONE task the student should focus on next.

Consider these factors:
- Tasks with closer deadlines should generally be prioritized
- Higher priority tasks are more important
- Try to maintain subject rotation (don't focus too much on one subject)
- Balance between different task types (assignments, projects, exams, study)

Reply with a JSON object with these keys:
- taskId: the id of the recommended task
- title: the title of the task
- reason: why this task should be done now (max {REASON_MAX_LENGTH} characters)
- subjectName: the subject of the task
- timeEstimate: estimated minutes to complete
- deadline: the task deadline
"""


def _extract_json_object(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        text = text.rsplit("```", 1)[0]

    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        text = text[first_brace:last_brace + 1]
    return text


def _coerce_task_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_enriched_suggestion(
    raw: str,
    tasks_by_id: Dict[int, TaskRecord],
    subjects_by_id: Dict[int, SubjectRecord]
) -> TaskSuggestion:
    """
    Validate the provider's answer and turn it into a suggestion.

    Only the reason is taken from the provider; every other field comes
    from the stored task the provider picked.

    Raises:
        EnhancementUnavailable: when the answer is not a JSON object naming
            one of the candidate tasks with a non-empty reason
    """
    try:
        payload = json.loads(_extract_json_object(raw))
    except json.JSONDecodeError as exc:
        raise EnhancementUnavailable(f"answer is not JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise EnhancementUnavailable("answer is not a JSON object")

    task_id = _coerce_task_id(payload.get('taskId'))
    if task_id is None or task_id not in tasks_by_id:
        raise EnhancementUnavailable(f"unknown taskId: {payload.get('taskId')!r}")

    reason = payload.get('reason')
    if not isinstance(reason, str) or not reason.strip():
        raise EnhancementUnavailable("missing reason")

    task = tasks_by_id[task_id]
    return TaskSuggestion(
        task_id=task.id,
        title=task.title,
        reason=reason.strip()[:REASON_MAX_LENGTH],
        subject_name=subject_name_for(task, subjects_by_id),
        time_estimate=task.time_estimate,
        deadline=task.deadline,
    )


class SuggestionService:
    """
    Suggest the next task, preferring the enricher when one is configured.

    Usage:
        suggestion, source = SuggestionService(enricher).suggest(tasks, subjects)
    """

    def __init__(self, enricher: Optional[SuggestionEnricher] = None):
        self.enricher = enricher

    def suggest(
        self,
        tasks: Iterable[TaskRecord],
        subjects: Iterable[SubjectRecord],
        now: Optional[datetime] = None
    ) -> Tuple[Optional[TaskSuggestion], str]:
        """
        Returns:
            Tuple of (suggestion or None, source) where source is
            "enriched" or "ranking".
        """
        if now is None:
            now = datetime.now()

        tasks = list(tasks)
        subjects = list(subjects)
        incomplete = [task for task in tasks if not task.completed]

        if not incomplete:
            return None, SOURCE_RANKING

        if self.enricher is not None:
            subjects_by_id = subject_index(subjects)
            try:
                raw = self.enricher.complete(
                    SYSTEM_PROMPT,
                    build_prompt(incomplete, subjects_by_id, now)
                )
                suggestion = parse_enriched_suggestion(
                    raw,
                    {task.id: task for task in incomplete},
                    subjects_by_id
                )
                return suggestion, SOURCE_ENRICHED
            except EnhancementUnavailable as exc:
                logger.warning("Enriched suggestion unavailable, using ranking: %s", exc)
            except Exception:
                logger.exception("Enricher %s failed unexpectedly, using ranking",
                                 type(self.enricher).__name__)

        return suggest_next_task(tasks, subjects, now), SOURCE_RANKING


def build_enricher() -> Optional[SuggestionEnricher]:
    """Enricher from settings, or None when no API key is configured."""
    config = settings.STUDY_TRACKER
    api_key = config.get('ANTHROPIC_API_KEY')
    if not api_key:
        return None
    return AnthropicEnricher(
        api_key=api_key,
        model=config['SUGGESTION_MODEL'],
        timeout=config['SUGGESTION_TIMEOUT'],
        max_tokens=config['SUGGESTION_MAX_TOKENS'],
    )
