"""Question authoring rules and objective auto-scoring.

Questions are plain dicts with keys `type`, `question_text`, `options`
(a list of `{text, is_correct}`) and `max_marks`. Answers are dicts with
`question_index` and `answer`. Everything here is pure: callers persist
nothing until these helpers have accepted the whole input.
"""

import math
from numbers import Number
from typing import Any, List, Optional

from ..errors import ValidationError

QUESTION_TYPES = ('mcq', 'true-false', 'free-text')
OBJECTIVE_TYPES = ('mcq', 'true-false')
DEFAULT_MAX_MARKS = 1


def validate_questions(questions) -> List[dict]:
    """Validate an authored question list and return normalized copies.

    Raises `ValidationError` on the first offending question.
    """
    if not questions or not isinstance(questions, list):
        raise ValidationError('At least one question is required')
    return [_validate_question(q) for q in questions]


def _validate_question(q) -> dict:
    q = _as_dict(q)
    if q is None:
        raise ValidationError('Each question must be an object')
    qtype = q.get('type')
    if qtype not in QUESTION_TYPES:
        raise ValidationError(f'Invalid question type: {qtype}')
    text = q.get('question_text')
    if not isinstance(text, str) or not text.strip():
        raise ValidationError('Question text is required')
    options = []
    if qtype in OBJECTIVE_TYPES:
        raw_options = q.get('options') or []
        if not raw_options or not isinstance(raw_options, list):
            raise ValidationError(f'{qtype} questions require options')
        if qtype == 'true-false' and len(raw_options) != 2:
            raise ValidationError('True/False questions must have exactly 2 options')
        for opt in raw_options:
            opt = _as_dict(opt) or {}
            if not isinstance(opt.get('text'), str) or not opt.get('text'):
                raise ValidationError('Option text is required')
            options.append({'text': opt['text'], 'is_correct': opt.get('is_correct') is True})
        if not any(o['is_correct'] for o in options):
            raise ValidationError(f'{qtype} questions must have at least one correct option')
    max_marks = q.get('max_marks')
    if max_marks is not None:
        if isinstance(max_marks, bool) or not isinstance(max_marks, Number) \
                or not math.isfinite(max_marks) or max_marks <= 0:
            raise ValidationError('Max marks must be greater than 0')
    return {'type': qtype, 'question_text': text, 'options': options, 'max_marks': max_marks}


def normalize_answers(answers) -> List[dict]:
    """Check the shape of a submitted answer list.

    An empty list is accepted. Index range is checked later against the
    assignment's questions by `score_answers`.
    """
    if not isinstance(answers, list):
        raise ValidationError('Answers must be provided as an array')
    out = []
    seen = set()
    for item in answers:
        item = _as_dict(item)
        idx = item.get('question_index') if item is not None else None
        if isinstance(idx, bool) or not isinstance(idx, int):
            raise ValidationError('Each answer must include an integer question_index')
        if idx in seen:
            raise ValidationError(f'Duplicate answer for question {idx}')
        seen.add(idx)
        out.append({'question_index': idx, 'answer': item.get('answer')})
    return out


def resolve_question(questions: List[dict], index: int) -> dict:
    """Return the question at `index`, rejecting anything out of range."""
    if not 0 <= index < len(questions):
        raise ValidationError('Invalid question index')
    return questions[index]


def score_answer(question: dict, answer: Any) -> float:
    """Marks awarded for one answer.

    Objective questions earn `max_marks` (default 1) only when the answer
    equals the text of the first option flagged correct. Free-text answers
    always earn 0.
    """
    if question.get('type') not in OBJECTIVE_TYPES:
        return 0
    correct = next((o for o in question.get('options') or [] if o.get('is_correct')), None)
    if correct is not None and correct.get('text') == answer:
        return question.get('max_marks') or DEFAULT_MAX_MARKS
    return 0


def score_answers(questions: List[dict], answers: List[dict]) -> float:
    """Sum the marks for a normalized answer list."""
    total = 0
    for a in answers:
        total += score_answer(resolve_question(questions, a['question_index']), a['answer'])
    return total


def marks_from_total(total: float) -> Optional[float]:
    """Stored marks for an auto-scored total: None when nothing was earned."""
    return total if total > 0 else None


def _as_dict(value) -> Optional[dict]:
    if hasattr(value, 'model_dump'):
        return value.model_dump()
    if isinstance(value, dict):
        return value
    return None
