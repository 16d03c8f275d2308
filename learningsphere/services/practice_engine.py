"""
Question delivery for practice and sectional tests: difficulty ladder,
question selection, and grading.
"""
import random
from typing import Iterable, Optional

from learningsphere.models.question import Question, DIFFICULTY_LEVELS


def step_difficulty(current: str, correct: bool) -> str:
    """One tier up on a correct answer, one down on a wrong one, clamped"""
    index = DIFFICULTY_LEVELS.index(current) if current in DIFFICULTY_LEVELS else 1
    index = index + 1 if correct else index - 1
    return DIFFICULTY_LEVELS[max(0, min(index, len(DIFFICULTY_LEVELS) - 1))]


def first_question(difficulty: str = "Easy") -> Optional[Question]:
    """Newest active question at a tier"""
    return Question.query.filter_by(difficulty=difficulty, is_active=True) \
        .order_by(Question.created_at.desc(), Question.id.desc()).first()


def pick_question(difficulty: str, exclude_ids: Iterable[int]) -> Optional[Question]:
    """Random active question at a tier that has not been served yet"""
    query = Question.query.filter_by(difficulty=difficulty, is_active=True)
    exclude_ids = list(exclude_ids or [])
    if exclude_ids:
        query = query.filter(~Question.id.in_(exclude_ids))
    candidates = query.all()
    return random.choice(candidates) if candidates else None


def grade(question: Question, user_answer, time_taken=None) -> dict:
    """Grade an answer, update the question's attempt counters, return the response record"""
    correct = question.is_correct(user_answer)
    question.record_attempt(correct)
    return {
        "question_id": question.id,
        "user_answer": (str(user_answer).strip().lower() if user_answer else None),
        "correct_answer": question.answer,
        "is_correct": correct,
        "difficulty": question.difficulty,
        "time_taken": float(time_taken or 0),
    }
