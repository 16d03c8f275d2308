"""
Unit Tests for Practice Question Delivery
"""
import pytest

from learningsphere.services.practice_engine import step_difficulty, first_question, pick_question, grade


class TestDifficultyLadder:

    @pytest.mark.parametrize('current,correct,expected', [
        ('Very easy', True, 'Easy'),
        ('Easy', True, 'Moderate'),
        ('Difficult', True, 'Difficult'),
        ('Moderate', False, 'Easy'),
        ('Very easy', False, 'Very easy'),
        ('Unknown', True, 'Moderate'),
    ])
    def test_step(self, current, correct, expected):
        assert step_difficulty(current, correct) == expected


class TestQuestionSelection:

    def test_first_question_is_newest(self, make_questions):
        questions = make_questions('Easy', count=3)

        assert first_question('Easy').id == questions[-1].id
        assert first_question('Difficult') is None

    def test_pick_excludes_served_and_inactive(self, make_questions):
        served, inactive, fresh = make_questions('Moderate', count=3)
        inactive.is_active = False

        assert pick_question('Moderate', [served.id]).id == fresh.id
        assert pick_question('Moderate', [served.id, fresh.id]) is None


class TestGrading:

    def test_correct_answer_updates_counters(self, make_questions):
        question = make_questions('Easy', answer='c')[0]

        record = grade(question, ' C ', time_taken='7.5')

        assert record['is_correct'] is True
        assert record['user_answer'] == 'c'
        assert record['time_taken'] == 7.5
        assert question.total_attempts == 1
        assert question.correct_attempts == 1
        assert question.success_rate == 100.0

    def test_missing_answer_is_wrong(self, make_questions):
        question = make_questions('Easy')[0]

        record = grade(question, '')

        assert record['is_correct'] is False
        assert record['user_answer'] is None
        assert question.correct_attempts == 0
