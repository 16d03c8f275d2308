"""
Unit Tests for Adaptive Exam Scoring and Engine Client
"""
from unittest.mock import Mock, patch

import pytest
import requests

from learningsphere.models.adaptive_exam import AdaptiveExam
from learningsphere.services.adaptive_engine import AdaptiveEngineClient, AdaptiveEngineError, format_question
from learningsphere.services.adaptive_scoring import calculate_xp


def _response(is_correct, difficulty_numeric, time_spent=10.0, ability=1.0):
    return {
        'question_id': 'q', 'is_correct': is_correct, 'difficulty_numeric': difficulty_numeric,
        'time_spent': time_spent, 'ability_before': 0.5, 'ability_after': ability,
    }


class TestAdaptiveExamRecord:

    def test_running_statistics(self):
        exam = AdaptiveExam(current_ability=0.5, responses=[])

        exam.add_response(_response(True, 1, time_spent=4, ability=0.8))
        exam.add_response(_response(False, 3, time_spent=20, ability=0.6))

        assert exam.total_questions == 2
        assert exam.correct_answers == 1
        assert exam.wrong_answers == 1
        assert exam.accuracy == 50.0
        assert exam.current_ability == 0.6
        assert exam.fastest_answer == 4
        assert exam.slowest_answer == 20
        assert exam.average_time_per_question == 12
        assert exam.difficulty_breakdown['easy'] == {'attempted': 1, 'correct': 1, 'accuracy': 100.0}
        assert exam.difficulty_breakdown['difficult']['accuracy'] == 0.0


class TestCalculateXp:

    def test_minimum_award(self):
        exam = AdaptiveExam(responses=[])

        assert calculate_xp(exam) == 50

    def test_strong_fast_exam(self):
        exam = AdaptiveExam(current_ability=0.5, responses=[])
        for _ in range(4):
            exam.add_response(_response(True, 3, time_spent=8))
        exam.add_response(_response(True, 2, time_spent=8))
        exam.complete(final_ability=2.1)

        # 50 + 5 correct + 100 accuracy + 4 difficult + 1 moderate + speed + ability
        assert calculate_xp(exam) == 50 + 50 + 100 + 80 + 10 + 50 + 100

    def test_slow_answers_get_no_speed_bonus(self):
        exam = AdaptiveExam(current_ability=0.5, responses=[])
        exam.add_response(_response(True, 1, time_spent=40))
        exam.complete(final_ability=0.7)

        assert calculate_xp(exam) == 50 + 10 + 100


class TestEngineClient:

    @pytest.fixture
    def client(self):
        return AdaptiveEngineClient(base_url='http://engine.test/api/', timeout=3)

    def test_start_posts_user(self, client):
        response = Mock()
        response.json.return_value = {'success': True, 'session_id': 's1'}

        with patch('learningsphere.services.adaptive_engine.requests.request', return_value=response) as request:
            assert client.start('user-1')['session_id'] == 's1'

        request.assert_called_once_with('POST', 'http://engine.test/api/adaptive/start',
                                        json={'user_id': 'user-1'}, timeout=3)

    def test_http_error_raises(self, client):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError('500 Server Error')

        with patch('learningsphere.services.adaptive_engine.requests.request', return_value=response):
            with pytest.raises(AdaptiveEngineError):
                client.resume('s1')

    def test_invalid_json_raises(self, client):
        response = Mock()
        response.json.side_effect = ValueError('not json')

        with patch('learningsphere.services.adaptive_engine.requests.request', return_value=response):
            with pytest.raises(AdaptiveEngineError, match='invalid JSON'):
                client.submit('s1', 'q1', 'A', 5)

    def test_format_question(self):
        assert format_question(None) is None
        assert format_question({'id': 1, 'question': 'Q', 'options': [], 'difficulty': 'easy',
                                'difficulty_numeric': 1})['difficultyNumeric'] == 1
