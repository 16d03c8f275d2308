"""
Tests for Report Routes

No Gemini key is configured, so the template reports are returned.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

from learningsphere import db
from learningsphere.models.exam import Exam

QUESTIONS = [
    {'question': 'Q1', 'options': ['a', 'b', 'c', 'd'], 'correctAnswer': 'A'},
    {'question': 'Q2', 'options': ['a', 'b', 'c', 'd'], 'correctAnswer': 'B'},
    {'question': 'Q3', 'options': ['a', 'b', 'c', 'd'], 'correctAnswer': 'C'},
]


def _result(user_id, answers, score, passed):
    return {
        'user_id': user_id, 'answers': answers, 'score': score, 'total': 3,
        'percentage': round(score / 3 * 100), 'passed': passed, 'time_taken': 300,
    }


class TestStudentReport:

    def test_own_report(self, client, auth_headers, learner):
        learner.exam_stats = {'totalExams': 2, 'passed': 1, 'averagePercentage': 65}
        db.session.commit()

        response = client.get('/api/reports/user', headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['report'].startswith('# Performance Report for Lena Learner')
        assert '65%' in data['report']
        assert data['data']['adaptive_stats']['totalExams'] == 0

    def test_gemini_narrative_used_when_available(self, client, auth_headers):
        with patch('learningsphere.services.gemini_service.GeminiService.generate',
                   return_value='A glowing report'):
            response = client.get('/api/reports/user', headers=auth_headers)

        assert response.get_json()['report'] == 'A glowing report'

    def test_learner_cannot_view_others(self, client, auth_headers, other_learner):
        response = client.get(f'/api/reports/user/{other_learner.id}', headers=auth_headers)

        assert response.status_code == 403

    def test_learner_can_view_own_by_id(self, client, auth_headers, learner):
        response = client.get(f'/api/reports/user/{learner.id}', headers=auth_headers)

        assert response.status_code == 200

    def test_admin_views_any_report(self, client, admin_headers, learner):
        response = client.get(f'/api/reports/user/{learner.id}', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['data']['email'] == learner.email

    def test_admin_unknown_user(self, client, admin_headers):
        response = client.get('/api/reports/user/missing', headers=admin_headers)

        assert response.status_code == 404


class TestExamReport:

    def test_exam_report(self, client, admin_headers, learner, other_learner):
        now = datetime.utcnow()
        exam = Exam(
            title='Physics Final', subject='Physics', topic='Motion',
            start_time=now - timedelta(hours=3), end_time=now - timedelta(hours=2), duration=60,
            status='completed', questions=QUESTIONS, started_by=[],
            results=[
                _result(learner.id, {'0': 'A', '1': 'B', '2': 'D'}, 2, True),
                _result(other_learner.id, {'0': 'A', '1': 'C'}, 1, False),
            ],
        )
        db.session.add(exam)
        db.session.commit()

        response = client.get(f'/api/reports/exam/{exam.id}', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['report'].startswith('# Exam Report: Physics Final')
        stats = data['data']
        assert stats['participants'] == 2
        assert stats['pass_rate'] == 50.0
        assert [q['correct_rate'] for q in stats['question_stats']] == [100.0, 50.0, 0.0]
        assert [q['index'] for q in stats['hardest_questions']] == [2, 1, 0]

    def test_exam_without_submissions(self, client, admin_headers):
        now = datetime.utcnow()
        exam = Exam(title='Empty', subject='Maths', topic='Sets', start_time=now,
                    end_time=now + timedelta(hours=1), duration=60, questions=QUESTIONS, results=[])
        db.session.add(exam)
        db.session.commit()

        data = client.get(f'/api/reports/exam/{exam.id}', headers=admin_headers).get_json()

        assert data['data']['hardest_questions'] == []
        assert 'Not enough submissions yet' in data['report']

    def test_learner_forbidden(self, client, auth_headers):
        response = client.get('/api/reports/exam/anything', headers=auth_headers)

        assert response.status_code == 403

    def test_unknown_exam(self, client, admin_headers):
        response = client.get('/api/reports/exam/missing', headers=admin_headers)

        assert response.status_code == 404
