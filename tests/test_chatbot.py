"""
Tests for Chatbot Routes

Gemini is not configured, so replies come from the templates.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

from learningsphere import db
from learningsphere.models.exam import Exam


class TestChat:

    def test_guest_greeting(self, client):
        response = client.post('/api/chatbot/chat', json={'message': 'Hello!'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['intent'] == 'greeting'
        assert 'there' in data['response']
        assert 'timestamp' in data

    def test_greeting_uses_name(self, client, auth_headers):
        data = client.post('/api/chatbot/chat', headers=auth_headers,
                           json={'message': 'hey'}).get_json()

        assert 'Lena Learner' in data['response']

    def test_guest_asked_to_log_in_for_personal_data(self, client):
        data = client.post('/api/chatbot/chat', json={'message': 'What is my score?'}).get_json()

        assert data['intent'] == 'performance_info'
        assert 'Log in' in data['response']
        assert data['suggestions'][0] == 'What is LearningSphere?'

    def test_dashboard_intent(self, client, auth_headers):
        data = client.post('/api/chatbot/chat', headers=auth_headers,
                           json={'message': 'Show my dashboard'}).get_json()

        assert data['intent'] == 'dashboard_info'
        assert data['response'].startswith("Here's your overview, Lena Learner")
        assert 'Start your first practice exam' in data['suggestions']

    def test_exam_intent_lists_upcoming_exams(self, client, auth_headers):
        now = datetime.utcnow()
        db.session.add(Exam(title='Chemistry Quiz', subject='Chemistry', topic='Bonds',
                            start_time=now + timedelta(days=1), end_time=now + timedelta(days=1, hours=1),
                            duration=60, questions=[], results=[]))
        db.session.commit()

        data = client.post('/api/chatbot/chat', headers=auth_headers,
                           json={'message': 'Which exams are coming up?'}).get_json()

        assert data['intent'] == 'exam_info'
        assert 'Chemistry Quiz' in data['response']

    def test_gemini_reply_used_when_available(self, client, auth_headers):
        with patch('learningsphere.services.gemini_service.GeminiService.generate',
                   return_value='Focus on algebra this week.') as generate:
            data = client.post('/api/chatbot/chat', headers=auth_headers,
                               json={'message': 'What should I focus on?'}).get_json()

        assert data['response'] == 'Focus on algebra this week.'
        assert 'system_instruction' in generate.call_args[1]

    def test_empty_message(self, client):
        response = client.post('/api/chatbot/chat', json={'message': '   '})

        assert response.status_code == 400
        assert response.get_json()['success'] is False


class TestDashboardAndSuggestions:

    def test_dashboard_requires_auth(self, client):
        assert client.get('/api/chatbot/dashboard').status_code == 401

    def test_dashboard(self, client, auth_headers, learner):
        response = client.get('/api/chatbot/dashboard', headers=auth_headers)

        data = response.get_json()
        assert data['success'] is True
        assert data['dashboard']['user']['id'] == learner.id
        assert data['dashboard']['practice_sessions'] == 0
        assert data['dashboard']['upcoming_exams'] == []

    def test_guest_suggestions(self, client):
        data = client.get('/api/chatbot/suggestions').get_json()

        assert data['role'] == 'guest'
        assert 'How do I sign up?' in data['suggestions']

    def test_learner_category_suggestions(self, client, auth_headers):
        data = client.get('/api/chatbot/suggestions?category=progress', headers=auth_headers).get_json()

        assert data['role'] == 'learner'
        assert data['category'] == 'progress'
        assert 'Show my practice streak' in data['suggestions']

    def test_unknown_category_falls_back_to_general(self, client, tutor_headers):
        data = client.get('/api/chatbot/suggestions?category=progress', headers=tutor_headers).get_json()

        assert data['suggestions'][0] == 'Show my upcoming live sessions'
