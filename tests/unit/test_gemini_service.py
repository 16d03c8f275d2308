"""
Unit Tests for Gemini Service
"""
import json
from unittest.mock import Mock, patch

import pytest

from learningsphere.services.gemini_service import (
    GeminiService, TranscriptionError, MODELS_TO_TRY, default_exam_questions,
    fallback_student_report, normalize_question, strip_code_fences,
)


@pytest.fixture
def no_key(monkeypatch):
    monkeypatch.delenv('GEMINI_API_KEY', raising=False)


class TestHelpers:

    @pytest.mark.parametrize('text,expected', [
        ('```json\n[1, 2]\n```', '[1, 2]'),
        ('Here you go:\n```\n{"a": 1}\n```', '{"a": 1}'),
        ('[3]', '[3]'),
    ])
    def test_strip_code_fences(self, text, expected):
        assert strip_code_fences(text) == expected

    def test_normalize_question_repairs_fields(self):
        question = normalize_question({'questionText': 'Why?', 'options': ['a'], 'correctAnswer': 'z'}, 4)

        assert question['question'] == 'Why?'
        assert question['options'] == ['Option A', 'Option B', 'Option C', 'Option D']
        assert question['correctAnswer'] == 'A'
        assert question['explanation'] == ''

    def test_normalize_question_keeps_valid_fields(self):
        question = normalize_question({'question': 'Q', 'options': [1, 2, 3, 4, 5],
                                       'correctAnswer': 'd) Four'}, 0)

        assert question['options'] == ['1', '2', '3', '4']
        assert question['correctAnswer'] == 'D'

    def test_default_questions(self):
        questions = default_exam_questions('Physics', 'Optics', 2)

        assert len(questions) == 2
        assert 'Optics' in questions[1]['question']

    def test_fallback_student_report(self):
        report = fallback_student_report({
            'name': 'Lena', 'exam_stats': {'averagePercentage': 85, 'passed': 3, 'totalExams': 4},
            'progress': {'current_level': 2, 'experience_points': 1500, 'badges': [{}]},
        })

        assert report.startswith('# Performance Report for Lena')
        assert 'excellent mastery' in report
        assert 'Aim for 95%' in report


class TestGeneration:

    def test_no_key_returns_none(self, no_key):
        service = GeminiService()

        assert service.available is False
        assert service.generate('hello') is None

    def test_falls_through_failing_models(self):
        service = GeminiService(api_key='test-key')
        client = Mock()
        client.models.generate_content.side_effect = [
            RuntimeError('quota exceeded'),
            Mock(text='  answer  '),
        ]

        with patch.object(service, '_get_client', return_value=client):
            assert service.generate('prompt') == 'answer'

        models = [c.kwargs['model'] for c in client.models.generate_content.call_args_list]
        assert models == MODELS_TO_TRY[:2]

    def test_all_models_fail(self):
        service = GeminiService(api_key='test-key')
        client = Mock()
        client.models.generate_content.return_value = Mock(text='')

        with patch.object(service, '_get_client', return_value=client):
            assert service.generate('prompt') is None

        assert client.models.generate_content.call_count == len(MODELS_TO_TRY)

    def test_exam_questions_parsed_from_fenced_json(self):
        service = GeminiService(api_key='test-key')
        payload = [{'question': f'Q{i}', 'options': ['a', 'b', 'c', 'd'], 'correctAnswer': 'B'}
                   for i in range(5)]

        with patch.object(service, 'generate', return_value=f'```json\n{json.dumps(payload)}\n```'):
            questions = service.generate_exam_questions('Maths', 'Sets', 3)

        assert [q['question'] for q in questions] == ['Q0', 'Q1', 'Q2']
        assert questions[0]['correctAnswer'] == 'B'

    def test_unparseable_questions_fall_back(self):
        service = GeminiService(api_key='test-key')

        with patch.object(service, 'generate', return_value='not json at all'):
            questions = service.generate_exam_questions('Maths', 'Sets', 2)

        assert questions == default_exam_questions('Maths', 'Sets', 2)


class TestSpeech:

    def test_empty_audio(self):
        with pytest.raises(TranscriptionError, match='Empty'):
            GeminiService(api_key='test-key').transcribe_audio(b'')

    def test_unconfigured(self, no_key):
        with pytest.raises(TranscriptionError, match='not configured'):
            GeminiService().transcribe_audio(b'audio-bytes')

    def test_summary_fallback_truncates(self, no_key):
        transcript = ' '.join(f'w{i}' for i in range(150))

        summary = GeminiService().summarize_transcription(transcript)

        assert summary.endswith('...')
        assert len(summary.split()) == 100
