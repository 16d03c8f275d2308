"""
Unit Tests for Rate Limiter Service
"""
import pytest
import time
from unittest.mock import Mock, patch


def _mock_redis(mock_from_url, execute_result):
    mock_client = Mock()
    mock_pipe = Mock()
    mock_pipe.execute.return_value = execute_result
    mock_client.pipeline.return_value = mock_pipe
    mock_client.ping.return_value = True
    mock_from_url.return_value = mock_client
    return mock_pipe


class TestRateLimits:
    """Tests for rate limit configuration"""

    def test_rate_limits_defined(self):
        from learningsphere.services.rate_limiter import RATE_LIMITS

        for action in ('login_attempt', 'password_reset', 'register', 'chatbot_message',
                       'exam_generation', 'report_generation', 'transcription', 'api_global'):
            assert action in RATE_LIMITS

    def test_rate_limit_structure(self):
        from learningsphere.services.rate_limiter import RATE_LIMITS

        for action, config in RATE_LIMITS.items():
            assert config['max_requests'] > 0
            assert config['window_seconds'] > 0


class TestRateLimiter:
    """Tests for RateLimiter class"""

    @pytest.fixture
    def limiter(self):
        from learningsphere.services.rate_limiter import RateLimiter
        return RateLimiter(enabled=False)

    # =========================================================================
    # Without Redis (fallback behavior)
    # =========================================================================

    def test_disabled_allows_all(self, limiter):
        result = limiter.check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is True
        assert result['remaining'] == 999

    def test_no_redis_allows_all(self, limiter):
        limiter.enabled = True
        limiter.redis_client = None

        assert limiter.is_rate_limited('user-1', 'chatbot_message') is False
        assert limiter.get_remaining('user-1', 'chatbot_message') == 999
        assert limiter.record_request('user-1', 'chatbot_message') is True

    @patch('redis.from_url')
    def test_unreachable_redis_disables_enforcement(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter

        mock_from_url.return_value.ping.side_effect = ConnectionError('refused')

        limiter = RateLimiter(enabled=True)

        assert limiter.redis_client is None
        assert limiter.check_rate_limit('user-1', 'login_attempt')['allowed'] is True

    # =========================================================================
    # With Mocked Redis
    # =========================================================================

    @patch('redis.from_url')
    def test_under_limit(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter
        _mock_redis(mock_from_url, [0, 3, []])

        result = RateLimiter(enabled=True).check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is True
        assert result['remaining'] == 2
        assert result['limit'] == 5
        assert result['window'] == 300

    @patch('redis.from_url')
    def test_at_limit(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter
        _mock_redis(mock_from_url, [0, 5, [('entry', time.time())]])

        result = RateLimiter(enabled=True).check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is False
        assert result['remaining'] == 0
        assert 1 <= result['retry_after'] <= 300

    @patch('redis.from_url')
    def test_explicit_limits_override_config(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter
        _mock_redis(mock_from_url, [0, 2, []])

        result = RateLimiter(enabled=True).check_rate_limit('user-1', 'api_global',
                                                           max_requests=2, window_seconds=10)

        assert result['allowed'] is False
        assert result['window'] == 10

    @patch('redis.from_url')
    def test_redis_error_fails_open(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter
        mock_pipe = _mock_redis(mock_from_url, None)
        mock_pipe.execute.side_effect = RuntimeError('pipeline broken')

        result = RateLimiter(enabled=True).check_rate_limit('user-1', 'register')

        assert result['allowed'] is True

    @patch('redis.from_url')
    def test_record_request(self, mock_from_url):
        from learningsphere.services.rate_limiter import RateLimiter
        mock_pipe = _mock_redis(mock_from_url, True)

        assert RateLimiter(enabled=True).record_request('user-1', 'transcription') is True
        mock_pipe.zadd.assert_called_once()
        mock_pipe.expire.assert_called_once_with(
            'learningsphere:rate_limit:user-1:transcription', 3600 + 60
        )

    # =========================================================================
    # Key Generation Tests
    # =========================================================================

    def test_get_key_format(self, limiter):
        assert limiter._get_key('user-123', 'login_attempt') == 'learningsphere:rate_limit:user-123:login_attempt'

    def test_get_key_unique_per_identity_and_action(self, limiter):
        assert limiter._get_key('user-1', 'a') != limiter._get_key('user-2', 'a')
        assert limiter._get_key('user-1', 'a') != limiter._get_key('user-1', 'b')


class TestRateLimitDecorator:
    """Tests for the rate_limit decorator"""

    def test_limited_request_returns_429(self, app):
        from learningsphere.services import rate_limiter as module

        limiter = Mock()
        limiter.check_rate_limit.return_value = {
            'allowed': False, 'remaining': 0, 'reset_at': 123, 'retry_after': 42, 'limit': 5
        }

        @module.rate_limit('login_attempt')
        def view():
            return 'ok'

        with patch.object(module, 'get_rate_limiter', return_value=limiter):
            with app.test_request_context('/', environ_base={'REMOTE_ADDR': '10.0.0.1'}):
                response = view()

        assert response.status_code == 429
        assert response.headers['Retry-After'] == '42'
        limiter.check_rate_limit.assert_called_once_with('10.0.0.1', 'login_attempt', None, None)
        limiter.record_request.assert_not_called()

    def test_allowed_request_is_recorded(self, app):
        from learningsphere.services import rate_limiter as module

        limiter = Mock()
        limiter.check_rate_limit.return_value = {
            'allowed': True, 'remaining': 4, 'reset_at': 0, 'retry_after': 0, 'limit': 5
        }

        @module.rate_limit('chatbot_message')
        def view():
            return 'ok'

        with patch.object(module, 'get_rate_limiter', return_value=limiter):
            with app.test_request_context('/'):
                response = view()

        assert response.status_code == 200
        assert response.headers['X-RateLimit-Remaining'] == '3'
        limiter.record_request.assert_called_once()


class TestRateLimiterSingleton:
    """Tests for singleton pattern"""

    def test_get_rate_limiter_singleton(self):
        from learningsphere.services.rate_limiter import get_rate_limiter, reset_rate_limiter

        reset_rate_limiter()
        l1 = get_rate_limiter()
        l2 = get_rate_limiter()
        assert l1 is l2

        reset_rate_limiter()
        assert get_rate_limiter() is not l1
